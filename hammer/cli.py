"""Command line interface for hammer."""
from __future__ import annotations

from argparse import REMAINDER, ArgumentParser, Namespace
from pathlib import Path
from typing import Callable, Dict, Iterable, List
import shlex
import sys

from core.command_runner import CommandError, RecordingCommandRunner

from .clean import clean
from .config import ConfigOverrides, resolve_config
from .console import Console
from .context import Context
from .deps import DependencyInstaller
from .dispatcher import TargetDispatcher, run_target
from .errors import ConfigurationError, HammerError
from .release import PACKAGE_KINDS, release_ember

HELP_PAGES: Dict[str, str] = {
    "main": """\
Script for automating the process of installing dependencies
and compiling Worldforge in a self contained environment.

Usage: hammer [<options>] <command> <target>
Commands:
  install-deps   -  install all 3rd party dependencies
  checkout       -  fetch worldforge source (libraries, clients)
  build          -  build the sources and install in environment
  clean          -  delete build directory so a fresh build can be performed
  release_ember  -  change ember to a specific release

Options:
  -d, --debug           -  Build for debugging instead of max performance
  -t, --cross-compile   -  Compile to different platform: --cross-compile=android
                           Can be android (=ARMv7), android-ARMv7 or android-x86
  --make-flags          -  Variable passed to every make call: --make-flags="-j4"
  --configure-flags     -  Variable passed to every configure call
  --cmake-flags         -  Variable passed to every cmake call
  --compile-flags       -  Variable passed to the compiler
  --link-flags          -  Variable passed to the linker
  -a, --force-autogen   -  Force autogen when it is already autogenerated
  -c, --force-configure -  Force configure when it is already configured
  --use-release-libs    -  Check out the known-good library releases
  --use-release-ember=X -  Check out Ember release X
  --use-release-media=X -  Fetch media of Ember release X
  --use-release NAME=REV-  Check out REV of component NAME (repeatable)
  --always-stash        -  Stash local changes before updating a checkout
  --dry-run             -  Print the commands instead of running them
  -v, --verbose / -q, --quiet

For more help, type: hammer help <command>""",
    "install-deps": """\
Install all 3rd party dependencies into build environment.

Usage: hammer install-deps <dependency to install>
Dependencies Available:
  all      -  install all dependencies listed below
  cegui    -  a free library providing windowing and widgets for
              graphics APIs / engines
  ogre     -  3D rendering engine
  cg       -  interactive effects toolkit
  basedir  -  implementation of the XDG Base Directory specifications
  tolua++  -  Lua binding generator (installed by 'all' on macOS)
  freealut -  OpenAL utility toolkit (installed by 'all' on macOS)
  appimage -  AppImageKit, used for release images

Hint: build ogre first then cegui""",
    "checkout": """\
Fetch latest source code for worldforge libraries and clients.
If you want Hammer to stash away any local changes, use --always-stash
or the environment variable HAMMERALWAYSSTASH=yes.

Usage: hammer checkout <target>
Available targets:
  all           - fetch everything
  libs          - fetch libraries only
  ember         - fetch ember only
  webember      - fetch ember and webember
  cyphesis      - fetch cyphesis server only
  worlds        - fetch worlds only
  metaserver-ng - fetch the metaserver only""",
    "build": """\
Build the sources and install in environment.

Usage: hammer build <target> [<make arguments>]
Available targets:
  all           - build everything
  libs          - build libraries only
  ember         - build ember only
  webember      - build webember only
  cyphesis      - build cyphesis server only
  worlds        - build worlds only
  metaserver-ng - build the metaserver only
  ember_apk     - bundle ember.apk (android targets only)

Hint: after a checkout use 'all'. To rebuild after changing code
only in Ember, use 'ember'. Will build much quicker!""",
    "clean": """\
Clean out build files of a project.

Usage: hammer clean <target>
Targets:
  cegui, ogre, libs/<name>, clients/<name>, servers/<name>""",
    "release_ember": """\
Build a specific release of Ember, including latest stable libraries.
Do not run this command as root, AppImage building will fail.

Usage: hammer release_ember <version number> [<target>]
Available targets [optional]:
  dir        - build into a standard directory structure
  image      - build an AppImage or AppBundle (Default)

e.g. hammer release_ember 0.7.1 dir""",
}

NO_HELP_PAGE = "No help page found!"


class HammerArgumentParser(ArgumentParser):
    """Argument parser reporting usage errors as :class:`ConfigurationError`."""

    def error(self, message: str):  # type: ignore[override]
        raise ConfigurationError(message)


def _add_global_options(parser: ArgumentParser) -> None:
    parser.add_argument("-h", "--help", action="store_true", help="Show help and exit")
    parser.add_argument("-t", "--cross-compile", "--cross_compile", dest="cross_compile")
    parser.add_argument("-d", "--debug", action="store_true", default=None)
    for name in ("make", "configure", "cmake", "compile", "link"):
        parser.add_argument(f"--{name}-flags", f"--{name}_flags", dest=f"{name}_flags", metavar="FLAGS")
    parser.add_argument("-a", "--force-autogen", "--force_autogen", dest="force_autogen", action="store_true")
    parser.add_argument("-c", "--force-configure", "--force_configure", dest="force_configure", action="store_true")
    parser.add_argument("--use-release-libs", dest="use_release_libs", action="store_true", default=None)
    parser.add_argument("--use-release-ember", dest="use_release_ember", metavar="VERSION")
    parser.add_argument("--use-release-media", dest="use_release_media", metavar="VERSION")
    parser.add_argument("--use-release", dest="versions", action="append", default=[], metavar="NAME=REV")
    parser.add_argument("--always-stash", dest="always_stash", action="store_true", default=None)
    parser.add_argument("--dry-run", dest="dry_run", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-q", "--quiet", action="store_true")
    parser.add_argument("--hammer-dir", dest="hammer_dir", type=Path, help="Directory holding support/ and work/")


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = HammerArgumentParser(prog="hammer", add_help=False)
    _add_global_options(parser)
    subparsers = parser.add_subparsers(dest="command", parser_class=HammerArgumentParser)

    help_parser = subparsers.add_parser("help", add_help=False)
    help_parser.add_argument("topic", nargs="?")

    deps_parser = subparsers.add_parser("install-deps", add_help=False)
    deps_parser.add_argument("target", nargs="?")

    checkout_parser = subparsers.add_parser("checkout", add_help=False)
    checkout_parser.add_argument("target", nargs="?")

    build_parser = subparsers.add_parser("build", add_help=False)
    build_parser.add_argument("target", nargs="?")
    build_parser.add_argument("make_args", nargs=REMAINDER)

    clean_parser = subparsers.add_parser("clean", add_help=False)
    clean_parser.add_argument("target", nargs="?")

    release_parser = subparsers.add_parser("release_ember", add_help=False)
    release_parser.add_argument("version", nargs="?")
    release_parser.add_argument("package", nargs="?", default="image")

    return parser.parse_args(list(argv))


def _overrides(args: Namespace) -> ConfigOverrides:
    return ConfigOverrides(
        cross_compile=args.cross_compile,
        debug=args.debug,
        make_flags=args.make_flags,
        configure_flags=args.configure_flags,
        cmake_flags=args.cmake_flags,
        compile_flags=args.compile_flags,
        link_flags=args.link_flags,
        force_autogen=args.force_autogen,
        force_configure=args.force_configure,
        always_stash=args.always_stash,
        use_release_libs=args.use_release_libs,
        use_release_ember=args.use_release_ember,
        use_release_media=args.use_release_media,
        versions=tuple(args.versions),
        dry_run=args.dry_run,
    )


def _console_level(args: Namespace) -> str:
    if args.verbose:
        return "debug"
    if args.quiet:
        return "error"
    return "info"


def show_help(topic: str = "main") -> None:
    print(HELP_PAGES.get(topic, NO_HELP_PAGE))


def _missing_parameter(command: str) -> int:
    print("Missing required parameter!")
    show_help(command)
    return 1


def _emit_dry_run_output(ctx: Context) -> None:
    if not isinstance(ctx.runner, RecordingCommandRunner):
        return
    for line in ctx.runner.iter_formatted(workspace=ctx.config.hammer_dir):
        print(line)


def main(argv: Iterable[str] | None = None) -> int:
    arguments = list(sys.argv[1:] if argv is None else argv)
    if not arguments:
        show_help()
        return 1

    console = Console()
    ctx: Context | None = None
    try:
        args = _parse_arguments(arguments)
        if args.command == "help":
            show_help(args.topic or "main")
            return 0
        if args.help:
            show_help(args.command or "main")
            return 0
        if args.command is None:
            show_help()
            return 1
        if args.command != "release_ember" and not args.target:
            return _missing_parameter(args.command)

        console = Console(_console_level(args), dry_run=args.dry_run)
        hammer_dir = (args.hammer_dir or Path.cwd()).resolve()
        config = resolve_config(hammer_dir, _overrides(args))
        if args.command == "build" and args.make_args:
            config = config.with_overrides(
                extra_make_args=tuple(part for value in args.make_args for part in shlex.split(value))
            )
        ctx = Context.create(config, console)
        console.info(f"Building for {config.variant.name}!")
        _COMMANDS[args.command](ctx, args)
    except (HammerError, CommandError) as exc:
        if ctx is not None:
            _emit_dry_run_output(ctx)
        console.error(str(exc).splitlines()[0])
        return 1

    _emit_dry_run_output(ctx)
    return 0


def _handle_install_deps(ctx: Context, args: Namespace) -> None:
    installer = DependencyInstaller(ctx)
    if not (ctx.config.host.is_mingw or ctx.config.target_os == "android"):
        installer.plan(args.target)
    ctx.prepare()
    installer.install(args.target)


def _handle_target(ctx: Context, args: Namespace) -> None:
    TargetDispatcher(ctx.config).dispatch(args.command, args.target)
    ctx.prepare()
    run_target(ctx, args.command, args.target)


def _handle_clean(ctx: Context, args: Namespace) -> None:
    clean(ctx, args.target)


def _handle_release(ctx: Context, args: Namespace) -> None:
    if args.package not in PACKAGE_KINDS:
        raise ConfigurationError(f"Unknown release target '{args.package}'. Available targets: {', '.join(PACKAGE_KINDS)}")
    ctx.prepare()
    release_ember(ctx, args.version, args.package)


_COMMANDS: Dict[str, Callable[[Context, Namespace], None]] = {
    "install-deps": _handle_install_deps,
    "checkout": _handle_target,
    "build": _handle_target,
    "clean": _handle_clean,
    "release_ember": _handle_release,
}


__all__: List[str] = ["HELP_PAGES", "main", "show_help"]


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
