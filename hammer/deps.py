"""Installers for the third-party libraries Worldforge builds against."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Sequence
import shutil

from .context import Context
from .environment import cmake_arguments, configure_arguments, make_arguments
from .errors import ConfigurationError, HammerError
from .planner import Phase, PhaseCommand

CEGUI_VERSION = "cegui-0.8.7"
CEGUI_DOWNLOAD = f"{CEGUI_VERSION}.tar.bz2"
OGRE_VERSION = "ogre_1_9_0"
OGRE_DOWNLOAD = "v1-9-0.tar.bz2"
CG_VERSION = "3.1"
CG_FULL_VERSION = f"{CG_VERSION}.0013"
CG_DOWNLOAD = "Cg-3.1_April2012"
FREEALUT_VERSION = "1.1.0"
TOLUA_VERSION = "tolua++-1.0.93"
BASEDIR_VERSION = "1.2.0"

CEGUI_URL = f"http://downloads.sourceforge.net/sourceforge/crayzedsgui/{CEGUI_DOWNLOAD}"
OGRE_URL = f"https://bitbucket.org/sinbad/ogre/get/{OGRE_DOWNLOAD}"
CG_URL = f"http://developer.download.nvidia.com/cg/Cg_{CG_VERSION}/{{download}}"
FREEALUT_URL = (
    "http://pkgs.fedoraproject.org/repo/pkgs/freealut/freealut-{version}.tar.gz/"
    "e089b28a0267faabdb6c079ee173664a/freealut-{version}.tar.gz"
).format(version=FREEALUT_VERSION)
TOLUA_URL = f"ftp://ftp.tw.freebsd.org/pub/ports/distfiles/{TOLUA_VERSION}.tar.bz2"
BASEDIR_URL = f"http://nevill.ch/libxdg-basedir/downloads/libxdg-basedir-{BASEDIR_VERSION}.tar.gz"
APPIMAGEKIT_URL = "https://raw.github.com/probonopd/AppImageKit/master"

APPIMAGEKIT_SOURCES = (
    "CMakeLists.txt",
    "AppRun.c",
    "fuseiso.c",
    "isofs.c",
    "isofs.h",
    "md5.c",
    "md5.h",
    "runtime.c",
    "linux/iso_fs.h",
    "linux/rock.h",
)
APPIMAGEKIT_TOOLS = ("AppImageAssistant.AppDir/package", "AppImageAssistant.AppDir/xdgappdir.py")

OGRE_CMAKE_OPTIONS = (
    "-DOGRE_BUILD_SAMPLES=ON",
    # Ogre 1.9.0 samples fail to build against OIS.
    "-DOIS_FOUND=OFF",
    "-DOGRE_INSTALL_SAMPLES=OFF",
    "-DOGRE_INSTALL_DOCS=OFF",
    "-DOGRE_BUILD_TOOLS=OFF",
    "-DOGRE_BUILD_PLUGIN_PCZ=OFF",
    "-DOGRE_BUILD_PLUGIN_BSP=OFF",
)

LUA_PACKAGES = ("lua5.1", "lua-5.1", "lua51", "lua")


@dataclass(frozen=True, slots=True)
class DependencySource:
    """Where a downloaded dependency lives below the dependency source root."""

    name: str
    url: str
    archive: str
    directory: str


class DependencyInstaller:
    """Fetch, patch, build and install third-party dependencies into the prefix."""

    def __init__(self, ctx: Context) -> None:
        self.ctx = ctx
        self._installers: Dict[str, Callable[[], None]] = {
            "ogre": self.install_ogre,
            "cegui": self.install_cegui,
            "cg": self.install_cg,
            "basedir": self.install_basedir,
            "tolua++": self.install_tolua,
            "freealut": self.install_freealut,
            "appimage": self.install_appimagekit,
        }

    @property
    def names(self) -> List[str]:
        return ["all", *self._installers]

    def plan(self, name: str) -> List[str]:
        """Dependency names installed for ``name``, in order."""

        if name == "all":
            names = ["ogre", "cegui", "basedir"]
            if self.ctx.config.host.is_darwin:
                names = ["freealut", "tolua++", *names]
            return names
        if name not in self._installers:
            raise ConfigurationError(
                f"Unknown dependency '{name}'. Available dependencies: {', '.join(self.names)}"
            )
        return [name]

    def install(self, name: str) -> None:
        config = self.ctx.config
        if config.host.is_mingw:
            self._delegate("mingw_install_deps.sh", name)
            return
        if config.target_os == "android":
            self._delegate("android_install_deps.sh", name)
            return

        names = self.plan(name)
        console = self.ctx.console
        console.info("Installing 3rd party dependencies...")
        if not config.dry_run:
            (self.ctx.layout.log_dir / "deps").mkdir(parents=True, exist_ok=True)
            self.ctx.layout.deps_source.mkdir(parents=True, exist_ok=True)
        for dependency in names:
            self._installers[dependency]()
        console.info("Install of 3rd party dependencies is complete.")

    def _delegate(self, script: str, name: str) -> None:
        helper = self.ctx.config.support_dir / script
        self.ctx.run_helper([str(helper), name], cwd=self.ctx.config.hammer_dir, note=f"install-deps {name}")

    # Individual dependencies

    def install_ogre(self) -> None:
        ctx = self.ctx
        darwin = ctx.config.host.is_darwin
        ctx.console.info("  Installing Ogre...")
        source = DependencySource("ogre", OGRE_URL, OGRE_DOWNLOAD, OGRE_VERSION)
        tree, fresh = self._fetch(source)
        if fresh:
            if darwin:
                self._patch(tree, "ogre_cocoa_currentGLContext_support.patch")
            self._patch(tree, "ogre-1.9.0-03_move_stowed_template_func.patch")

        build_dir = self._build_dir(OGRE_VERSION)
        self._phase(
            "ogre",
            Phase.CONFIGURE,
            ["cmake", str(tree), *cmake_arguments(ctx.config, ctx.layout), *OGRE_CMAKE_OPTIONS],
            cwd=build_dir,
        )
        if darwin:
            xcode = ["xcodebuild", "-configuration", "RelWithDebInfo"]
            self._phase("ogre", Phase.BUILD, xcode, cwd=build_dir)
            self._phase("ogre", Phase.INSTALL, [*xcode, "-target", "install"], cwd=build_dir)
            self._copy_tree(build_dir / "lib" / "RelWithDebInfo", ctx.layout.prefix / "lib")
            # Only Ogre.framework exists on macOS.
            self._rewrite(
                ctx.layout.prefix / "lib" / "pkgconfig" / "OGRE.pc",
                "-L${libdir} -lOgreMain",
                "-F${libdir} -framework Ogre",
            )
        else:
            self._make_and_install("ogre", build_dir)
        ctx.console.info("  Done.")

    def install_cegui(self) -> None:
        ctx = self.ctx
        ctx.console.info("  Installing CEGUI...")
        source = DependencySource("cegui", CEGUI_URL, CEGUI_DOWNLOAD, CEGUI_VERSION)
        tree, fresh = self._fetch(source)
        if fresh and ctx.config.host.is_darwin:
            ctx.console.info("  Patching...")
            self._rewrite(
                tree / "cegui" / "src" / "CEGUIDynamicModule.cpp",
                '"macPlugins.h"',
                '"implementations/mac/macPlugins.h"',
            )
            self._prepend_line(
                tree / "cegui" / "include" / "CEGUIDynamicModule.h",
                "#include<CoreFoundation/CoreFoundation.h>",
            )

        build_dir = self._build_dir(CEGUI_VERSION)
        self._phase(
            "cegui",
            Phase.CONFIGURE,
            [
                "cmake",
                *cmake_arguments(ctx.config, ctx.layout),
                "-C",
                str(ctx.config.support_dir / "CEGUI_defaults.cmake"),
                str(tree),
            ],
            cwd=build_dir,
        )
        self._make_and_install("cegui", build_dir)
        if ctx.config.host.is_darwin:
            # Static CEGUI has no plugin interface; the modules are linked explicitly.
            self._rewrite(
                ctx.layout.prefix / "lib" / "pkgconfig" / "CEGUI.pc",
                "-lCEGUIBase",
                "-lCEGUIBase -lCEGUIFalagardWRBase -lCEGUIFreeImageImageCodec -lCEGUITinyXMLParser",
            )
        ctx.console.info("  Done.")

    def install_cg(self) -> None:
        ctx = self.ctx
        ctx.console.info("  Installing Cg Toolkit...")
        download, library = self._cg_artifacts()
        directory = ctx.layout.deps_source / f"Cg_{CG_FULL_VERSION}"
        if not directory.is_dir():
            ctx.console.info("  Downloading...")
            archive = ctx.layout.deps_source / download
            self._download(CG_URL.format(download=download), archive)
            if ctx.config.host.is_darwin:
                volume = Path("/Volumes") / f"Cg-{CG_FULL_VERSION}"
                ctx.run_helper(["hdiutil", "mount", str(archive)], cwd=ctx.layout.deps_source)
                installer = (
                    volume / f"Cg-{CG_FULL_VERSION}.app" / "Contents" / "Resources" / "Installer Items" / "NVIDIA_Cg.tgz"
                )
                archive = ctx.layout.deps_source / "NVIDIA_Cg.tgz"
                self._copy_file(installer, archive)
                ctx.run_helper(["hdiutil", "unmount", str(volume)], cwd=ctx.layout.deps_source)
            ctx.archives.extract_archive(archive_path=archive, destination_dir=directory)
        self._copy_file(directory / library, ctx.layout.prefix / "lib" / Path(library).name)
        ctx.console.info("  Done.")

    def _cg_artifacts(self) -> tuple[str, str]:
        config = self.ctx.config
        if config.host.is_darwin:
            return f"{CG_DOWNLOAD}.dmg", "Library/Frameworks/Cg.framework/Versions/1.0/Cg"
        if not config.is_cross_compile and config.host.os_name.lower() == "linux":
            if config.target_arch.endswith("64"):
                return f"{CG_DOWNLOAD}_x86_64.tgz", "usr/lib64/libCg.so"
            return f"{CG_DOWNLOAD}_x86.tgz", "usr/lib/libCg.so"
        raise HammerError(f"The Cg Toolkit is not available for {config.variant.name}")

    def install_freealut(self) -> None:
        ctx = self.ctx
        ctx.console.info("  Installing freealut...")
        source = DependencySource(
            "freealut", FREEALUT_URL, f"freealut-{FREEALUT_VERSION}.tar.gz", f"freealut-{FREEALUT_VERSION}"
        )
        tree, _ = self._fetch(source)
        if ctx.config.host.is_darwin:
            self._copy_file(ctx.config.support_dir / "openal.pc", ctx.layout.prefix / "lib" / "pkgconfig" / "openal.pc")
        self._phase("freealut", Phase.AUTOGEN, ["autoreconf", "--install", "--force", "--warnings=all"], cwd=tree)

        env = ctx.environment()
        cflags = f"{env['CFLAGS']} {self._pkg_config('--cflags', 'openal')}".strip()
        ldflags = f"{env['LDFLAGS']} {self._pkg_config('--libs', 'openal')}".strip()
        build_dir = self._build_dir(f"freealut-{FREEALUT_VERSION}-src")
        self._phase(
            "freealut",
            Phase.CONFIGURE,
            [
                str(tree / "configure"),
                *configure_arguments(ctx.config, ctx.layout),
                f"CFLAGS={cflags}",
                f"LDFLAGS={ldflags}",
            ],
            cwd=build_dir,
        )
        self._make_and_install("freealut", build_dir)
        ctx.console.info("  Done.")

    def install_basedir(self) -> None:
        ctx = self.ctx
        ctx.console.info("  Installing libxdg-basedir...")
        source = DependencySource(
            "basedir", BASEDIR_URL, f"libxdg-basedir-{BASEDIR_VERSION}.tar.gz", f"libxdg-basedir-{BASEDIR_VERSION}"
        )
        tree, fresh = self._fetch(source)
        if fresh:
            # configure.ac predates automake 1.12.
            self._rewrite(tree / "configure.ac", "AC_PROG_CC", "m4_ifdef([AM_PROG_AR], [AM_PROG_AR])\nAC_PROG_CC", count=1)
        self._phase("basedir", Phase.AUTOGEN, ["autoreconf", "--install", "--force", "--warnings=all"], cwd=tree)
        build_dir = self._build_dir("libxdg-basedir")
        self._phase(
            "basedir",
            Phase.CONFIGURE,
            [str(tree / "configure"), *configure_arguments(ctx.config, ctx.layout)],
            cwd=build_dir,
        )
        self._make_and_install("basedir", build_dir)
        ctx.console.info("  Done.")

    def install_tolua(self) -> None:
        ctx = self.ctx
        ctx.console.info("  Installing tolua++...")
        lua_cflags, lua_ldflags = self._find_lua()
        source = DependencySource("tolua++", TOLUA_URL, f"{TOLUA_VERSION}.tar.bz2", TOLUA_VERSION)
        tree, _ = self._fetch(source)

        prefix = ctx.layout.prefix
        env = ctx.environment()
        cflags = env["CFLAGS"].split()
        self._copy_file(tree / "include" / "tolua++.h", prefix / "include" / "tolua++.h")

        lib_dir = tree / "src" / "lib"
        sources = [path.name for path in sorted(lib_dir.glob("*.c"))]
        self._phase(
            "tolua++",
            Phase.BUILD,
            ["gcc", *cflags, "-c", "-fPIC", f"-I{prefix / 'include'}", *sources, *lua_cflags],
            cwd=lib_dir,
        )
        objects = [f"{Path(name).stem}.o" for name in sources]
        if ctx.config.host.is_darwin:
            library = "libtolua++.a"
            link = ["ar", "cq", library, *objects]
        else:
            library = "libtolua++.so"
            link = ["gcc", "-shared", f"-Wl,-soname,{library}", "-o", library, *objects]
        self._phase("tolua++", Phase.BUILD, link, cwd=lib_dir, log_file="link.log")
        self._copy_file(lib_dir / library, prefix / "lib" / library)

        bin_dir = tree / "src" / "bin"
        self._phase(
            "tolua++",
            Phase.BUILD,
            [
                "gcc",
                *cflags,
                *env["LDFLAGS"].split(),
                "-o",
                "tolua++",
                f"-I{prefix / 'include'}",
                *lua_cflags,
                *lua_ldflags,
                f"-L{prefix / 'lib'}",
                "tolua.c",
                "toluabind.c",
                "-ltolua++",
            ],
            cwd=bin_dir,
            log_file="bin.log",
        )
        self._copy_file(bin_dir / "tolua++", prefix / "bin" / "tolua++")
        ctx.console.info("  Done.")

    def _find_lua(self) -> tuple[List[str], List[str]]:
        for package in LUA_PACKAGES:
            self.ctx.console.info(f"  Testing lua package '{package}'.")
            version = self._pkg_config("--modversion", package)
            if version.startswith("5.1"):
                self.ctx.console.info(f"  Lua package '{package}' is suitable.")
                return self._pkg_config("--cflags", package).split(), self._pkg_config("--libs", package).split()
        self.ctx.console.warning("Failed to find suitable lua package, so we will just assume that '-llua' will work.")
        return [], ["-llua"]

    def install_appimagekit(self) -> None:
        ctx = self.ctx
        ctx.console.info("  Installing core AppImageKit functionality...")
        source_dir = ctx.layout.deps_source / "AppImageKit"
        if not source_dir.is_dir():
            ctx.console.info("  Downloading...")
            for name in APPIMAGEKIT_SOURCES:
                self._download(f"{APPIMAGEKIT_URL}/{name}", source_dir / name, resume=False)
            # Debian multiarch library locations.
            self._rewrite(
                source_dir / "CMakeLists.txt",
                '"/usr/lib64"',
                '"/usr/lib" "/usr/lib64" "/usr/lib/i386-linux-gnu" "/usr/lib/x86_64-linux-gnu"',
            )
        build_dir = ctx.layout.deps_build / "AppImageKit"
        for name in APPIMAGEKIT_TOOLS:
            self._download(f"{APPIMAGEKIT_URL}/{name}", build_dir / Path(name).name, resume=False)
        self._phase(
            "AppImageKit",
            Phase.CONFIGURE,
            ["cmake", f"-DCMAKE_INSTALL_PREFIX={ctx.layout.prefix}", str(source_dir)],
            cwd=build_dir,
        )
        for target in ("AppRun", "runtime"):
            self._phase(
                "AppImageKit",
                Phase.BUILD,
                ["make", *make_arguments(ctx.config), target],
                cwd=build_dir,
                log_file=f"build_{target}.log",
            )
        if not ctx.config.dry_run:
            marker = ctx.layout.log_path("deps/AppImageKit", Phase.INSTALL.log_file)
            marker.write_text("Installed.\n", encoding="utf-8")
        ctx.console.info("  Done.")

    # Helpers

    def _fetch(self, source: DependencySource) -> tuple[Path, bool]:
        """Return the unpacked source tree and whether it was unpacked by this call."""

        ctx = self.ctx
        directory = ctx.layout.deps_source / source.directory
        if directory.is_dir():
            return ctx.archives.unpacked_root(directory), False
        ctx.console.info("  Downloading...")
        archive = ctx.layout.deps_source / source.archive
        self._download(source.url, archive)
        return ctx.archives.extract_archive(archive_path=archive, destination_dir=directory), True

    def _download(self, url: str, destination: Path, *, resume: bool = True) -> None:
        if not self.ctx.config.dry_run:
            destination.parent.mkdir(parents=True, exist_ok=True)
        command = ["curl", "-L", "-o", str(destination), url]
        if resume:
            command[1:1] = ["-C", "-"]
        self.ctx.run_helper(command, cwd=destination.parent, note=f"download {destination.name}")

    def _patch(self, tree: Path, patch_name: str) -> None:
        self.ctx.console.info("  Patching...")
        patch = self.ctx.config.support_dir / patch_name
        self.ctx.run_helper(["patch", "-p1", "-i", str(patch)], cwd=tree, note=f"patch {patch_name}")

    def _build_dir(self, name: str) -> Path:
        return self.ctx.layout.deps_build / name / self.ctx.layout.variant.name

    def _phase(
        self,
        name: str,
        phase: Phase,
        command: Sequence[str],
        *,
        cwd: Path,
        log_file: str | None = None,
    ) -> None:
        self.ctx.console.info(f"  {phase.message}")
        step = PhaseCommand(
            phase=phase,
            command=list(command),
            cwd=cwd,
            env=self.ctx.environment(),
            log_path=self.ctx.layout.log_path(f"deps/{name}", log_file or phase.log_file),
        )
        self.ctx.phases.run(step, component=name)

    def _make_and_install(self, name: str, build_dir: Path) -> None:
        self._phase(name, Phase.BUILD, ["make", *make_arguments(self.ctx.config)], cwd=build_dir)
        self._phase(name, Phase.INSTALL, ["make", "install"], cwd=build_dir)

    def _pkg_config(self, *args: str) -> str:
        try:
            result = self.ctx.runner.run(["pkg-config", *args], env=self.ctx.environment(), check=False)
        except OSError as exc:
            raise HammerError(f"Could not run pkg-config: {exc}") from exc
        if result.returncode != 0:
            return ""
        return result.stdout.strip()

    def _rewrite(self, path: Path, old: str, new: str, *, count: int = -1) -> None:
        if self.ctx.config.dry_run:
            self.ctx.console.dry(f"Would replace '{old}' in {path}")
            return
        text = path.read_text(encoding="utf-8")
        path.write_text(text.replace(old, new, count), encoding="utf-8")

    def _prepend_line(self, path: Path, line: str) -> None:
        if self.ctx.config.dry_run:
            self.ctx.console.dry(f"Would prepend '{line}' to {path}")
            return
        text = path.read_text(encoding="utf-8")
        path.write_text(f"{line}\n{text}", encoding="utf-8")

    def _copy_file(self, source: Path, destination: Path) -> None:
        if self.ctx.config.dry_run:
            self.ctx.console.dry(f"Would copy {source} to {destination}")
            return
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, destination)

    def _copy_tree(self, source: Path, destination: Path) -> None:
        if self.ctx.config.dry_run:
            self.ctx.console.dry(f"Would copy {source} to {destination}")
            return
        shutil.copytree(source, destination, dirs_exist_ok=True)
