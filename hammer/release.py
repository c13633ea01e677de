"""Building and packaging a release of the Ember client."""
from __future__ import annotations

from pathlib import Path
from typing import Dict

from .context import Context
from .deps import DependencyInstaller
from .dispatcher import build_operation, checkout_operation, run_operation, run_target
from .errors import ConfigurationError
from .planner import Phase, PhaseCommand

RELEASE_COMPILE_FLAGS = "-O3 -g0 -s"
PACKAGE_KINDS = ("image", "dir")


def is_release_version(version: str | None) -> bool:
    return bool(version) and version != "dev"


def release_ember(ctx: Context, version: str | None = None, kind: str = "image") -> Path | None:
    """Install dependencies, build Ember for ``version`` and package it.

    ``version`` ``None`` or ``"dev"`` builds the development branches. Returns
    the AppImage path when one is created.
    """

    if kind not in PACKAGE_KINDS:
        raise ConfigurationError(f"Unknown release package '{kind}'. Available packages: {', '.join(PACKAGE_KINDS)}")

    config = ctx.config
    if not config.host.is_darwin:
        config = config.with_overrides(compile_flags=f"{config.effective_compile_flags()} {RELEASE_COMPILE_FLAGS}")
    base = ctx.derive(config)

    installer = DependencyInstaller(base)
    installer.install("all")
    installer.install("cg")

    released = is_release_version(version)
    checkout_ctx = base
    if released:
        checkout_ctx = base.derive(
            config.with_overrides(use_release_libs=True, version_overrides={"ember": f"release-{version}"})
        )
        # Older Ember releases still need skstream.
        run_operation(checkout_ctx, checkout_operation("skstream"))
    run_target(checkout_ctx, "checkout", "libs")
    run_target(checkout_ctx, "checkout", "ember")

    run_target(base, "build", "libs")
    ember_ctx = base
    if released:
        run_operation(base, build_operation("skstream"))
        ember_ctx = base.derive(config.with_overrides(media_version=version))
    run_target(ember_ctx, "build", "ember")

    if kind == "dir":
        _release_directory(base)
        return None
    if base.config.host.is_darwin:
        _app_bundle(base)
        return None
    return _app_image(base, installer, version or "dev")


def _script_environment(ctx: Context, **extra: str) -> Dict[str, str]:
    layout = ctx.layout
    env = ctx.environment()
    env.update(
        {
            "HAMMERDIR": str(ctx.config.hammer_dir),
            "WORKDIR": str(ctx.config.work_dir),
            "SUPPORTDIR": str(ctx.config.support_dir),
            "DEPS_BUILD": str(layout.deps_build),
            "BUILDDIR": layout.variant.name,
            "LOGDIR": str(layout.log_dir),
        }
    )
    env.update(extra)
    return env


def _run_script(ctx: Context, command: list[str], log_file: str, **extra: str) -> None:
    step = PhaseCommand(
        phase=Phase.INSTALL,
        command=command,
        cwd=ctx.config.hammer_dir,
        env=_script_environment(ctx, **extra),
        log_path=ctx.layout.log_path("release", log_file),
    )
    ctx.phases.run(step, component="ember release")


def _release_directory(ctx: Context) -> None:
    ctx.console.info("Creating release directory.")
    _run_script(ctx, [str(ctx.config.support_dir / "linux_release_bundle.sh")], "release_bundle.log")
    ctx.console.info("Release directory created.")


def _app_bundle(ctx: Context) -> None:
    ctx.console.info("Creating AppBundle.")
    _run_script(ctx, [str(ctx.config.support_dir / "AppBundler.sh")], "AppBundle.log")
    ctx.console.info("AppBundle creation complete.")


def _app_image(ctx: Context, installer: DependencyInstaller, version: str) -> Path:
    work = ctx.config.work_dir
    app_dir = work / "Ember.AppDir"
    ctx.console.info("Creating AppImage.")
    installer.install_appimagekit()
    _run_script(
        ctx,
        [str(ctx.config.support_dir / "linux_AppDir_create.sh")],
        "AppDir.log",
        APP_DIR_ROOT=str(app_dir),
    )
    ctx.console.info(f"AppImage will be created from the AppDir at {app_dir} and placed into {work}.")

    package_file = work / f"ember-{version}-x86_{ctx.layout.variant.name}"
    if package_file.exists():
        ctx.console.info(f"Removing existing artifact at '{package_file}'.")
        if ctx.config.dry_run:
            ctx.console.dry(f"Would remove {package_file}")
        else:
            package_file.unlink()
    _run_script(
        ctx,
        ["python", str(ctx.layout.deps_build / "AppImageKit" / "package"), str(app_dir), str(package_file), "create", "new"],
        "AppImage.log",
        APP_DIR_ROOT=str(app_dir),
    )
    ctx.console.info("AppImage creation complete.")
    return package_file
