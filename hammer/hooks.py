"""Post-processing steps attached to individual components."""
from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict
import os
import shutil
import stat

from .context import Context
from .environment import cmake_arguments, make_arguments
from .errors import HammerError, PhaseError
from .planner import Phase, PhaseCommand

DEV_MEDIA_URL = "http://amber.worldforge.org/media/media-dev/"
RELEASE_MEDIA_URL = "http://downloads.sourceforge.net/worldforge/ember-media-{version}.tar.bz2"
WEBEMBER_PREBUILT_URL = "http://sajty.elementfx.com/npWebEmber.tar.gz"


def cyphesis_post_install(ctx: Context) -> None:
    """Move the installed binary to ``cyphesis.bin`` and install the wrapper script as ``cyphesis``."""

    bin_dir = ctx.layout.prefix / "bin"
    binary = bin_dir / "cyphesis"
    wrapper = ctx.config.support_dir / "cyphesis.in"
    if ctx.config.dry_run:
        ctx.console.dry(f"Would move {binary} to cyphesis.bin and install {wrapper} as {binary}")
        return
    if not binary.is_file():
        raise PhaseError(
            f"cyphesis was not installed to {binary}",
            phase="post-install",
            component="cyphesis",
            log_path=ctx.layout.log_path("servers/cyphesis", Phase.INSTALL.log_file),
        )
    if not wrapper.is_file():
        raise HammerError(f"Wrapper script {wrapper} is missing")
    os.replace(binary, bin_dir / "cyphesis.bin")
    shutil.copyfile(wrapper, binary)
    mode = binary.stat().st_mode
    binary.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


def fetch_ember_media(ctx: Context) -> bool:
    """Fetch Ember media through the build tree's make target.

    Media is not essential for a working build, so every failure is reported
    as a warning and ``False`` is returned.
    """

    version = ctx.config.media_version
    if version == "dev":
        url = DEV_MEDIA_URL
        target = "devmedia"
    else:
        url = RELEASE_MEDIA_URL.format(version=version)
        target = "releasemedia"

    if shutil.which("rsync") is None:
        ctx.console.warning(
            f"Rsync not found, skipping fetching of media. You will need to download and install it yourself from {url}"
        )
        return False

    ctx.console.info("Fetching media...")
    step = PhaseCommand(
        phase=Phase.BUILD,
        command=["make", target],
        cwd=ctx.layout.build_dir("clients/ember"),
        env=ctx.environment(),
        log_path=ctx.layout.log_path("clients/ember", "media.log"),
    )
    try:
        ctx.phases.run(step, component="ember media")
    except PhaseError:
        ctx.console.warning(
            "Could not fetch media. This may be caused by the media server being down, by the network being down, "
            f"or by a firewall which prevents rsync from running. You need to get the media manually from {url}"
        )
        return False
    ctx.console.info("Media fetched.")
    return True


def build_webember_plugin(ctx: Context) -> None:
    """Build the FireBreath browser plugin wrapping the webember build of Ember."""

    ctx.console.info("  WebEmber plugin...")
    if ctx.config.host.is_mingw:
        _install_prebuilt_webember(ctx)
        return

    layout = ctx.layout
    env = ctx.environment()
    firebreath_source = layout.source_dir("clients/webember/FireBreath")
    build_dir = layout.build_dir("clients/webember/FireBreath")
    log_dir = "webember_plugin"

    steps = [
        PhaseCommand(
            phase=Phase.CONFIGURE,
            command=[
                "cmake",
                *cmake_arguments(ctx.config, layout),
                f"-DFB_PROJECTS_DIR={layout.source_dir('clients/webember/webember') / 'plugin'}",
                str(firebreath_source),
            ],
            cwd=build_dir,
            env=env,
            log_path=layout.log_path(log_dir, "cmake.log"),
        )
    ]
    if ctx.config.host.is_darwin:
        steps.append(
            PhaseCommand(
                phase=Phase.BUILD,
                command=["xcodebuild", "-configuration", "RelWithDebInfo"],
                cwd=build_dir,
                env=env,
                log_path=layout.log_path(log_dir, Phase.BUILD.log_file),
            )
        )
    else:
        steps.append(
            PhaseCommand(
                phase=Phase.BUILD,
                command=["make", *make_arguments(ctx.config)],
                cwd=build_dir,
                env=env,
                log_path=layout.log_path(log_dir, Phase.BUILD.log_file),
            )
        )
    for step in steps:
        ctx.console.info(f"  {step.phase.message}")
        ctx.phases.run(step, component="webember plugin")

    ctx.console.info(f"  {Phase.INSTALL.message}")
    if ctx.config.host.is_darwin:
        source = build_dir / "projects" / "WebEmber" / "RelWithDebInfo" / "webember.plugin"
        destination = layout.prefix / "lib" / "webember.plugin"
        _copy(ctx, source, destination, tree=True)
    else:
        source = build_dir / "bin" / "WebEmber" / "npWebEmber.so"
        destination = Path.home() / ".mozilla" / "plugins" / "npWebEmber.so"
        _copy(ctx, source, destination)


def _install_prebuilt_webember(ctx: Context) -> None:
    # FireBreath does not support mingw32; use the MSVC prebuilt plugin.
    layout = ctx.layout
    build_dir = layout.build_dir("clients/ember")
    archive = build_dir / "npWebEmber.tar.gz"
    if not ctx.config.dry_run:
        build_dir.mkdir(parents=True, exist_ok=True)
    ctx.run_helper(["curl", "-C", "-", "-L", "-o", str(archive), WEBEMBER_PREBUILT_URL], cwd=build_dir)
    unpacked = ctx.archives.extract_archive(archive_path=archive, destination_dir=build_dir / "npWebEmber")
    plugin = layout.prefix / "bin" / "npWebEmber.dll"
    _copy(ctx, unpacked / "npWebEmber.dll", plugin)
    ctx.run_helper(["regsvr32", "-s", str(plugin)], cwd=build_dir)


def bundle_android_app(ctx: Context) -> None:
    ctx.console.info("  Bundling Ember into ember.apk...")
    step = PhaseCommand(
        phase=Phase.INSTALL,
        command=[str(ctx.config.support_dir / "AppBundler.sh")],
        cwd=ctx.config.hammer_dir,
        env=ctx.environment(),
        log_path=ctx.layout.log_path("clients/ember", "apk.log"),
    )
    ctx.phases.run(step, component="ember.apk")


def _copy(ctx: Context, source: Path, destination: Path, *, tree: bool = False) -> None:
    if ctx.config.dry_run:
        ctx.console.dry(f"Would copy {source} to {destination}")
        return
    destination.parent.mkdir(parents=True, exist_ok=True)
    if tree:
        shutil.copytree(source, destination, dirs_exist_ok=True)
    else:
        shutil.copyfile(source, destination)


HookFunction = Callable[[Context], object]

HOOKS: Dict[str, HookFunction] = {
    "cyphesis-post-install": cyphesis_post_install,
    "ember-media": fetch_ember_media,
    "webember-plugin": build_webember_plugin,
    "android-bundle": bundle_android_app,
}
