"""Removal of per-variant build directories."""
from __future__ import annotations

from pathlib import Path
import shutil

from .components import find_by_path
from .context import Context
from .deps import CEGUI_VERSION, OGRE_VERSION

_DEPENDENCY_BUILDS = {
    "cegui": CEGUI_VERSION,
    "ogre": OGRE_VERSION,
}


def clean_path(ctx: Context, target: str) -> Path:
    """Build directory removed by ``clean <target>`` for the current variant."""

    layout = ctx.layout
    if target in _DEPENDENCY_BUILDS:
        return layout.deps_build / _DEPENDENCY_BUILDS[target] / layout.variant.name
    component = find_by_path(target)
    return layout.build_dir(component.path)


def clean(ctx: Context, target: str) -> Path:
    path = clean_path(ctx, target)
    if ctx.config.dry_run:
        ctx.console.dry(f"Would remove {path}")
        return path
    if path.exists():
        ctx.console.info(f"Removing {path}")
        shutil.rmtree(path)
    else:
        ctx.console.debug(f"Nothing to clean at {path}")
    return path
