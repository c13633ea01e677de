"""Helpers for locating and loading hammer configuration mappings."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Mapping

import json
import tomllib

import yaml


ConfigLoader = Callable[[Any], Mapping[str, Any]]


FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS)) or "<none>"
        raise ValueError(
            f"Unsupported configuration file extension: {suffix}. Supported: {supported}"
        )

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    with path.open(mode, **kwargs) as handle:
        data = loader(handle)

    # An empty YAML document decodes to None.
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")

    return data


def find_config_file(directory: Path, stem: str) -> Path | None:
    """Return the single ``<stem>.<suffix>`` file in ``directory``, if any."""

    if not directory.is_dir():
        return None

    found: Path | None = None
    for suffix in FILE_LOADERS:
        candidate = directory / f"{stem}{suffix}"
        if not candidate.is_file():
            continue
        if found is not None:
            raise ValueError(
                f"Multiple configuration files found for '{stem}': '{found.name}' and '{candidate.name}'. "
                "Only one format per configuration entry is allowed."
            )
        found = candidate
    return found


__all__ = [
    "ConfigLoader",
    "FILE_LOADERS",
    "find_config_file",
    "load_config_file",
]
