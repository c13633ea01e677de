"""Component revision resolution: explicit override > pinned release > default."""
from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Mapping

from .components import COMPONENTS, PINNED_RELEASES, Component
from .config import HammerConfig
from .errors import ConfigurationError


class VersionTable:
    def __init__(
        self,
        *,
        components: Mapping[str, Component] | None = None,
        pinned: Mapping[str, str] | None = None,
        use_pinned: bool = False,
        overrides: Mapping[str, str] | None = None,
    ) -> None:
        self._components = dict(components if components is not None else COMPONENTS)
        self._pinned = dict(pinned if pinned is not None else PINNED_RELEASES)
        self._use_pinned = use_pinned
        explicit: Dict[str, str] = {}
        for name, revision in (overrides or {}).items():
            if name not in self._components:
                raise ConfigurationError(f"Version override for unknown component '{name}'")
            explicit[name] = revision
        self._overrides = MappingProxyType(explicit)

    @classmethod
    def from_config(cls, config: HammerConfig) -> "VersionTable":
        return cls(use_pinned=config.use_release_libs, overrides=config.version_overrides)

    @property
    def use_pinned(self) -> bool:
        return self._use_pinned

    def resolve(self, name: str) -> str:
        component = self._components.get(name)
        if component is None:
            available = ", ".join(sorted(self._components)) or "<none>"
            raise ConfigurationError(f"Unknown component '{name}'. Available components: {available}")

        revision = component.default_revision
        if self._use_pinned and name in self._pinned:
            revision = self._pinned[name]
        if name in self._overrides:
            revision = self._overrides[name]
        return revision

    def as_mapping(self) -> Dict[str, str]:
        return {name: self.resolve(name) for name in self._components}
