"""Static registry of the Worldforge components hammer knows how to fetch and build."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping

from .errors import ConfigurationError

DEFAULT_OWNER = "worldforge"
DEFAULT_REVISION = "master"


def override_key(name: str) -> str:
    """Map a component name to its override lookup key: ``atlas-cpp`` -> ``ATLAS_CPP``."""

    return name.upper().replace("-", "_")


def legacy_variable(name: str) -> str:
    """Name of the version variable used by older hammer configurations."""

    return f"{override_key(name)}_VER"


@dataclass(frozen=True, slots=True)
class Component:
    name: str
    path: str
    owner: str = DEFAULT_OWNER
    default_revision: str = DEFAULT_REVISION
    display_name: str | None = None

    @property
    def group(self) -> str:
        """Directory below the source root holding the working copy ('' for top level)."""
        head, _, _ = self.path.rpartition("/")
        return head

    @property
    def label(self) -> str:
        return self.display_name or self.name

    @property
    def log_name(self) -> str:
        return self.path

    @property
    def override_key(self) -> str:
        return override_key(self.name)

    def repository_url(self, owner: str | None = None) -> str:
        return f"https://github.com/{owner or self.owner}/{self.name}.git"


_COMPONENTS: tuple[Component, ...] = (
    Component("varconf", "libs/varconf", display_name="Varconf"),
    Component("atlas-cpp", "libs/atlas-cpp", display_name="Atlas-C++"),
    Component("skstream", "libs/skstream", display_name="Skstream"),
    Component("wfmath", "libs/wfmath", display_name="Wfmath"),
    Component("eris", "libs/eris", display_name="Eris"),
    Component("libwfut", "libs/libwfut", display_name="Libwfut"),
    Component("mercator", "libs/mercator", display_name="Mercator"),
    Component("worlds", "worlds", display_name="Worlds"),
    Component("ember", "clients/ember", display_name="Ember client"),
    Component("webember", "clients/webember/webember", display_name="WebEmber"),
    Component("FireBreath", "clients/webember/FireBreath", owner="sajty", display_name="FireBreath"),
    Component("cyphesis", "servers/cyphesis", display_name="Cyphesis"),
    Component("metaserver-ng", "servers/metaserver-ng", display_name="Metaserver-ng"),
)

COMPONENTS: Dict[str, Component] = {component.name: component for component in _COMPONENTS}

PINNED_RELEASES: Mapping[str, str] = {
    "varconf": "1.0.1",
    "atlas-cpp": "0.6.3",
    "skstream": "0.3.9",
    "wfmath": "1.0.2",
    "eris": "1.3.23",
    "libwfut": "libwfut-0.2.3",
    "worlds": "master",
    "cyphesis": "0.6.2",
    "mercator": "0.3.3",
}
"""Known-good release tags used by ``--use-release-libs``."""


def get_component(name: str) -> Component:
    component = COMPONENTS.get(name)
    if component is None:
        available = ", ".join(sorted(COMPONENTS)) or "<none>"
        raise ConfigurationError(f"Unknown component '{name}'. Available components: {available}")
    return component


def find_by_path(path: str) -> Component:
    """Look up a component by its source path (``libs/varconf``)."""

    normalized = path.strip().strip("/")
    for component in _COMPONENTS:
        if component.path == normalized:
            return component
    available = ", ".join(component.path for component in _COMPONENTS)
    raise ConfigurationError(f"Unknown component path '{path}'. Available paths: {available}")


def component_for_key(key: str) -> Component:
    """Resolve an override key (``ATLAS_CPP`` or ``ATLAS_CPP_VER``) or a plain name."""

    if key in COMPONENTS:
        return COMPONENTS[key]
    stripped = key[:-4] if key.endswith("_VER") else key
    for component in _COMPONENTS:
        if component.override_key == stripped:
            return component
    raise ConfigurationError(f"Unknown component version key '{key}'")
