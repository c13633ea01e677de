"""Resolution of the immutable global hammer configuration."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Sequence
import os
import platform
import re

from core.config_loader import find_config_file, load_config_file

from .components import component_for_key, get_component
from .errors import ConfigurationError

CONFIG_STEM = "hammer"

DEFAULT_MAKE_FLAGS = "-j5"
DEFAULT_MEDIA_VERSION = "dev"

_CROSS_TARGETS: Dict[str, tuple[str, str]] = {
    "android": ("android", "ARMv7"),
    "android-ARMv7": ("android", "ARMv7"),
    "android-x86": ("android", "x86"),
}

_FLAG_FIELDS = ("make_flags", "configure_flags", "cmake_flags", "compile_flags", "link_flags")
_OPTION_FIELDS = ("debug", "always_stash", "use_release_libs", "media_version")


@dataclass(frozen=True, slots=True)
class HostInfo:
    os_name: str
    arch: str
    msystem: str | None = None

    @property
    def is_darwin(self) -> bool:
        return self.os_name.lower() == "darwin"

    @property
    def is_mingw(self) -> bool:
        return self.msystem == "MINGW32"

    @property
    def is_64bit(self) -> bool:
        return self.arch.endswith("64")


def detect_host(environ: Mapping[str, str] | None = None) -> HostInfo:
    env = os.environ if environ is None else environ
    arch = platform.machine() or "x86_64"
    if re.fullmatch(r"i[3456]86", arch):
        arch = "x86"
    elif arch.upper() == "AMD64":
        arch = "x86_64"
    return HostInfo(os_name=platform.system() or "Linux", arch=arch, msystem=env.get("MSYSTEM"))


@dataclass(frozen=True, slots=True)
class BuildVariant:
    """Directory namespace isolating the artifacts of one build configuration."""

    target_os: str
    target_arch: str
    debug: bool = False
    prefix: str = ""

    @property
    def name(self) -> str:
        if self.target_os == "native":
            base = f"native-{'64' if self.target_arch.endswith('64') else '32'}"
        else:
            base = f"{self.target_os}-{self.target_arch}"
        if self.debug:
            base = f"{base}-debug"
        return f"{self.prefix}{base}"

    def with_prefix(self, prefix: str) -> "BuildVariant":
        return replace(self, prefix=prefix)


@dataclass(frozen=True, slots=True)
class HammerConfig:
    """Everything a hammer invocation needs to know, resolved once at startup."""

    hammer_dir: Path
    host: HostInfo
    target_os: str = "native"
    target_arch: str = "x86_64"
    debug: bool = False
    make_flags: str = DEFAULT_MAKE_FLAGS
    configure_flags: str = ""
    cmake_flags: str = ""
    compile_flags: str = ""
    link_flags: str = ""
    extra_make_args: tuple[str, ...] = ()
    force_autogen: bool = False
    force_configure: bool = False
    always_stash: bool = False
    use_release_libs: bool = False
    version_overrides: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    media_version: str = DEFAULT_MEDIA_VERSION
    dry_run: bool = False

    @property
    def work_dir(self) -> Path:
        return self.hammer_dir / "work"

    @property
    def support_dir(self) -> Path:
        return self.hammer_dir / "support"

    @property
    def is_cross_compile(self) -> bool:
        return self.target_os != "native"

    @property
    def variant(self) -> BuildVariant:
        return BuildVariant(target_os=self.target_os, target_arch=self.target_arch, debug=self.debug)

    def effective_compile_flags(self) -> str:
        if self.compile_flags:
            return self.compile_flags
        return "-O0 -g" if self.debug else "-O2 -g"

    def with_overrides(self, **changes: Any) -> "HammerConfig":
        """Return a copy with ``changes`` applied; version overrides are merged."""

        overrides = changes.pop("version_overrides", None)
        if overrides is not None:
            merged = dict(self.version_overrides)
            merged.update(overrides)
            changes["version_overrides"] = MappingProxyType(merged)
        return replace(self, **changes)


@dataclass(slots=True)
class ConfigOverrides:
    """Values supplied on the command line; ``None`` means not given."""

    cross_compile: str | None = None
    debug: bool | None = None
    make_flags: str | None = None
    configure_flags: str | None = None
    cmake_flags: str | None = None
    compile_flags: str | None = None
    link_flags: str | None = None
    force_autogen: bool = False
    force_configure: bool = False
    always_stash: bool | None = None
    use_release_libs: bool | None = None
    use_release_ember: str | None = None
    use_release_media: str | None = None
    versions: Sequence[str] = ()
    dry_run: bool = False


def parse_cross_compile(value: str) -> tuple[str, str]:
    try:
        return _CROSS_TARGETS[value]
    except KeyError:
        available = ", ".join(_CROSS_TARGETS)
        raise ConfigurationError(f"Unknown target '{value}'. Available targets: {available}") from None


def parse_version_assignment(text: str) -> tuple[str, str]:
    """Parse ``NAME=REVISION`` into a canonical component name and revision."""

    name, sep, revision = text.partition("=")
    name = name.strip()
    revision = revision.strip()
    if not sep or not name or not revision:
        raise ConfigurationError(f"Invalid version override '{text}', expected NAME=REVISION")
    return component_for_key(name).name, revision


def _file_versions(section: Any, path: Path) -> Dict[str, str]:
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"[versions] in '{path}' must be a table")
    versions: Dict[str, str] = {}
    for key, value in section.items():
        component = component_for_key(str(key))
        versions[component.name] = str(value)
    return versions


def _load_file_settings(hammer_dir: Path) -> tuple[Dict[str, Any], Dict[str, str]]:
    try:
        path = find_config_file(hammer_dir, CONFIG_STEM)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    if path is None:
        return {}, {}

    try:
        data = load_config_file(path)
    except (ValueError, TypeError) as exc:
        raise ConfigurationError(f"Invalid configuration file '{path}': {exc}") from exc

    settings: Dict[str, Any] = {}
    flags = data.get("flags", {})
    if not isinstance(flags, Mapping):
        raise ConfigurationError(f"[flags] in '{path}' must be a table")
    for key, value in flags.items():
        if key not in _FLAG_FIELDS:
            raise ConfigurationError(f"Unknown flag '{key}' in '{path}'")
        settings[key] = str(value)

    options = data.get("options", {})
    if not isinstance(options, Mapping):
        raise ConfigurationError(f"[options] in '{path}' must be a table")
    for key, value in options.items():
        if key not in _OPTION_FIELDS:
            raise ConfigurationError(f"Unknown option '{key}' in '{path}'")
        settings[key] = str(value) if key == "media_version" else bool(value)

    return settings, _file_versions(data.get("versions"), path)


def resolve_config(
    hammer_dir: Path,
    overrides: ConfigOverrides | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    host: HostInfo | None = None,
) -> HammerConfig:
    """Merge defaults, the optional config file, the environment and CLI values."""

    env = os.environ if environ is None else environ
    cli = overrides or ConfigOverrides()
    host_info = host or detect_host(env)

    settings, versions = _load_file_settings(hammer_dir)

    if env.get("HAMMERALWAYSSTASH") == "yes":
        settings["always_stash"] = True

    for name in _FLAG_FIELDS:
        value = getattr(cli, name)
        if value is not None:
            settings[name] = value
    for name in ("debug", "always_stash", "use_release_libs"):
        value = getattr(cli, name)
        if value is not None:
            settings[name] = value
    if cli.use_release_media is not None:
        settings["media_version"] = cli.use_release_media

    if cli.use_release_ember is not None:
        versions[get_component("ember").name] = f"release-{cli.use_release_ember}"
    for assignment in cli.versions:
        name, revision = parse_version_assignment(assignment)
        versions[name] = revision

    target_os, target_arch = "native", host_info.arch
    if cli.cross_compile is not None:
        target_os, target_arch = parse_cross_compile(cli.cross_compile)

    return HammerConfig(
        hammer_dir=hammer_dir,
        host=host_info,
        target_os=target_os,
        target_arch=target_arch,
        force_autogen=cli.force_autogen,
        force_configure=cli.force_configure,
        version_overrides=MappingProxyType(versions),
        dry_run=cli.dry_run,
        **settings,
    )
