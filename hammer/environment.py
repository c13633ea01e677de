"""Filesystem layout and process environment derived from a :class:`HammerConfig`."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping
import os
import shlex

from .config import BuildVariant, HammerConfig

_ANDROID_HOSTS: Dict[str, str] = {
    "ARMv7": "arm-linux-androideabi",
    "x86": "i686-linux-android",
}


@dataclass(frozen=True, slots=True)
class EnvironmentLayout:
    """Concrete directories for one build variant.

    ``work/`` holds everything hammer generates: installed files under
    ``local/<variant>``, working copies under ``source``, out-of-tree build
    directories under ``build`` and per-component logs under ``logs``.
    """

    variant: BuildVariant
    prefix: Path
    source: Path
    build: Path
    deps_source: Path
    deps_build: Path
    log_dir: Path

    @property
    def build_dir_name(self) -> str:
        return self.variant.name

    @classmethod
    def for_config(cls, config: HammerConfig) -> "EnvironmentLayout":
        work = config.work_dir
        variant = config.variant
        return cls(
            variant=variant,
            prefix=work / "local" / variant.name,
            source=work / "source" / "worldforge",
            build=work / "build" / "worldforge",
            deps_source=work / "source" / "deps",
            deps_build=work / "build" / "deps",
            log_dir=work / "logs" / variant.name,
        )

    def with_variant(self, variant: BuildVariant) -> "EnvironmentLayout":
        """Same layout with a different build directory name (install prefix unchanged)."""
        return EnvironmentLayout(
            variant=variant,
            prefix=self.prefix,
            source=self.source,
            build=self.build,
            deps_source=self.deps_source,
            deps_build=self.deps_build,
            log_dir=self.log_dir,
        )

    def source_dir(self, component_path: str) -> Path:
        return self.source / component_path

    def build_dir(self, component_path: str) -> Path:
        return self.build / component_path / self.build_dir_name

    def log_path(self, log_name: str, filename: str) -> Path:
        return self.log_dir / log_name / filename

    def directories(self) -> tuple[Path, ...]:
        return (self.prefix, self.source, self.deps_source, self.build, self.deps_build, self.log_dir)

    def ensure_directories(self) -> None:
        for directory in self.directories():
            directory.mkdir(parents=True, exist_ok=True)


def _prepend(value: str, existing: str | None) -> str:
    if existing:
        return f"{value}{os.pathsep}{existing}"
    return value


def build_environment(
    config: HammerConfig,
    layout: EnvironmentLayout,
    *,
    base: Mapping[str, str] | None = None,
) -> Dict[str, str]:
    """Environment overrides making the install prefix visible to every build tool."""

    source = os.environ if base is None else base
    prefix = layout.prefix
    env: Dict[str, str] = {
        "PREFIX": str(prefix),
        "PATH": _prepend(str(prefix / "bin"), source.get("PATH")),
        "PKG_CONFIG_PATH": _prepend(
            f"{prefix / 'lib' / 'pkgconfig'}{os.pathsep}{prefix / 'lib64' / 'pkgconfig'}",
            source.get("PKG_CONFIG_PATH"),
        ),
        "ACLOCAL_PATH": _prepend(str(prefix / "share" / "aclocal"), source.get("ACLOCAL_PATH")),
        "CPATH": _prepend(str(prefix / "include"), source.get("CPATH")),
    }

    library_var = "DYLD_LIBRARY_PATH" if config.host.is_darwin else "LD_LIBRARY_PATH"
    env[library_var] = _prepend(f"{prefix / 'lib'}{os.pathsep}{prefix / 'lib64'}", source.get(library_var))

    compile_flags = config.effective_compile_flags()
    env["CFLAGS"] = compile_flags
    env["CXXFLAGS"] = compile_flags
    link_flags = f"-L{prefix / 'lib'} {config.link_flags}".strip()
    env["LDFLAGS"] = link_flags
    return env


def configure_arguments(config: HammerConfig, layout: EnvironmentLayout) -> list[str]:
    """Arguments passed to every autotools ``configure`` call."""

    args = [f"--prefix={layout.prefix}"]
    if config.is_cross_compile and config.target_os == "android":
        args.append(f"--host={_ANDROID_HOSTS[config.target_arch]}")
    args.extend(shlex.split(config.configure_flags))
    return args


def cmake_arguments(config: HammerConfig, layout: EnvironmentLayout) -> list[str]:
    """Arguments passed to every ``cmake`` configure call."""

    args = [f"-DCMAKE_INSTALL_PREFIX={layout.prefix}"]
    args.append(f"-DCMAKE_BUILD_TYPE={'Debug' if config.debug else 'RelWithDebInfo'}")
    args.extend(shlex.split(config.cmake_flags))
    return args


def make_arguments(config: HammerConfig) -> list[str]:
    return [*shlex.split(config.make_flags), *config.extra_make_args]
