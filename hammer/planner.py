"""Phase planning for autotools components.

Build state is never stored: whether autogen or configure must run is derived
from the generated files present on disk each time a component is planned, so
an interrupted run resumes correctly.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Protocol, Sequence

from .components import Component
from .config import BuildVariant, HammerConfig
from .environment import EnvironmentLayout, build_environment, configure_arguments, make_arguments
from .errors import ConfigurationError

AUTOGEN_ARTIFACT = "configure"
CONFIGURE_ARTIFACT = "Makefile"


class Phase(str, Enum):
    AUTOGEN = "autogen"
    CONFIGURE = "configure"
    BUILD = "build"
    INSTALL = "install"

    @property
    def log_file(self) -> str:
        return _LOG_FILES[self]

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_LOG_FILES: Dict[Phase, str] = {
    Phase.AUTOGEN: "autogen.log",
    Phase.CONFIGURE: "config.log",
    Phase.BUILD: "build.log",
    Phase.INSTALL: "install.log",
}

_MESSAGES: Dict[Phase, str] = {
    Phase.AUTOGEN: "Running autogen...",
    Phase.CONFIGURE: "Running configure...",
    Phase.BUILD: "Building...",
    Phase.INSTALL: "Installing...",
}

PHASE_ORDER: tuple[Phase, ...] = (Phase.AUTOGEN, Phase.CONFIGURE, Phase.BUILD, Phase.INSTALL)


class PhaseState(str, Enum):
    FRESH = "fresh"
    STALE = "stale"


class FileSystemProbe(Protocol):
    def exists(self, path: Path) -> bool:
        ...


class LocalFileSystem:
    def exists(self, path: Path) -> bool:
        return path.is_file()


@dataclass(frozen=True, slots=True)
class ForceFlags:
    autogen: bool = False
    configure: bool = False

    @classmethod
    def from_config(cls, config: HammerConfig) -> "ForceFlags":
        return cls(autogen=config.force_autogen, configure=config.force_configure)


@dataclass(slots=True)
class PhaseCommand:
    phase: Phase
    command: Sequence[str]
    cwd: Path
    env: Dict[str, str]
    log_path: Path


@dataclass(slots=True)
class BuildPlan:
    component: Component
    variant: BuildVariant
    source_dir: Path
    build_dir: Path
    log_name: str
    steps: List[PhaseCommand] = field(default_factory=list)

    @property
    def phases(self) -> List[Phase]:
        return [step.phase for step in self.steps]


class BuildPlanner:
    def __init__(self, layout: EnvironmentLayout, *, probe: FileSystemProbe | None = None) -> None:
        self._layout = layout
        self._probe = probe or LocalFileSystem()

    @property
    def probe(self) -> FileSystemProbe:
        return self._probe

    def _layout_for(self, variant: BuildVariant) -> EnvironmentLayout:
        if variant == self._layout.variant:
            return self._layout
        return self._layout.with_variant(variant)

    def phase_state(self, phase: Phase, component: Component, variant: BuildVariant) -> PhaseState:
        """FRESH when the phase's generated artifact is present; build and install are always STALE."""

        layout = self._layout_for(variant)
        if phase is Phase.AUTOGEN:
            artifact = layout.source_dir(component.path) / AUTOGEN_ARTIFACT
        elif phase is Phase.CONFIGURE:
            artifact = layout.build_dir(component.path) / CONFIGURE_ARTIFACT
        else:
            return PhaseState.STALE
        return PhaseState.FRESH if self._probe.exists(artifact) else PhaseState.STALE

    def plan_phases(self, component: Component, variant: BuildVariant, force: ForceFlags) -> List[Phase]:
        phases: List[Phase] = []
        for phase in PHASE_ORDER:
            forced = (phase is Phase.AUTOGEN and force.autogen) or (phase is Phase.CONFIGURE and force.configure)
            if forced or self.phase_state(phase, component, variant) is PhaseState.STALE:
                phases.append(phase)
        return phases

    def plan(
        self,
        component: Component,
        config: HammerConfig,
        *,
        variant: BuildVariant | None = None,
        log_name: str | None = None,
        extra_configure_args: Sequence[str] = (),
    ) -> BuildPlan:
        variant = variant or config.variant
        layout = self._layout_for(variant)
        source_dir = layout.source_dir(component.path)
        # A dry checkout fetches nothing, so dry runs plan against the expected tree.
        if not source_dir.is_dir() and not config.dry_run:
            raise ConfigurationError(
                f"The source directory of {component.name} is missing: {source_dir}. Try: hammer checkout"
            )
        build_dir = layout.build_dir(component.path)
        log_name = log_name or component.log_name
        env = build_environment(config, layout)

        plan = BuildPlan(
            component=component,
            variant=variant,
            source_dir=source_dir,
            build_dir=build_dir,
            log_name=log_name,
        )
        for phase in self.plan_phases(component, variant, ForceFlags.from_config(config)):
            log_path = layout.log_path(log_name, phase.log_file)
            if phase is Phase.AUTOGEN:
                step = PhaseCommand(
                    phase=phase,
                    command=["./autogen.sh"],
                    cwd=source_dir,
                    env={**env, "NOCONFIGURE": "1"},
                    log_path=log_path,
                )
            elif phase is Phase.CONFIGURE:
                step = PhaseCommand(
                    phase=phase,
                    command=[
                        str(source_dir / AUTOGEN_ARTIFACT),
                        *configure_arguments(config, layout),
                        *extra_configure_args,
                    ],
                    cwd=build_dir,
                    env=env,
                    log_path=log_path,
                )
            elif phase is Phase.BUILD:
                step = PhaseCommand(
                    phase=phase,
                    command=["make", *make_arguments(config)],
                    cwd=build_dir,
                    env=env,
                    log_path=log_path,
                )
            else:
                step = PhaseCommand(
                    phase=phase,
                    command=["make", "install"],
                    cwd=build_dir,
                    env=env,
                    log_path=log_path,
                )
            plan.steps.append(step)
        return plan
