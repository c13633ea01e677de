"""Execution of planned build phases."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

from core.command_runner import CommandRunner

from .console import Console
from .errors import PhaseError
from .planner import BuildPlan, Phase, PhaseCommand

# libtool sometimes writes sysroot-relative paths as "=/abs/path" into .la files.
_LIBTOOL_MARKER = "=/"


def fix_libtool_archives(prefix: Path, *, library_dirs: Iterable[str] = ("lib", "lib64")) -> List[Path]:
    """Strip the ``=`` sysroot marker from installed libtool archives.

    Returns the files that were rewritten; running it again rewrites nothing.
    """

    rewritten: List[Path] = []
    for name in library_dirs:
        directory = prefix / name
        if not directory.is_dir():
            continue
        for archive in sorted(directory.glob("*.la")):
            if not archive.is_file():
                continue
            text = archive.read_text(encoding="utf-8", errors="surrogateescape")
            if _LIBTOOL_MARKER not in text:
                continue
            archive.write_text(text.replace(_LIBTOOL_MARKER, "/"), encoding="utf-8", errors="surrogateescape")
            rewritten.append(archive)
    return rewritten


class PhaseRunner:
    def __init__(self, runner: CommandRunner, console: Console, *, dry_run: bool = False) -> None:
        self._runner = runner
        self._console = console
        self._dry_run = dry_run

    def run(self, step: PhaseCommand, *, component: str) -> int:
        """Run one phase; any non-zero exit is raised as :class:`PhaseError`."""

        if not self._dry_run:
            step.cwd.mkdir(parents=True, exist_ok=True)
        self._console.debug(f"{self._runner.format_command(step.command)} (cwd={step.cwd})")
        try:
            result = self._runner.run(
                step.command,
                cwd=step.cwd,
                env=step.env,
                check=False,
                note=f"{component} {step.phase.value}",
                log_path=step.log_path,
            )
        except OSError as exc:
            raise PhaseError(
                f"{step.phase.value} of {component} could not be started: {exc}",
                phase=step.phase.value,
                component=component,
                log_path=step.log_path,
            ) from exc
        if result.returncode != 0:
            raise PhaseError(
                f"{step.phase.value} of {component} failed with exit code {result.returncode}, see {step.log_path}",
                phase=step.phase.value,
                component=component,
                log_path=step.log_path,
            )
        return result.returncode

    def execute(self, plan: BuildPlan, *, prefix: Path) -> None:
        for step in plan.steps:
            self._console.info(f"  {step.phase.message}")
            self.run(step, component=plan.component.name)
            if step.phase is Phase.INSTALL and not self._dry_run:
                for archive in fix_libtool_archives(prefix):
                    self._console.debug(f"Rewrote libtool archive {archive}")
