"""Per-invocation bundle of resolved configuration and collaborators."""
from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from core.archive import ArchiveManager
from core.command_runner import CommandError, CommandRunner, RecordingCommandRunner, SubprocessCommandRunner

from .config import BuildVariant, HammerConfig
from .console import Console
from .environment import EnvironmentLayout, build_environment
from .errors import HammerError
from .phase_runner import PhaseRunner
from .planner import BuildPlanner, FileSystemProbe
from .source_sync import SourceSync
from .versions import VersionTable


def make_runner(dry_run: bool) -> CommandRunner:
    return RecordingCommandRunner() if dry_run else SubprocessCommandRunner()


@dataclass
class Context:
    config: HammerConfig
    console: Console
    runner: CommandRunner
    layout: EnvironmentLayout
    versions: VersionTable
    planner: BuildPlanner
    phases: PhaseRunner
    sync: SourceSync
    archives: ArchiveManager

    @classmethod
    def create(
        cls,
        config: HammerConfig,
        console: Console,
        runner: CommandRunner | None = None,
        *,
        probe: FileSystemProbe | None = None,
    ) -> "Context":
        runner = runner or make_runner(config.dry_run)
        layout = EnvironmentLayout.for_config(config)
        return cls(
            config=config,
            console=console,
            runner=runner,
            layout=layout,
            versions=VersionTable.from_config(config),
            planner=BuildPlanner(layout, probe=probe),
            phases=PhaseRunner(runner, console, dry_run=config.dry_run),
            sync=SourceSync(
                runner,
                console,
                always_stash=config.always_stash,
                dry_run=config.dry_run,
            ),
            archives=ArchiveManager(console),
        )

    def derive(self, config: HammerConfig) -> "Context":
        """A context for ``config`` sharing this one's console and runner."""
        return Context.create(config, self.console, self.runner, probe=self.planner.probe)

    def for_variant(self, variant: BuildVariant) -> "Context":
        """Same context whose layout builds into ``variant``'s directories."""
        return replace(self, layout=self.layout.with_variant(variant))

    def environment(self) -> dict[str, str]:
        return build_environment(self.config, self.layout)

    def run_helper(self, command: list[str], *, cwd: Path, note: str | None = None) -> None:
        """Run a helper command that is not a logged build phase; failures are fatal."""
        try:
            self.runner.run(command, cwd=cwd, env=self.environment(), note=note)
        except CommandError as exc:
            raise HammerError(str(exc).splitlines()[0]) from exc
        except OSError as exc:
            raise HammerError(f"Could not run {command[0]}: {exc}") from exc

    def prepare(self) -> None:
        if self.config.dry_run:
            self.console.dry(f"Would create work directories under {self.config.work_dir}")
            return
        self.layout.ensure_directories()
