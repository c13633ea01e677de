"""Process execution for hammer: real, logged and recorded (dry-run) runners."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence
import os
import shlex
import subprocess


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    log_path: Path | None = None


class CommandError(RuntimeError):
    """Raised when a command fails."""

    def __init__(self, result: CommandResult):
        message = f"Command failed with exit code {result.returncode}: {' '.join(map(shlex.quote, result.command))}"
        if result.log_path is not None:
            message = f"{message}\nSee log: {result.log_path}"
        else:
            detail = (result.stderr or result.stdout).strip()
            if detail:
                message = f"{message}\n{detail}"
        super().__init__(message)
        self.result = result


class CommandRunner:
    """Abstract command runner interface.

    ``log_path`` redirects combined stdout/stderr into the given file, which
    is truncated first so each run leaves only its own output behind.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        log_path: Path | None = None,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return " ".join(shlex.quote(str(part)) for part in command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`."""

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        log_path: Path | None = None,
    ) -> CommandResult:
        merged_env = self._merge_environment(env)
        args = [str(part) for part in command]

        if log_path is None:
            process = subprocess.run(
                args,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                capture_output=True,
                text=True,
                check=False,
            )
            result = CommandResult(
                command=args,
                returncode=process.returncode,
                stdout=process.stdout,
                stderr=process.stderr,
            )
        else:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with log_path.open("w", encoding="utf-8") as handle:
                process = subprocess.run(
                    args,
                    cwd=str(cwd) if cwd else None,
                    env=merged_env,
                    stdout=handle,
                    stderr=subprocess.STDOUT,
                    check=False,
                )
            result = CommandResult(
                command=args,
                returncode=process.returncode,
                stdout="",
                stderr="",
                log_path=log_path,
            )

        if check and result.returncode != 0:
            raise CommandError(result)
        return result


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    note: str | None
    log_path: str | None


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them."""

    def __init__(self) -> None:
        self.commands: List[RecordedCommand] = []

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        log_path: Path | None = None,
    ) -> CommandResult:
        self.commands.append(
            RecordedCommand(
                command=[str(part) for part in command],
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env else {},
                note=note,
                log_path=str(log_path) if log_path else None,
            )
        )
        return CommandResult(command=command, returncode=0, stdout="", stderr="", log_path=log_path)

    def iter_commands(self) -> Iterable[RecordedCommand]:
        return iter(self.commands)

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        default_cwd = str(workspace) if workspace else None
        for record in self.commands:
            cmd = self.format_command(record.command)
            cwd = record.cwd or default_cwd
            parts: List[str] = ["[dry-run]"]
            if record.note:
                parts.append(record.note)
            if cwd:
                parts.append(f"(cwd={cwd})")
            parts.append(cmd)
            if record.log_path:
                parts.append(f"> {record.log_path}")
            yield " ".join(parts)


__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
]
