"""Clone or update component working copies."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from core.command_runner import CommandError, CommandResult, CommandRunner

from .components import Component
from .console import Console
from .errors import SyncError

STASH_MESSAGE = "Hammer stash"


@dataclass(slots=True)
class SyncResult:
    component: str
    revision: str
    action: str
    stashed: bool = False
    upstream: str | None = None


class SourceSync:
    def __init__(
        self,
        runner: CommandRunner,
        console: Console,
        *,
        always_stash: bool = False,
        dry_run: bool = False,
        environment: Mapping[str, str] | None = None,
    ) -> None:
        self._runner = runner
        self._console = console
        self._always_stash = always_stash
        self._dry_run = dry_run
        self._environment = environment

    def sync(
        self,
        component: Component,
        owner: str | None,
        revision: str,
        *,
        parent_dir: Path,
    ) -> SyncResult:
        """Bring ``parent_dir/<name>`` to ``revision`` of ``owner``'s repository."""

        url = component.repository_url(owner)
        repo_path = parent_dir / component.name
        self._console.info(f"Getting {component.name} {revision}")

        if not repo_path.exists():
            if not self._dry_run:
                parent_dir.mkdir(parents=True, exist_ok=True)
            self._git(
                ["git", "clone", url, "-b", revision],
                cwd=parent_dir,
                component=component,
                revision=revision,
                action="clone",
            )
            return SyncResult(component=component.name, revision=revision, action="clone")

        if not (repo_path / ".git").exists():
            raise SyncError(
                f"Directory '{repo_path}' exists but is not a git repository; remove it and check out {component.name} again",
                component=component.name,
                revision=revision,
            )

        stashed = False
        if self._is_dirty(repo_path, component, revision):
            if not self._always_stash:
                raise SyncError(
                    f"Working copy of {component.name} at '{repo_path}' has local modifications; "
                    "commit them or set HAMMERALWAYSSTASH=yes to stash them before updating",
                    component=component.name,
                    revision=revision,
                )
            self._git(
                ["git", "stash", "push", "-m", STASH_MESSAGE],
                cwd=repo_path,
                component=component,
                revision=revision,
                action="stash",
            )
            stashed = True

        self._git(
            ["git", "remote", "set-url", "origin", url],
            cwd=repo_path,
            component=component,
            revision=revision,
            action="set remote url",
        )
        self._git(
            ["git", "fetch", "--tags", "origin"],
            cwd=repo_path,
            component=component,
            revision=revision,
            action="fetch",
        )
        upstream = self._resolve_upstream(repo_path, component, revision)
        result = self._git(
            ["git", "rebase", upstream],
            cwd=repo_path,
            component=component,
            revision=revision,
            action="rebase",
            check=False,
        )
        if result.returncode != 0:
            raise SyncError(
                f"Rebase of {component.name} onto {upstream} failed in '{repo_path}'. "
                "Resolve the conflicts manually, then run 'git rebase --continue' (or 'git rebase --abort').",
                component=component.name,
                revision=revision,
            )
        return SyncResult(
            component=component.name,
            revision=revision,
            action="update",
            stashed=stashed,
            upstream=upstream,
        )

    def _resolve_upstream(self, repo_path: Path, component: Component, revision: str) -> str:
        if self._dry_run:
            return f"origin/{revision}"
        candidates = (
            (f"refs/remotes/origin/{revision}", f"origin/{revision}"),
            (f"refs/tags/{revision}", revision),
        )
        for ref, upstream in candidates:
            result = self._git(
                ["git", "rev-parse", "--verify", "--quiet", ref],
                cwd=repo_path,
                component=component,
                revision=revision,
                action="resolve",
                check=False,
            )
            if result.returncode == 0:
                return upstream
        raise SyncError(
            f"Revision '{revision}' of {component.name} was not found on the remote",
            component=component.name,
            revision=revision,
        )

    def _is_dirty(self, repo_path: Path, component: Component, revision: str) -> bool:
        if self._dry_run:
            return False
        result = self._git(
            ["git", "status", "--porcelain", "--untracked-files=no"],
            cwd=repo_path,
            component=component,
            revision=revision,
            action="inspect",
        )
        return bool(result.stdout.strip())

    def _git(
        self,
        command: list[str],
        *,
        cwd: Path,
        component: Component,
        revision: str,
        action: str,
        check: bool = True,
    ) -> CommandResult:
        try:
            return self._runner.run(command, cwd=cwd, env=self._environment, check=check)
        except (CommandError, OSError) as exc:
            raise SyncError(
                f"Failed to {action} {component.name} ({revision}): {exc}",
                component=component.name,
                revision=revision,
            ) from exc
