from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from core.command_runner import CommandResult, CommandRunner, RecordingCommandRunner
from hammer.components import get_component
from hammer.console import Console
from hammer.errors import SyncError
from hammer.source_sync import SourceSync


class FakeGitRunner(CommandRunner):
    def __init__(
        self,
        *,
        dirty: bool = False,
        refs: set[str] | None = None,
        rebase_fails: bool = False,
    ) -> None:
        self.history: list[dict] = []
        self.dirty = dirty
        self.refs = refs if refs is not None else {"refs/remotes/origin/master"}
        self.rebase_fails = rebase_fails

    def run(self, command, *, cwd=None, env=None, check=True, note=None, log_path=None):  # type: ignore[override]
        cmd_list = list(command)
        self.history.append({"command": cmd_list, "cwd": cwd})
        if cmd_list[:2] == ["git", "clone"] and cwd is not None:
            name = cmd_list[2].rsplit("/", 1)[-1].removesuffix(".git")
            (Path(cwd) / name / ".git").mkdir(parents=True)
            return CommandResult(command=cmd_list, returncode=0, stdout="", stderr="")
        if cmd_list[:2] == ["git", "status"]:
            stdout = " M src/main.cpp\n" if self.dirty else ""
            return CommandResult(command=cmd_list, returncode=0, stdout=stdout, stderr="")
        if cmd_list[:3] == ["git", "stash", "push"]:
            self.dirty = False
            return CommandResult(command=cmd_list, returncode=0, stdout="", stderr="")
        if cmd_list[:2] == ["git", "rev-parse"]:
            found = cmd_list[-1] in self.refs
            return CommandResult(command=cmd_list, returncode=0 if found else 1, stdout="", stderr="")
        if cmd_list[:2] == ["git", "rebase"] and self.rebase_fails:
            return CommandResult(command=cmd_list, returncode=1, stdout="", stderr="CONFLICT")
        return CommandResult(command=cmd_list, returncode=0, stdout="", stderr="")

    def commands(self) -> list[list[str]]:
        return [entry["command"] for entry in self.history]


class MissingProgramRunner(CommandRunner):
    def run(self, command, *, cwd=None, env=None, check=True, note=None, log_path=None):  # type: ignore[override]
        raise FileNotFoundError(2, "No such file or directory", command[0])


class SourceSyncTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.parent = Path(self.temp_dir.name) / "libs"
        self.component = get_component("varconf")
        self.console = Console("none")

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def make_checkout(self) -> Path:
        repo = self.parent / "varconf"
        (repo / ".git").mkdir(parents=True)
        return repo

    def test_clones_missing_working_copy(self) -> None:
        runner = FakeGitRunner()
        result = SourceSync(runner, self.console).sync(self.component, None, "master", parent_dir=self.parent)

        self.assertEqual(result.action, "clone")
        self.assertEqual(
            runner.commands(),
            [["git", "clone", "https://github.com/worldforge/varconf.git", "-b", "master"]],
        )
        self.assertEqual(runner.history[0]["cwd"], self.parent)
        self.assertTrue(self.parent.is_dir())

    def test_updates_clean_working_copy(self) -> None:
        repo = self.make_checkout()
        runner = FakeGitRunner()
        result = SourceSync(runner, self.console).sync(self.component, None, "master", parent_dir=self.parent)

        self.assertEqual(result.action, "update")
        self.assertEqual(result.upstream, "origin/master")
        self.assertFalse(result.stashed)
        commands = runner.commands()
        self.assertEqual(commands[1], ["git", "remote", "set-url", "origin", "https://github.com/worldforge/varconf.git"])
        self.assertEqual(commands[2], ["git", "fetch", "--tags", "origin"])
        self.assertEqual(commands[-1], ["git", "rebase", "origin/master"])
        self.assertTrue(all(entry["cwd"] == repo for entry in runner.history))

    def test_release_tags_are_resolved(self) -> None:
        self.make_checkout()
        runner = FakeGitRunner(refs={"refs/tags/1.0.1"})
        result = SourceSync(runner, self.console).sync(self.component, None, "1.0.1", parent_dir=self.parent)
        self.assertEqual(result.upstream, "1.0.1")
        self.assertEqual(runner.commands()[-1], ["git", "rebase", "1.0.1"])

    def test_owner_selects_repository(self) -> None:
        runner = FakeGitRunner()
        firebreath = get_component("FireBreath")
        SourceSync(runner, self.console).sync(firebreath, firebreath.owner, "master", parent_dir=self.parent)
        self.assertIn("https://github.com/sajty/FireBreath.git", runner.commands()[0])

    def test_dirty_working_copy_is_not_touched(self) -> None:
        self.make_checkout()
        runner = FakeGitRunner(dirty=True)
        with self.assertRaises(SyncError) as ctx:
            SourceSync(runner, self.console).sync(self.component, None, "master", parent_dir=self.parent)
        self.assertIn("HAMMERALWAYSSTASH", str(ctx.exception))
        self.assertEqual(len(runner.commands()), 1)

    def test_dirty_working_copy_is_stashed_when_requested(self) -> None:
        self.make_checkout()
        runner = FakeGitRunner(dirty=True)
        result = SourceSync(runner, self.console, always_stash=True).sync(
            self.component, None, "master", parent_dir=self.parent
        )
        self.assertTrue(result.stashed)
        self.assertEqual(runner.commands()[1], ["git", "stash", "push", "-m", "Hammer stash"])
        self.assertEqual(runner.commands()[-1], ["git", "rebase", "origin/master"])

    def test_rebase_conflicts_are_left_for_the_user(self) -> None:
        self.make_checkout()
        runner = FakeGitRunner(rebase_fails=True)
        with self.assertRaises(SyncError) as ctx:
            SourceSync(runner, self.console).sync(self.component, None, "master", parent_dir=self.parent)
        self.assertIn("git rebase --continue", str(ctx.exception))
        self.assertNotIn(["git", "rebase", "--abort"], runner.commands())

    def test_unknown_revision(self) -> None:
        self.make_checkout()
        runner = FakeGitRunner(refs=set())
        with self.assertRaises(SyncError) as ctx:
            SourceSync(runner, self.console).sync(self.component, None, "0.9.9", parent_dir=self.parent)
        self.assertEqual(ctx.exception.revision, "0.9.9")
        self.assertNotIn("rebase", [cmd[1] for cmd in runner.commands()])

    def test_directory_without_git_metadata(self) -> None:
        (self.parent / "varconf").mkdir(parents=True)
        with self.assertRaises(SyncError):
            SourceSync(FakeGitRunner(), self.console).sync(self.component, None, "master", parent_dir=self.parent)

    def test_dry_run_records_update_without_status_check(self) -> None:
        self.make_checkout()
        runner = RecordingCommandRunner()
        SourceSync(runner, self.console, dry_run=True).sync(self.component, None, "1.0.1", parent_dir=self.parent)
        commands = [record.command for record in runner.iter_commands()]
        self.assertNotIn("status", [cmd[1] for cmd in commands])
        self.assertEqual(commands[-1], ["git", "rebase", "origin/1.0.1"])

    def test_repeated_sync_is_a_plain_update(self) -> None:
        runner = FakeGitRunner()
        sync = SourceSync(runner, self.console)

        first = sync.sync(self.component, None, "master", parent_dir=self.parent)
        cloned = len(runner.history)
        second = sync.sync(self.component, None, "master", parent_dir=self.parent)
        third = sync.sync(self.component, None, "master", parent_dir=self.parent)

        self.assertEqual(first.action, "clone")
        for result in (second, third):
            self.assertEqual(result.action, "update")
            self.assertFalse(result.stashed)
            self.assertEqual(result.upstream, "origin/master")
        later = [command[1] for command in runner.commands()[cloned:]]
        self.assertNotIn("clone", later)
        self.assertNotIn("stash", later)

    def test_missing_git_is_a_sync_error(self) -> None:
        self.make_checkout()
        with self.assertRaises(SyncError) as caught:
            SourceSync(MissingProgramRunner(), self.console).sync(
                self.component, None, "master", parent_dir=self.parent
            )
        self.assertIn("Failed to inspect varconf (master)", str(caught.exception))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
