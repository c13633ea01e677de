from __future__ import annotations

from pathlib import Path
import tempfile
import unittest
from unittest.mock import patch

from core.command_runner import CommandResult, RecordingCommandRunner
from hammer.components import get_component
from hammer.config import HammerConfig, HostInfo
from hammer.console import Console
from hammer.context import Context
from hammer.dispatcher import OperationKind, TargetDispatcher, run_operation, run_target
from hammer.errors import ConfigurationError, PhaseError

LINUX = HostInfo(os_name="Linux", arch="x86_64")
MINGW = HostInfo(os_name="Windows", arch="x86", msystem="MINGW32")


class FailOnRunner(RecordingCommandRunner):
    """Records like a dry run but fails every command run inside ``needle``."""

    def __init__(self, needle: str) -> None:
        super().__init__()
        self.needle = needle

    def run(self, command, *, cwd=None, env=None, check=True, note=None, log_path=None):  # type: ignore[override]
        super().run(command, cwd=cwd, env=env, check=check, note=note, log_path=log_path)
        if cwd is not None and self.needle in str(cwd):
            return CommandResult(command=list(command), returncode=1, stdout="", stderr="", log_path=log_path)
        return CommandResult(command=list(command), returncode=0, stdout="", stderr="", log_path=log_path)


class FailOnCommandRunner(RecordingCommandRunner):
    def __init__(self, failing: list[str]) -> None:
        super().__init__()
        self.failing = failing

    def run(self, command, *, cwd=None, env=None, check=True, note=None, log_path=None):  # type: ignore[override]
        result = super().run(command, cwd=cwd, env=env, check=check, note=note, log_path=log_path)
        if list(command) == self.failing:
            return CommandResult(command=list(command), returncode=2, stdout="", stderr="", log_path=log_path)
        return result


def names(operations) -> list[str]:
    return [op.component or op.hook for op in operations]


class DispatchTableTests(unittest.TestCase):
    def dispatcher(self, host: HostInfo = LINUX, **changes) -> TargetDispatcher:
        return TargetDispatcher(HammerConfig(hammer_dir=Path("/h"), host=host, **changes))

    def test_checkout_libs(self) -> None:
        operations = self.dispatcher().dispatch("checkout", "libs")
        self.assertTrue(all(op.kind is OperationKind.CHECKOUT for op in operations))
        self.assertEqual(names(operations), ["varconf", "atlas-cpp", "wfmath", "eris", "libwfut", "mercator"])

    def test_checkout_all(self) -> None:
        self.assertEqual(
            names(self.dispatcher().dispatch("checkout", "all")),
            ["varconf", "atlas-cpp", "wfmath", "eris", "libwfut", "mercator", "worlds", "ember", "cyphesis", "FireBreath", "webember"],
        )

    def test_checkout_webember_is_skipped_on_mingw(self) -> None:
        self.assertEqual(names(self.dispatcher(MINGW).dispatch("checkout", "webember")), ["ember"])

    def test_metaserver_is_explicit_only(self) -> None:
        self.assertNotIn("metaserver-ng", names(self.dispatcher().dispatch("checkout", "all")))
        self.assertEqual(names(self.dispatcher().dispatch("checkout", "metaserver-ng")), ["metaserver-ng"])

    def test_build_all(self) -> None:
        self.assertEqual(
            names(self.dispatcher().dispatch("build", "all")),
            [
                "varconf", "wfmath", "atlas-cpp", "mercator", "eris", "libwfut",
                "worlds",
                "ember", "ember-media",
                "cyphesis", "cyphesis-post-install",
                "ember", "ember-media", "webember-plugin",
            ],
        )

    def test_webember_build_uses_separate_variant(self) -> None:
        build, media, plugin = self.dispatcher().dispatch("build", "webember")
        self.assertEqual(build.log_name, "webember")
        self.assertEqual(build.variant_prefix, "web")
        self.assertEqual(build.configure_args, ("--enable-webember",))
        self.assertTrue(media.optional)
        self.assertFalse(plugin.optional)

    def test_unknown_targets(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.dispatcher().dispatch("checkout", "ember_apk")
        with self.assertRaises(ConfigurationError):
            self.dispatcher().dispatch("build", "everything")
        with self.assertRaises(ConfigurationError):
            self.dispatcher().dispatch("deploy", "all")

    def test_android_bundle_requires_android_target(self) -> None:
        with self.assertRaises(ConfigurationError):
            self.dispatcher().dispatch("build", "ember_apk")
        operations = self.dispatcher(target_os="android", target_arch="ARMv7").dispatch("build", "ember_apk")
        self.assertEqual(names(operations), ["android-bundle"])


class RunTargetTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def make_context(self, runner: RecordingCommandRunner, **changes) -> Context:
        config = HammerConfig(hammer_dir=self.root, host=LINUX, **changes)
        return Context.create(config, Console("none", dry_run=config.dry_run), runner)

    def add_sources(self, ctx: Context, *components: str) -> None:
        for name in components:
            ctx.layout.source_dir(get_component(name).path).mkdir(parents=True)

    def test_checkout_clones_into_group_directories(self) -> None:
        runner = RecordingCommandRunner()
        ctx = self.make_context(runner, dry_run=True, use_release_libs=True)
        run_target(ctx, "checkout", "libs")

        clones = [record for record in runner.iter_commands() if record.command[1] == "clone"]
        self.assertEqual(len(clones), 6)
        self.assertEqual(clones[0].command, ["git", "clone", "https://github.com/worldforge/varconf.git", "-b", "1.0.1"])
        self.assertEqual(clones[0].cwd, str(ctx.layout.source / "libs"))

    def test_build_libs_runs_components_in_order(self) -> None:
        runner = RecordingCommandRunner()
        ctx = self.make_context(runner, dry_run=True)
        self.add_sources(ctx, "varconf", "wfmath", "atlas-cpp", "mercator", "eris", "libwfut")
        run_target(ctx, "build", "libs")

        installs = [record.note for record in runner.iter_commands() if record.command == ["make", "install"]]
        self.assertEqual(
            installs,
            ["varconf install", "wfmath install", "atlas-cpp install", "mercator install", "eris install", "libwfut install"],
        )

    def test_build_stops_at_first_failure(self) -> None:
        runner = FailOnRunner("wfmath")
        ctx = self.make_context(runner)
        self.add_sources(ctx, "varconf", "wfmath", "atlas-cpp", "mercator", "eris", "libwfut")
        with self.assertRaises(PhaseError) as error:
            run_target(ctx, "build", "libs")
        self.assertEqual(error.exception.component, "wfmath")
        self.assertFalse(any("atlas-cpp" in (record.cwd or "") for record in runner.iter_commands()))

    def test_metaserver_sysconfdir_uses_prefix(self) -> None:
        runner = RecordingCommandRunner()
        ctx = self.make_context(runner, dry_run=True)
        self.add_sources(ctx, "metaserver-ng")
        run_target(ctx, "build", "metaserver-ng")
        configure = next(record for record in runner.iter_commands() if record.note == "metaserver-ng configure")
        self.assertEqual(configure.command[-1], f"--sysconfdir={ctx.layout.prefix}/etc/metaserver-ng")

    def test_webember_build_directory_and_logs(self) -> None:
        runner = RecordingCommandRunner()
        ctx = self.make_context(runner, dry_run=True)
        self.add_sources(ctx, "ember")
        build = TargetDispatcher(ctx.config).dispatch("build", "webember")[0]
        run_operation(ctx, build)

        configure = next(record for record in runner.iter_commands() if record.note == "ember configure")
        self.assertTrue(configure.cwd.endswith("clients/ember/webnative-64"))
        self.assertIn("--enable-webember", configure.command)
        self.assertTrue(configure.log_path.endswith("webember/config.log"))
        self.assertIn(f"--prefix={ctx.layout.prefix}", configure.command)

    def test_media_failure_does_not_stop_the_build(self) -> None:
        runner = FailOnCommandRunner(["make", "devmedia"])
        ctx = self.make_context(runner)
        self.add_sources(ctx, "ember")
        with patch("hammer.hooks.shutil.which", return_value="/usr/bin/rsync"):
            run_target(ctx, "build", "ember")
        self.assertEqual(runner.commands[-1].command, ["make", "devmedia"])
        self.assertTrue(runner.commands[-1].log_path.endswith("clients/ember/media.log"))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
