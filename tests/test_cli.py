from __future__ import annotations

from pathlib import Path
import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest.mock import patch

from hammer import cli
from hammer.components import get_component

LIBS = ("varconf", "wfmath", "atlas-cpp", "mercator", "eris", "libwfut")


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        env = patch.dict("os.environ", {"HAMMERALWAYSSTASH": ""})
        env.start()
        self.addCleanup(env.stop)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def invoke(self, *argv: str) -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = cli.main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()

    def test_no_arguments_prints_help_and_fails(self) -> None:
        code, out, _ = self.invoke()
        self.assertEqual(code, 1)
        self.assertIn("Usage: hammer [<options>] <command> <target>", out)

    def test_help_pages(self) -> None:
        code, out, _ = self.invoke("help", "build")
        self.assertEqual(code, 0)
        self.assertIn("Build the sources and install in environment.", out)
        code, out, _ = self.invoke("--help")
        self.assertEqual(code, 0)
        self.assertIn("For more help, type: hammer help <command>", out)
        code, out, _ = self.invoke("help", "deploy")
        self.assertEqual(out.strip(), "No help page found!")
        code, out, _ = self.invoke("-h", "build")
        self.assertEqual(code, 0)
        self.assertTrue(out.startswith("Build the sources and install in environment."))

    def test_missing_target(self) -> None:
        code, out, _ = self.invoke("--hammer-dir", str(self.root), "checkout")
        self.assertEqual(code, 1)
        self.assertIn("Missing required parameter!", out)
        self.assertIn("Usage: hammer checkout <target>", out)

    def test_unknown_command_and_option(self) -> None:
        code, _, err = self.invoke("deploy", "all")
        self.assertEqual(code, 1)
        self.assertTrue(err.startswith("[ERROR]"))
        code, _, err = self.invoke("--frobnicate", "build", "all")
        self.assertEqual(code, 1)
        self.assertEqual(len(err.strip().splitlines()), 1)

    def test_unknown_target_mutates_nothing(self) -> None:
        code, _, err = self.invoke("--hammer-dir", str(self.root), "build", "everything")
        self.assertEqual(code, 1)
        self.assertIn("Unknown build target 'everything'", err)
        self.assertFalse((self.root / "work").exists())

    def test_unknown_cross_compile_target(self) -> None:
        code, _, err = self.invoke("--hammer-dir", str(self.root), "--cross-compile=ios", "checkout", "libs")
        self.assertEqual(code, 1)
        self.assertIn("Unknown target 'ios'", err)

    def test_dry_run_checkout_prints_commands(self) -> None:
        code, out, _ = self.invoke(
            "--hammer-dir", str(self.root), "--dry-run", "--use-release-libs", "checkout", "libs"
        )
        self.assertEqual(code, 0)
        self.assertIn("Checking out sources...", out)
        self.assertIn("Checkout complete.", out)
        self.assertIn("git clone https://github.com/worldforge/varconf.git -b 1.0.1", out)
        self.assertFalse((self.root / "work").exists())

    def test_build_passes_extra_make_arguments(self) -> None:
        source = self.root / "work" / "source" / "worldforge"
        for name in LIBS:
            (source / get_component(name).path).mkdir(parents=True)
        code, out, _ = self.invoke(
            "--hammer-dir", str(self.root), "--dry-run", "--make_flags=-j2", "build", "libs", "-k"
        )
        self.assertEqual(code, 0)
        self.assertIn("varconf build", out)
        self.assertIn("make -j2 -k", out)

    def test_build_failure_exits_with_one(self) -> None:
        code, _, err = self.invoke("--hammer-dir", str(self.root), "build", "worlds")
        self.assertEqual(code, 1)
        self.assertIn("source directory of worlds is missing", err)

    def test_dry_run_release_on_fresh_tree(self) -> None:
        with patch("hammer.hooks.shutil.which", return_value=None):
            code, out, err = self.invoke("--hammer-dir", str(self.root), "--dry-run", "release_ember", "0.7.2", "dir")
        self.assertEqual(code, 0, err)
        self.assertIn("git clone https://github.com/worldforge/ember.git -b release-0.7.2", out)
        self.assertIn("linux_release_bundle.sh", out.splitlines()[-1])
        self.assertFalse((self.root / "work").exists())

    def test_missing_git_is_a_one_line_error(self) -> None:
        empty_bin = self.root / "empty-bin"
        empty_bin.mkdir()
        with patch.dict("os.environ", {"PATH": str(empty_bin)}):
            code, _, err = self.invoke("--hammer-dir", str(self.root), "checkout", "libs")
        self.assertEqual(code, 1)
        self.assertEqual(len(err.strip().splitlines()), 1)
        self.assertIn("Failed to clone varconf", err)

    def test_clean_unknown_target(self) -> None:
        code, _, err = self.invoke("--hammer-dir", str(self.root), "clean", "libs/nothing")
        self.assertEqual(code, 1)
        self.assertIn("Unknown component path", err)

    def test_release_rejects_unknown_package(self) -> None:
        code, _, err = self.invoke("--hammer-dir", str(self.root), "release_ember", "0.7.2", "tarball")
        self.assertEqual(code, 1)
        self.assertIn("Unknown release target 'tarball'", err)
        self.assertFalse((self.root / "work").exists())


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
