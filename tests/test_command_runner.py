import subprocess
import unittest
from io import StringIO
from pathlib import Path
from unittest.mock import MagicMock, patch

from gitrun.command_runner import (
    CaptureMode,
    Failure,
    LaunchError,
    RecordingCommandRunner,
    SubprocessCommandRunner,
    Success,
    code,
    decode_stream,
    exit_code,
    failed,
    stderr,
    stdout,
)
from gitrun.console import Console


def _completed(returncode, out=b"", err=b""):
    process = MagicMock()
    process.returncode = returncode
    process.stdout = out
    process.stderr = err
    return process


class TestAccessors(unittest.TestCase):
    def test_success_accessors(self):
        outcome = Success(code=0, stdout="out")
        self.assertFalse(failed(outcome))
        self.assertFalse(outcome.failed)
        self.assertEqual(code(outcome), 0)
        self.assertEqual(stdout(outcome), "out")
        self.assertIsNone(stderr(outcome))
        self.assertIsNone(outcome.stderr)

    def test_failure_accessors(self):
        outcome = Failure(code=128, stdout="", stderr="fatal: bad")
        self.assertTrue(failed(outcome))
        self.assertTrue(outcome.failed)
        self.assertEqual(code(outcome), 128)
        self.assertEqual(code(outcome), outcome.code)
        self.assertEqual(stdout(outcome), "")
        self.assertEqual(stderr(outcome), "fatal: bad")

    def test_streamed_failure_has_no_text(self):
        outcome = Failure(code=1)
        self.assertIsNone(stdout(outcome))
        self.assertIsNone(stderr(outcome))

    def test_outcomes_are_frozen(self):
        outcome = Success(code=0)
        with self.assertRaises(Exception):
            outcome.code = 1  # type: ignore[misc]


class TestHelpers(unittest.TestCase):
    def test_exit_code_passthrough(self):
        self.assertEqual(exit_code(0), 0)
        self.assertEqual(exit_code(129), 129)

    def test_exit_code_signal_defaults_to_one(self):
        self.assertEqual(exit_code(-9), 1)

    def test_decode_valid(self):
        self.assertEqual(decode_stream("héllo".encode("utf-8")), ("héllo", False))

    def test_decode_empty(self):
        self.assertEqual(decode_stream(b""), ("", False))
        self.assertEqual(decode_stream(None), ("", False))

    def test_decode_invalid(self):
        self.assertEqual(decode_stream(b"\xff\xfe\xfa"), ("", True))


class TestSubprocessCommandRunner(unittest.TestCase):
    @patch("gitrun.command_runner.subprocess.run")
    def test_captured_success(self, mock_run):
        mock_run.return_value = _completed(0, b"git version 2.44.0\n", b"")

        outcome = SubprocessCommandRunner().run(["git", "--version"])

        self.assertEqual(outcome, Success(code=0, stdout="git version 2.44.0\n"))
        mock_run.assert_called_once_with(
            ["git", "--version"],
            cwd=None,
            env=None,
            check=False,
            stdin=subprocess.DEVNULL,
            capture_output=True,
        )

    @patch("gitrun.command_runner.subprocess.run")
    def test_captured_failure(self, mock_run):
        mock_run.return_value = _completed(1, b"", b"git: 'nope' is not a git command.\n")

        outcome = SubprocessCommandRunner().run(["git", "nope"])

        self.assertIsInstance(outcome, Failure)
        self.assertEqual(outcome.code, 1)
        self.assertEqual(outcome.stdout, "")
        self.assertEqual(outcome.stderr, "git: 'nope' is not a git command.\n")
        self.assertFalse(outcome.decode_failed)

    @patch("gitrun.command_runner.subprocess.run")
    def test_captured_undecodable_stream(self, mock_run):
        mock_run.return_value = _completed(1, b"\xff\xfe", b"error\n")

        outcome = SubprocessCommandRunner().run(["git", "show"])

        self.assertEqual(outcome.stdout, "")
        self.assertEqual(outcome.stderr, "error\n")
        self.assertEqual(outcome.code, 1)
        self.assertTrue(outcome.decode_failed)

    @patch("gitrun.command_runner.subprocess.run")
    def test_captured_signal(self, mock_run):
        mock_run.return_value = _completed(-15)

        outcome = SubprocessCommandRunner().run(["git", "fetch"])

        self.assertEqual(outcome, Failure(code=1, stdout="", stderr=""))

    @patch("gitrun.command_runner.subprocess.run")
    def test_streamed_success(self, mock_run):
        mock_run.return_value = _completed(0, None, None)

        outcome = SubprocessCommandRunner().run(["git", "--version"], mode=CaptureMode.STREAMED)

        self.assertEqual(outcome, Success(code=0, stdout=None))
        mock_run.assert_called_once_with(["git", "--version"], cwd=None, env=None, check=False)

    @patch("gitrun.command_runner.subprocess.run")
    def test_streamed_failure(self, mock_run):
        mock_run.return_value = _completed(2, None, None)

        outcome = SubprocessCommandRunner().run(["git", "nope"], mode=CaptureMode.STREAMED)

        self.assertEqual(outcome, Failure(code=2))
        self.assertIsNone(outcome.stdout)
        self.assertIsNone(outcome.stderr)

    @patch("gitrun.command_runner.subprocess.run")
    def test_cwd_and_env(self, mock_run):
        mock_run.return_value = _completed(0)

        with patch.dict("os.environ", {"HOME": "/home/test"}, clear=True):
            SubprocessCommandRunner().run(
                ["git", "status"], cwd=Path("/repo"), env={"GIT_PAGER": "cat"}
            )

        kwargs = mock_run.call_args.kwargs
        self.assertEqual(kwargs["cwd"], "/repo")
        self.assertEqual(kwargs["env"], {"HOME": "/home/test", "GIT_PAGER": "cat"})

    @patch("gitrun.command_runner.subprocess.run")
    def test_launch_failure(self, mock_run):
        error = FileNotFoundError(2, "No such file or directory")
        mock_run.side_effect = error

        with self.assertRaises(LaunchError) as ctx:
            SubprocessCommandRunner().run(["git", "status"], cwd=Path("/repo"))

        self.assertEqual(ctx.exception.command, ("git", "status"))
        self.assertEqual(ctx.exception.cwd, Path("/repo"))
        self.assertIs(ctx.exception.__cause__, error)
        self.assertIn("Failed to execute `git status`", str(ctx.exception))
        self.assertIn("No such file or directory", str(ctx.exception))

    def test_embedded_null_byte_is_launch_failure(self):
        with self.assertRaises(LaunchError) as ctx:
            SubprocessCommandRunner().run(["git", "log", "a\0b"])

        self.assertIsInstance(ctx.exception.__cause__, ValueError)
        self.assertEqual(ctx.exception.command, ("git", "log", "a\0b"))
        self.assertIn("embedded null byte", str(ctx.exception))

    def test_embedded_null_byte_in_cwd_streamed(self):
        with self.assertRaises(LaunchError) as ctx:
            SubprocessCommandRunner().run(["git", "status"], mode=CaptureMode.STREAMED, cwd=Path("/tmp/a\0b"))

        self.assertIsInstance(ctx.exception.__cause__, ValueError)

    @patch("gitrun.command_runner.subprocess.run")
    def test_debug_console_output(self, mock_run):
        mock_run.return_value = _completed(0, b"\xff", b"")
        runner = SubprocessCommandRunner(Console("debug"))

        with patch("sys.stderr", new=StringIO()) as fake_err:
            runner.run(["git", "log"])

        output = fake_err.getvalue()
        self.assertIn("[DEBUG] git log (captured)", output)
        self.assertIn("not valid UTF-8", output)


class TestRecordingCommandRunner(unittest.TestCase):
    def test_records_instead_of_running(self):
        runner = RecordingCommandRunner()

        with patch("gitrun.command_runner.subprocess.run") as mock_run:
            captured = runner.run(["git", "status"], cwd=Path("/repo"), env={"A": "1"})
            streamed = runner.run(["git", "log"], mode=CaptureMode.STREAMED)

        mock_run.assert_not_called()
        self.assertEqual(captured, Success(code=0, stdout=""))
        self.assertEqual(streamed, Success(code=0, stdout=None))

        records = runner.commands
        self.assertEqual(records[0].command, ["git", "status"])
        self.assertEqual(records[0].cwd, "/repo")
        self.assertEqual(records[0].env, {"A": "1"})
        self.assertEqual(records[1].mode, CaptureMode.STREAMED)

    def test_iter_formatted(self):
        runner = RecordingCommandRunner()
        runner.run(["git", "commit", "-m", "two words"])
        runner.run(["git", "push"], cwd=Path("/repo"))

        lines = list(runner.iter_formatted(workspace=Path("/work")))

        self.assertEqual(lines[0], "[dry-run] (cwd=/work) git commit -m 'two words'")
        self.assertEqual(lines[1], "[dry-run] (cwd=/repo) git push")


if __name__ == "__main__":
    unittest.main()
