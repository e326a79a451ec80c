"""Tests for runner.py - external tool execution.

These tests start real subprocesses using the current interpreter.
"""

import sys

from mpyflash.runner import ExternalToolRunner, ToolResult


class TestRunSuccess:
    """Tests for successful tool invocations."""

    def test_exit_zero_is_success(self):
        """Exit code 0 resolves as success."""
        runner = ExternalToolRunner(sys.executable)
        result = runner.run(["-c", "print('hello')"])

        assert isinstance(result, ToolResult)
        assert result.success is True
        assert result.exit_code == 0
        assert "hello" in result.output
        assert result.error_message is None
        assert result.timed_out is False

    def test_output_streamed_to_sink(self):
        """Every stdout chunk reaches the sink."""
        runner = ExternalToolRunner(sys.executable)
        chunks: list[str] = []
        script = "import sys\nfor i in range(3):\n    print(f'line {i}', flush=True)"

        result = runner.run(["-c", script], chunks.append)

        assert "".join(chunks) == result.output
        for i in range(3):
            assert f"line {i}" in result.output

    def test_utf8_output_decoded(self):
        """UTF-8 output is decoded regardless of the child's locale."""
        runner = ExternalToolRunner(sys.executable)
        script = "import sys; sys.stdout.buffer.write('h\\u00e9llo'.encode('utf-8'))"

        result = runner.run(["-c", script])

        assert result.output == "héllo"

    def test_command_recorded(self):
        """The executed command is recorded."""
        runner = ExternalToolRunner(sys.executable)
        result = runner.run(["-c", "pass"])

        assert "-c" in result.command
        assert runner.running is False


class TestRunFailure:
    """Tests for failing tool invocations."""

    def test_nonzero_exit_is_failure(self):
        """Non-zero exit resolves as failure carrying the exit code."""
        runner = ExternalToolRunner(sys.executable)
        result = runner.run(["-c", "import sys; sys.exit(3)"])

        assert result.success is False
        assert result.exit_code == 3
        assert "exited with code 3" in result.error_message

    def test_stderr_becomes_error_message(self):
        """Stderr text is used as the error message."""
        runner = ExternalToolRunner(sys.executable)
        script = "import sys; sys.stderr.write('could not enter raw repl'); sys.exit(1)"

        result = runner.run(["-c", script])

        assert result.success is False
        assert result.error_message == "could not enter raw repl"

    def test_stderr_not_sent_to_sink(self):
        """Only stdout reaches the sink."""
        runner = ExternalToolRunner(sys.executable)
        chunks: list[str] = []
        script = "import sys; sys.stderr.write('noise'); print('data')"

        result = runner.run(["-c", script], chunks.append)

        assert result.success is True
        assert "noise" not in "".join(chunks)

    def test_missing_executable(self, tmp_path):
        """A missing executable resolves as failure without an exit code."""
        runner = ExternalToolRunner(str(tmp_path / "no-such-python"))
        result = runner.run(["-c", "pass"])

        assert result.success is False
        assert result.exit_code is None
        assert "Failed to execute" in result.error_message

    def test_timeout_kills_process(self):
        """The watchdog kills a hung process."""
        runner = ExternalToolRunner(sys.executable)
        result = runner.run(["-c", "import time; time.sleep(30)"], timeout=0.5)

        assert result.success is False
        assert result.timed_out is True
        assert "timed out" in result.error_message
        assert runner.running is False


class TestTerminate:
    """Tests for best-effort termination."""

    def test_terminate_without_process(self):
        """Nothing to terminate when no tool is running."""
        runner = ExternalToolRunner(sys.executable)
        assert runner.terminate() is False

    def test_terminate_running_process(self):
        """A running tool is terminated from another thread."""
        import threading

        runner = ExternalToolRunner(sys.executable)
        results: list[ToolResult] = []
        script = "import time\nprint('ready', flush=True)\ntime.sleep(30)"
        started = threading.Event()

        def sink(text: str) -> None:
            started.set()

        worker = threading.Thread(
            target=lambda: results.append(runner.run(["-c", script], sink, timeout=20))
        )
        worker.start()
        assert started.wait(10)

        assert runner.terminate() is True
        worker.join(10)

        assert results
        assert results[0].success is False
        assert results[0].timed_out is False
