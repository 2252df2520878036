"""Unit tests for pipmanager.runner.

These drive the current interpreter (``sys.executable -c ...``) as the child
process so they exercise real pipes, exit codes, and signals.
"""

from __future__ import annotations

import asyncio
import sys
import time

import pytest

from pipmanager.cancel import CancelToken
from pipmanager.errors import ErrorCode, OperationCancelledError, ProcessError
from pipmanager.runner import ProcessRunner
from pipmanager.sink import MemorySink

PY = sys.executable


def _script(*lines: str) -> list[str]:
    return ["-c", "\n".join(lines)]


@pytest.fixture()
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture()
def runner(sink: MemorySink) -> ProcessRunner:
    return ProcessRunner(sink)


class TestSuccess:
    async def test_returns_stdout(self, runner: ProcessRunner) -> None:
        out = await runner.run(PY, _script("print('[{\"name\": \"pip\"}]')"))
        assert out == '[{"name": "pip"}]\n'

    async def test_concatenates_all_chunks(self, runner: ProcessRunner) -> None:
        out = await runner.run(
            PY,
            _script(
                "import sys, time",
                "sys.stdout.write('first\\n'); sys.stdout.flush()",
                "time.sleep(0.05)",
                "sys.stdout.write('second\\n'); sys.stdout.flush()",
            ),
        )
        assert out == "first\nsecond\n"

    async def test_stderr_noise_ignored_on_success(self, runner: ProcessRunner) -> None:
        out = await runner.run(
            PY,
            _script(
                "import sys",
                "sys.stderr.write('WARNING: pip is outdated\\n')",
                "sys.stderr.write('DEPRECATION: something\\n')",
                "print('ok')",
            ),
        )
        assert out == "ok\n"

    async def test_large_single_line(self, runner: ProcessRunner) -> None:
        out = await runner.run(PY, _script("print('x' * 200000)"))
        assert len(out) == 200001

    async def test_arguments_not_shell_interpreted(self, runner: ProcessRunner) -> None:
        out = await runner.run(
            PY, _script("import sys", "print(sys.argv[1])") + ["$(echo pwned); rm -rf /"]
        )
        assert out == "$(echo pwned); rm -rf /\n"


class TestFailure:
    async def test_nonzero_exit_raises_with_stderr(self, runner: ProcessRunner) -> None:
        with pytest.raises(ProcessError) as exc_info:
            await runner.run(
                PY,
                _script(
                    "import sys",
                    "sys.stderr.write('WARNING: ignore me\\n')",
                    "sys.stderr.write('ERROR: No matching distribution\\n')",
                    "sys.exit(3)",
                ),
            )
        err = exc_info.value
        assert err.exit_code == 3
        assert err.code == ErrorCode.PROCESS_FAILED
        assert err.stderr == "ERROR: No matching distribution\n"
        assert "WARNING" not in err.message
        assert err.recoverable is True

    async def test_nonzero_exit_without_stderr(self, runner: ProcessRunner) -> None:
        with pytest.raises(ProcessError) as exc_info:
            await runner.run(PY, _script("import sys", "sys.exit(1)"))
        assert exc_info.value.exit_code == 1
        assert exc_info.value.stderr == ""

    async def test_missing_executable(self, runner: ProcessRunner, tmp_path) -> None:
        with pytest.raises(ProcessError) as exc_info:
            await runner.run(str(tmp_path / "no-such-python"), ["-m", "pip"])
        assert exc_info.value.code == ErrorCode.EXECUTABLE_NOT_FOUND
        assert exc_info.value.exit_code == 127


class TestSink:
    async def test_invocation_output_and_exit_logged(
        self, runner: ProcessRunner, sink: MemorySink
    ) -> None:
        await runner.run(
            PY,
            _script("import sys", "print('hello')", "sys.stderr.write('WARNING: noisy\\n')"),
        )
        assert sink.lines[0].startswith(f"exec {PY} -c ")
        assert "hello" in sink.lines
        assert "WARNING: noisy" in sink.lines
        assert sink.lines[-1] == "exit 0"

    async def test_failure_logged(self, runner: ProcessRunner, sink: MemorySink) -> None:
        with pytest.raises(ProcessError):
            await runner.run(PY, _script("import sys", "sys.exit(5)"))
        assert sink.lines[-1] == "exit 5"


class TestCancellation:
    async def test_cancel_kills_process_and_rejects(
        self, runner: ProcessRunner, sink: MemorySink
    ) -> None:
        token = CancelToken()
        asyncio.get_running_loop().call_later(0.2, token.cancel)
        started = time.monotonic()
        with pytest.raises(OperationCancelledError):
            await asyncio.wait_for(
                runner.run(PY, _script("import time", "time.sleep(60)"), token),
                timeout=10,
            )
        assert time.monotonic() - started < 10
        assert "cancel command" in sink.lines

    async def test_already_cancelled_does_not_spawn(
        self, runner: ProcessRunner, sink: MemorySink
    ) -> None:
        token = CancelToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            await runner.run(PY, _script("print('never')"), token)
        assert sink.lines == []

    async def test_token_after_exit_is_harmless(self, runner: ProcessRunner) -> None:
        token = CancelToken()
        out = await runner.run(PY, _script("print('done')"), token)
        token.cancel()
        assert out == "done\n"

    async def test_task_cancellation_kills_child(self, runner: ProcessRunner) -> None:
        task = asyncio.ensure_future(runner.run(PY, _script("import time", "time.sleep(60)")))
        await asyncio.sleep(0.2)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(task, timeout=10)
