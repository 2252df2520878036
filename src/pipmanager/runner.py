"""Child-process execution with streamed logging and cooperative cancellation.

Commands are started with ``asyncio.create_subprocess_exec``, never through
a shell, so arguments reach the tool verbatim. Every stdout/stderr line is
appended to the log sink as it arrives. stdout is accumulated and returned
whole on exit code 0; stderr lines starting with ``WARNING`` are logged but
left out of the error text.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from pipmanager.cancel import race
from pipmanager.errors import ErrorCode, OperationCancelledError, ProcessError
from pipmanager.sink import StructlogSink

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pipmanager.cancel import CancelToken
    from pipmanager.protocols import LogSinkProtocol

log = structlog.get_logger()

# pip prints JSON listings as a single line; the asyncio default (64 KiB) is too small
_STREAM_LIMIT = 16 * 1024 * 1024

_WARNING_PREFIX = "WARNING"


class ProcessRunner:
    def __init__(self, sink: LogSinkProtocol | None = None) -> None:
        self._sink = sink or StructlogSink()

    async def run(
        self,
        command: str,
        args: Sequence[str],
        cancel_token: CancelToken | None = None,
    ) -> str:
        """Run ``command args...`` and return its full stdout.

        Raises ``ProcessError`` on a nonzero exit (or when the executable
        cannot be started) and ``OperationCancelledError`` when
        ``cancel_token`` fires before the process exits; the child is killed
        in that case.
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        args = list(args)
        self._sink.append_line(f"exec {command} {' '.join(args)}")
        log.info("process_started", command=command, args=args)

        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT,
            )
        except OSError as exc:
            self._sink.append_line(str(exc))
            log.warning("process_start_failed", command=command, error=str(exc))
            raise ProcessError(127, str(exc), code=ErrorCode.EXECUTABLE_NOT_FOUND) from exc

        try:
            exit_code, stdout, stderr = await race(self._communicate(proc), cancel_token)
        except OperationCancelledError:
            self._sink.append_line("cancel command")
            log.info("process_cancelled", command=command, pid=proc.pid)
            raise
        finally:
            if proc.returncode is None:
                await _kill(proc)

        self._sink.append_line(f"exit {exit_code}")
        log.info("process_exited", command=command, exit_code=exit_code)

        if exit_code != 0:
            raise ProcessError(exit_code, stderr)
        return stdout

    async def _communicate(self, proc: asyncio.subprocess.Process) -> tuple[int, str, str]:
        assert proc.stdout is not None
        assert proc.stderr is not None
        out: list[str] = []
        err: list[str] = []
        await asyncio.gather(
            self._pump(proc.stdout, out, skip_warnings=False),
            self._pump(proc.stderr, err, skip_warnings=True),
        )
        exit_code = await proc.wait()
        return exit_code, "".join(out), "".join(err)

    async def _pump(
        self,
        stream: asyncio.StreamReader,
        buffer: list[str],
        *,
        skip_warnings: bool,
    ) -> None:
        async for raw in stream:
            line = raw.decode("utf-8", errors="replace")
            self._sink.append_line(line.rstrip("\r\n"))
            if skip_warnings and line.startswith(_WARNING_PREFIX):
                continue
            buffer.append(line)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    await proc.wait()
