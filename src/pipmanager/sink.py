"""Log sink and notifier implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from typing import TextIO

log = structlog.get_logger()


class StructlogSink:
    """Forwards every line to structlog as a ``pip_output`` debug event."""

    def __init__(self, logger: structlog.typing.FilteringBoundLogger | None = None) -> None:
        self._log = logger or log

    def append_line(self, line: str) -> None:
        self._log.debug("pip_output", line=line)


class StreamSink:
    """Writes lines verbatim to a text stream (e.g. ``sys.stderr``)."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def append_line(self, line: str) -> None:
        self._stream.write(line + "\n")
        self._stream.flush()


class MemorySink:
    """Keeps every line in order. Useful for embedding and tests."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def append_line(self, line: str) -> None:
        self.lines.append(line)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class LoggingNotifier:
    """Default notifier: reports the failure as an ``operation_failed`` error event."""

    def notify_error(self, message: str) -> None:
        log.error("operation_failed", message=message)
