"""Collaborator interfaces the engine depends on.

Concrete implementations live elsewhere (``pipmanager.sink`` for log sinks,
the CLI for user notifications); anything structurally matching these
protocols can be injected.
"""

from __future__ import annotations

from typing import Protocol


class LogSinkProtocol(Protocol):
    """Append-only, line-oriented output channel for process activity."""

    def append_line(self, line: str) -> None: ...


class NotifierProtocol(Protocol):
    """User-visible channel for failures of mutating operations."""

    def notify_error(self, message: str) -> None: ...
