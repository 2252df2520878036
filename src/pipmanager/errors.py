"""Error taxonomy shared by every pipmanager component.

Every failure that crosses a public method boundary is a ``PipManagerError``
carrying a stable ``ErrorCode`` and a ``recoverable`` hint. Callers branch on
the subclass (or the code), never on message text.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_SPEC = "INVALID_SPEC"
    PROCESS_FAILED = "PROCESS_FAILED"
    EXECUTABLE_NOT_FOUND = "EXECUTABLE_NOT_FOUND"
    INVALID_OUTPUT = "INVALID_OUTPUT"
    NO_RESULT = "NO_RESULT"
    SEARCH_FAILED = "SEARCH_FAILED"
    CANCELLED = "CANCELLED"


class PipManagerError(Exception):
    def __init__(self, code: ErrorCode, message: str, recoverable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable


class InvalidSpecError(PipManagerError):
    """Empty or unresolvable package reference. Raised before any process starts."""

    def __init__(self, message: str = "Invalid package name") -> None:
        super().__init__(ErrorCode.INVALID_SPEC, message, recoverable=False)


class ProcessError(PipManagerError):
    """The external tool exited with a nonzero status (or could not be started)."""

    def __init__(
        self,
        exit_code: int,
        stderr: str,
        code: ErrorCode = ErrorCode.PROCESS_FAILED,
    ) -> None:
        message = stderr.strip() or f"Command exited with code {exit_code}"
        super().__init__(code, message, recoverable=True)
        self.exit_code = exit_code
        self.stderr = stderr


class NoResultError(PipManagerError):
    def __init__(self, keyword: str) -> None:
        super().__init__(
            ErrorCode.NO_RESULT,
            f"No search results for {keyword!r}",
            recoverable=True,
        )
        self.keyword = keyword


class OperationCancelledError(PipManagerError):
    def __init__(self, message: str = "Operation cancelled") -> None:
        super().__init__(ErrorCode.CANCELLED, message, recoverable=True)
