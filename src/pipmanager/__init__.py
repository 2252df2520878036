from __future__ import annotations

from pipmanager.cancel import CancelToken
from pipmanager.engine import PackageManager, merge_with_upgrades
from pipmanager.errors import (
    ErrorCode,
    InvalidSpecError,
    NoResultError,
    OperationCancelledError,
    PipManagerError,
    ProcessError,
)
from pipmanager.registry import RegistryClient
from pipmanager.runner import ProcessRunner
from pipmanager.specs import normalize_spec

__version__ = "0.3.0"

__all__ = [
    "CancelToken",
    "PackageManager",
    "ProcessRunner",
    "RegistryClient",
    "merge_with_upgrades",
    "normalize_spec",
    # errors
    "ErrorCode",
    "PipManagerError",
    "InvalidSpecError",
    "ProcessError",
    "NoResultError",
    "OperationCancelledError",
]
