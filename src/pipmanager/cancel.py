"""Cooperative cancellation token passed explicitly into long-running operations."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

from pipmanager.errors import OperationCancelledError

if TYPE_CHECKING:
    from collections.abc import Awaitable

T = TypeVar("T")


class CancelToken:
    """One-shot cancellation signal.

    The owner calls ``cancel()``; operations holding the token abort the work
    they are waiting on (kill a child process, drop an HTTP request) and raise
    ``OperationCancelledError``. A token cannot be reset; issue a fresh one
    per operation.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelledError()


async def race(awaitable: Awaitable[T], token: CancelToken | None) -> T:
    """Await ``awaitable`` unless ``token`` fires first.

    On cancellation the pending work is cancelled (and awaited, so its cleanup
    runs) before ``OperationCancelledError`` is raised.
    """
    if token is None:
        return await awaitable
    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise OperationCancelledError()

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()

    if work.done():
        return work.result()

    work.cancel()
    try:
        await work
    except asyncio.CancelledError:
        pass
    raise OperationCancelledError()
