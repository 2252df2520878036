"""Wiring of the long-lived collaborators for one session."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pipmanager.engine import PackageManager
from pipmanager.registry import RegistryClient, build_http_client
from pipmanager.runner import ProcessRunner

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import httpx

    from pipmanager.config import Settings
    from pipmanager.protocols import LogSinkProtocol, NotifierProtocol


@dataclass
class AppState:
    settings: Settings
    http_client: httpx.AsyncClient
    runner: ProcessRunner
    registry: RegistryClient
    manager: PackageManager

    def apply_settings(self, settings: Settings) -> None:
        """Push changed interpreter/mirror settings into the running manager."""
        self.settings = settings
        self.manager.update_python_path(settings.pip.python_path)
        self.manager.update_mirror(settings.mirror)


@asynccontextmanager
async def open_state(
    settings: Settings,
    sink: LogSinkProtocol | None = None,
    notifier: NotifierProtocol | None = None,
) -> AsyncIterator[AppState]:
    """Build an ``AppState`` and close its HTTP client on exit."""
    async with build_http_client(settings.search) as client:
        runner = ProcessRunner(sink)
        registry = RegistryClient(client, settings.search)
        manager = PackageManager(
            runner,
            registry,
            python_path=settings.pip.python_path,
            mirror=settings.mirror,
            notifier=notifier,
        )
        yield AppState(
            settings=settings,
            http_client=client,
            runner=runner,
            registry=registry,
            manager=manager,
        )
