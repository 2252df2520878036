"""Integration test fixtures.

Provides a fully wired AppState pointed at the fake interpreter from
tests/conftest.py, with the HTTP client mocked by respx where needed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from pipmanager.config import Settings
from pipmanager.sink import MemorySink
from pipmanager.state import open_state

if TYPE_CHECKING:
    from pipmanager.state import AppState
    from tests.conftest import FakePip


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify_error(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture()
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
async def app_state(fake_pip: FakePip, sink: MemorySink, notifier: RecordingNotifier) -> AppState:
    settings = Settings(pip={"python_path": fake_pip.python})
    async with open_state(settings, sink=sink, notifier=notifier) as state:
        yield state
