from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from utils.config import CONFIG  # noqa: E402
from event_calendar.service import EventService  # noqa: E402
from event_calendar.store import EventStore  # noqa: E402


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kw) -> None:
        self.now = self.now + timedelta(**kw)


@pytest.fixture(autouse=True)
def _temporary_config_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setitem(CONFIG["storage"], "path", str(tmp_path / "events.json"))
    monkeypatch.setitem(CONFIG["logging"], "error_log_path", str(tmp_path / "errors.log"))
    monkeypatch.setitem(CONFIG["delivery"], "outbox_path", str(tmp_path / "outbox.jsonl"))
    monkeypatch.setitem(CONFIG, "debug_mode", False)
    yield


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 10, 30, 15))


@pytest.fixture
def store(tmp_path: Path) -> EventStore:
    return EventStore(tmp_path / "events.json")


@pytest.fixture
def service(store: EventStore, clock: FakeClock) -> EventService:
    return EventService(store, clock=clock)
