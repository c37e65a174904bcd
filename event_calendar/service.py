# Event service: business rules + queries on top of the store
#
# Used by both the foreground (CLI / UI) and the notification scheduler.

from __future__ import annotations
import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from event_calendar.errors import EmptyDescriptionError, NotFoundError, PastDateError
from event_calendar.models import Event, to_local_naive
from event_calendar.store import EventStore
from utils.debug import debug_log

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _chronological(events: List[Event]) -> List[Event]:
    # sorted() is stable, so equal timestamps keep insertion order
    return sorted(events, key=lambda e: e.scheduled_at)


def _minute_of(dt: datetime) -> datetime:
    return dt.replace(second=0, microsecond=0)


class EventService:
    def __init__(self, store: EventStore, clock: Optional[Clock] = None):
        if store is None:
            raise ValueError("store is required")
        self.store = store
        self.clock = clock or datetime.now

    def now(self) -> datetime:
        return to_local_naive(self.clock())

    # ---------- mutations ----------

    def add_event(self, description: str, scheduled_at: datetime) -> str:
        """Validate and persist a new event. Returns its id.

        Raises EmptyDescriptionError for blank text, PastDateError when
        ``scheduled_at`` is not strictly after now, StoreError if the write fails.
        """
        if description is None or not description.strip():
            raise EmptyDescriptionError()
        scheduled_at = to_local_naive(scheduled_at)
        if scheduled_at <= self.now():
            raise PastDateError(scheduled_at)

        ev = Event(description=description.strip(), scheduled_at=scheduled_at)
        self.store.add(ev)
        debug_log(f"Added event {ev.id} @ {ev.scheduled_at.isoformat()}")
        return ev.id

    def remove_event(self, event_id: str) -> None:
        # Existence check and delete happen inside one store critical section
        if not self.store.remove(event_id):
            raise NotFoundError(event_id)
        debug_log(f"Removed event {event_id}")

    def mark_notified(self, event_id: str) -> bool:
        """Flag an event as delivered. Returns False if it already was (nothing is written)."""

        def _mark(events: List[Event]) -> Optional[List[Event]]:
            for i, ev in enumerate(events):
                if ev.id == event_id and not ev.notified:
                    events[i] = ev.as_notified()
                    return events
            return None

        events, changed = self.store.update(_mark)
        if changed:
            logger.info("Event %s marked notified", event_id)
        elif not any(ev.id == event_id for ev in events):
            raise NotFoundError(event_id)
        return changed

    # ---------- queries ----------

    def get_event(self, event_id: str) -> Event:
        ev = self.store.get(event_id)
        if ev is None:
            raise NotFoundError(event_id)
        return ev

    def list_all(self) -> List[Event]:
        return _chronological(self.store.load())

    def list_by_date(self, day: date | datetime) -> List[Event]:
        if isinstance(day, datetime):
            day = to_local_naive(day).date()
        return [e for e in self.list_all() if e.scheduled_at.date() == day]

    def get_due_events(self, catch_up: bool = False) -> List[Event]:
        """Un-notified events scheduled in the current minute (seconds ignored).

        With ``catch_up`` any un-notified event up to the end of the current
        minute counts, so events whose minute was missed are delivered late.
        """
        minute = _minute_of(self.now())
        due = []
        for ev in self.list_all():
            if ev.notified:
                continue
            ev_minute = _minute_of(ev.scheduled_at)
            if ev_minute == minute or (catch_up and ev_minute < minute):
                due.append(ev)
        return due

