# Event storage (JSON file, whole collection per write)
#
# Every operation holds the store lock for its full load-mutate-save span:
# an in-process RLock plus an exclusive lock on <path>.lock, so concurrent
# add/remove/mark calls never lose each other's updates, whether they come
# from threads, several EventStore instances or other processes.
# Known limit: each write rewrites the whole file, which is fine for a
# personal calendar but not for large event volumes.

from __future__ import annotations
import errno
import logging
import shutil
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

from pydantic import ValidationError as ModelValidationError

from event_calendar.errors import (
    CorruptDataError,
    IOFailureError,
    PermissionDeniedError,
    StoreError,
)
from event_calendar.models import Event
from utils.config import CONFIG
from utils.persistance import file_lock, read_json, write_json

logger = logging.getLogger(__name__)

UpdateFn = Callable[[List[Event]], Optional[List[Event]]]

# json raises plain ValueError (e.g. over-long integers) and RecursionError
# (deep nesting) besides JSONDecodeError; UnicodeDecodeError is a ValueError too
_CORRUPT = (CorruptDataError, ValueError, RecursionError)

_PERMISSION_ERRNOS = (errno.EACCES, errno.EPERM, errno.EROFS)


class EventStore:
    def __init__(self, path: str | Path | None = None):
        self.path = Path(path or CONFIG["storage"]["path"])
        self._lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def _locked(self) -> Iterator[None]:
        # The file lock is not re-entrant: only the outermost section takes it
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return
            acquired = False
            try:
                with file_lock(self.path):
                    acquired = True
                    self._depth = 1
                    try:
                        yield
                    finally:
                        self._depth = 0
            except OSError as e:
                if acquired:
                    raise
                raise self._store_error("lock", e) from e

    # ---------- reads ----------

    def _read(self) -> List[Event]:
        return self._parse(read_json(self.path, default=[]))

    def load(self) -> List[Event]:
        """All persisted events in insertion order; [] if the file is missing, blank or unreadable."""
        try:
            with self._locked():
                try:
                    return self._read()
                except _CORRUPT as e:
                    return self._discard_corrupt(e)
        except StoreError:
            return []
        except OSError as e:
            if isinstance(e, PermissionError) or e.errno in _PERMISSION_ERRNOS:
                logger.warning("Permission denied reading %s: %s", self.path, e)
            else:
                logger.warning("I/O error reading %s: %s", self.path, e)
            return []

    @staticmethod
    def _parse(raw) -> List[Event]:
        if not isinstance(raw, list):
            raise CorruptDataError(f"expected a JSON array, got {type(raw).__name__}")
        events = []
        seen = set()
        for i, rec in enumerate(raw):
            try:
                ev = Event.model_validate(rec)
            except ModelValidationError as e:
                raise CorruptDataError(f"record {i}: {e.error_count()} invalid field(s)") from e
            if ev.id in seen:
                raise CorruptDataError(f"record {i}: duplicate id {ev.id}")
            seen.add(ev.id)
            events.append(ev)
        return events

    def _discard_corrupt(self, e: Exception) -> List[Event]:
        logger.warning("Event file %s is corrupt, treating as empty: %s", self.path, e)
        self._quarantine()
        return []

    def _quarantine(self) -> None:
        # Keep the unreadable file so the next save does not destroy it
        backup = self.path.with_suffix(self.path.suffix + ".corrupt")
        try:
            shutil.copyfile(self.path, backup)
        except OSError as e:
            logger.warning("Could not copy corrupt file to %s: %s", backup, e)

    def _store_error(self, action: str, e: OSError) -> StoreError:
        if isinstance(e, PermissionError) or e.errno in _PERMISSION_ERRNOS:
            logger.error("Permission denied (%s) for %s: %s", action, self.path, e)
            return PermissionDeniedError(
                f"Could not {action} events: permission denied for {self.path}", self.path
            )
        logger.error("I/O error (%s) for %s: %s", action, self.path, e)
        return IOFailureError(f"Could not {action} events at {self.path}: {e}", self.path)

    # ---------- writes ----------

    def save(self, events: List[Event]) -> None:
        """Replace the whole persisted collection. Raises StoreError subclasses on failure."""
        records = [ev.to_record() for ev in events]
        with self._locked():
            try:
                write_json(self.path, records)
            except OSError as e:
                raise self._store_error("save", e) from e

    def update(self, update_fn: UpdateFn) -> Tuple[List[Event], bool]:
        """Load, apply ``update_fn``, save, all under the store lock.

        ``update_fn`` returns the new collection, or None to skip the write.
        Returns ``(events, changed)`` with the collection as it stands afterwards.
        Unlike ``load``, a read failure raises StoreError here: carrying on with
        an empty collection would overwrite the events we could not read.
        A corrupt file is still treated as empty (after being copied aside).
        """
        with self._locked():
            try:
                cur = self._read()
            except _CORRUPT as e:
                cur = self._discard_corrupt(e)
            except OSError as e:
                raise self._store_error("read", e) from e
            new = update_fn(list(cur))
            if new is None:
                return cur, False
            self.save(new)
            return new, True

    def add(self, event: Event) -> None:
        def _append(events: List[Event]) -> List[Event]:
            events.append(event)
            return events

        self.update(_append)

    def remove(self, event_id: str) -> bool:
        """Drop the event with ``event_id``. No-op (and no write) when absent; returns whether it was removed."""

        def _drop(events: List[Event]) -> Optional[List[Event]]:
            kept = [e for e in events if e.id != event_id]
            return kept if len(kept) != len(events) else None

        _, removed = self.update(_drop)
        return removed

    def get(self, event_id: str) -> Optional[Event]:
        for ev in self.load():
            if ev.id == event_id:
                return ev
        return None
