# Notification scheduler: polls the event service for due events and hands
# them to the delivery sinks, one at a time, in chronological order.
#
# Tick order per event: mark_notified first, then deliver. A crash or a slow
# consumer can therefore lose a popup but never show one twice.
#
# stop() is a hard stop: the delivery step in progress finishes, the rest of
# the tick is abandoned (those events stay un-notified) and no new tick starts.

from __future__ import annotations
import logging
import threading
import time
from typing import Callable, Iterable, List, Optional

from event_calendar.errors import NotFoundError
from event_calendar.models import Event
from event_calendar.service import EventService
from utils.config import CONFIG
from utils.debug import debug_log

logger = logging.getLogger(__name__)

Handler = Callable[[Event], None]


class NotificationScheduler:
    def __init__(
        self,
        service: EventService,
        sinks: Optional[Iterable[Handler]] = None,
        interval_seconds: Optional[float] = None,
        catch_up: Optional[bool] = None,
    ):
        if service is None:
            raise ValueError("service is required")
        scfg = CONFIG["scheduler"]
        self.service = service
        self.interval = float(interval_seconds if interval_seconds is not None else scfg["interval_seconds"])
        if self.interval <= 0:
            raise ValueError("interval_seconds must be positive")
        self.catch_up = scfg.get("catch_up_missed", False) if catch_up is None else catch_up
        self.stop_timeout = scfg.get("stop_timeout_seconds", 5.0)

        self._handlers: List[Handler] = list(sinks or [])
        self._handlers_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_evt = threading.Event()
        self._stop_evt.set()
        self._thread: Optional[threading.Thread] = None

    # ---------- subscribers ----------

    def subscribe(self, handler: Handler) -> None:
        with self._handlers_lock:
            if handler not in self._handlers:
                self._handlers.append(handler)

    def unsubscribe(self, handler: Handler) -> None:
        with self._handlers_lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    # ---------- lifecycle ----------

    @property
    def is_running(self) -> bool:
        return not self._stop_evt.is_set()

    def start(self) -> None:
        """Begin polling; the first tick runs immediately. No-op if already running."""
        with self._state_lock:
            if self.is_running:
                return
            # Fresh event per run, so a thread still draining from a previous
            # run keeps seeing its own stop flag
            stop_evt = threading.Event()
            self._stop_evt = stop_evt
            self._thread = threading.Thread(
                target=self._run, args=(stop_evt,), name="eventcal-notifier", daemon=True
            )
            self._thread.start()
        logger.info("Notification scheduler started (interval=%ss)", self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop polling. No-op if already stopped."""
        with self._state_lock:
            if not self.is_running:
                return
            self._stop_evt.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(self.stop_timeout if timeout is None else timeout)
            if thread.is_alive():
                logger.warning("Notification thread still busy delivering after stop()")
        logger.info("Notification scheduler stopped")

    def _run(self, stop_evt: threading.Event) -> None:
        next_at = time.monotonic()
        while not stop_evt.is_set():
            self.tick(stop_evt)
            next_at += self.interval
            now = time.monotonic()
            if next_at < now:
                # A delivery blocked past one or more slots: skip them, don't replay
                missed = int((now - next_at) // self.interval) + 1
                next_at += missed * self.interval
            if stop_evt.wait(next_at - now):
                break

    # ---------- one detection pass ----------

    def tick(self, stop_evt: Optional[threading.Event] = None) -> int:
        """Check for due events and deliver them. Returns the number delivered.

        ``stop_evt`` is the polling thread's stop flag; a manual call passes
        none and runs to completion. Never raises: read failures count as
        "no due events", per-event failures are logged and the next event is
        processed.
        """
        try:
            due = self.service.get_due_events(catch_up=self.catch_up)
        except Exception:
            logger.exception("Failed to check for due events")
            return 0

        if due:
            debug_log(f"Tick: {len(due)} due event(s)")

        delivered = 0
        for ev in due:
            if stop_evt is not None and stop_evt.is_set():
                debug_log("Stop observed mid-tick; remaining events left for later")
                break
            if self._process(ev):
                delivered += 1
        return delivered

    def _process(self, ev: Event) -> bool:
        try:
            changed = self.service.mark_notified(ev.id)
        except NotFoundError:
            logger.info("Due event %s was removed before delivery", ev.id)
            return False
        except Exception:
            logger.exception("Failed to mark event %s as notified; skipping delivery", ev.id)
            return False
        if not changed:
            # Someone else delivered it between detection and marking
            return False

        with self._handlers_lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(ev)
            except Exception:
                logger.exception("Delivery handler %r failed for event %s", handler, ev.id)
        return True
