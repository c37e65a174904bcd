# Delivery sinks for due-event notifications.
#
# A sink is any callable taking an Event. The scheduler calls sinks one at a
# time and does not move on until the call returns, so a sink that blocks
# until the user acknowledges gives one-popup-at-a-time delivery.

from __future__ import annotations
import queue
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional, TextIO

from event_calendar.models import Event
from utils.config import CONFIG
from utils.persistance import append_jsonl


def format_notification(ev: Event) -> str:
    return f"{ev.scheduled_at.strftime('%Y-%m-%d %H:%M')}  {ev.description}  (id={ev.id})"


class Delivery:
    """One due event travelling over a ChannelSink, plus its acknowledgment."""

    def __init__(self, event: Event):
        self.event = event
        self._ack = threading.Event()

    def acknowledge(self) -> None:
        self._ack.set()

    @property
    def acknowledged(self) -> bool:
        return self._ack.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._ack.wait(timeout)


class ChannelSink:
    """Message-passing channel between the scheduler and a presentation layer.

    The scheduler side calls the sink with an event and blocks until the
    consumer acknowledges it (or the sink is closed). The consumer side pulls
    Delivery objects with ``receive`` and calls ``acknowledge`` once shown.
    """

    def __init__(self, maxsize: int = 0):
        self._queue: "queue.Queue[Delivery]" = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    def __call__(self, ev: Event) -> None:
        if self._closed.is_set():
            raise RuntimeError("channel is closed")
        delivery = Delivery(ev)
        self._queue.put(delivery)
        # Wake up periodically so close() can release a blocked scheduler
        while not delivery.wait(0.1):
            if self._closed.is_set():
                return

    def receive(self, timeout: Optional[float] = None) -> Optional[Delivery]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()


class ConsoleSink:
    """Prints each notification and waits for Enter before returning."""

    def __init__(
        self,
        out: TextIO | None = None,
        auto_ack: bool = False,
        prompt: Callable[[str], str] = input,
    ):
        self.out = out or sys.stdout
        self.auto_ack = auto_ack
        self.prompt = prompt

    def __call__(self, ev: Event) -> None:
        print(f"\n[Event due] {format_notification(ev)}", file=self.out, flush=True)
        if self.auto_ack:
            return
        try:
            self.prompt("Press Enter to acknowledge... ")
        except EOFError:
            # No interactive stdin (e.g. running detached): nothing to wait for
            pass


class OutboxSink:
    """Appends one JSON line per delivered notification to the outbox file."""

    def __init__(self, out_path: str | Path | None = None):
        self.out_path = Path(out_path or CONFIG["delivery"]["outbox_path"])

    def record_for(self, ev: Event) -> Dict:
        return {
            "id": ev.id,
            "description": ev.description,
            "scheduled_at": ev.scheduled_at.isoformat(timespec="seconds"),
            "delivered": datetime.now().isoformat(timespec="seconds"),
            "source": "eventcal",
        }

    def __call__(self, ev: Event) -> None:
        append_jsonl(self.out_path, self.record_for(ev))


def default_sinks(auto_ack: bool = False) -> list:
    """Sinks configured in CONFIG["delivery"]: outbox first, then the blocking console prompt."""
    sinks = []
    if CONFIG["delivery"].get("outbox_enabled", True):
        sinks.append(OutboxSink())
    if CONFIG["delivery"].get("console_echo", True):
        sinks.append(ConsoleSink(auto_ack=auto_ack))
    return sinks
