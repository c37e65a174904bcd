# Minimal CLI for the event calendar + due-event notifier

import argparse
import signal
import sys
import threading
from datetime import datetime

from utils.config import CONFIG
from utils.debug import install_error_handler, setup_logging
from event_calendar.errors import CalendarError
from event_calendar.service import EventService
from event_calendar.store import EventStore
from core.delivery import default_sinks, format_notification
from core.notifications import NotificationScheduler


def _parse_when(raw: str) -> datetime:
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO date/time: {raw!r}")


def _print_events(events):
    if not events:
        print("No events.")
        return
    for e in events:
        flag = "notified" if e.notified else "pending"
        print(f"{format_notification(e)} [{flag}]")


def build_service(args) -> EventService:
    return EventService(EventStore(args.store or CONFIG["storage"]["path"]))


def cmd_add(args):
    svc = build_service(args)
    eid = svc.add_event(args.description, args.when)
    ev = svc.get_event(eid)
    print(f"Added: {ev.description} @ {ev.scheduled_at.isoformat(timespec='minutes')} (id={ev.id})")


def cmd_list(args):
    _print_events(build_service(args).list_all())


def cmd_day(args):
    day = args.date.date() if args.date else datetime.now().date()
    _print_events(build_service(args).list_by_date(day))


def cmd_remove(args):
    build_service(args).remove_event(args.id)
    print(f"Removed {args.id}")


def cmd_due(args):
    _print_events(build_service(args).get_due_events(catch_up=args.catch_up))


def cmd_run(args):
    """Run the notifier in the foreground until Ctrl-C."""
    svc = build_service(args)
    scheduler = NotificationScheduler(
        svc,
        sinks=default_sinks(auto_ack=args.auto_ack),
        interval_seconds=args.interval,
        catch_up=True if args.catch_up else None,
    )
    done = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: done.set())

    scheduler.start()
    print(f"Watching {svc.store.path} every {scheduler.interval:g}s. Ctrl-C to stop.")
    try:
        while not done.wait(1.0):
            pass
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()
        print("Notifier stopped.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="eventcal", description="Event calendar CLI")
    p.add_argument("--store", help="Path to the events JSON file (default from config)")
    sub = p.add_subparsers(required=True)

    sp = sub.add_parser("add", help="Add an event")
    sp.add_argument("description")
    sp.add_argument("when", type=_parse_when, help="ISO time, e.g., 2030-08-09T10:00")
    sp.set_defaults(func=cmd_add)

    sp = sub.add_parser("list", help="List all events in chronological order")
    sp.set_defaults(func=cmd_list)

    sp = sub.add_parser("day", help="List events on one day")
    sp.add_argument("date", nargs="?", type=_parse_when, help="YYYY-MM-DD (defaults to today)")
    sp.set_defaults(func=cmd_day)

    sp = sub.add_parser("remove", help="Remove an event by id")
    sp.add_argument("id")
    sp.set_defaults(func=cmd_remove)

    sp = sub.add_parser("due", help="Show events due this minute (no delivery)")
    sp.add_argument("--catch-up", action="store_true", help="Include missed, undelivered events")
    sp.set_defaults(func=cmd_due)

    sp = sub.add_parser("run", help="Run the notifier until interrupted")
    sp.add_argument("--interval", type=float, help="Seconds between checks (default from config)")
    sp.add_argument("--catch-up", action="store_true", help="Deliver missed events late")
    sp.add_argument("--auto-ack", action="store_true", help="Do not wait for Enter after each notification")
    sp.set_defaults(func=cmd_run)

    return p


def main(argv=None) -> int:
    setup_logging()
    install_error_handler()
    args = build_parser().parse_args(argv)
    try:
        args.func(args)
    except CalendarError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
