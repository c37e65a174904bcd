# Logging setup + debug helper + last-resort error handler

from __future__ import annotations
import logging
import sys
import threading
from pathlib import Path
from typing import Optional

from utils.config import CONFIG

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_debug_logger = logging.getLogger("eventcal.debug")


def error_log_path() -> Path:
    return Path(CONFIG["logging"]["error_log_path"])


def setup_logging(log_path: str | Path | None = None, debug: Optional[bool] = None) -> logging.Logger:
    """Attach the error-log file handler (and a stderr handler in debug mode) to the root logger."""
    # A broken log file must never raise into the caller
    logging.raiseExceptions = False

    root = logging.getLogger()
    debug = CONFIG.get("debug_mode", False) if debug is None else debug
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    for h in list(root.handlers):
        if getattr(h, "_eventcal", False):
            root.removeHandler(h)
            h.close()

    path = Path(log_path) if log_path else error_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8", delay=True)
    except OSError as e:
        sys.stderr.write(f"Could not open error log {path}: {e}\n")
    else:
        fh.setLevel(CONFIG["logging"].get("level", "WARNING"))
        fh.setFormatter(formatter)
        fh._eventcal = True
        root.addHandler(fh)

    if debug:
        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(logging.DEBUG)
        sh.setFormatter(formatter)
        sh._eventcal = True
        root.addHandler(sh)

    return root


def debug_log(msg: str) -> None:
    if CONFIG.get("debug_mode", False):
        _debug_logger.debug(msg)


def report_unhandled(exc_type, exc, tb, log_path: str | Path | None = None) -> str:
    """Log an unhandled exception with its traceback and return the generic user message."""
    path = Path(log_path) if log_path else error_log_path()
    logging.getLogger("eventcal").critical(
        "Unhandled %s: %s", exc_type.__name__, exc, exc_info=(exc_type, exc, tb)
    )
    return f"An unexpected error occurred. Details were written to {path}"


def install_error_handler(log_path: str | Path | None = None) -> None:
    """Route uncaught exceptions (main thread and worker threads) to the error log."""

    def _hook(exc_type, exc, tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        print(report_unhandled(exc_type, exc, tb, log_path), file=sys.stderr)

    def _thread_hook(args):
        if args.exc_type is SystemExit:
            return
        _hook(args.exc_type, args.exc_value, args.exc_traceback)

    sys.excepthook = _hook
    threading.excepthook = _thread_hook
