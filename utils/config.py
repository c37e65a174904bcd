# Config flags and runtime settings
# Values can be overridden from the environment (or a local .env file).

from __future__ import annotations
import os
from typing import Any, Dict

from dotenv import load_dotenv

load_dotenv()

CONFIG = {
    "debug_mode": False,

    # Event storage (single JSON file, whole collection per write)
    "storage": {
        "path": "data/events.json",
    },

    # Error log: one line per error, timestamp prefix
    "logging": {
        "error_log_path": "data/event_calendar_errors.log",
        "level": "WARNING",
    },

    # Due-event polling
    "scheduler": {
        "interval_seconds": 60,
        "catch_up_missed": False,      # deliver events whose minute was missed
        "stop_timeout_seconds": 5.0,
    },

    # Delivery sinks used by the CLI runner
    "delivery": {
        "console_echo": True,
        "outbox_enabled": True,
        "outbox_path": "outbox/notifications.jsonl",
    },
}

_TRUE = {"1", "true", "yes", "on"}


def _as_bool(raw: str) -> bool:
    return raw.strip().lower() in _TRUE


# env var -> (section, key, parser); section None means top-level key
_ENV_OVERRIDES = {
    "EVENTCAL_DEBUG": (None, "debug_mode", _as_bool),
    "EVENTCAL_STORE_PATH": ("storage", "path", str),
    "EVENTCAL_ERROR_LOG": ("logging", "error_log_path", str),
    "EVENTCAL_POLL_SECONDS": ("scheduler", "interval_seconds", float),
    "EVENTCAL_CATCH_UP": ("scheduler", "catch_up_missed", _as_bool),
    "EVENTCAL_OUTBOX_PATH": ("delivery", "outbox_path", str),
}


def apply_env_overrides(config: Dict[str, Any], environ=None) -> Dict[str, Any]:
    """Overlay EVENTCAL_* environment variables onto ``config`` in place."""
    environ = os.environ if environ is None else environ
    for var, (section, key, parse) in _ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            value = parse(raw)
        except ValueError as e:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from e
        if section is None:
            config[key] = value
        else:
            config[section][key] = value
    return config


apply_env_overrides(CONFIG)
