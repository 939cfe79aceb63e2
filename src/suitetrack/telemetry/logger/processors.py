# src/suitetrack/telemetry/logger/processors.py
#
"""
Custom structlog processors.
"""

import logging

from structlog.typing import EventDict, WrappedLogger

LOG_EMOJIS = {
    logging.DEBUG: "🐛",
    logging.INFO: "ℹ️",
    logging.WARNING: "⚠️",
    logging.ERROR: "❌",
    logging.CRITICAL: "💥",
}

# Keys that only make sense to stdlib logging and would clutter rendered output.
_EXTRA_KEYS = ("_record", "_from_structlog")


def add_emoji_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Prefixes the event with an emoji for its level, unless one was given."""
    emoji = event_dict.pop("emoji", None)
    if emoji is None:
        level = logging.getLevelName(str(event_dict.get("level", method_name)).upper())
        emoji = LOG_EMOJIS.get(level, "➡️") if isinstance(level, int) else "➡️"
    event = event_dict.get("event")
    if isinstance(event, str):
        event_dict["event"] = f"{emoji} {event}"
    return event_dict


def remove_extra_keys_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key in _EXTRA_KEYS:
        event_dict.pop(key, None)
    return event_dict

# 🔼⚙️
