"""
Structured event logging for the Emote Bot.

Human-readable progress goes through each module's own logger. This module
adds a separate 'emote_bot.events' logger whose records carry a label and a
data payload (handler arguments, status snapshots), and a formatter that
writes them as JSON lines.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional


EVENT_LOGGER_NAME = 'emote_bot.events'

event_logger = logging.getLogger(EVENT_LOGGER_NAME)


def log_event(level: int, message: str, label: Optional[str] = None, **data: Any) -> None:
    """Emit a structured event record."""
    event_logger.log(level, message, extra={'event_label': label, 'event_data': data})


class JsonEventFormatter(logging.Formatter):
    """Formats event records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname.lower(),
            'message': record.getMessage(),
        }

        label = getattr(record, 'event_label', None)
        if label:
            entry['label'] = label

        data = getattr(record, 'event_data', None)
        if data:
            entry.update(data)

        return json.dumps(entry, default=str)


def setup_event_log(path: Optional[str], level: int = logging.DEBUG) -> None:
    """
    Route event records to a JSON lines file.

    Without a path, event records propagate to the root handlers like any
    other log record.
    """
    if not path:
        return

    handler = logging.FileHandler(path, encoding='utf-8')
    handler.setFormatter(JsonEventFormatter())
    event_logger.addHandler(handler)
    event_logger.setLevel(level)
    event_logger.propagate = False
