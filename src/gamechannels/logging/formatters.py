"""Log formatters for gamechannels.

JSON and plain-text renderings of ``LogEntry`` records.
"""

import json
import time
import traceback
from typing import Optional

from .core import LogEntry, LogFormatter


def _iso_timestamp(timestamp: float) -> str:
    return (
        time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(timestamp))
        + f".{int((timestamp % 1) * 1000000):06d}Z"
    )


class JSONFormatter(LogFormatter):
    """JSON log formatter."""

    def __init__(
        self,
        include_context: bool = True,
        include_exception: bool = True,
        include_extra: bool = True,
        include_thread: bool = False,
        timestamp_format: str = "iso",
        indent: Optional[int] = None,
    ):
        self.include_context = include_context
        self.include_exception = include_exception
        self.include_extra = include_extra
        self.include_thread = include_thread
        self.timestamp_format = timestamp_format
        self.indent = indent

    def format(self, entry: LogEntry) -> str:
        """Format log entry as JSON."""
        data = {
            "timestamp": self._format_timestamp(entry.timestamp),
            "level": entry.level.value,
            "logger": entry.logger_name,
        }

        if self.include_context:
            data["context"] = {
                key: value
                for key, value in entry.context.to_dict().items()
                if value not in (None, {})
            }

        if self.include_exception and entry.exception:
            data["exception"] = {
                "type": type(entry.exception).__name__,
                "message": str(entry.exception),
                "traceback": "".join(
                    traceback.format_exception(
                        type(entry.exception),
                        entry.exception,
                        entry.exception.__traceback__,
                    )
                ),
            }

        if self.include_extra and entry.extra:
            data["extra"] = entry.extra

        if self.include_thread:
            data["thread_id"] = entry.thread_id
            data["process_id"] = entry.process_id

        data["message"] = entry.message

        return json.dumps(data, indent=self.indent, default=str)

    def _format_timestamp(self, timestamp: float) -> str:
        """Format timestamp."""
        if self.timestamp_format == "iso":
            return _iso_timestamp(timestamp)
        elif self.timestamp_format == "unix":
            return str(timestamp)
        else:
            return time.strftime(self.timestamp_format, time.gmtime(timestamp))


class TextFormatter(LogFormatter):
    """Single-line text formatter."""

    def __init__(self, timestamp_format: str = "%Y-%m-%d %H:%M:%S"):
        self.timestamp_format = timestamp_format

    def format(self, entry: LogEntry) -> str:
        parts = [
            time.strftime(self.timestamp_format, time.gmtime(entry.timestamp)),
            f"[{entry.level.value.upper()}]",
            f"{entry.logger_name}:",
            entry.message,
        ]

        context = entry.context
        if context.channel_id:
            parts.append(f"channel={context.channel_id}")
        if context.operation:
            parts.append(f"op={context.operation}")
        if entry.extra:
            parts.append(" ".join(f"{k}={v}" for k, v in entry.extra.items()))
        if entry.exception:
            parts.append(f"({type(entry.exception).__name__}: {entry.exception})")

        return " ".join(parts)
