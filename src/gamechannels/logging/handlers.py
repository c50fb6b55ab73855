"""Log handlers for gamechannels.

Console output for operators and an in-memory ring buffer for inspection.
"""

import sys
from collections import deque
from typing import Any, Dict, List, Optional

from .core import LogEntry, LogHandler


class ConsoleHandler(LogHandler):
    """Console log handler."""

    def __init__(self, stream: Any = None):
        super().__init__()
        self.stream = stream

    def emit(self, entry: LogEntry) -> None:
        """Emit log entry to console."""
        with self._lock:
            stream = self.stream or sys.stderr
            if self.formatter:
                formatted = self.formatter.format(entry)
            else:
                formatted = f"[{entry.level.value.upper()}] {entry.logger_name}: {entry.message}"

            stream.write(formatted + "\n")
            stream.flush()


class MemoryHandler(LogHandler):
    """Memory log handler keeping the most recent entries."""

    def __init__(self, max_size: int = 1000):
        super().__init__()
        self.max_size = max_size
        self.entries: deque = deque(maxlen=max_size)

    def emit(self, entry: LogEntry) -> None:
        """Emit log entry to memory."""
        with self._lock:
            self.entries.append(entry)

    def get_logs(self, operation: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get stored entries as dictionaries, optionally for one operation."""
        with self._lock:
            return [
                entry.to_dict()
                for entry in self.entries
                if operation is None or entry.context.operation == operation
            ]

    def clear_logs(self) -> None:
        """Clear stored entries."""
        with self._lock:
            self.entries.clear()

    def close(self) -> None:
        self.clear_logs()
