"""Core logging interfaces and data structures for gamechannels.

This module defines the logging interfaces, data structures and
configuration options used by custody and the adjudicators. Entries carry a
``LogContext`` naming the channel, operation and sender they concern.
"""

import json
import os
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class LogLevel(Enum):
    """Log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


_LEVEL_ORDER = {level: index for index, level in enumerate(LogLevel)}


@dataclass
class LogContext:
    """Log context information."""

    channel_id: Optional[str] = None
    operation: Optional[str] = None
    sender: Optional[str] = None
    component: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def merged(self, base: "LogContext") -> "LogContext":
        """Fill unset fields from ``base``."""
        return LogContext(
            channel_id=self.channel_id or base.channel_id,
            operation=self.operation or base.operation,
            sender=self.sender or base.sender,
            component=self.component or base.component,
            metadata={**base.metadata, **self.metadata},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "channel_id": self.channel_id,
            "operation": self.operation,
            "sender": self.sender,
            "component": self.component,
            "metadata": self.metadata,
        }


@dataclass
class LogEntry:
    """Log entry data structure."""

    timestamp: float
    level: LogLevel
    message: str
    logger_name: str
    context: LogContext
    exception: Optional[BaseException] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    thread_id: Optional[int] = None
    process_id: Optional[int] = None

    def __post_init__(self):
        if self.thread_id is None:
            self.thread_id = threading.get_ident()
        if self.process_id is None:
            self.process_id = os.getpid()

    def to_dict(self) -> Dict[str, Any]:
        """Convert log entry to dictionary."""
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "message": self.message,
            "logger_name": self.logger_name,
            "context": self.context.to_dict(),
            "exception": str(self.exception) if self.exception else None,
            "extra": self.extra,
            "thread_id": self.thread_id,
            "process_id": self.process_id,
        }

    def to_json(self) -> str:
        """Convert log entry to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class LogConfig:
    """Log configuration."""

    def __init__(
        self,
        name: str = "gamechannels",
        level: LogLevel = LogLevel.INFO,
        format_type: str = "json",
        handlers: List[str] = None,
    ):
        self.name = name
        self.level = level
        self.format_type = format_type
        self.handlers = handlers or ["console"]


class LogFormatter(ABC):
    """Abstract log formatter."""

    @abstractmethod
    def format(self, entry: LogEntry) -> str:
        """Format log entry."""
        pass


class LogHandler(ABC):
    """Abstract log handler."""

    def __init__(self, name: str = None):
        self.name = name or self.__class__.__name__
        self.formatter: Optional[LogFormatter] = None
        self.level: LogLevel = LogLevel.DEBUG
        self._lock = threading.RLock()

    def set_formatter(self, formatter: LogFormatter) -> None:
        """Set formatter."""
        with self._lock:
            self.formatter = formatter

    def set_level(self, level: LogLevel) -> None:
        """Set log level."""
        with self._lock:
            self.level = level

    def should_handle(self, entry: LogEntry) -> bool:
        """Check if handler should handle the entry."""
        with self._lock:
            return _LEVEL_ORDER[entry.level] >= _LEVEL_ORDER[self.level]

    @abstractmethod
    def emit(self, entry: LogEntry) -> None:
        """Emit log entry."""
        pass

    def handle(self, entry: LogEntry) -> None:
        """Handle log entry."""
        if self.should_handle(entry):
            self.emit(entry)

    def close(self) -> None:
        pass


class LogManager:
    """Log manager for orchestrating logging operations."""

    def __init__(self, config: LogConfig = None):
        self.config = config or LogConfig()
        self.loggers: Dict[str, "ChannelLogger"] = {}
        self.handlers: Dict[str, LogHandler] = {}
        self._lock = threading.RLock()
        self._context = LogContext()

        self._setup_defaults()

    def _setup_defaults(self) -> None:
        """Setup default logging components."""
        from .formatters import JSONFormatter, TextFormatter
        from .handlers import ConsoleHandler, MemoryHandler

        formatter = (
            TextFormatter() if self.config.format_type == "text" else JSONFormatter()
        )
        console = ConsoleHandler()
        console.set_formatter(formatter)
        self.add_handler("console", console)
        self.add_handler("memory", MemoryHandler())

    def get_logger(self, name: str) -> "ChannelLogger":
        """Get logger."""
        with self._lock:
            if name not in self.loggers:
                self.loggers[name] = ChannelLogger(name, self)
            return self.loggers[name]

    def add_handler(self, name: str, handler: LogHandler) -> None:
        """Add handler."""
        with self._lock:
            self.handlers[name] = handler

    def remove_handler(self, name: str) -> None:
        """Remove handler."""
        with self._lock:
            handler = self.handlers.pop(name, None)
            if handler is not None:
                handler.close()

    def set_context(self, context: LogContext) -> None:
        """Set global context."""
        with self._lock:
            self._context = context

    def get_context(self) -> LogContext:
        """Get global context."""
        with self._lock:
            return self._context

    def log(
        self,
        level: LogLevel,
        message: str,
        logger_name: str = "root",
        context: LogContext = None,
        exception: BaseException = None,
        extra: Dict[str, Any] = None,
    ) -> None:
        """Log a message."""
        with self._lock:
            if context is None:
                context = self._context
            else:
                context = context.merged(self._context)

            entry = LogEntry(
                timestamp=time.time(),
                level=level,
                message=message,
                logger_name=logger_name,
                context=context,
                exception=exception,
                extra=extra or {},
            )

            for handler_name in self.config.handlers:
                if handler_name in self.handlers:
                    self.handlers[handler_name].handle(entry)

    def shutdown(self) -> None:
        """Shutdown log manager."""
        with self._lock:
            for handler in self.handlers.values():
                handler.close()

            self.loggers.clear()
            self.handlers.clear()


class ChannelLogger:
    """Named logger.

    A logger created without a manager follows the global manager, so
    module-level loggers keep working after ``setup_logging`` replaces it.
    """

    def __init__(self, name: str, manager: Optional[LogManager] = None):
        self.name = name
        self._manager = manager
        self.level: Optional[LogLevel] = None
        self._lock = threading.RLock()

    @property
    def manager(self) -> LogManager:
        return self._manager if self._manager is not None else get_manager()

    def set_level(self, level: LogLevel) -> None:
        """Set log level."""
        with self._lock:
            self.level = level

    def is_enabled_for(self, level: LogLevel) -> bool:
        """Check if logger is enabled for level."""
        with self._lock:
            threshold = self.level or self.manager.config.level
            return _LEVEL_ORDER[level] >= _LEVEL_ORDER[threshold]

    def log(
        self,
        level: LogLevel,
        message: str,
        context: LogContext = None,
        exception: BaseException = None,
        extra: Dict[str, Any] = None,
    ) -> None:
        """Log a message."""
        if self.is_enabled_for(level):
            self.manager.log(
                level=level,
                message=message,
                logger_name=self.name,
                context=context,
                exception=exception,
                extra=extra,
            )

    def debug(self, message: str, **kwargs) -> None:
        self.log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.log(LogLevel.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs) -> None:
        self.log(LogLevel.CRITICAL, message, **kwargs)


# Global log manager instance
_global_manager: Optional[LogManager] = None
_global_lock = threading.Lock()


def get_manager() -> LogManager:
    """Get the global log manager, creating it on first use."""
    global _global_manager
    with _global_lock:
        if _global_manager is None:
            _global_manager = LogManager()
        return _global_manager


_loggers: Dict[str, ChannelLogger] = {}


def get_logger(name: str = "root") -> ChannelLogger:
    """Get a logger that follows the global manager."""
    with _global_lock:
        if name not in _loggers:
            _loggers[name] = ChannelLogger(name)
        return _loggers[name]


def setup_logging(config: LogConfig) -> LogManager:
    """Setup logging with configuration."""
    global _global_manager
    with _global_lock:
        if _global_manager is not None:
            _global_manager.shutdown()
        _global_manager = LogManager(config)
        return _global_manager


def shutdown_logging() -> None:
    """Shutdown logging."""
    global _global_manager
    with _global_lock:
        if _global_manager is not None:
            _global_manager.shutdown()
            _global_manager = None
