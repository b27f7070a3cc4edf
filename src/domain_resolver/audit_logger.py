"""
Audit Logger module for the domain resolver.

Provides structured logging with dual-format output (JSON and human-readable
text), minimum level filtering and sensitive data masking. Resolvers, query
sources and dispatch queues log through an optional AuditLogger instance.

Resolvers log from timer threads, source workers and delivery queues, so
every entry records the thread it was written from.
"""

import json
import sys
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from .enums import LogLevel


# Keys whose values never reach the output; matched as substrings.
SENSITIVE_KEYS = frozenset({
    "token", "secret", "password", "api_key", "auth", "authorization",
    "credential", "private_key", "access_token", "cookie",
})

MASK_VALUE = "***MASKED***"


def _is_sensitive(key: Any) -> bool:
    key_lower = str(key).lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)


def mask_sensitive_data(value: Any) -> Any:
    """
    Return a copy of value with sensitive dict entries masked.

    Walks nested dicts, lists and tuples; the input is not modified.
    """
    if isinstance(value, dict):
        return {
            key: MASK_VALUE if _is_sensitive(key) else mask_sensitive_data(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [mask_sensitive_data(item) for item in value]
    return value


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    thread: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "thread": self.thread,
            "message": self.message,
            "data": self.data,
        }


class AuditLogger:
    """
    Structured logger with dual-format output.

    Supports:
    - JSON and human-readable text output formats
    - Minimum level filtering
    - Automatic masking of sensitive data (tokens, auth headers for DoH)
    - Full error context logging
    - A bounded in-memory history of recent entries

    Safe to share between threads; each entry is written in one piece.
    """

    MASK_VALUE = MASK_VALUE

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        level: LogLevel = LogLevel.INFO,
        max_entries: int = 1000,
    ):
        """
        Initialize the audit logger.

        Args:
            output_format: Output format - 'json', 'text', or 'both'
            output_stream: Output stream for log entries (defaults to sys.stderr)
            level: Entries below this level are dropped
            max_entries: How many recent entries to keep in memory
        """
        if output_format not in ("json", "text", "both"):
            raise ValueError(f"Invalid output_format: {output_format}")
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")

        self._output_format = output_format
        self._output_stream = output_stream or sys.stderr
        self._level = level
        self._lock = threading.Lock()
        self._entries: deque = deque(maxlen=max_entries)

    @classmethod
    def from_config(cls, config, output_stream: Optional[TextIO] = None) -> "AuditLogger":
        """Build a logger from a LoggingConfig."""
        return cls(
            output_format=config.output_format,
            output_stream=output_stream,
            level=LogLevel(config.level),
        )

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def level(self) -> LogLevel:
        return self._level

    @property
    def entries(self) -> list[LogEntry]:
        """Recent entries, oldest first."""
        with self._lock:
            return list(self._entries)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return level.severity >= self._level.severity

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log an entry in the configured format(s).

        Returns:
            The created LogEntry, or None if the level is filtered out
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            thread=threading.current_thread().name,
            data=mask_sensitive_data(data or {}),
        )

        lines = []
        if self._output_format in ("json", "both"):
            lines.append(self.format_json(entry))
        if self._output_format in ("text", "both"):
            lines.append(self.format_text(entry))

        with self._lock:
            self._entries.append(entry)
            self._output_stream.write("".join(line + "\n" for line in lines))
            self._output_stream.flush()

        return entry

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, component, message, data)

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[BaseException] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Log an error with its type, message and package error code.

        Args:
            component: Component name generating the log
            message: Human-readable error message
            error: Optional exception object
            additional_data: Optional additional context data
        """
        data = dict(additional_data or {})

        if error is not None:
            data["error_type"] = type(error).__name__
            data["error_message"] = str(error)
            code = getattr(error, "code", None)
            if isinstance(code, str):
                data["error_code"] = code

        return self.log(LogLevel.ERROR, component, message, data)

    def format_json(self, entry: LogEntry) -> str:
        return json.dumps(entry.to_dict(), ensure_ascii=False, default=str)

    def format_text(self, entry: LogEntry) -> str:
        # [TIMESTAMP] LEVEL [COMPONENT] (THREAD) MESSAGE {data}
        text = (
            f"[{entry.timestamp}] {entry.level.value.upper()} "
            f"[{entry.component}] ({entry.thread}) {entry.message}"
        )
        if entry.data:
            text += " " + json.dumps(entry.data, ensure_ascii=False, default=str)
        return text

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
