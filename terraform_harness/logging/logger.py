"""Event logging for scenario runs."""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from enum import Enum
from datetime import datetime
import json
import sys
import threading


class LogLevel(str, Enum):
    """Log severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARNING: 2,
    LogLevel.ERROR: 3,
    LogLevel.CRITICAL: 4,
}


class Logger(ABC):
    """Abstract base class for event logging."""

    @abstractmethod
    def log(
        self,
        level: LogLevel,
        event: str,
        message: str = "",
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Log an event with optional data.

        Args:
            level: Log severity level
            event: Event name, e.g. ``terraform.apply``
            message: Human-readable message
            data: Optional metadata dictionary
        """
        pass

    def debug(self, event: str, message: str = "", data: Optional[Dict[str, Any]] = None) -> None:
        self.log(LogLevel.DEBUG, event, message, data)

    def info(self, event: str, message: str = "", data: Optional[Dict[str, Any]] = None) -> None:
        self.log(LogLevel.INFO, event, message, data)

    def warning(self, event: str, message: str = "", data: Optional[Dict[str, Any]] = None) -> None:
        self.log(LogLevel.WARNING, event, message, data)

    def error(self, event: str, message: str = "", data: Optional[Dict[str, Any]] = None) -> None:
        self.log(LogLevel.ERROR, event, message, data)

    def critical(self, event: str, message: str = "", data: Optional[Dict[str, Any]] = None) -> None:
        self.log(LogLevel.CRITICAL, event, message, data)


class ConsoleLogger(Logger):
    """Console logger with colored, scenario-prefixed lines."""

    COLORS = {
        LogLevel.DEBUG: "\033[36m",      # Cyan
        LogLevel.INFO: "\033[32m",       # Green
        LogLevel.WARNING: "\033[33m",    # Yellow
        LogLevel.ERROR: "\033[31m",      # Red
        LogLevel.CRITICAL: "\033[35m",   # Magenta
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    ICONS = {
        "scenario.started": "🚀",
        "scenario.completed": "✅",
        "scenario.failed": "❌",
        "terraform.init": "📦",
        "terraform.apply": "🔨",
        "terraform.destroy": "🧹",
        "outputs.extracted": "📋",
        "retry.attempt": "🔄",
        "assertion.passed": "✓",
        "assertion.failed": "✗",
        "destroy.failed": "⚠️",
    }

    def __init__(
        self,
        min_level: LogLevel = LogLevel.INFO,
        colored: bool = True,
        show_timestamp: bool = False,
        show_data: bool = True,
    ):
        """
        Initialize console logger.

        Args:
            min_level: Minimum log level to display
            colored: Whether to use colored output (ignored when not a TTY)
            show_timestamp: Whether to show timestamps
            show_data: Whether to show the scenario id and key data fields
        """
        self.min_level = min_level
        self.colored = colored and sys.stdout.isatty()
        self.show_timestamp = show_timestamp
        self.show_data = show_data
        # scenarios log from worker threads
        self._lock = threading.Lock()

    def log(
        self,
        level: LogLevel,
        event: str,
        message: str = "",
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log an event to console."""
        if LEVEL_ORDER[level] < LEVEL_ORDER[self.min_level]:
            return

        parts = []
        if self.show_timestamp:
            timestamp = datetime.now().strftime("%H:%M:%S")
            parts.append(self._paint(timestamp, self.DIM))

        if data and self.show_data and data.get("scenario_id"):
            parts.append(self._paint(f"[{data['scenario_id']}]", self.BOLD))

        parts.append(self.ICONS.get(event, "•"))
        parts.append(self._paint(message or event, self.COLORS.get(level, "")))

        if data and self.show_data:
            key_data = self._extract_key_data(data)
            if key_data:
                parts.append(self._paint(f"({key_data})", self.DIM))

        with self._lock:
            print("  " + " ".join(parts))

    def _paint(self, text: str, code: str) -> str:
        if not self.colored or not code:
            return text
        return f"{code}{text}{self.RESET}"

    def _extract_key_data(self, data: Dict[str, Any]) -> str:
        """Extract most important data for display."""
        priority = ["attempt", "duration_seconds", "returncode", "unique_id", "error"]

        key_items = []
        for key in priority:
            if key in data:
                value = data[key]
                if isinstance(value, float):
                    value = f"{value:.1f}"
                key_items.append(f"{key}={value}")

        return ", ".join(key_items)


class NullLogger(Logger):
    """Logger that does nothing (for testing or disabling logging)."""

    def log(
        self,
        level: LogLevel,
        event: str,
        message: str = "",
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        pass


class FileLogger(Logger):
    """Logger that writes JSON lines to a file."""

    def __init__(self, file_path: str, min_level: LogLevel = LogLevel.INFO):
        """
        Initialize file logger.

        Args:
            file_path: Path to log file
            min_level: Minimum log level to write
        """
        self.file_path = file_path
        self.min_level = min_level
        self._lock = threading.Lock()

    def log(
        self,
        level: LogLevel,
        event: str,
        message: str = "",
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log an event to file as JSON."""
        if LEVEL_ORDER[level] < LEVEL_ORDER[self.min_level]:
            return

        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level.value,
            "event": event,
            "message": message,
        }

        if data:
            log_entry["data"] = data

        line = json.dumps(log_entry, default=str) + '\n'
        with self._lock:
            with open(self.file_path, 'a') as f:
                f.write(line)


class MultiLogger(Logger):
    """Fan an event out to several loggers."""

    def __init__(self, *loggers: Logger):
        self.loggers = list(loggers)

    def log(
        self,
        level: LogLevel,
        event: str,
        message: str = "",
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        for logger in self.loggers:
            logger.log(level, event, message, data)
