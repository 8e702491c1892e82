"""Leveled, timestamped logging to stdout and an optional append-only file."""

from __future__ import annotations

import enum
import sys
import threading
import time
from typing import IO

APP_NAME = "SLS"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class LogLevel(enum.IntEnum):
    """Log levels; a message is emitted when its level is <= the logger's."""

    FATAL = 0
    ERROR = 1
    WARNING = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5


class Logger:
    """Writes formatted log lines to stdout and, once set, to a log file."""

    def __init__(self, level: LogLevel = LogLevel.INFO) -> None:
        self.level = LogLevel(level)
        self.file_name = ""
        self._file: IO[str] | None = None
        self._lock = threading.Lock()

    def format_line(self, level: LogLevel, message: str, now_ms: int) -> str:
        """Build one log line for a message emitted at ``now_ms`` (epoch ms)."""
        seconds, millis = divmod(int(now_ms), 1000)
        stamp = time.strftime(TIME_FORMAT, time.localtime(seconds))
        return f"{stamp}:{millis:03d} {APP_NAME} {LogLevel(level).name}: {message}\n"

    def log(self, level: LogLevel, message: str) -> str | None:
        """Emit ``message`` if ``level`` passes the filter; return the written line."""
        if level > self.level:
            return None
        with self._lock:
            line = self.format_line(level, message, time.time_ns() // 1_000_000)
            sys.stdout.write(line)
            if self._file is not None:
                self._file.write(line)
                self._file.flush()
        return line

    def set_level(self, name: str) -> bool:
        """Set the level by name, case-insensitively; keep the current one if unknown."""
        upper = name.upper()
        try:
            self.level = LogLevel[upper]
        except KeyError:
            print(f"!!!wrong log level '{upper}', set default '{self.level.name}'.")
            return False
        print(f"set log level='{upper}'.")
        return True

    def set_file(self, file_name: str) -> bool:
        """Open ``file_name`` for appending; only the first call has any effect."""
        if self.file_name:
            return False
        self.file_name = file_name
        self._file = open(file_name, "a", encoding="utf-8")
        return True

    def close(self) -> None:
        """Close the log file, if one is open."""
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None


_instance: Logger | None = None
_instance_lock = threading.Lock()


def get_logger() -> Logger:
    """Return the process-wide logger, creating it on first use."""
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = Logger()
        return _instance


def log(level: LogLevel, message: str) -> str | None:
    """Log through the process-wide logger."""
    return get_logger().log(level, message)


def set_log_level(name: str) -> bool:
    """Set the process-wide logger's level by name."""
    return get_logger().set_level(name)


def set_log_file(file_name: str) -> bool:
    """Set the process-wide logger's output file."""
    return get_logger().set_file(file_name)