"""
Logger Utility
==============

Small context-aware logger used across JiraBot.

Each component creates its own logger with a context prefix, so a single
invocation can be followed from the webhook through the agent loop and into
individual capability calls:

    [2025-03-02T10:30:00] [INFO] [Agent:Executor] Executing capability: search_users

Usage:
    from jirabot.utils.logger import Logger

    logger = Logger("Agent")
    logger.info("Processing dialogue", {"messages": 4})

    child = logger.child("Executor")
    child.debug("Parsed 2 tool calls")
"""

import json
import os
import sys
from datetime import datetime
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Log levels, ordered by severity."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40


class Colors:
    """ANSI escape codes for colored terminal output."""
    RESET = "\033[0m"
    DEBUG = "\033[36m"    # Cyan
    INFO = "\033[32m"     # Green
    WARNING = "\033[33m"  # Yellow
    ERROR = "\033[31m"    # Red
    DIM = "\033[2m"


_LEVELS = {
    "DEBUG": LogLevel.DEBUG,
    "INFO": LogLevel.INFO,
    "WARNING": LogLevel.WARNING,
    "WARN": LogLevel.WARNING,
    "ERROR": LogLevel.ERROR,
}


def _get_log_level_from_env() -> LogLevel:
    """Parse LOG_LEVEL, defaulting to INFO."""
    return _LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), LogLevel.INFO)


class Logger:
    """
    A context-aware logger with colored output.

    Supports debug/info/warning/error, context prefixes, child loggers and an
    optional structured data block printed as JSON below the message.
    """

    def __init__(self, context: str = ""):
        self.context = context
        self._min_level = _get_log_level_from_env()

    def child(self, child_context: str) -> "Logger":
        """
        Create a child logger with additional context.

        Example:
            Logger("Agent").child("Executor")  # logs as [Agent:Executor]
        """
        new_context = f"{self.context}:{child_context}" if self.context else child_context
        return Logger(new_context)

    def _format_message(self, level: str, message: str, color: str) -> str:
        timestamp = datetime.now().isoformat(timespec="seconds")
        context_str = f"[{self.context}] " if self.context else ""

        return (
            f"{Colors.DIM}[{timestamp}]{Colors.RESET} "
            f"{color}[{level}]{Colors.RESET} "
            f"{context_str}{message}"
        )

    def _log(
        self,
        level: LogLevel,
        level_name: str,
        color: str,
        message: str,
        data: dict[str, Any] | None = None
    ) -> None:
        if level < self._min_level:
            return

        stream = sys.stderr if level >= LogLevel.ERROR else sys.stdout
        print(self._format_message(level_name, message, color), file=stream)

        if data:
            data_str = json.dumps(data, indent=2, default=str)
            print(f"{Colors.DIM}{data_str}{Colors.RESET}", file=stream)

    def debug(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a debug message. Only shown when LOG_LEVEL=DEBUG."""
        self._log(LogLevel.DEBUG, "DEBUG", Colors.DEBUG, message, data)

    def info(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log an info message."""
        self._log(LogLevel.INFO, "INFO", Colors.INFO, message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> None:
        """Log a warning message."""
        self._log(LogLevel.WARNING, "WARN", Colors.WARNING, message, data)

    def error(self, message: str, error: Exception | None = None) -> None:
        """
        Log an error message.

        Args:
            message: The error message
            error: Optional exception whose type and text are included
        """
        data = None
        if error:
            data = {
                "error_type": type(error).__name__,
                "error_message": str(error),
            }
        self._log(LogLevel.ERROR, "ERROR", Colors.ERROR, message, data)

