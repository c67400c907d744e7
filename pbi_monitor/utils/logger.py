"""
Logging configuration for pbi-monitor.

Rich console output for operator commands, JSON lines for scheduled
runs whose output is collected by the host.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.theme import Theme


class LogLevel(str, Enum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


MONITOR_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "red bold",
        "critical": "red bold reverse",
        "success": "green bold",
        "workspace": "blue",
        "dataset": "magenta",
        "sweep": "cyan bold",
    }
)

console = Console(theme=MONITOR_THEME)


class MonitorLogger:
    """Logger wrapper that renders keyword context as ``key=value`` pairs."""

    def __init__(self, name: str, level: LogLevel = LogLevel.INFO) -> None:
        self.logger = logging.getLogger(name)
        self._setup_handler(level)

    def _setup_handler(self, level: LogLevel) -> None:
        self.logger.setLevel(level.value)

        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        rich_handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
        )
        rich_handler.setLevel(level.value)
        rich_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

        self.logger.addHandler(rich_handler)
        # Root handlers are configured by setup_logging()
        self.logger.propagate = False

    def set_level(self, level: LogLevel) -> None:
        """Update log level."""
        self.logger.setLevel(level.value)
        for handler in self.logger.handlers:
            handler.setLevel(level.value)

    def use_handlers(self, handlers: list[logging.Handler]) -> None:
        """Replace this logger's handlers (used when switching to JSON output)."""
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)
        for handler in handlers:
            self.logger.addHandler(handler)

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(self._format_message(message, kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(self._format_message(message, kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(self._format_message(message, kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self.logger.error(self._format_message(message, kwargs))

    def critical(self, message: str, **kwargs: Any) -> None:
        self.logger.critical(self._format_message(message, kwargs))

    def success(self, message: str, **kwargs: Any) -> None:
        """Log success message with special formatting."""
        formatted = self._format_message(message, kwargs)
        console.print(f"[success]✓ {escape(formatted)}[/success]")

    def sweep_summary(self, result: dict[str, Any]) -> None:
        """Print the outcome of a sync sweep."""
        status = "success" if result.get("success") else "error"
        console.print(
            f"\n[sweep]▶ Sync sweep ({result.get('trigger', 'scheduled')})[/sweep]\n"
            f"  [workspace]Workspaces:[/workspace] {result.get('workspaces_synced', 0)}\n"
            f"  [dataset]Datasets:[/dataset] {result.get('datasets_synced', 0)}\n"
            f"  [dataset]New refresh entries:[/dataset] {result.get('history_entries_added', 0)}\n"
            f"  [{status}]Failures:[/{status}] {len(result.get('failures', []))}\n"
        )

    def _format_message(self, message: str, extra: dict[str, Any]) -> str:
        if extra:
            context = " | ".join(f"{k}={v}" for k, v in extra.items())
            return f"{message} [{context}]"
        return message


_loggers: dict[str, MonitorLogger] = {}


def get_logger(name: str = "pbi-monitor") -> MonitorLogger:
    """Get or create a logger instance."""
    if name not in _loggers:
        _loggers[name] = MonitorLogger(name)
    return _loggers[name]


class JsonFormatter(logging.Formatter):
    """One JSON object per log line, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging(
    level: LogLevel | str = LogLevel.INFO,
    json_output: bool = False,
) -> None:
    """
    Configure global logging settings.

    Args:
        level: Log level to use (LogLevel enum or a string like "DEBUG")
        json_output: If True, output logs in JSON format (for scheduled runs)
    """
    if isinstance(level, str):
        level = LogLevel(level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level.value)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_output:
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
    else:
        handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
    handler.setLevel(level.value)
    root_logger.addHandler(handler)

    for logger in _loggers.values():
        if json_output:
            logger.use_handlers([handler])
        logger.set_level(level)
