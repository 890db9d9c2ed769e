"""
Structured logging helpers backed by Rich.

`configure_logging()` installs two Rich console handlers (an info stream and a warning/error alert
stream with duplicate suppression) plus a rotating error file under the service's log root. Modules
log dotted event names (`console.token.created`) and attach context through `extra={...}`.
"""

from __future__ import annotations

import logging
import threading
import time
import traceback
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.text import Text

from project_utility.telemetry import setup_telemetry

__all__ = ["configure_logging"]

ERROR_LOG_FILENAME = "console-error.log"

_EVENT_SUMMARIES = {
    "console.token.deactivate_others_failed": "stale ingestion tokens remain active",
    "console.token.deactivate_failed": "previous ingestion token remains active",
}
_EMPTY = (None, "", [], {}, ())


class _AlertThrottle:
    """Drop repeats of the same alert inside a sliding window and count them."""

    def __init__(self, window_seconds: float = 60.0) -> None:
        self._window = window_seconds
        self._seen: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()

    def admit(self, key: str) -> Optional[int]:
        """Return how many repeats were dropped since the last admitted alert, or None to drop this one."""

        now = time.monotonic()
        with self._lock:
            last_seen, dropped = self._seen.get(key, (float("-inf"), 0))
            if now - last_seen < self._window:
                self._seen[key] = (last_seen, dropped + 1)
                return None
            self._seen[key] = (now, 0)
            return dropped


class _RichLineHandler(logging.Handler):
    """Shared rendering: `HH:MM:SS LEVEL [logger] message`, followed by handler-specific metadata."""

    def __init__(self, console: Console, level: int) -> None:
        super().__init__(level=level)
        self._console = console
        self.setFormatter(logging.Formatter("%(message)s"))

    def _head(self, record: logging.LogRecord, level_style: str, message: str, message_style: str = "") -> Text:
        text = Text()
        text.append(datetime.fromtimestamp(record.created).strftime("%H:%M:%S"), style="dim")
        text.append(f" {record.levelname:<8} ", style=level_style)
        text.append(f"[{record.name}] ", style="bold white")
        text.append(message, style=message_style)
        return text


class _RichConsoleHandler(_RichLineHandler):
    LEVEL_STYLES = {
        logging.DEBUG: "dim",
        logging.INFO: "bold cyan",
    }
    EXTRA_KEYS = (
        "command",
        "org",
        "service_id",
        "reason",
        "layer_filename",
        "version_postfix",
        "phase",
        "timestamp",
        "status_code",
    )

    def __init__(self, console: Console) -> None:
        super().__init__(console, logging.DEBUG)

    def emit(self, record: logging.LogRecord) -> None:
        if record.levelno >= logging.WARNING:
            return
        try:
            text = self._head(record, self.LEVEL_STYLES.get(record.levelno, "white"), self.format(record))
            _append_tree(text, _record_extras(record, self.EXTRA_KEYS), _record_error(record))
            self._console.print(text)
        except Exception:
            self.handleError(record)


class _RichAlertHandler(_RichLineHandler):
    EXTRA_FIELDS = (
        "command",
        "provider",
        "service_id",
        "status_code",
        "body",
        "error",
    )

    def __init__(self, console: Console, throttle: Optional[_AlertThrottle] = None) -> None:
        super().__init__(console, logging.WARNING)
        self._throttle = throttle or _AlertThrottle()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            key = "|".join(
                str(part)
                for part in (
                    record.name,
                    record.getMessage(),
                    getattr(record, "service_id", ""),
                    getattr(record, "status_code", ""),
                )
            )
            dropped = self._throttle.admit(key)
            if dropped is None:
                return
            message = self.format(record)
            summary = _EVENT_SUMMARIES.get(record.getMessage())
            if summary:
                message = f"{message} | {summary}"
            if dropped:
                message = f"{message} (+{dropped} suppressed)"
            is_error = record.levelno >= logging.ERROR
            line = self._head(
                record,
                "bold red" if is_error else "bold yellow",
                message,
                "red" if is_error else "yellow",
            )
            pairs = [f"{name}={value}" for name, value in _record_extras(record, self.EXTRA_FIELDS)]
            if pairs:
                line.append(" :: ", style="dim")
                line.append(" ".join(pairs))
            self._console.print(line)
        except Exception:
            self.handleError(record)


def _record_extras(record: logging.LogRecord, keys: Sequence[str]) -> List[Tuple[str, str]]:
    return [(key, str(getattr(record, key))) for key in keys if getattr(record, key, None) not in _EMPTY]


def _record_error(record: logging.LogRecord) -> Optional[str]:
    if record.exc_info:
        return "".join(traceback.format_exception(*record.exc_info)).rstrip()
    error = getattr(record, "error", None)
    return str(error) if error is not None else None


def _append_tree(target: Text, extras: Sequence[Tuple[str, str]], error: Optional[str]) -> None:
    entries = [(key, value, "white") for key, value in extras]
    if error is not None:
        entries.append(("error", error, "italic red"))
    for index, (key, value, style) in enumerate(entries):
        connector = "└──" if index == len(entries) - 1 else "├──"
        target.append(f"\n    {connector} {key}: ", style="dim")
        target.append(value, style=style)


def _error_file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=2 * 1024 * 1024, backupCount=5, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s :: %(message)s", "%Y-%m-%d %H:%M:%S"))
    handler.setLevel(logging.WARNING)
    return handler


def configure_logging(
    *,
    log_root: Optional[Path] = None,
    level: int = logging.INFO,
    console: Optional[Console] = None,
    telemetry_console_level: str = "warning",
) -> List[logging.Handler]:
    """
    Configure console + file logging for one CLI invocation.

    Returns the handlers that were installed on the root logger so callers (tests) can remove them.
    """

    logging.captureWarnings(True)
    rich_console = console or Console(stderr=True)
    setup_telemetry(log_root=log_root, console_level=telemetry_console_level)

    handlers: List[logging.Handler] = [
        _RichConsoleHandler(rich_console),
        _RichAlertHandler(rich_console),
    ]
    if log_root is not None:
        handlers.append(_error_file_handler(Path(log_root) / ERROR_LOG_FILENAME))

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return handlers
