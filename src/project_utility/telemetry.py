"""
Structured telemetry for ingestion calls and integration milestones.

An event is a flat mapping: `event_type`, `level`, `timestamp`, optional correlation fields
(`span`, `service_id`, `org_id`) and a `payload`. Each configured sink receives the masked event:
a JSONL file under the log root (mirrored through structlog), a one-line Rich summary on stderr for
events at or above the console threshold, and in-process listeners.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence

import structlog
from rich.console import Console
from rich.text import Text

__all__ = [
    "LEVELS",
    "TELEMETRY_FILENAME",
    "TelemetryEmitter",
    "emit",
    "get_telemetry",
    "mask_fields",
    "register_listener",
    "setup_telemetry",
    "unregister_listener",
]

LEVELS = ("debug", "info", "warning", "error", "critical")
TELEMETRY_FILENAME = "telemetry.jsonl"

_CORRELATION_KEYS = ("span", "service_id", "org_id")
_LEVEL_STYLES = {
    "debug": "dim",
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "critical": "bold white on red",
}
_MASK = "***"

Listener = Callable[[Mapping[str, Any]], None]

_listeners: List[Listener] = []
_listeners_lock = threading.Lock()


def _rank(level: str) -> int:
    try:
        return LEVELS.index(level)
    except ValueError:
        return LEVELS.index("info")


def mask_fields(payload: Mapping[str, Any], sensitive: Sequence[str]) -> Dict[str, Any]:
    """Keep a short prefix of sensitive string values and hide everything else."""

    masked = dict(payload)
    for key in sensitive:
        value = masked.get(key)
        if value is None:
            continue
        masked[key] = f"{value[:4]}{_MASK}" if isinstance(value, str) and value else _MASK
    return masked


class _Sink(Protocol):
    def write(self, event: Mapping[str, Any]) -> None: ...


class _JsonlFileSink:
    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self._lock = threading.Lock()

    def write(self, event: Mapping[str, Any]) -> None:
        line = json.dumps(event, ensure_ascii=False, default=str)
        with self._lock, self.path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")


class _RichSummarySink:
    def __init__(self, console: Console, threshold: str) -> None:
        self._console = console
        self._threshold = _rank(threshold)

    def write(self, event: Mapping[str, Any]) -> None:
        level = str(event.get("level", "info"))
        if _rank(level) < self._threshold:
            return
        payload = event.get("payload") or {}
        line = Text()
        line.append(f"[{level.upper()}] ", style=_LEVEL_STYLES.get(level, "white"))
        line.append(str(event.get("event_type")), style="bold")
        for key in _CORRELATION_KEYS:
            if event.get(key):
                line.append(f" {key}={event[key]}", style="dim")
        if payload.get("status_code") is not None:
            line.append(f" status={payload['status_code']}")
        if payload.get("duration_ms") is not None:
            line.append(f" latency={payload['duration_ms']}ms")
        error = payload.get("error")
        if isinstance(error, str) and error:
            preview = error if len(error) <= 160 else error[:157] + "..."
            line.append(f" error={preview}", style="red")
        self._console.print(line)


class TelemetryEmitter:
    """Without `configure()` events only reach registered listeners."""

    def __init__(self) -> None:
        self._file_sink: Optional[_JsonlFileSink] = None
        self._sinks: List[_Sink] = []
        self._structured_logger = structlog.get_logger("console.telemetry")

    @property
    def file_path(self) -> Optional[Path]:
        return self._file_sink.path if self._file_sink else None

    def configure(
        self,
        *,
        log_root: Optional[Path] = None,
        console_level: str = "warning",
        console: Optional[Console] = None,
    ) -> None:
        self._file_sink = _JsonlFileSink(Path(log_root).resolve() / TELEMETRY_FILENAME) if log_root else None
        self._sinks = [_RichSummarySink(console or Console(stderr=True), console_level.lower())]
        if self._file_sink is not None:
            self._sinks.append(self._file_sink)
        structlog.configure(
            processors=[
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                structlog.processors.JSONRenderer(ensure_ascii=False, default=str),
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

    def emit(
        self,
        event_type: str,
        *,
        level: str = "info",
        payload: Optional[Mapping[str, Any]] = None,
        sensitive: Optional[Sequence[str]] = None,
        **fields: Any,
    ) -> None:
        hidden = list(dict.fromkeys(sensitive or ()))
        event: Dict[str, Any] = {
            "event_type": event_type,
            "level": level.lower(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        event.update({key: value for key, value in fields.items() if value is not None})
        event["payload"] = mask_fields(payload or {}, hidden)
        for sink in self._sinks:
            sink.write(event)
        if self._file_sink is not None:
            self._structured_logger.debug(event_type, **{k: v for k, v in event.items() if k != "level"})
        _notify(event)


def _notify(event: Mapping[str, Any]) -> None:
    with _listeners_lock:
        listeners = tuple(_listeners)
    if not listeners:
        return
    snapshot = json.loads(json.dumps(event, ensure_ascii=False, default=str))
    for listener in listeners:
        listener(snapshot)


_emitter: Optional[TelemetryEmitter] = None
_emitter_lock = threading.Lock()


def get_telemetry() -> TelemetryEmitter:
    global _emitter
    with _emitter_lock:
        if _emitter is None:
            _emitter = TelemetryEmitter()
        return _emitter


def setup_telemetry(log_root: Optional[Path] = None, *, console_level: str = "warning") -> TelemetryEmitter:
    emitter = get_telemetry()
    emitter.configure(log_root=log_root, console_level=console_level)
    return emitter


def emit(event_type: str, **kwargs: Any) -> None:
    get_telemetry().emit(event_type, **kwargs)


def register_listener(callback: Listener) -> None:
    with _listeners_lock:
        if callback not in _listeners:
            _listeners.append(callback)


def unregister_listener(callback: Listener) -> None:
    with _listeners_lock:
        if callback in _listeners:
            _listeners.remove(callback)
