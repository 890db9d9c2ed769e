"""
Request tracing for calls issued against the ingestion endpoint.

Each span emits an `<name>.start` / `<name>.end` telemetry pair. The end event carries the measured
duration, the HTTP status recorded by the caller and, when the block raised, the error text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, Optional

from project_utility.telemetry import emit as telemetry_emit


@dataclass(slots=True)
class RequestSpan:
    name: str
    method: str
    path: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    status_code: Optional[int] = None
    _start: float = field(init=False, default=0.0)

    async def __aenter__(self) -> "RequestSpan":
        self._start = perf_counter()
        telemetry_emit(
            f"{self.name}.start",
            level="debug",
            span=self.name,
            payload={"method": self.method, "path": self.path, **self.attributes},
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        duration_ms = round((perf_counter() - self._start) * 1000, 3)
        failed = exc is not None or (self.status_code is not None and self.status_code >= 300)
        payload: Dict[str, Any] = {
            "method": self.method,
            "path": self.path,
            "status_code": self.status_code,
            "duration_ms": duration_ms,
            **self.attributes,
        }
        if exc is not None:
            payload["error"] = str(exc)
        telemetry_emit(
            f"{self.name}.end",
            level="warning" if failed else "debug",
            span=self.name,
            payload=payload,
        )
        return False

    def record_status(self, status_code: int) -> None:
        self.status_code = status_code


def request_span(name: str, *, method: str, path: str, **attributes: Any) -> RequestSpan:
    """
    Create an asynchronous span around one ingestion request.

    Usage:
        async with request_span("ingestion.token.create", method="POST", path="/token") as span:
            span.record_status(response.status_code)
    """

    return RequestSpan(name=name, method=method, path=path, attributes=dict(attributes))


__all__ = ["RequestSpan", "request_span"]
