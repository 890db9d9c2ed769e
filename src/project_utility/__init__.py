"""
Project utility layer: reusable infrastructure primitives shared by the Console integration.

This package depends only on the Python standard library and vetted third-party libraries (Rich for
console logging, structlog for structured telemetry) so higher layers can import helpers without
pulling in business logic.
"""

from __future__ import annotations

from .deferred import DeferredValue
from .logging import configure_logging
from .tracing import RequestSpan, request_span

__all__ = [
    "DeferredValue",
    "RequestSpan",
    "configure_logging",
    "request_span",
]
