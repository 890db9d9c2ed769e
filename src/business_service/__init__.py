from __future__ import annotations

"""Business Service layer entrypoints."""

from business_service.console.service import ConsoleService

__all__ = [
    "ConsoleService",
]
