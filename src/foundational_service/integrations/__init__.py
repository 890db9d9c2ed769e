"""Integrations managed by the foundational service layer."""

from __future__ import annotations

__all__ = [
    "ingestion_client",
]
