from __future__ import annotations

"""Business Logic layer entrypoints."""

from business_logic.console.consistency import validate_persisted_state
from business_logic.console.enablement import evaluate_enablement

__all__ = [
    "evaluate_enablement",
    "validate_persisted_state",
]
