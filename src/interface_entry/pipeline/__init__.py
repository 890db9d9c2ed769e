"""Local package/deploy pipeline driving the Console integration."""

from __future__ import annotations

from .errors import (
    FunctionNotFoundError,
    PackageStateError,
    PipelineError,
    RollbackTargetNotFoundError,
    ServiceNotDeployedError,
)
from .history import STATE_FILENAME, TEMPLATE_FILENAME, LocalDeploymentHistory, read_state_document
from .runner import LocalPipeline, PipelineResult, StatusReport
from .template import compile_template

__all__ = [
    "FunctionNotFoundError",
    "LocalDeploymentHistory",
    "LocalPipeline",
    "PackageStateError",
    "PipelineError",
    "PipelineResult",
    "RollbackTargetNotFoundError",
    "STATE_FILENAME",
    "ServiceNotDeployedError",
    "StatusReport",
    "TEMPLATE_FILENAME",
    "compile_template",
    "read_state_document",
]
