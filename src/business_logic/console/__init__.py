from __future__ import annotations

"""Pure decision logic for the Console telemetry integration."""

from business_logic.console.consistency import check_schema_version, validate_persisted_state
from business_logic.console.enablement import EnablementDecision, evaluate_enablement, is_deploy_from_package
from business_logic.console.errors import (
    ActivationMismatchError,
    ConsoleError,
    IngestionCommunicationError,
    IntegrationMismatchError,
    NotAuthenticatedError,
    OrgMismatchError,
    TokenCreationError,
)
from business_logic.console.models import (
    CallOutcome,
    DeploymentContext,
    ExtensionLayerArtifact,
    FunctionDescriptor,
    IntegrationConfig,
    OutcomeKind,
)

__all__ = [
    "ActivationMismatchError",
    "CallOutcome",
    "ConsoleError",
    "DeploymentContext",
    "EnablementDecision",
    "ExtensionLayerArtifact",
    "FunctionDescriptor",
    "IngestionCommunicationError",
    "IntegrationConfig",
    "IntegrationMismatchError",
    "NotAuthenticatedError",
    "OrgMismatchError",
    "OutcomeKind",
    "TokenCreationError",
    "check_schema_version",
    "evaluate_enablement",
    "is_deploy_from_package",
    "validate_persisted_state",
]
