from __future__ import annotations

"""Console telemetry integration services: tokens, extension layer, environment, facade."""

from business_service.console.collaborators import (
    AuthenticationGate,
    DefaultLogicalIdNaming,
    DeploymentHistory,
    EnvironmentAuthenticationGate,
    LogicalIdNaming,
    OrgDirectory,
    ProviderStageResolver,
    StageResolver,
    StaticOrgDirectory,
)
from business_service.console.environment import EnvironmentVariableInjector
from business_service.console.layer import ExtensionDistribution, LayerVersionResolver
from business_service.console.service import ConsoleService
from business_service.console.tokens import TokenLifecycleManager

__all__ = [
    "AuthenticationGate",
    "ConsoleService",
    "DefaultLogicalIdNaming",
    "DeploymentHistory",
    "EnvironmentAuthenticationGate",
    "EnvironmentVariableInjector",
    "ExtensionDistribution",
    "LayerVersionResolver",
    "LogicalIdNaming",
    "OrgDirectory",
    "ProviderStageResolver",
    "StageResolver",
    "StaticOrgDirectory",
    "TokenLifecycleManager",
]
