from __future__ import annotations

"""Contracts of the collaborators the Console integration consumes, with default implementations."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Sequence

from foundational_service.contracts.console_state import PersistedConsoleState
from project_utility.config.settings import ConsoleSettings

__all__ = [
    "AuthenticationGate",
    "DefaultLogicalIdNaming",
    "DeploymentHistory",
    "EnvironmentAuthenticationGate",
    "LogicalIdNaming",
    "OrgDirectory",
    "ProviderStageResolver",
    "StageResolver",
    "StaticOrgDirectory",
]

DEFAULT_STAGE = "dev"
DEFAULT_REGION = "us-east-1"


class AuthenticationGate(Protocol):
    def is_authenticated(self) -> bool: ...

    def access_key(self) -> Optional[str]: ...


class OrgDirectory(Protocol):
    async def resolve_org_id(self, org_name: str) -> str: ...


class StageResolver(Protocol):
    def stage(self, options: Mapping[str, Any]) -> str: ...

    def region(self, options: Mapping[str, Any]) -> str: ...


class LogicalIdNaming(Protocol):
    def console_extension_layer_logical_id(self) -> str: ...

    def function_logical_id(self, function_name: str) -> str: ...


class DeploymentHistory(Protocol):
    """Read access to states recorded by previous deployments of the service."""

    async def previous_state(self) -> Optional[PersistedConsoleState]: ...

    async def state_for_timestamp(self, timestamp: str) -> PersistedConsoleState: ...

    async def timestamps(self) -> Sequence[str]: ...


@dataclass(slots=True, frozen=True)
class EnvironmentAuthenticationGate:
    """A session is considered authenticated when a platform access key is configured."""

    settings: ConsoleSettings

    def is_authenticated(self) -> bool:
        return bool(self.settings.access_key)

    def access_key(self) -> Optional[str]:
        return self.settings.access_key


@dataclass(slots=True, frozen=True)
class StaticOrgDirectory:
    """Org lookup without a platform round-trip: explicit id override, else the org name itself."""

    settings: ConsoleSettings

    async def resolve_org_id(self, org_name: str) -> str:
        return self.settings.org_id_override or org_name


@dataclass(slots=True, frozen=True)
class ProviderStageResolver:
    """CLI option first, then the provider section of the service configuration."""

    provider: Mapping[str, Any]

    def stage(self, options: Mapping[str, Any]) -> str:
        return str(options.get("stage") or self.provider.get("stage") or DEFAULT_STAGE)

    def region(self, options: Mapping[str, Any]) -> str:
        return str(options.get("region") or self.provider.get("region") or DEFAULT_REGION)


class DefaultLogicalIdNaming:
    def console_extension_layer_logical_id(self) -> str:
        return "SlsConsoleOtelExtensionLayer"

    def function_logical_id(self, function_name: str) -> str:
        normalized = "".join(part[:1].upper() + part[1:] for part in function_name.replace("_", "-").split("-"))
        return f"{normalized}LambdaFunction"
