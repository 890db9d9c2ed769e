from __future__ import annotations

"""Console domain models shared across the evaluator, validator and services."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Mapping, Optional, Sequence, TypeVar

from business_logic.console.errors import ConsoleError

__all__ = [
    "CallOutcome",
    "DeploymentContext",
    "ExtensionLayerArtifact",
    "FunctionDescriptor",
    "IntegrationConfig",
    "OutcomeKind",
    "SUPPORTED_COMMANDS",
    "SUPPORTED_PROVIDER",
    "SUPPORTED_RUNTIME_PREFIX",
]

SUPPORTED_COMMANDS = frozenset({"deploy", "deploy function", "package", "rollback"})
SUPPORTED_PROVIDER = "aws"
SUPPORTED_RUNTIME_PREFIX = "nodejs"
LAYER_FILENAME_PREFIX = "sls-otel"
LAYER_NAME_PREFIX = "sls-console-otel-extension"

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class IntegrationConfig:
    """Console switch and org as merged from the service configuration."""

    console_enabled: bool = False
    org: Optional[str] = None

    @classmethod
    def from_configuration(cls, configuration: Mapping[str, Any]) -> "IntegrationConfig":
        org = configuration.get("org")
        return cls(
            console_enabled=bool(configuration.get("console")),
            org=str(org) if org else None,
        )


@dataclass(slots=True, frozen=True)
class FunctionDescriptor:
    id: str
    handler: Optional[str] = None
    runtime: Optional[str] = None

    @property
    def is_supported(self) -> bool:
        """The extension can only instrument handler-based Node.js functions."""

        if not self.handler:
            return False
        return self.runtime is None or self.runtime.startswith(SUPPORTED_RUNTIME_PREFIX)


@dataclass(slots=True, frozen=True)
class DeploymentContext:
    """Everything known about the current invocation, fixed once resolved."""

    command: str
    provider_name: str
    service: str
    stage: str = "dev"
    region: str = "us-east-1"
    options: Mapping[str, Any] = field(default_factory=dict)
    functions: Sequence[FunctionDescriptor] = ()

    @property
    def service_id(self) -> str:
        return self.service

    def supported_functions(self) -> Sequence[FunctionDescriptor]:
        return tuple(fn for fn in self.functions if fn.is_supported)

    def option(self, name: str) -> Optional[Any]:
        value = self.options.get(name)
        return value if value not in (None, "") else None


@dataclass(slots=True, frozen=True)
class ExtensionLayerArtifact:
    version_postfix: str

    @property
    def filename(self) -> str:
        return f"{LAYER_FILENAME_PREFIX}.{self.version_postfix}.zip"

    @property
    def layer_name(self) -> str:
        return f"{LAYER_NAME_PREFIX}-{self.version_postfix.replace('.', '-')}"


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    FATAL = "fatal"
    SOFT = "soft"


@dataclass(slots=True, frozen=True)
class CallOutcome(Generic[T]):
    """
    Result of one remote call wrapper.

    `SOFT` outcomes have already been logged by the wrapper; `FATAL` outcomes must be unwrapped so
    the carried error propagates.
    """

    kind: OutcomeKind
    value: Optional[T] = None
    error: Optional[ConsoleError] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "CallOutcome[T]":
        return cls(kind=OutcomeKind.SUCCESS, value=value)

    @classmethod
    def fatal(cls, error: ConsoleError) -> "CallOutcome[T]":
        return cls(kind=OutcomeKind.FATAL, error=error)

    @classmethod
    def soft(cls, error: ConsoleError) -> "CallOutcome[T]":
        return cls(kind=OutcomeKind.SOFT, error=error)

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    def unwrap(self) -> Optional[T]:
        if self.kind is OutcomeKind.FATAL:
            assert self.error is not None
            raise self.error
        return self.value
