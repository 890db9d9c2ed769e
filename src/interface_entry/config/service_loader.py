"""Helpers for loading the service configuration file (`serverless.yml`)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from business_logic.console.models import DeploymentContext, FunctionDescriptor, IntegrationConfig
from business_service.console.collaborators import ProviderStageResolver, StageResolver

DEFAULT_CONFIG_FILENAMES = ("serverless.yml", "serverless.yaml")


class ServiceConfigurationError(ValueError):
    """Raised when the service configuration file is missing or malformed."""


@dataclass(slots=True, frozen=True)
class ServiceConfiguration:
    path: Path
    service: str
    provider: Mapping[str, Any]
    functions: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def service_dir(self) -> Path:
        return self.path.parent

    @property
    def provider_name(self) -> str:
        return str(self.provider.get("name") or "")

    @property
    def integration(self) -> IntegrationConfig:
        return IntegrationConfig.from_configuration(self.raw)

    def function_descriptors(self) -> tuple[FunctionDescriptor, ...]:
        default_runtime = self.provider.get("runtime")
        descriptors = []
        for name, definition in self.functions.items():
            handler = definition.get("handler")
            runtime = definition.get("runtime") or default_runtime
            descriptors.append(
                FunctionDescriptor(
                    id=str(name),
                    handler=str(handler) if handler else None,
                    runtime=str(runtime) if runtime else None,
                )
            )
        return tuple(descriptors)

    def stage_resolver(self) -> StageResolver:
        return ProviderStageResolver(self.provider)


def resolve_config_path(path: Optional[Path] = None, *, cwd: Optional[Path] = None) -> Path:
    if path is not None:
        return Path(path).expanduser().resolve()
    base = Path(cwd or Path.cwd())
    for name in DEFAULT_CONFIG_FILENAMES:
        candidate = base / name
        if candidate.exists():
            return candidate.resolve()
    raise ServiceConfigurationError(f"No service configuration found in {base} (expected serverless.yml)")


def load_service_configuration(path: Path) -> ServiceConfiguration:
    try:
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    except FileNotFoundError as exc:
        raise ServiceConfigurationError(f"Service configuration not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ServiceConfigurationError(f"Service configuration {path} is not valid YAML: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ServiceConfigurationError(f"Service configuration {path} must be a mapping")

    service = raw.get("service")
    if isinstance(service, Mapping):
        service = service.get("name")
    if not service:
        raise ServiceConfigurationError(f"Service configuration {path} does not define 'service'")

    provider = _normalize_provider(raw.get("provider"))
    functions = raw.get("functions") or {}
    if not isinstance(functions, Mapping):
        raise ServiceConfigurationError("'functions' must be a mapping of function name to definition")
    normalized_functions: Dict[str, Mapping[str, Any]] = {
        str(name): (definition if isinstance(definition, Mapping) else {})
        for name, definition in functions.items()
    }
    return ServiceConfiguration(
        path=Path(path).resolve(),
        service=str(service),
        provider=provider,
        functions=normalized_functions,
        raw=raw,
    )


def build_deployment_context(
    configuration: ServiceConfiguration,
    *,
    command: str,
    options: Optional[Mapping[str, Any]] = None,
) -> DeploymentContext:
    resolved_options = {key: value for key, value in (options or {}).items() if value not in (None, "")}
    resolver = configuration.stage_resolver()
    return DeploymentContext(
        command=command,
        provider_name=configuration.provider_name,
        service=configuration.service,
        stage=resolver.stage(resolved_options),
        region=resolver.region(resolved_options),
        options=resolved_options,
        functions=configuration.function_descriptors(),
    )


def _normalize_provider(provider: Any) -> Mapping[str, Any]:
    if isinstance(provider, str):
        return {"name": provider}
    if isinstance(provider, Mapping):
        return dict(provider)
    return {}


__all__ = [
    "ServiceConfiguration",
    "ServiceConfigurationError",
    "build_deployment_context",
    "load_service_configuration",
    "resolve_config_path",
]
