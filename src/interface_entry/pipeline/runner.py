from __future__ import annotations

"""
Local package/deploy pipeline.

Stands in for the cloud deploy: it compiles the update-stack template, writes the package directory,
and records each deploy under `.serverless/deployments/<timestamp>/`. The Console integration is
driven through `ConsoleService` exactly as a real deploy would drive it.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

import httpx

from business_logic.console.enablement import EnablementDecision, evaluate_enablement
from business_logic.console.models import DeploymentContext, FunctionDescriptor
from business_service.console.collaborators import (
    AuthenticationGate,
    EnvironmentAuthenticationGate,
    OrgDirectory,
    StaticOrgDirectory,
)
from business_service.console.layer import LayerVersionResolver
from business_service.console.service import ConsoleService
from foundational_service.contracts.console_state import ConsoleStateError, PersistedConsoleState
from interface_entry.config.service_loader import ServiceConfiguration, build_deployment_context
from interface_entry.pipeline.errors import (
    FunctionNotFoundError,
    PackageStateError,
    ServiceNotDeployedError,
)
from interface_entry.pipeline.history import (
    STATE_FILENAME,
    TEMPLATE_FILENAME,
    LocalDeploymentHistory,
    read_state_document,
)
from interface_entry.pipeline.template import compile_template
from project_utility.config.paths import get_service_workdir
from project_utility.config.settings import ConsoleSettings
from project_utility.telemetry import emit as telemetry_emit

__all__ = ["LocalPipeline", "PipelineResult", "StatusReport"]

log = logging.getLogger("interface_entry.pipeline.runner")

DEFAULT_PACKAGE_DIRNAME = "package"
FUNCTION_UPDATES_DIRNAME = "functions"


@dataclass(slots=True)
class PipelineResult:
    command: str
    console_enabled: bool
    reason: Optional[str] = None
    package_dir: Optional[Path] = None
    deployment_dir: Optional[Path] = None
    timestamp: Optional[str] = None
    timestamps: Sequence[str] = field(default_factory=tuple)


@dataclass(slots=True, frozen=True)
class StatusReport:
    service: str
    stage: str
    region: str
    decision: EnablementDecision
    ingestion_url: str
    supported_functions: Sequence[str]
    latest_deployment: Optional[str]
    deployed_state: Optional[PersistedConsoleState]


class LocalPipeline:
    def __init__(
        self,
        *,
        configuration: ServiceConfiguration,
        settings: ConsoleSettings,
        options: Optional[Mapping[str, Any]] = None,
        history: Optional[LocalDeploymentHistory] = None,
        auth_gate: Optional[AuthenticationGate] = None,
        org_directory: Optional[OrgDirectory] = None,
        layer_resolver_factory: Optional[Callable[[], LayerVersionResolver]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._configuration = configuration
        self._settings = settings
        self._options = dict(options or {})
        self._history = history or LocalDeploymentHistory(configuration.service_dir)
        self._auth_gate = auth_gate or EnvironmentAuthenticationGate(settings)
        self._org_directory = org_directory or StaticOrgDirectory(settings)
        self._layer_resolver_factory = layer_resolver_factory
        self._transport = transport
        self._clock = clock

    @property
    def history(self) -> LocalDeploymentHistory:
        return self._history

    @property
    def default_package_dir(self) -> Path:
        return get_service_workdir(self._configuration.service_dir) / DEFAULT_PACKAGE_DIRNAME

    # ------------------------------------------------------------------ commands
    async def package(self, package_dir: Optional[Path] = None) -> PipelineResult:
        context = self._context("package")
        console = self._console(context)
        try:
            await console.initialize()
            target = await self._package(console, context, package_dir)
        finally:
            await console.aclose()
        return self._result(console, context, package_dir=target)

    async def deploy(self, package_dir: Optional[Path] = None) -> PipelineResult:
        context = self._context("deploy", package=str(package_dir) if package_dir else None)
        console = self._console(context)
        try:
            previous_state = await self._history.previous_state()
            if package_dir is not None:
                source = Path(package_dir)
                document = await asyncio.to_thread(read_state_document, source)
                await console.initialize(
                    package_state=_package_state(document),
                    previous_state=previous_state,
                )
            else:
                await console.initialize(previous_state=previous_state)
                source = await self._package(console, context, None)
            timestamp = await self._next_timestamp()
            deployment_dir = await self._history.record(source, timestamp)
            await console.finalize_deploy()
        finally:
            await console.aclose()
        log.info("pipeline.deploy.completed", extra={"service_id": context.service_id, "timestamp": timestamp})
        return self._result(console, context, package_dir=source, deployment_dir=deployment_dir, timestamp=timestamp)

    async def deploy_function(self, function_name: str) -> PipelineResult:
        context = self._context("deploy function", function=function_name)
        function = _find_function(context, function_name)
        timestamps = await self._history.timestamps()
        if not timestamps:
            raise ServiceNotDeployedError(
                f'Service "{context.service}" has not been deployed yet; run deploy before deploying a single function'
            )
        console = self._console(context)
        try:
            await console.initialize(previous_state=await self._history.previous_state())
            deferred = console.function_environment_variables(function)
            variables: Mapping[str, str] = await deferred if deferred is not None else {}
            deployment_dir = self._history.deployment_dir(timestamps[-1])
            await asyncio.to_thread(
                _write_json,
                deployment_dir / FUNCTION_UPDATES_DIRNAME / f"{function.id}.json",
                {
                    "function": function.id,
                    "handler": function.handler,
                    "runtime": function.runtime,
                    "environment": dict(variables),
                    "updatedAt": self._clock().isoformat(),
                },
            )
            await console.finalize_deploy()
        finally:
            await console.aclose()
        log.info("pipeline.deploy_function.completed", extra={"service_id": context.service_id, "command": context.command})
        return self._result(console, context, deployment_dir=deployment_dir, timestamp=timestamps[-1])

    async def rollback(self, timestamp: Optional[str] = None) -> PipelineResult:
        context = self._context("rollback", timestamp=timestamp)
        console = self._console(context)
        try:
            if timestamp is None:
                await console.initialize()
                timestamps = await self._history.timestamps()
                return self._result(console, context, timestamps=timestamps)

            document = await self._history.document_for_timestamp(timestamp)
            await console.initialize(
                package_state=_package_state(document),
                previous_state=await self._history.previous_state(),
            )
            new_timestamp = await self._next_timestamp()
            deployment_dir = await self._history.record(self._history.deployment_dir(timestamp), new_timestamp)
            await console.finalize_deploy()
        finally:
            await console.aclose()
        log.info("pipeline.rollback.completed", extra={"service_id": context.service_id, "timestamp": timestamp})
        return self._result(console, context, deployment_dir=deployment_dir, timestamp=new_timestamp)

    async def status(self) -> StatusReport:
        context = self._context("deploy")
        decision = evaluate_enablement(self._configuration.integration, context)
        timestamps = await self._history.timestamps()
        return StatusReport(
            service=context.service,
            stage=context.stage,
            region=context.region,
            decision=decision,
            ingestion_url=self._settings.ingestion_url,
            supported_functions=tuple(fn.id for fn in context.supported_functions()),
            latest_deployment=timestamps[-1] if timestamps else None,
            deployed_state=await self._history.previous_state(),
        )

    # ------------------------------------------------------------------ internals
    def _context(self, command: str, **options: Any) -> DeploymentContext:
        merged = dict(self._options)
        merged.update(options)
        return build_deployment_context(self._configuration, command=command, options=merged)

    def _console(self, context: DeploymentContext) -> ConsoleService:
        layer_resolver = self._layer_resolver_factory() if self._layer_resolver_factory else None
        return ConsoleService(
            settings=self._settings,
            config=self._configuration.integration,
            context=context,
            auth_gate=self._auth_gate,
            org_directory=self._org_directory,
            layer_resolver=layer_resolver,
            transport=self._transport,
        )

    async def _package(
        self,
        console: ConsoleService,
        context: DeploymentContext,
        package_dir: Optional[Path],
    ) -> Path:
        target = Path(package_dir) if package_dir is not None else self.default_package_dir
        await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
        artifact_directory_name = f"serverless/{context.service}/{context.stage}/{self._now_ms()}"
        template = await compile_template(
            console,
            context.functions,
            service=context.service,
            stage=context.stage,
            artifact_directory_name=artifact_directory_name,
        )
        artifacts = []
        layer_path = await console.package_extension_layer(target)
        if layer_path is not None:
            artifacts.append(layer_path.name)
        document: Dict[str, Any] = {
            "service": context.service,
            "provider": {"name": context.provider_name, "stage": context.stage, "region": context.region},
            "package": {"artifactDirectoryName": artifact_directory_name, "artifacts": artifacts},
        }
        await console.persist_state(document)
        await asyncio.to_thread(_write_json, target / TEMPLATE_FILENAME, template)
        await asyncio.to_thread(_write_json, target / STATE_FILENAME, document)
        log.info(
            "pipeline.package.completed",
            extra={"service_id": context.service_id, "phase": "package", "command": context.command},
        )
        telemetry_emit(
            "pipeline.package.completed",
            service_id=context.service_id,
            payload={"package_dir": str(target), "artifacts": artifacts, "console": console.is_enabled},
        )
        return target

    async def _next_timestamp(self) -> str:
        candidate = self._now_ms()
        timestamps = await self._history.timestamps()
        if timestamps:
            latest = timestamps[-1].split("-", 1)[0]
            if latest.isdigit() and int(latest) >= candidate:
                candidate = int(latest) + 1
        return str(candidate)

    def _now_ms(self) -> int:
        return int(self._clock().timestamp() * 1000)

    @staticmethod
    def _result(console: ConsoleService, context: DeploymentContext, **fields: Any) -> PipelineResult:
        decision = console.decision
        return PipelineResult(
            command=context.command,
            console_enabled=console.is_enabled,
            reason=decision.reason if decision else None,
            **fields,
        )


def _package_state(document: Mapping[str, Any]) -> PersistedConsoleState:
    try:
        return ConsoleService.read_persisted_state(document)
    except ConsoleStateError as exc:
        raise PackageStateError(str(exc)) from exc


def _find_function(context: DeploymentContext, name: str) -> FunctionDescriptor:
    for function in context.functions:
        if function.id == name:
            return function
    raise FunctionNotFoundError(name)


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
