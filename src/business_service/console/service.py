from __future__ import annotations

"""Console integration facade consumed by the package/deploy pipeline."""

import logging
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

import httpx

from business_logic.console.consistency import check_schema_version, validate_persisted_state
from business_logic.console.enablement import EnablementDecision, evaluate_enablement, is_deploy_from_package
from business_logic.console.errors import IntegrationMismatchError, NotAuthenticatedError
from business_logic.console.models import DeploymentContext, FunctionDescriptor, IntegrationConfig
from business_service.console.collaborators import (
    AuthenticationGate,
    DefaultLogicalIdNaming,
    LogicalIdNaming,
    OrgDirectory,
)
from business_service.console.environment import EnvironmentVariableInjector
from business_service.console.layer import LayerVersionResolver
from business_service.console.tokens import TokenLifecycleManager
from foundational_service.contracts.console_state import (
    CONSOLE_STATE_KEY,
    CONSOLE_STATE_SCHEMA_VERSION,
    PersistedConsoleState,
)
from foundational_service.integrations.ingestion_client import IngestionClient
from project_utility.config.settings import ConsoleSettings
from project_utility.deferred import DeferredValue
from project_utility.telemetry import emit as telemetry_emit

__all__ = ["ConsoleService"]

log = logging.getLogger("business_service.console.service")

# Commands that build or register the extension layer; rollback and `deploy function` reuse it.
_LAYER_COMMANDS = frozenset({"package", "deploy"})

_CI_LOGIN_HINT = (
    "Console integration requires an authenticated session. Provide an access key through the "
    "SERVERLESS_ACCESS_KEY environment variable of this CI job."
)
_INTERACTIVE_LOGIN_HINT = (
    "Console integration requires an authenticated session. You are not currently logged in; "
    'run "serverless login" and retry.'
)


class ConsoleService:
    """
    One instance serves one invocation.

    `initialize()` decides enablement, checks the session, and either starts token creation (package
    phase) or validates and rehydrates a package's persisted state (deploy-from-package, rollback).
    `finalize_deploy()` runs after the external deploy succeeded.
    """

    def __init__(
        self,
        *,
        settings: ConsoleSettings,
        config: IntegrationConfig,
        context: DeploymentContext,
        auth_gate: AuthenticationGate,
        org_directory: OrgDirectory,
        naming: Optional[LogicalIdNaming] = None,
        layer_resolver: Optional[LayerVersionResolver] = None,
        client: Optional[IngestionClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._config = config
        self._context = context
        self._auth_gate = auth_gate
        self._org_directory = org_directory
        self._naming = naming or DefaultLogicalIdNaming()
        self._layer = layer_resolver or LayerVersionResolver(settings)
        self._client = client or IngestionClient(
            base_url=settings.ingestion_url,
            access_key_provider=auth_gate.access_key,
            timeout=settings.request_timeout,
            transport=transport,
        )
        self._tokens = TokenLifecycleManager(self._client)
        self._decision: Optional[EnablementDecision] = None
        self._org_id: Optional[str] = None
        self._deferred_token: Optional[DeferredValue[str]] = None
        self._injector: Optional[EnvironmentVariableInjector] = None
        self._package_state: Optional[PersistedConsoleState] = None
        self._previous_state: Optional[PersistedConsoleState] = None
        self._token_already_active = False

    # ------------------------------------------------------------------ exposed state
    @property
    def is_enabled(self) -> bool:
        return self._decision is not None and self._decision.enabled

    @property
    def decision(self) -> Optional[EnablementDecision]:
        return self._decision

    @property
    def org(self) -> Optional[str]:
        return self._decision.org if self._decision else None

    @property
    def org_id(self) -> Optional[str]:
        return self._org_id

    @property
    def service_id(self) -> str:
        return self._context.service_id

    @property
    def ingestion_url(self) -> str:
        return self._client.base_url

    @property
    def tokens(self) -> TokenLifecycleManager:
        return self._tokens

    @property
    def deferred_token(self) -> Optional[DeferredValue[str]]:
        return self._deferred_token

    @property
    def deferred_function_environment_variables(self) -> Optional[DeferredValue[Mapping[str, str]]]:
        return self._injector.deferred_variables if self._injector else None

    @property
    def naming(self) -> LogicalIdNaming:
        return self._naming

    @property
    def layer_logical_id(self) -> str:
        return self._naming.console_extension_layer_logical_id()

    def function_environment_variables(
        self, function: FunctionDescriptor
    ) -> Optional[DeferredValue[Mapping[str, str]]]:
        if self._injector is None:
            return None
        return self._injector.for_function(function)

    # ------------------------------------------------------------------ lifecycle
    async def initialize(
        self,
        *,
        package_state: Optional[PersistedConsoleState] = None,
        previous_state: Optional[PersistedConsoleState] = None,
    ) -> None:
        """
        `package_state` is the snapshot stored in the package being deployed (deploy from package,
        rollback to a timestamp). `previous_state` is the snapshot of the currently deployed service.
        """

        context = self._context
        self._previous_state = previous_state
        decision = evaluate_enablement(self._config, context)
        self._decision = decision
        if package_state is None and is_deploy_from_package(context):
            package_state = PersistedConsoleState.disabled()
        if package_state is not None:
            check_schema_version(package_state)

        if decision.enabled:
            self._require_authentication()
            assert decision.org is not None
            self._org_id = await self._org_directory.resolve_org_id(decision.org)

        if package_state is not None:
            validate_persisted_state(
                package_state,
                console_enabled=decision.enabled,
                org_id=self._org_id,
                service_id=self.service_id,
            )
            self._package_state = package_state

        if not decision.enabled:
            telemetry_emit("console.disabled", payload={"reason": decision.reason, "command": context.command})
            return

        self._deferred_token = self._resolve_token(package_state, previous_state)
        if self._deferred_token is None:
            return
        self._deferred_token.start()
        if context.command in _LAYER_COMMANDS:
            await self._layer.resolve()
        self._injector = EnvironmentVariableInjector(self.ingestion_url, self._deferred_token)
        telemetry_emit(
            "console.initialized",
            service_id=self.service_id,
            org_id=self._org_id,
            payload={"command": context.command, "rehydrated": self._deferred_token.done},
        )

    async def finalize_deploy(self) -> None:
        """Activate the deployed token, or retire the previous one when the integration was turned off."""

        if self.is_enabled:
            if self._deferred_token is None or self._token_already_active:
                return
            assert self._org_id is not None
            token = await self._deferred_token
            await self._tokens.activate(token, self._org_id, self.service_id)
            await self._tokens.deactivate_others(token, self._org_id, self.service_id)
            return

        previous = self._previous_state
        if previous is None or not previous.activation or not previous.ingestion_token:
            return
        if not self._auth_gate.is_authenticated():
            log.warning(
                "console.token.deactivate_skipped",
                extra={"service_id": self.service_id, "reason": "not_authenticated"},
            )
            return
        log.info("console.token.deactivate_previous", extra={"service_id": self.service_id})
        await self._tokens.deactivate_single(previous.ingestion_token)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------ pipeline contributions
    def compile_extension_layer(self, template: MutableMapping[str, Any], artifact_directory_name: str) -> None:
        if not self.is_enabled:
            return
        resources = template.setdefault("Resources", {})
        resources[self.layer_logical_id] = self._layer.layer_resource(artifact_directory_name)

    async def package_extension_layer(self, output_dir: Path) -> Optional[Path]:
        if not self.is_enabled:
            return None
        return await self._layer.package(output_dir)

    @property
    def extension_layer_filename(self) -> Optional[str]:
        if not self.is_enabled:
            return None
        return self._layer.artifact.filename

    async def persist_state(self, document: MutableMapping[str, Any]) -> PersistedConsoleState:
        """Write the console section of the package state document."""

        if self.is_enabled and self._deferred_token is not None:
            state = PersistedConsoleState(
                schema_version=CONSOLE_STATE_SCHEMA_VERSION,
                org_id=self._org_id,
                service_id=self.service_id,
                ingestion_token=await self._deferred_token,
                activation=True,
            )
        else:
            state = PersistedConsoleState.disabled()
        document[CONSOLE_STATE_KEY] = state.to_document()
        return state

    @staticmethod
    def read_persisted_state(document: Mapping[str, Any]) -> PersistedConsoleState:
        return PersistedConsoleState.from_state_document(document)

    # ------------------------------------------------------------------ internals
    def _require_authentication(self) -> None:
        if self._auth_gate.is_authenticated():
            return
        raise NotAuthenticatedError(_CI_LOGIN_HINT if self._settings.is_ci else _INTERACTIVE_LOGIN_HINT)

    def _resolve_token(
        self,
        package_state: Optional[PersistedConsoleState],
        previous_state: Optional[PersistedConsoleState],
    ) -> Optional[DeferredValue[str]]:
        assert self._org_id is not None
        command = self._context.command
        if package_state is not None:
            if not package_state.ingestion_token:
                raise IntegrationMismatchError(
                    "Cannot deploy this package: its Console state carries no ingestion token. "
                    "Re-package the service and deploy again."
                )
            return self._tokens.rehydrate(package_state.ingestion_token)
        if command == "rollback":
            # Without a target deployment there is nothing to activate.
            return None
        if command == "deploy function" and _reusable_token(previous_state, self._org_id):
            assert previous_state is not None and previous_state.ingestion_token is not None
            self._token_already_active = True
            return self._tokens.rehydrate(previous_state.ingestion_token)
        return self._tokens.create(self._org_id, self.service_id)


def _reusable_token(state: Optional[PersistedConsoleState], org_id: str) -> bool:
    return bool(
        state is not None
        and state.activation
        and state.ingestion_token
        and state.org_id == org_id
        and state.schema_version == CONSOLE_STATE_SCHEMA_VERSION
    )
