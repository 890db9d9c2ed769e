from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence

import pytest
import pytest_asyncio

from business_logic.console.errors import (
    ActivationMismatchError,
    IntegrationMismatchError,
    NotAuthenticatedError,
    OrgMismatchError,
    TokenCreationError,
)
from business_logic.console.models import DeploymentContext, FunctionDescriptor, IntegrationConfig
from business_service.console.collaborators import (
    EnvironmentAuthenticationGate,
    OrgDirectory,
    StaticOrgDirectory,
)
from business_service.console.service import ConsoleService
from foundational_service.contracts.console_state import PersistedConsoleState

NODE_FUNCTION = FunctionDescriptor(id="hello", handler="index.handler", runtime="nodejs18.x")
PYTHON_FUNCTION = FunctionDescriptor(id="worker", handler="handler.main", runtime="python3.11")


def _enabled_state(
    token: str = "stored-token",
    org_id: str = "acme",
    *,
    service_id: str = "svc",
    schema_version: str = "1",
) -> PersistedConsoleState:
    return PersistedConsoleState(
        schema_version=schema_version,
        org_id=org_id,
        service_id=service_id,
        ingestion_token=token,
        activation=True,
    )


@pytest_asyncio.fixture()
async def make_service(settings_factory, ingestion_server):
    created: List[ConsoleService] = []

    def _factory(
        command: str = "deploy",
        *,
        console: bool = True,
        functions: Sequence[FunctionDescriptor] = (NODE_FUNCTION, PYTHON_FUNCTION),
        options: Optional[Mapping[str, Any]] = None,
        org_directory: Optional[OrgDirectory] = None,
        **settings_overrides: Any,
    ) -> ConsoleService:
        settings = settings_factory(**settings_overrides)
        service = ConsoleService(
            settings=settings,
            config=IntegrationConfig(console_enabled=console, org="acme"),
            context=DeploymentContext(
                command=command,
                provider_name="aws",
                service="svc",
                options=dict(options or {}),
                functions=tuple(functions),
            ),
            auth_gate=EnvironmentAuthenticationGate(settings),
            org_directory=org_directory or StaticOrgDirectory(settings),
            transport=ingestion_server.transport,
        )
        created.append(service)
        return service

    yield _factory
    for service in created:
        await service.aclose()


def _request_log(ingestion_server) -> List[str]:
    return [f"{request.method} {request.url.path}" for request in ingestion_server.requests]


class CountingOrgDirectory:
    def __init__(self) -> None:
        self.calls = 0

    async def resolve_org_id(self, org_name: str) -> str:
        self.calls += 1
        return org_name


@pytest.mark.asyncio
async def test_package_creates_token_and_persists_state(make_service, ingestion_server) -> None:
    service = make_service("package")

    await service.initialize()
    variables = await service.function_environment_variables(NODE_FUNCTION)
    document: dict = {"service": "svc"}
    state = await service.persist_state(document)

    assert service.is_enabled
    assert variables["SLS_OTEL_REPORT_REQUEST_HEADERS"] == "serverless-token=token-1"
    assert service.function_environment_variables(PYTHON_FUNCTION) is None
    assert _request_log(ingestion_server) == ["POST /token"]
    assert state.ingestion_token == "token-1"
    assert document["console"] == {
        "schemaVersion": "1",
        "orgId": "acme",
        "serviceId": "svc",
        "ingestionToken": "token-1",
        "activation": True,
    }


@pytest.mark.asyncio
async def test_package_contributes_layer_resource(make_service) -> None:
    service = make_service("package")
    await service.initialize()
    template: dict = {"Resources": {}}

    service.compile_extension_layer(template, "serverless/svc/dev/1")

    assert service.extension_layer_filename == "sls-otel.1.2.3.zip"
    layer = template["Resources"][service.layer_logical_id]
    assert layer["Properties"]["Content"]["S3Key"] == "serverless/svc/dev/1/sls-otel.1.2.3.zip"


@pytest.mark.asyncio
async def test_disabled_package_makes_no_calls(make_service, ingestion_server) -> None:
    service = make_service("package", console=False)
    await service.initialize()
    template: dict = {"Resources": {}}
    document: dict = {}

    service.compile_extension_layer(template, "serverless/svc/dev/1")
    await service.persist_state(document)

    assert not service.is_enabled
    assert service.decision.reason == "console_not_configured"
    assert service.function_environment_variables(NODE_FUNCTION) is None
    assert template == {"Resources": {}}
    assert document["console"]["activation"] is False
    assert ingestion_server.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize(("is_ci", "hint"), [(True, "SERVERLESS_ACCESS_KEY"), (False, "serverless login")])
async def test_unauthenticated_session_is_rejected(make_service, ingestion_server, is_ci: bool, hint: str) -> None:
    service = make_service("package", access_key=None, is_ci=is_ci)

    with pytest.raises(NotAuthenticatedError, match=hint):
        await service.initialize()

    assert ingestion_server.requests == []


@pytest.mark.asyncio
async def test_deploy_activates_then_retires_other_tokens(make_service, ingestion_server) -> None:
    service = make_service("deploy")

    await service.initialize()
    await service.function_environment_variables(NODE_FUNCTION)
    await service.finalize_deploy()

    assert _request_log(ingestion_server) == ["POST /token", "PATCH /token", "DELETE /tokens"]
    activation = ingestion_server.calls("PATCH", "/token")[0]
    assert ingestion_server.body(activation) == {"orgId": "acme", "serviceId": "svc", "token": "token-1"}


@pytest.mark.asyncio
async def test_deploy_from_package_reuses_packaged_token(make_service, ingestion_server) -> None:
    service = make_service("deploy", functions=(PYTHON_FUNCTION,), options={"package": "/tmp/pkg"})

    await service.initialize(package_state=_enabled_state())
    await service.finalize_deploy()

    assert await service.deferred_token == "stored-token"
    assert _request_log(ingestion_server) == ["PATCH /token", "DELETE /tokens"]


@pytest.mark.asyncio
async def test_deploy_from_package_with_other_org_is_rejected(make_service, ingestion_server) -> None:
    service = make_service("deploy", options={"package": "/tmp/pkg"})

    with pytest.raises(OrgMismatchError):
        await service.initialize(package_state=_enabled_state(org_id="other-org"))

    assert ingestion_server.requests == []


@pytest.mark.asyncio
async def test_deploy_from_package_built_for_other_service_is_rejected(make_service, ingestion_server) -> None:
    service = make_service("deploy", options={"package": "/tmp/pkg"})

    with pytest.raises(IntegrationMismatchError) as excinfo:
        await service.initialize(package_state=_enabled_state(token="token-of-svc-a", service_id="svc-a"))

    assert "svc-a" in str(excinfo.value)
    assert ingestion_server.requests == []
    assert service.deferred_token is None


@pytest.mark.asyncio
async def test_schema_mismatch_fails_before_org_lookup(make_service, ingestion_server) -> None:
    org_directory = CountingOrgDirectory()
    service = make_service("deploy", options={"package": "/tmp/pkg"}, org_directory=org_directory)

    with pytest.raises(IntegrationMismatchError):
        await service.initialize(package_state=_enabled_state(schema_version="0"))

    assert org_directory.calls == 0
    assert ingestion_server.requests == []


@pytest.mark.asyncio
async def test_package_built_without_console_cannot_deploy_with_console(make_service) -> None:
    service = make_service("deploy", options={"package": "/tmp/pkg"})

    with pytest.raises(ActivationMismatchError):
        await service.initialize()


@pytest.mark.asyncio
async def test_package_built_with_console_cannot_deploy_without_console(make_service) -> None:
    service = make_service("deploy", console=False, options={"package": "/tmp/pkg"})

    with pytest.raises(ActivationMismatchError):
        await service.initialize(package_state=_enabled_state())


@pytest.mark.asyncio
async def test_enabled_package_without_token_is_rejected(make_service) -> None:
    service = make_service("deploy", options={"package": "/tmp/pkg"})
    state = PersistedConsoleState(schema_version="1", org_id="acme", service_id="svc", activation=True)

    with pytest.raises(IntegrationMismatchError):
        await service.initialize(package_state=state)


@pytest.mark.asyncio
async def test_failed_retirement_of_other_tokens_does_not_fail_deploy(
    make_service,
    ingestion_server,
    caplog: pytest.LogCaptureFixture,
) -> None:
    ingestion_server.respond("DELETE", "/tokens", 502, "bad gateway")
    service = make_service("deploy")

    with caplog.at_level(logging.ERROR):
        await service.initialize()
        await service.finalize_deploy()

    assert _request_log(ingestion_server) == ["POST /token", "PATCH /token", "DELETE /tokens"]
    assert any(record.getMessage() == "console.token.deactivate_others_failed" for record in caplog.records)


@pytest.mark.asyncio
async def test_failed_activation_fails_deploy(make_service, ingestion_server) -> None:
    ingestion_server.respond("PATCH", "/token", 500, "nope")
    service = make_service("deploy")
    await service.initialize()

    with pytest.raises(TokenCreationError) as excinfo:
        await service.finalize_deploy()

    assert excinfo.value.code == "CONSOLE_TOKEN_ACTIVATION_FAILED"
    assert ingestion_server.calls("DELETE", "/tokens") == []


@pytest.mark.asyncio
async def test_turning_console_off_retires_previous_token(make_service, ingestion_server) -> None:
    service = make_service("deploy", console=False)

    await service.initialize(previous_state=_enabled_state(token="previous"))
    await service.finalize_deploy()

    (request,) = ingestion_server.requests
    assert request.method == "DELETE"
    assert request.url.path == "/token"
    assert dict(request.url.params) == {"token": "previous"}


@pytest.mark.asyncio
async def test_retiring_previous_token_needs_a_session(
    make_service,
    ingestion_server,
    caplog: pytest.LogCaptureFixture,
) -> None:
    service = make_service("deploy", console=False, access_key=None)

    with caplog.at_level(logging.WARNING, logger="business_service.console.service"):
        await service.initialize(previous_state=_enabled_state(token="previous"))
        await service.finalize_deploy()

    assert ingestion_server.requests == []
    assert [record.getMessage() for record in caplog.records] == ["console.token.deactivate_skipped"]


@pytest.mark.asyncio
async def test_rollback_without_target_makes_no_token_calls(make_service, ingestion_server) -> None:
    service = make_service("rollback")

    await service.initialize(previous_state=_enabled_state())
    await service.finalize_deploy()

    assert service.is_enabled
    assert service.deferred_token is None
    assert service.function_environment_variables(NODE_FUNCTION) is None
    assert ingestion_server.requests == []


@pytest.mark.asyncio
async def test_rollback_to_deployment_activates_its_token(make_service, ingestion_server) -> None:
    service = make_service("rollback", options={"timestamp": "1700000000000"})

    await service.initialize(package_state=_enabled_state(token="old-token"), previous_state=_enabled_state(token="new"))
    await service.finalize_deploy()

    assert _request_log(ingestion_server) == ["PATCH /token", "DELETE /tokens"]
    assert ingestion_server.body(ingestion_server.requests[0])["token"] == "old-token"


@pytest.mark.asyncio
async def test_deploy_function_reuses_active_token(make_service, ingestion_server) -> None:
    service = make_service("deploy function", options={"function": "hello"})

    await service.initialize(previous_state=_enabled_state(token="live"))
    variables = await service.function_environment_variables(NODE_FUNCTION)
    await service.finalize_deploy()

    assert variables["SLS_OTEL_REPORT_REQUEST_HEADERS"] == "serverless-token=live"
    assert ingestion_server.requests == []


@pytest.mark.asyncio
async def test_deploy_function_without_previous_token_creates_one(make_service, ingestion_server) -> None:
    service = make_service("deploy function", options={"function": "hello"})

    await service.initialize(previous_state=PersistedConsoleState.disabled())
    await service.function_environment_variables(NODE_FUNCTION)
    await service.finalize_deploy()

    assert _request_log(ingestion_server) == ["POST /token", "PATCH /token", "DELETE /tokens"]


def test_state_document_round_trip() -> None:
    document = {"console": _enabled_state().to_document()}

    assert ConsoleService.read_persisted_state(document) == _enabled_state()
