from __future__ import annotations

"""Ingestion token lifecycle: create, activate, and retire tokens of a service."""

import logging
from typing import Optional

from business_logic.console.errors import (
    ConsoleError,
    IngestionCommunicationError,
    TokenCreationError,
)
from business_logic.console.models import CallOutcome
from foundational_service.contracts.console_state import TokenCreateResponse
from foundational_service.integrations.ingestion_client import (
    IngestionClient,
    IngestionResponse,
    IngestionTransportError,
)
from project_utility.deferred import DeferredValue
from project_utility.telemetry import emit as telemetry_emit

__all__ = ["TokenLifecycleManager"]

log = logging.getLogger("business_service.console.tokens")


class TokenLifecycleManager:
    """
    Wraps each ingestion call into a `CallOutcome`.

    Creation and activation failures are fatal. Deactivation failures are soft: they are logged here
    and returned, never raised, since they only leave unused credentials behind.
    """

    def __init__(self, client: IngestionClient) -> None:
        self._client = client
        self._create_calls = 0

    @property
    def create_calls(self) -> int:
        return self._create_calls

    def create(self, org_id: str, service_id: str) -> DeferredValue[str]:
        """Return the token as a deferred value; the POST fires once, on first start or await."""

        async def _create() -> str:
            outcome = await self._create(org_id, service_id)
            token = outcome.unwrap()
            assert token is not None
            return token

        return DeferredValue(_create, name="console.ingestion_token")

    @staticmethod
    def rehydrate(token: str) -> DeferredValue[str]:
        return DeferredValue.resolved(token, name="console.ingestion_token")

    async def activate(self, token: str, org_id: str, service_id: str) -> None:
        outcome = await self._activate(token, org_id, service_id)
        outcome.unwrap()

    async def deactivate_others(self, token: str, org_id: str, service_id: str) -> CallOutcome[None]:
        try:
            response = await self._client.deactivate_other_tokens(token=token, org_id=org_id, service_id=service_id)
        except IngestionTransportError as exc:
            return self._soft_failure("console.token.deactivate_others_failed", exc, service_id=service_id)
        if not response.ok:
            return self._soft_failure(
                "console.token.deactivate_others_failed",
                _response_error(IngestionCommunicationError, "Could not deactivate previous ingestion tokens", response),
                service_id=service_id,
            )
        telemetry_emit("console.token.deactivated_others", service_id=service_id, org_id=org_id)
        return CallOutcome.success()

    async def deactivate_single(self, token: str) -> CallOutcome[None]:
        try:
            response = await self._client.deactivate_token(token=token)
        except IngestionTransportError as exc:
            return self._soft_failure("console.token.deactivate_failed", exc)
        if not response.ok:
            return self._soft_failure(
                "console.token.deactivate_failed",
                _response_error(IngestionCommunicationError, "Could not deactivate ingestion token", response),
            )
        telemetry_emit("console.token.deactivated")
        return CallOutcome.success()

    async def _create(self, org_id: str, service_id: str) -> CallOutcome[str]:
        self._create_calls += 1
        try:
            response = await self._client.create_token(org_id=org_id, service_id=service_id)
        except IngestionTransportError as exc:
            return CallOutcome.fatal(
                TokenCreationError(f"Could not create an ingestion token: {exc}")
            )
        if not response.ok:
            return CallOutcome.fatal(
                _response_error(TokenCreationError, "Could not create an ingestion token", response)
            )
        try:
            token = TokenCreateResponse.model_validate_json(response.body).access_token
        except ValueError as exc:
            return CallOutcome.fatal(
                TokenCreationError(
                    f"Could not create an ingestion token: unexpected response body ({exc.__class__.__name__})",
                    status_code=response.status_code,
                    body=response.body,
                )
            )
        log.info("console.token.created", extra={"service_id": service_id})
        telemetry_emit("console.token.created", service_id=service_id, org_id=org_id)
        return CallOutcome.success(token)

    async def _activate(self, token: str, org_id: str, service_id: str) -> CallOutcome[None]:
        try:
            response = await self._client.activate_token(token=token, org_id=org_id, service_id=service_id)
        except IngestionTransportError as exc:
            return CallOutcome.fatal(
                TokenCreationError(
                    f"Could not activate the ingestion token: {exc}",
                    code="CONSOLE_TOKEN_ACTIVATION_FAILED",
                )
            )
        if not response.ok:
            error = _response_error(TokenCreationError, "Could not activate the ingestion token", response)
            error.code = "CONSOLE_TOKEN_ACTIVATION_FAILED"
            return CallOutcome.fatal(error)
        log.info("console.token.activated", extra={"service_id": service_id})
        telemetry_emit("console.token.activated", service_id=service_id, org_id=org_id)
        return CallOutcome.success()

    @staticmethod
    def _soft_failure(
        event: str,
        exc: Exception,
        *,
        service_id: Optional[str] = None,
    ) -> CallOutcome[None]:
        if isinstance(exc, ConsoleError):
            error = exc
        else:
            error = IngestionCommunicationError(f"Ingestion endpoint unreachable: {exc}")
        log.error(
            event,
            extra={
                "service_id": service_id,
                "status_code": error.status_code,
                "body": error.body,
                "error": error.message,
            },
        )
        telemetry_emit(
            event,
            level="error",
            service_id=service_id,
            payload={"status_code": error.status_code, "error": error.message},
        )
        return CallOutcome.soft(error)


def _response_error(error_cls: type[ConsoleError], summary: str, response: IngestionResponse) -> ConsoleError:
    return error_cls(
        f"{summary}: Console server error [{response.status_code}] {response.body}".rstrip(),
        status_code=response.status_code,
        body=response.body,
    )
