from __future__ import annotations

"""Async client for the Console ingestion token endpoints."""

import json
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import httpx

from foundational_service.contracts.console_state import (
    TokenActivationRequest,
    TokenCreateRequest,
)
from project_utility.tracing import request_span

__all__ = ["IngestionClient", "IngestionResponse", "IngestionTransportError"]

DEFAULT_TIMEOUT = 10.0


@dataclass(slots=True)
class IngestionTransportError(RuntimeError):
    """The request never produced an HTTP response (DNS, TLS, timeout, ...)."""

    operation: str
    message: str

    def __str__(self) -> str:
        return f"{self.operation}: {self.message}"


@dataclass(slots=True, frozen=True)
class IngestionResponse:
    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return json.loads(self.body)


class IngestionClient:
    """
    Thin wrapper over the ingestion HTTP surface.

    Non-2xx responses are returned, not raised: the caller decides whether a failure is fatal.
    Every request carries the platform access key as a bearer credential.
    """

    def __init__(
        self,
        *,
        base_url: str,
        access_key_provider: Callable[[], Optional[str]],
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_key_provider = access_key_provider
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        await self._client.aclose()

    async def create_token(self, *, org_id: str, service_id: str) -> IngestionResponse:
        body = TokenCreateRequest(org_id=org_id, service_id=service_id)
        return await self._request(
            "ingestion.token.create",
            "POST",
            "/token",
            payload=body.model_dump(by_alias=True),
            service_id=service_id,
        )

    async def activate_token(self, *, token: str, org_id: str, service_id: str) -> IngestionResponse:
        body = TokenActivationRequest(org_id=org_id, service_id=service_id, token=token)
        return await self._request(
            "ingestion.token.activate",
            "PATCH",
            "/token",
            payload=body.model_dump(by_alias=True),
            service_id=service_id,
        )

    async def deactivate_other_tokens(self, *, token: str, org_id: str, service_id: str) -> IngestionResponse:
        return await self._request(
            "ingestion.tokens.deactivate_others",
            "DELETE",
            "/tokens",
            params={"orgId": org_id, "serviceId": service_id, "token": token},
            service_id=service_id,
        )

    async def deactivate_token(self, *, token: str) -> IngestionResponse:
        return await self._request(
            "ingestion.token.deactivate",
            "DELETE",
            "/token",
            params={"token": token},
        )

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        payload: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, str]] = None,
        service_id: Optional[str] = None,
    ) -> IngestionResponse:
        headers = {"Content-Type": "application/json"}
        access_key = self._access_key_provider()
        if access_key:
            headers["Authorization"] = f"Bearer {access_key}"
        async with request_span(operation, method=method, path=path, service_id=service_id) as span:
            try:
                response = await self._client.request(
                    method,
                    f"{self._base_url}{path}",
                    json=payload,
                    params=params,
                    headers=headers,
                )
            except httpx.RequestError as exc:
                raise IngestionTransportError(operation=operation, message=str(exc) or type(exc).__name__) from exc
            span.record_status(response.status_code)
        return IngestionResponse(status_code=response.status_code, body=response.text)
