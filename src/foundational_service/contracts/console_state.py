"""Wire and persistence contracts for the Console integration.

`PersistedConsoleState` is the snapshot written into the package's state document at package time
and read back, possibly by another process, when that package is deployed. Field names are frozen
in their camelCase form; `schemaVersion` changes whenever this contract changes incompatibly.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

__all__ = [
    "CONSOLE_STATE_KEY",
    "CONSOLE_STATE_SCHEMA_VERSION",
    "ConsoleStateError",
    "PersistedConsoleState",
    "TokenActivationRequest",
    "TokenCreateRequest",
    "TokenCreateResponse",
]

CONSOLE_STATE_KEY = "console"
CONSOLE_STATE_SCHEMA_VERSION = "1"


class ConsoleStateError(ValueError):
    """Raised when the persisted console section cannot be parsed."""


class PersistedConsoleState(BaseModel):
    schema_version: str = Field(alias="schemaVersion")
    org_id: Optional[str] = Field(default=None, alias="orgId")
    service_id: Optional[str] = Field(default=None, alias="serviceId")
    ingestion_token: Optional[str] = Field(default=None, alias="ingestionToken")
    activation: bool = False

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @classmethod
    def disabled(cls) -> "PersistedConsoleState":
        return cls(schema_version=CONSOLE_STATE_SCHEMA_VERSION, activation=False)

    @classmethod
    def from_state_document(cls, document: Mapping[str, Any]) -> "PersistedConsoleState":
        """Read the console section of a package state document.

        A document without a console section was produced with the integration off.
        """

        section = document.get(CONSOLE_STATE_KEY)
        if section is None:
            return cls.disabled()
        if not isinstance(section, Mapping):
            raise ConsoleStateError(f"'{CONSOLE_STATE_KEY}' section must be an object")
        try:
            return cls.model_validate(dict(section))
        except ValidationError as exc:
            raise ConsoleStateError(f"invalid '{CONSOLE_STATE_KEY}' section: {exc}") from exc

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class TokenCreateRequest(BaseModel):
    org_id: str = Field(alias="orgId")
    service_id: str = Field(alias="serviceId")

    model_config = ConfigDict(populate_by_name=True)


class TokenActivationRequest(TokenCreateRequest):
    token: str


class TokenCreateResponse(BaseModel):
    access_token: str = Field(alias="accessToken", min_length=1)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
