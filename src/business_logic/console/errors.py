from __future__ import annotations

"""Error taxonomy of the Console integration."""

from typing import Optional

__all__ = [
    "ActivationMismatchError",
    "ConsoleError",
    "IngestionCommunicationError",
    "IntegrationMismatchError",
    "NotAuthenticatedError",
    "OrgMismatchError",
    "TokenCreationError",
]


class ConsoleError(RuntimeError):
    """Base class; `fatal` errors abort the invocation, the rest are only logged."""

    code = "CONSOLE_ERROR"
    fatal = True

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        return self.message


class NotAuthenticatedError(ConsoleError):
    code = "CONSOLE_NOT_AUTHENTICATED"


class TokenCreationError(ConsoleError):
    """Covers both the creation and the activation of an ingestion token."""

    code = "CONSOLE_TOKEN_CREATION_FAILED"


class IntegrationMismatchError(ConsoleError):
    code = "CONSOLE_INTEGRATION_MISMATCH"


class OrgMismatchError(ConsoleError):
    code = "CONSOLE_ORG_MISMATCH"


class ActivationMismatchError(ConsoleError):
    code = "CONSOLE_ACTIVATION_MISMATCH"


class IngestionCommunicationError(ConsoleError):
    code = "CONSOLE_INGESTION_COMMUNICATION_FAILED"
    fatal = False
