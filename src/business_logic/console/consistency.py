from __future__ import annotations

"""Cross-phase consistency checks between a built package and the deploy invocation."""

from typing import Optional

from business_logic.console.errors import (
    ActivationMismatchError,
    IntegrationMismatchError,
    OrgMismatchError,
)
from foundational_service.contracts.console_state import (
    CONSOLE_STATE_SCHEMA_VERSION,
    PersistedConsoleState,
)

__all__ = ["check_schema_version", "validate_persisted_state"]


def check_schema_version(state: PersistedConsoleState) -> None:
    """Runs before any lookup or remote call: an unknown schema is never reinterpreted."""

    if state.schema_version != CONSOLE_STATE_SCHEMA_VERSION:
        raise IntegrationMismatchError(
            "Cannot deploy this package: it was built with an incompatible version of the Console "
            f"integration (state schema {state.schema_version!r}, expected "
            f"{CONSOLE_STATE_SCHEMA_VERSION!r}). Re-package the service and deploy again."
        )


def validate_persisted_state(
    state: PersistedConsoleState,
    *,
    console_enabled: bool,
    org_id: Optional[str],
    service_id: Optional[str] = None,
) -> None:
    """
    Reject a package that cannot be deployed with the current settings.

    Checks run in a fixed order and the first failure is raised: schema version, service (when the
    package was built with the integration on), org (only when the integration is on for both the
    package and this invocation), then activation.
    """

    check_schema_version(state)

    if state.activation and service_id is not None and state.service_id != service_id:
        raise IntegrationMismatchError(
            f"Cannot deploy this package: it was built for service {state.service_id!r}, not for "
            f"{service_id!r}. Re-package the service and deploy again."
        )

    if state.activation and console_enabled and state.org_id != org_id:
        raise OrgMismatchError(
            f"Cannot deploy this package: it was built for org id {state.org_id!r}, while the current "
            f"configuration resolves to org id {org_id!r}. Re-package the service for this org."
        )

    if state.activation != console_enabled:
        built = "enabled" if state.activation else "disabled"
        requested = "enabled" if console_enabled else "disabled"
        raise ActivationMismatchError(
            f"Cannot deploy this package: it was built with the Console integration {built}, "
            f"but this deployment has it {requested}. Re-package with matching settings."
        )
