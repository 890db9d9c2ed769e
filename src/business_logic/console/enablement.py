from __future__ import annotations

"""Decide whether the Console integration applies to the current invocation."""

import logging
from dataclasses import dataclass
from typing import Optional

from business_logic.console.models import (
    SUPPORTED_COMMANDS,
    SUPPORTED_PROVIDER,
    DeploymentContext,
    IntegrationConfig,
)

__all__ = [
    "EnablementDecision",
    "evaluate_enablement",
    "is_deploy_from_package",
]

log = logging.getLogger("business_logic.console.enablement")


@dataclass(slots=True, frozen=True)
class EnablementDecision:
    enabled: bool
    org: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def disabled(cls, reason: str, *, org: Optional[str] = None) -> "EnablementDecision":
        return cls(enabled=False, org=org, reason=reason)


def is_deploy_from_package(context: DeploymentContext) -> bool:
    """`deploy --package <dir>`: functions were already checked when that package was built."""

    return context.command == "deploy" and context.option("package") is not None


def evaluate_enablement(config: IntegrationConfig, context: DeploymentContext) -> EnablementDecision:
    """
    Evaluate the enablement conditions in order; the first failing one disables the integration.

    Never raises. Only the provider and function checks are worth surfacing to the user, the other
    outcomes are ordinary configurations.
    """

    if not config.console_enabled:
        log.debug("console.disabled.console_not_configured", extra={"command": context.command})
        return EnablementDecision.disabled("console_not_configured")

    org = context.option("org") or config.org
    if not org:
        log.debug("console.disabled.org_missing", extra={"command": context.command})
        return EnablementDecision.disabled("org_missing")
    org = str(org)

    if context.command not in SUPPORTED_COMMANDS:
        log.debug("console.disabled.command_unsupported", extra={"command": context.command})
        return EnablementDecision.disabled("command_unsupported", org=org)

    if context.provider_name != SUPPORTED_PROVIDER:
        log.error(
            'Provider "%s" is currently not supported by the Console integration',
            context.provider_name,
            extra={"provider": context.provider_name, "reason": "provider_unsupported"},
        )
        return EnablementDecision.disabled("provider_unsupported", org=org)

    if not is_deploy_from_package(context) and not context.supported_functions():
        log.warning(
            "Console integration skipped: no function is configured with a supported runtime (Node.js)",
            extra={"command": context.command, "reason": "no_supported_functions"},
        )
        return EnablementDecision.disabled("no_supported_functions", org=org)

    log.info("console.enabled", extra={"command": context.command, "org": org})
    return EnablementDecision(enabled=True, org=org)
