"""
Process-wide settings for the Console integration.

Every environment variable the integration honours is read here, once, by `load_console_settings()`.
The resulting `ConsoleSettings` instance is passed explicitly to the collaborators that need it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

__all__ = [
    "DEV_INGESTION_URL",
    "PRODUCTION_INGESTION_URL",
    "ConsoleSettings",
    "load_console_settings",
]

PRODUCTION_INGESTION_URL = "https://core.serverless.com/ingestion/kinesis"
DEV_INGESTION_URL = "https://core.serverless-dev.com/ingestion/kinesis"
DEFAULT_REQUEST_TIMEOUT = 10.0

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(slots=True, frozen=True)
class ConsoleSettings:
    ingestion_url_override: Optional[str] = None
    platform_stage: Optional[str] = None
    extension_dev_build: bool = False
    extension_dist_path: Optional[Path] = None
    access_key: Optional[str] = None
    org_id_override: Optional[str] = None
    is_ci: bool = False
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_root: Optional[Path] = None
    telemetry_console_level: str = "warning"

    @property
    def ingestion_url(self) -> str:
        """Base URL of the ingestion endpoint, without a trailing slash."""

        if self.ingestion_url_override:
            return self.ingestion_url_override.rstrip("/")
        if (self.platform_stage or "").strip().lower() == "dev":
            return DEV_INGESTION_URL
        return PRODUCTION_INGESTION_URL


def load_console_settings(environ: Optional[Mapping[str, str]] = None) -> ConsoleSettings:
    """Snapshot the environment into a `ConsoleSettings` instance."""

    env = os.environ if environ is None else environ
    dist_path = env.get("SLS_CONSOLE_EXTENSION_DIST")
    log_root = env.get("SLS_CONSOLE_LOG_ROOT")
    return ConsoleSettings(
        ingestion_url_override=env.get("SLS_CONSOLE_INGESTION_SERVER_URL") or None,
        platform_stage=env.get("SERVERLESS_PLATFORM_STAGE") or None,
        extension_dev_build=_coerce_bool(env.get("SLS_OTEL_LAYER_DEV_BUILD")),
        extension_dist_path=Path(dist_path).expanduser() if dist_path else None,
        access_key=env.get("SERVERLESS_ACCESS_KEY") or None,
        org_id_override=env.get("SLS_CONSOLE_ORG_ID") or None,
        is_ci=_coerce_bool(env.get("CI")),
        request_timeout=_coerce_float(env.get("SLS_CONSOLE_REQUEST_TIMEOUT"), DEFAULT_REQUEST_TIMEOUT),
        log_root=Path(log_root).expanduser().resolve() if log_root else None,
        telemetry_console_level=(env.get("TELEMETRY_CONSOLE_LEVEL") or "warning").lower(),
    )


def _coerce_bool(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in _TRUTHY


def _coerce_float(value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default
