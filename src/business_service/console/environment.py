from __future__ import annotations

"""Per-function environment variables that switch the telemetry extension on."""

from typing import Dict, Mapping, Optional

from business_logic.console.models import FunctionDescriptor
from project_utility.deferred import DeferredValue

__all__ = [
    "EXEC_WRAPPER_PATH",
    "EnvironmentVariableInjector",
    "INJECTED_VARIABLES",
]

REQUEST_HEADERS_VAR = "SLS_OTEL_REPORT_REQUEST_HEADERS"
METRICS_URL_VAR = "SLS_OTEL_REPORT_METRICS_URL"
TRACES_URL_VAR = "SLS_OTEL_REPORT_TRACES_URL"
EXEC_WRAPPER_VAR = "AWS_LAMBDA_EXEC_WRAPPER"
EXEC_WRAPPER_PATH = "/opt/otel-extension/internal/exec-wrapper.sh"

INJECTED_VARIABLES = (REQUEST_HEADERS_VAR, METRICS_URL_VAR, TRACES_URL_VAR, EXEC_WRAPPER_VAR)


class EnvironmentVariableInjector:
    """Derives the extension variables from the deferred token; the derivation runs once."""

    def __init__(self, ingestion_url: str, deferred_token: DeferredValue[str]) -> None:
        self._ingestion_url = ingestion_url.rstrip("/")
        self._variables = deferred_token.map(self._build, name="console.function_environment")

    @property
    def deferred_variables(self) -> DeferredValue[Mapping[str, str]]:
        return self._variables

    def for_function(self, function: FunctionDescriptor) -> Optional[DeferredValue[Mapping[str, str]]]:
        if not function.is_supported:
            return None
        return self._variables

    def _build(self, token: str) -> Mapping[str, str]:
        variables: Dict[str, str] = {
            REQUEST_HEADERS_VAR: f"serverless-token={token}",
            METRICS_URL_VAR: f"{self._ingestion_url}/v1/metrics",
            TRACES_URL_VAR: f"{self._ingestion_url}/v1/traces",
            EXEC_WRAPPER_VAR: EXEC_WRAPPER_PATH,
        }
        return variables
