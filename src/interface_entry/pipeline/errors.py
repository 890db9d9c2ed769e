from __future__ import annotations

"""Errors raised by the local package/deploy pipeline (outside the Console error taxonomy)."""

__all__ = [
    "FunctionNotFoundError",
    "PackageStateError",
    "PipelineError",
    "RollbackTargetNotFoundError",
    "ServiceNotDeployedError",
]


class PipelineError(RuntimeError):
    code = "PIPELINE_ERROR"


class RollbackTargetNotFoundError(PipelineError):
    code = "ROLLBACK_DEPLOYMENT_NOT_FOUND"

    def __init__(self, timestamp: str) -> None:
        super().__init__(
            f'No deployment found for timestamp "{timestamp}". '
            'Run "rollback" without a timestamp to list deployments.'
        )
        self.timestamp = timestamp


class FunctionNotFoundError(PipelineError):
    code = "FUNCTION_NOT_FOUND"

    def __init__(self, function_name: str) -> None:
        super().__init__(f'Function "{function_name}" is not defined in the service configuration')
        self.function_name = function_name


class ServiceNotDeployedError(PipelineError):
    code = "SERVICE_NOT_DEPLOYED"


class PackageStateError(PipelineError):
    code = "PACKAGE_STATE_INVALID"
