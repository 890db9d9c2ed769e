"""
Filesystem path helpers for the deploy tool's working directories.

All build output lives under the service directory's `.serverless/` folder, mirroring the layout the
deploy pipeline expects when a package is deployed later from another process.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

_WORKDIR_NAME = ".serverless"


def get_service_workdir(service_dir: Path) -> Path:
    """Return the `.serverless` directory for a service checkout."""

    return Path(service_dir).resolve() / _WORKDIR_NAME


def get_deployments_root(service_dir: Path) -> Path:
    """Return the directory holding one sub-directory per recorded deployment."""

    return get_service_workdir(service_dir) / "deployments"


def get_log_root(service_dir: Path, *, override: Optional[Path] = None) -> Path:
    """Return the base directory where runtime logs must live."""

    if override is not None:
        return Path(override).expanduser().resolve()
    return get_service_workdir(service_dir) / "logs"


__all__ = ["get_deployments_root", "get_log_root", "get_service_workdir"]
