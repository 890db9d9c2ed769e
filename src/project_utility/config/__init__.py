"""
Configuration helpers exposed by the project utility layer.
"""

from __future__ import annotations

from .paths import get_deployments_root, get_log_root, get_service_workdir
from .settings import ConsoleSettings, load_console_settings

__all__ = [
    "ConsoleSettings",
    "get_deployments_root",
    "get_log_root",
    "get_service_workdir",
    "load_console_settings",
]
