from __future__ import annotations

"""Deployment records kept under `.serverless/deployments/<timestamp>/`."""

import asyncio
import json
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from foundational_service.contracts.console_state import PersistedConsoleState
from interface_entry.pipeline.errors import PackageStateError, RollbackTargetNotFoundError
from project_utility.config.paths import get_deployments_root

__all__ = [
    "STATE_FILENAME",
    "TEMPLATE_FILENAME",
    "LocalDeploymentHistory",
    "read_state_document",
]

log = logging.getLogger("interface_entry.pipeline.history")

STATE_FILENAME = "serverless-state.json"
TEMPLATE_FILENAME = "cloudformation-template-update-stack.json"


def read_state_document(package_dir: Path) -> Dict[str, Any]:
    path = Path(package_dir) / STATE_FILENAME
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise PackageStateError(f"Package state not found at {path}; run package first") from exc
    except json.JSONDecodeError as exc:
        raise PackageStateError(f"Package state at {path} is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise PackageStateError(f"Package state at {path} must be a JSON object")
    return document


class LocalDeploymentHistory:
    """
    File-backed deployment history.

    Each successful deploy copies its package directory into a folder named after the deployment
    timestamp (milliseconds since the epoch), so the newest deployment sorts last.
    """

    def __init__(self, service_dir: Path) -> None:
        self._root = get_deployments_root(service_dir)

    @property
    def root(self) -> Path:
        return self._root

    def deployment_dir(self, timestamp: str) -> Path:
        return self._root / timestamp

    async def timestamps(self) -> Sequence[str]:
        return await asyncio.to_thread(self._list_timestamps)

    async def previous_state(self) -> Optional[PersistedConsoleState]:
        timestamps = await self.timestamps()
        if not timestamps:
            return None
        document = await asyncio.to_thread(read_state_document, self.deployment_dir(timestamps[-1]))
        return PersistedConsoleState.from_state_document(document)

    async def state_for_timestamp(self, timestamp: str) -> PersistedConsoleState:
        document = await self.document_for_timestamp(timestamp)
        return PersistedConsoleState.from_state_document(document)

    async def document_for_timestamp(self, timestamp: str) -> Dict[str, Any]:
        directory = self.deployment_dir(timestamp)
        if not (directory / STATE_FILENAME).exists():
            raise RollbackTargetNotFoundError(timestamp)
        return await asyncio.to_thread(read_state_document, directory)

    async def record(self, package_dir: Path, timestamp: str) -> Path:
        target = self.deployment_dir(timestamp)
        await asyncio.to_thread(_copy_tree, Path(package_dir), target)
        log.info("pipeline.deployment.recorded", extra={"phase": "deploy", "timestamp": timestamp})
        return target

    def _list_timestamps(self) -> List[str]:
        if not self._root.exists():
            return []
        entries = [
            entry.name
            for entry in self._root.iterdir()
            if entry.is_dir() and (entry / STATE_FILENAME).exists()
        ]
        return sorted(entries, key=_timestamp_sort_key)


def _timestamp_sort_key(value: str) -> tuple[int, str]:
    head = value.split("-", 1)[0]
    return (int(head) if head.isdigit() else 0, value)


def _copy_tree(source: Path, target: Path) -> None:
    if target.exists():
        shutil.rmtree(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(source, target)
