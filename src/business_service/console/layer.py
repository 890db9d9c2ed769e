from __future__ import annotations

"""Extension layer versioning, packaging and resource definition."""

import asyncio
import json
import logging
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from business_logic.console.models import ExtensionLayerArtifact
from project_utility.config.settings import ConsoleSettings

__all__ = [
    "DEV_VERSION_EPOCH",
    "ExtensionDistribution",
    "ExtensionDistributionError",
    "LayerVersionResolver",
    "to_base32",
]

log = logging.getLogger("business_service.console.layer")

DEV_VERSION_EPOCH = datetime(2022, 2, 17, tzinfo=timezone.utc)
DEPLOYMENT_BUCKET_REF = {"Ref": "ServerlessDeploymentBucket"}
_BASE32_DIGITS = "0123456789abcdefghijklmnopqrstuv"


class ExtensionDistributionError(RuntimeError):
    """The installed extension distribution is missing or malformed."""


def to_base32(value: int) -> str:
    if value < 0:
        return "-" + to_base32(-value)
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 32)
        digits.append(_BASE32_DIGITS[remainder])
    return "".join(reversed(digits))


@dataclass(slots=True, frozen=True)
class ExtensionDistribution:
    """An installed extension release: `package.json` metadata plus the prebuilt archive."""

    root: Path

    @property
    def metadata_path(self) -> Path:
        return self.root / "package.json"

    @property
    def archive_path(self) -> Path:
        return self.root / "dist" / "extension.zip"

    def read_version(self) -> str:
        try:
            metadata = json.loads(self.metadata_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ExtensionDistributionError(f"Extension distribution metadata not found at {self.metadata_path}") from exc
        except json.JSONDecodeError as exc:
            raise ExtensionDistributionError(f"Extension distribution metadata is not valid JSON: {exc}") from exc
        version = metadata.get("version") if isinstance(metadata, dict) else None
        if not version:
            raise ExtensionDistributionError(f"Extension distribution metadata at {self.metadata_path} has no version")
        return str(version)


class LayerVersionResolver:
    """
    Computes the extension layer artifact once and keeps it.

    Package and deploy phases derive the same filename from the same distribution version, so a
    package built in one process deploys from another without renaming the archive. Development
    builds instead encode the elapsed time since `DEV_VERSION_EPOCH`.
    """

    def __init__(
        self,
        settings: ConsoleSettings,
        distribution: Optional[ExtensionDistribution] = None,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._dev_build = settings.extension_dev_build
        if distribution is None and settings.extension_dist_path is not None:
            distribution = ExtensionDistribution(settings.extension_dist_path)
        self._distribution = distribution
        self._clock = clock
        self._artifact: Optional[ExtensionLayerArtifact] = None
        self._lock = asyncio.Lock()

    @property
    def artifact(self) -> ExtensionLayerArtifact:
        if self._artifact is None:
            raise RuntimeError("LayerVersionResolver.resolve() has not completed")
        return self._artifact

    async def resolve(self) -> ExtensionLayerArtifact:
        if self._artifact is not None:
            return self._artifact
        async with self._lock:
            if self._artifact is None:
                postfix = await self._resolve_version_postfix()
                self._artifact = ExtensionLayerArtifact(version_postfix=postfix)
                log.info(
                    "console.layer.resolved",
                    extra={"version_postfix": postfix, "layer_filename": self._artifact.filename},
                )
        return self._artifact

    async def package(self, output_dir: Path) -> Path:
        """Copy the prebuilt archive into the build output under the versioned filename."""

        artifact = await self.resolve()
        distribution = self._require_distribution()
        source = distribution.archive_path
        if not source.exists():
            raise ExtensionDistributionError(f"Extension archive not found at {source}")
        target = Path(output_dir) / artifact.filename
        await asyncio.to_thread(_copy_file, source, target)
        log.info("console.layer.packaged", extra={"layer_filename": artifact.filename})
        return target

    def layer_resource(self, artifact_directory_name: str) -> Dict[str, Any]:
        artifact = self.artifact
        return {
            "Type": "AWS::Lambda::LayerVersion",
            "Properties": {
                "Content": {
                    "S3Bucket": dict(DEPLOYMENT_BUCKET_REF),
                    "S3Key": f"{artifact_directory_name}/{artifact.filename}",
                },
                "LayerName": artifact.layer_name,
            },
        }

    async def _resolve_version_postfix(self) -> str:
        if self._dev_build:
            elapsed_ms = int((self._clock() - DEV_VERSION_EPOCH).total_seconds() * 1000)
            return to_base32(elapsed_ms)
        distribution = self._require_distribution()
        return await asyncio.to_thread(distribution.read_version)

    def _require_distribution(self) -> ExtensionDistribution:
        if self._distribution is None:
            raise ExtensionDistributionError(
                "No extension distribution configured; set SLS_CONSOLE_EXTENSION_DIST to its directory"
            )
        return self._distribution


def _copy_file(source: Path, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, target)
