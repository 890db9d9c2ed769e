from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from business_service.console.layer import (
    DEV_VERSION_EPOCH,
    ExtensionDistributionError,
    LayerVersionResolver,
    to_base32,
)


def test_to_base32_uses_lowercase_digits() -> None:
    assert to_base32(0) == "0"
    assert to_base32(31) == "v"
    assert to_base32(32) == "10"
    assert to_base32(1023) == "vv"


@pytest.mark.asyncio
async def test_release_build_uses_distribution_version(console_settings) -> None:
    resolver = LayerVersionResolver(console_settings)

    artifact = await resolver.resolve()

    assert artifact.filename == "sls-otel.1.2.3.zip"
    assert artifact.layer_name == "sls-console-otel-extension-1-2-3"


@pytest.mark.asyncio
async def test_filename_is_stable_across_resolvers(console_settings) -> None:
    first = await LayerVersionResolver(console_settings).resolve()
    second = await LayerVersionResolver(console_settings).resolve()

    assert first.filename == second.filename


@pytest.mark.asyncio
async def test_dev_build_encodes_elapsed_milliseconds(settings_factory) -> None:
    settings = settings_factory(extension_dev_build=True)
    moment = DEV_VERSION_EPOCH + timedelta(milliseconds=1024)
    resolver = LayerVersionResolver(settings, clock=lambda: moment)

    artifact = await resolver.resolve()

    assert artifact.version_postfix == "100"
    assert artifact.filename == "sls-otel.100.zip"


@pytest.mark.asyncio
async def test_resolution_is_memoized(settings_factory) -> None:
    ticks = iter([DEV_VERSION_EPOCH + timedelta(seconds=1), DEV_VERSION_EPOCH + timedelta(seconds=2)])
    resolver = LayerVersionResolver(settings_factory(extension_dev_build=True), clock=lambda: next(ticks))

    first = await resolver.resolve()
    second = await resolver.resolve()

    assert first is second
    assert resolver.artifact is first


def test_artifact_requires_resolution(console_settings) -> None:
    with pytest.raises(RuntimeError):
        LayerVersionResolver(console_settings).artifact


@pytest.mark.asyncio
async def test_package_copies_archive_under_versioned_name(console_settings, extension_dist: Path, tmp_path: Path) -> None:
    resolver = LayerVersionResolver(console_settings)
    output = tmp_path / "build"

    target = await resolver.package(output)

    assert target == output / "sls-otel.1.2.3.zip"
    assert target.read_bytes() == (extension_dist / "dist" / "extension.zip").read_bytes()


@pytest.mark.asyncio
async def test_layer_resource_points_at_deployment_bucket(console_settings) -> None:
    resolver = LayerVersionResolver(console_settings)
    await resolver.resolve()

    resource = resolver.layer_resource("serverless/svc/dev/1700000000000")

    assert resource == {
        "Type": "AWS::Lambda::LayerVersion",
        "Properties": {
            "Content": {
                "S3Bucket": {"Ref": "ServerlessDeploymentBucket"},
                "S3Key": "serverless/svc/dev/1700000000000/sls-otel.1.2.3.zip",
            },
            "LayerName": "sls-console-otel-extension-1-2-3",
        },
    }


@pytest.mark.asyncio
async def test_missing_distribution_is_reported(settings_factory) -> None:
    with pytest.raises(ExtensionDistributionError, match="SLS_CONSOLE_EXTENSION_DIST"):
        await LayerVersionResolver(settings_factory(extension_dist_path=None)).resolve()


@pytest.mark.asyncio
async def test_distribution_without_version_is_reported(settings_factory, tmp_path: Path) -> None:
    root = tmp_path / "broken"
    root.mkdir()
    (root / "package.json").write_text(json.dumps({"name": "otel-extension"}), encoding="utf-8")

    with pytest.raises(ExtensionDistributionError, match="has no version"):
        await LayerVersionResolver(settings_factory(extension_dist_path=root)).resolve()
