from __future__ import annotations

import pytest

from business_service.console.collaborators import (
    DefaultLogicalIdNaming,
    EnvironmentAuthenticationGate,
    ProviderStageResolver,
    StaticOrgDirectory,
)


def test_logical_ids() -> None:
    naming = DefaultLogicalIdNaming()

    assert naming.console_extension_layer_logical_id() == "SlsConsoleOtelExtensionLayer"
    assert naming.function_logical_id("hello") == "HelloLambdaFunction"
    assert naming.function_logical_id("send-email_now") == "SendEmailNowLambdaFunction"


def test_stage_and_region_prefer_cli_options() -> None:
    resolver = ProviderStageResolver({"stage": "prod", "region": "eu-west-1"})

    assert resolver.stage({}) == "prod"
    assert resolver.region({}) == "eu-west-1"
    assert resolver.stage({"stage": "qa"}) == "qa"
    assert resolver.region({"region": "us-west-2"}) == "us-west-2"
    assert ProviderStageResolver({}).stage({}) == "dev"
    assert ProviderStageResolver({}).region({}) == "us-east-1"


def test_authentication_follows_access_key(settings_factory) -> None:
    assert EnvironmentAuthenticationGate(settings_factory()).is_authenticated()
    assert not EnvironmentAuthenticationGate(settings_factory(access_key=None)).is_authenticated()


@pytest.mark.asyncio
async def test_org_id_override(settings_factory) -> None:
    assert await StaticOrgDirectory(settings_factory()).resolve_org_id("acme") == "acme"
    assert await StaticOrgDirectory(settings_factory(org_id_override="org-uid")).resolve_org_id("acme") == "org-uid"
