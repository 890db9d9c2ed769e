from __future__ import annotations

from pathlib import Path

from project_utility.config.paths import get_deployments_root, get_log_root, get_service_workdir
from project_utility.config.settings import (
    DEV_INGESTION_URL,
    PRODUCTION_INGESTION_URL,
    load_console_settings,
)


def test_defaults_resolve_production_ingestion_url() -> None:
    settings = load_console_settings({})

    assert settings.ingestion_url == PRODUCTION_INGESTION_URL
    assert settings.access_key is None
    assert settings.is_ci is False
    assert settings.request_timeout == 10.0
    assert settings.telemetry_console_level == "warning"


def test_dev_platform_stage_selects_dev_ingestion_url() -> None:
    settings = load_console_settings({"SERVERLESS_PLATFORM_STAGE": "dev"})

    assert settings.ingestion_url == DEV_INGESTION_URL


def test_override_wins_and_drops_trailing_slash() -> None:
    settings = load_console_settings(
        {
            "SLS_CONSOLE_INGESTION_SERVER_URL": "http://localhost:3000/ingestion/",
            "SERVERLESS_PLATFORM_STAGE": "dev",
        }
    )

    assert settings.ingestion_url == "http://localhost:3000/ingestion"


def test_flags_and_numbers_are_coerced() -> None:
    settings = load_console_settings(
        {
            "CI": "true",
            "SLS_OTEL_LAYER_DEV_BUILD": "1",
            "SLS_CONSOLE_REQUEST_TIMEOUT": "2.5",
            "SERVERLESS_ACCESS_KEY": "key",
            "SLS_CONSOLE_ORG_ID": "org-uid",
            "TELEMETRY_CONSOLE_LEVEL": "INFO",
        }
    )

    assert settings.is_ci is True
    assert settings.extension_dev_build is True
    assert settings.request_timeout == 2.5
    assert settings.access_key == "key"
    assert settings.org_id_override == "org-uid"
    assert settings.telemetry_console_level == "info"


def test_invalid_timeout_falls_back_to_default() -> None:
    assert load_console_settings({"SLS_CONSOLE_REQUEST_TIMEOUT": "soon"}).request_timeout == 10.0
    assert load_console_settings({"SLS_CONSOLE_REQUEST_TIMEOUT": "-1"}).request_timeout == 10.0


def test_service_paths_live_under_workdir(tmp_path: Path) -> None:
    workdir = get_service_workdir(tmp_path)

    assert workdir == tmp_path.resolve() / ".serverless"
    assert get_deployments_root(tmp_path) == workdir / "deployments"
    assert get_log_root(tmp_path) == workdir / "logs"
    assert get_log_root(tmp_path, override=tmp_path / "elsewhere") == (tmp_path / "elsewhere").resolve()
