"""Tests for settings defaults, environment overrides and YAML merging."""

from pathlib import Path

import pytest
import yaml

from wagr.config import ServerConfig, Settings
from wagr.currency import Currency


def test_defaults(tmp_path: Path) -> None:
    settings = Settings(data_dir=tmp_path)

    assert settings.fees.wager_platform_fee_percentage == 0.05
    assert settings.fees.quiz_platform_fee_percentage == 0.10
    assert settings.rate_limits.api_requests.limit == 100
    assert settings.wagers.default_currency == Currency.NGN


def test_env_overrides_nested_section(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FEES__WAGER_PLATFORM_FEE_PERCENTAGE", "0.07")

    settings = Settings(data_dir=tmp_path)

    assert settings.fees.wager_platform_fee_percentage == 0.07


def test_yaml_config_is_merged(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text(
        yaml.safe_dump({
            "fees": {"wager_platform_fee_percentage": 0.1},
            "wagers": {"default_currency": "USD"},
        })
    )
    settings = Settings(data_dir=tmp_path)

    settings.load_yaml_config()

    assert settings.fees.wager_platform_fee_percentage == 0.1
    assert settings.fees.quiz_platform_fee_percentage == 0.10
    assert settings.wagers.default_currency == Currency.USD


def test_missing_yaml_keeps_defaults(tmp_path: Path) -> None:
    settings = Settings(data_dir=tmp_path)

    settings.load_yaml_config()

    assert settings.fees.wager_platform_fee_percentage == 0.05


def test_allowed_origins_accepts_comma_separated() -> None:
    server = ServerConfig(allowed_origins="https://wagr.app, http://localhost:3000")

    assert server.allowed_origins == ["https://wagr.app", "http://localhost:3000"]
