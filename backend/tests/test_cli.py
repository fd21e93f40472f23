"""Tests for the wagr command line."""

import sys
from pathlib import Path

import pytest
import yaml

from wagr.__main__ import CONFIG_TEMPLATE, main
from wagr.config import RateLimitsConfig, Settings, get_settings


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def run_cli(monkeypatch: pytest.MonkeyPatch, *args: str) -> int:
    monkeypatch.setattr(sys, "argv", ["wagr", *args])
    return main()


def test_quote_prints_both_sides(monkeypatch, capsys) -> None:
    code = run_cli(
        monkeypatch, "quote", "--entry", "100", "--side-a", "400", "--side-b", "600"
    )

    out = capsys.readouterr().out
    assert code == 0
    assert "Side A: win ₦229 (2.29x, +129.0%)" in out
    assert "Total Pool: ₦1,100" in out


def test_quote_rejects_zero_entry(monkeypatch, capsys) -> None:
    code = run_cli(monkeypatch, "quote", "--entry", "0")

    assert code == 1
    assert "entry_amount" in capsys.readouterr().out


def test_init_then_config(monkeypatch, tmp_path: Path, capsys) -> None:
    assert run_cli(monkeypatch, "init") == 0
    assert (tmp_path / "data" / "config.yaml").exists()

    assert run_cli(monkeypatch, "config") == 0
    assert "Wager Platform Fee: 5%" in capsys.readouterr().out


def test_settle_from_file(monkeypatch, tmp_path: Path, capsys) -> None:
    wager_file = tmp_path / "wager.yaml"
    wager_file.write_text(
        """
wager:
  id: w-1
  title: Derby winner
  winning_side: b
  fee_percentage: "0.05"
  deadline: 2020-01-01T00:00:00
entries:
  - {user_id: ada, side: a, amount: 500}
  - {user_id: bayo, side: b, amount: 500}
""",
        encoding="utf-8",
    )

    code = run_cli(monkeypatch, "settle", str(wager_file))

    out = capsys.readouterr().out
    assert code == 0
    assert "Outcome: winners_paid" in out
    assert "bayo: wager_win ₦950" in out


def test_settle_reports_invalid_file(monkeypatch, tmp_path: Path, capsys) -> None:
    code = run_cli(monkeypatch, "settle", str(tmp_path / "missing.yaml"))

    assert code == 1
    assert "Wager file not found" in capsys.readouterr().out


def test_config_template_matches_settings(tmp_path: Path) -> None:
    template = yaml.safe_load(CONFIG_TEMPLATE)

    assert set(template["rate_limits"]) == set(RateLimitsConfig.model_fields)
    settings = Settings(data_dir=tmp_path, **template)
    assert settings.rate_limits.api_requests.limit == 100
