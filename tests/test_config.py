import logging

import pytest
from pydantic import ValidationError

from tradelab.config import LOG_FORMAT, AppSettings, configure_logging


def test_defaults_build_runtime_configs(monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    settings = AppSettings()

    scan = settings.scan_config()
    walk_forward = settings.walk_forward_config()
    scheduler = settings.fetch_scheduler()

    assert scan.batch_size == 10
    assert scan.min_bars == 50
    assert scan.backtest.initial_capital == 1_000_000.0
    assert (walk_forward.train_years, walk_forward.test_years, walk_forward.step_years) == (3, 1, 1)
    assert scheduler.max_concurrency == 10
    assert scheduler.delay_seconds == pytest.approx(0.2)


def test_environment_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TRADELAB_SCAN_BATCH_SIZE", "4")
    monkeypatch.setenv("TRADELAB_TIMEFRAME", "weekly")
    monkeypatch.setenv("TRADELAB_WF_TRAIN_YEARS", "2")

    settings = AppSettings()

    assert settings.scan_config().batch_size == 4
    assert settings.backtest_config().timeframe == "weekly"
    assert settings.walk_forward_config().train_years == 2


def test_env_file_and_validation(monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("TRADELAB_INITIAL_CAPITAL=25000\n", encoding="utf-8")

    assert AppSettings().initial_capital == 25_000
    with pytest.raises(ValidationError):
        AppSettings(TRADELAB_SCAN_BATCH_SIZE=0)
    with pytest.raises(ValueError):
        AppSettings(TRADELAB_TIMEFRAME="hourly").backtest_config()


def test_configure_logging_uses_shared_format(monkeypatch) -> None:
    calls = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))

    configure_logging("debug")

    assert calls["level"] == logging.DEBUG
    assert calls["format"] == LOG_FORMAT
