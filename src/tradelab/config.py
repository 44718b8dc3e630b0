"""Application configuration helpers."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .backtest.engine import BacktestConfig
from .experiments.walkforward import WalkForwardConfig
from .scan.orchestrator import ScanConfig
from .scan.scheduler import FetchScheduler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class DataPaths(BaseModel):
    """Filesystem locations for cached datasets."""

    bars: Path = Field(default=Path("data/bars"))


class AppSettings(BaseSettings):
    """Project-wide settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    initial_capital: float = Field(default=1_000_000.0, gt=0, alias="TRADELAB_INITIAL_CAPITAL")
    timeframe: str = Field(default="daily", alias="TRADELAB_TIMEFRAME")
    scan_batch_size: int = Field(default=10, gt=0, alias="TRADELAB_SCAN_BATCH_SIZE")
    scan_max_concurrency: int = Field(default=10, gt=0, alias="TRADELAB_SCAN_MAX_CONCURRENCY")
    scan_request_delay_seconds: float = Field(default=0.2, ge=0, alias="TRADELAB_SCAN_REQUEST_DELAY")
    scan_symbol_timeout_seconds: float = Field(default=30.0, gt=0, alias="TRADELAB_SCAN_SYMBOL_TIMEOUT")
    scan_batch_timeout_seconds: float = Field(default=300.0, gt=0, alias="TRADELAB_SCAN_BATCH_TIMEOUT")
    scan_min_bars: int = Field(default=50, ge=0, alias="TRADELAB_SCAN_MIN_BARS")
    walk_forward_train_years: int = Field(default=3, gt=0, alias="TRADELAB_WF_TRAIN_YEARS")
    walk_forward_test_years: int = Field(default=1, gt=0, alias="TRADELAB_WF_TEST_YEARS")
    walk_forward_step_years: int = Field(default=1, gt=0, alias="TRADELAB_WF_STEP_YEARS")
    walk_forward_min_train_bars: int = Field(default=30, ge=1, alias="TRADELAB_WF_MIN_TRAIN_BARS")
    walk_forward_min_test_bars: int = Field(default=20, ge=1, alias="TRADELAB_WF_MIN_TEST_BARS")
    log_level: str = Field(default="INFO", alias="TRADELAB_LOG_LEVEL")
    data_paths: DataPaths = Field(default_factory=DataPaths)

    def backtest_config(self) -> BacktestConfig:
        config = BacktestConfig(initial_capital=self.initial_capital, timeframe=self.timeframe)
        config.validate()
        return config

    def scan_config(self) -> ScanConfig:
        config = ScanConfig(
            batch_size=self.scan_batch_size,
            symbol_timeout_seconds=self.scan_symbol_timeout_seconds,
            batch_timeout_seconds=self.scan_batch_timeout_seconds,
            min_bars=self.scan_min_bars,
            backtest=self.backtest_config(),
        )
        config.validate()
        return config

    def fetch_scheduler(self) -> FetchScheduler:
        return FetchScheduler(
            max_concurrency=self.scan_max_concurrency,
            delay_seconds=self.scan_request_delay_seconds,
        )

    def walk_forward_config(self) -> WalkForwardConfig:
        config = WalkForwardConfig(
            train_years=self.walk_forward_train_years,
            test_years=self.walk_forward_test_years,
            step_years=self.walk_forward_step_years,
            min_train_bars=self.walk_forward_min_train_bars,
            min_test_bars=self.walk_forward_min_test_bars,
        )
        config.validate()
        return config


def configure_logging(level: str | int = "INFO") -> None:
    """Install a root stream handler for command line entry points."""

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


__all__ = ["AppSettings", "DataPaths", "LOG_FORMAT", "configure_logging"]
