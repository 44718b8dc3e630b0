#!/usr/bin/env python3
"""Walk-forward validation of a strategy over CSV bar files."""

from __future__ import annotations

import argparse
import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import replace
from pathlib import Path

import pandas as pd

from tradelab.backtest import StrategyId, bars_for_timeframe
from tradelab.config import AppSettings, configure_logging
from tradelab.data import load_csv_directory
from tradelab.experiments import default_windows, run_walk_forward

logger = logging.getLogger("run_walkforward")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("strategy", choices=[item.value for item in StrategyId])
    parser.add_argument("csv_dir", type=Path, help="Directory containing one SYMBOL.csv file per symbol.")
    parser.add_argument("--symbols", nargs="*", default=None)
    parser.add_argument("--timeframe", choices=["daily", "weekly"], default=None)
    parser.add_argument("--train-years", type=int, default=None)
    parser.add_argument("--test-years", type=int, default=None)
    parser.add_argument("--step-years", type=int, default=None)
    parser.add_argument(
        "--evaluate-all",
        action="store_true",
        help="Test every combination in every window and report parameter stability.",
    )
    parser.add_argument("--workers", type=int, default=0, help="Worker processes (0 runs in-process).")
    parser.add_argument("--output", type=Path, default=None, help="Optional CSV path for window results.")
    parser.add_argument("--stability-output", type=Path, default=None)
    return parser.parse_args()


def _write(frame: pd.DataFrame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)


def main() -> None:
    args = parse_args()
    settings = AppSettings()
    configure_logging(settings.log_level)
    backtest_config = settings.backtest_config()
    if args.timeframe:
        backtest_config.timeframe = args.timeframe

    config = settings.walk_forward_config()
    overrides = {
        "train_years": args.train_years,
        "test_years": args.test_years,
        "step_years": args.step_years,
    }
    config = replace(config, evaluate_all=args.evaluate_all, **{k: v for k, v in overrides.items() if v is not None})
    config.validate()

    series = {
        symbol: bars_for_timeframe(bars, backtest_config.timeframe)
        for symbol, bars in load_csv_directory(args.csv_dir, args.symbols).items()
    }
    windows = default_windows(series, config)
    if not windows:
        raise SystemExit("Not enough history for a single walk-forward window.")
    logger.info("%d symbols, %d windows", len(series), len(windows))

    if args.workers > 0:
        with ProcessPoolExecutor(max_workers=args.workers) as executor:
            result = run_walk_forward(
                args.strategy, series, windows, config=config, backtest_config=backtest_config, executor=executor)
    else:
        result = run_walk_forward(args.strategy, series, windows, config=config, backtest_config=backtest_config)

    logger.info("%d windows evaluated, %d skipped", len(result.windows), len(result.skipped_windows))
    frame = result.to_frame()
    if args.output:
        _write(frame, args.output)
    with pd.option_context("display.max_columns", None, "display.width", 160):
        print(frame.to_string(index=False) if not frame.empty else "No windows evaluated.")
        if result.stability is not None:
            stability = result.stability.to_frame()
            if args.stability_output:
                _write(stability, args.stability_output)
            print()
            print(stability.head(10).to_string(index=False))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
