#!/usr/bin/env python3
"""Grid-search a strategy's parameters across a universe of CSV bar files."""

from __future__ import annotations

import argparse
import logging
from concurrent.futures import ProcessPoolExecutor
from pathlib import Path

import pandas as pd

from tradelab.backtest import StrategyId, bars_for_timeframe
from tradelab.config import AppSettings, configure_logging
from tradelab.data import load_csv_directory
from tradelab.experiments import ParameterSpec, default_parameter_spec, run_grid_search

logger = logging.getLogger("optimize_strategy")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("strategy", choices=[item.value for item in StrategyId])
    parser.add_argument("csv_dir", type=Path, help="Directory containing one SYMBOL.csv file per symbol.")
    parser.add_argument("--symbols", nargs="*", default=None, help="Restrict the universe to these symbols.")
    parser.add_argument("--timeframe", choices=["daily", "weekly"], default=None)
    parser.add_argument(
        "--full-sweep",
        action="store_true",
        help="Sweep each parameter's declared range instead of the curated grid.",
    )
    parser.add_argument("--workers", type=int, default=0, help="Worker processes (0 runs in-process).")
    parser.add_argument("--top", type=int, default=10, help="Rows to print.")
    parser.add_argument("--output", type=Path, default=None, help="Optional CSV path for the full grid.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = AppSettings()
    configure_logging(settings.log_level)
    backtest_config = settings.backtest_config()
    if args.timeframe:
        backtest_config.timeframe = args.timeframe

    series = {
        symbol: bars_for_timeframe(bars, backtest_config.timeframe)
        for symbol, bars in load_csv_directory(args.csv_dir, args.symbols).items()
    }
    if not series:
        raise SystemExit(f"No CSV files found in {args.csv_dir}")

    spec: ParameterSpec = (
        ParameterSpec.from_strategy(args.strategy) if args.full_sweep else default_parameter_spec(args.strategy)
    )
    logger.info("Loaded %d symbols; %d candidate combinations", len(series), spec.cardinality())

    if args.workers > 0:
        with ProcessPoolExecutor(max_workers=args.workers) as executor:
            result = run_grid_search(args.strategy, series, spec=spec, config=backtest_config, executor=executor)
    else:
        result = run_grid_search(args.strategy, series, spec=spec, config=backtest_config)

    for rejected in result.rejected:
        logger.debug("rejected %s: %s", rejected.params, rejected.reason)
    frame = result.to_frame()
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(args.output, index=False)
    with pd.option_context("display.max_columns", None, "display.width", 160):
        print(frame.head(args.top).to_string(index=False))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
