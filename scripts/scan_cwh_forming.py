#!/usr/bin/env python3
"""Scan cached symbols for Cup-with-Handle patterns that are forming or ready."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Dict, Mapping

import pandas as pd

from tradelab.backtest import StrategyId
from tradelab.config import AppSettings, configure_logging
from tradelab.data import LocalStoreProvider, ParquetBarStore
from tradelab.errors import ScanAbortedError
from tradelab.patterns import CwhStage
from tradelab.scan import run_bulk_scan
from tradelab.strategies import PresetType, resolve_params

logger = logging.getLogger("scan_cwh_forming")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--store", type=Path, default=None, help="Parquet store root (defaults to settings).")
    parser.add_argument(
        "--import-csv",
        type=Path,
        default=None,
        help="Directory of SYMBOL.csv files to import into the store before scanning.",
    )
    parser.add_argument("--symbols", nargs="*", default=None, help="Symbols to scan (defaults to the whole store).")
    parser.add_argument("--timeframe", choices=["daily", "weekly"], default="daily")
    parser.add_argument(
        "--stage",
        action="append",
        choices=[stage.value for stage in CwhStage],
        default=None,
        help="Stages to keep; repeatable (defaults to forming and ready).",
    )
    parser.add_argument("--max-distance", type=float, default=None, help="Maximum distance to breakout in percent.")
    parser.add_argument("--strategy", choices=[item.value for item in StrategyId], default=None)
    parser.add_argument("--preset", choices=[item.value for item in PresetType], default=PresetType.DEFAULT.value)
    parser.add_argument("--metrics", type=Path, default=None, help="CSV of per-symbol metrics with a symbol column.")
    parser.add_argument("--output", type=Path, default=None)
    return parser.parse_args()


def load_metrics(path: Path) -> Dict[str, Mapping[str, object]]:
    frame = pd.read_csv(path)
    if "symbol" not in frame.columns:
        raise ValueError(f"{path} has no 'symbol' column")
    frame["symbol"] = frame["symbol"].astype(str).str.upper()
    return frame.set_index("symbol").to_dict(orient="index")


def main() -> None:
    args = parse_args()
    settings = AppSettings()
    configure_logging(settings.log_level)

    store = ParquetBarStore(args.store or settings.data_paths.bars)
    if args.import_csv:
        for csv_path in sorted(args.import_csv.glob("*.csv")):
            store.import_csv(csv_path.stem, args.timeframe, csv_path)
    symbols = [symbol.upper() for symbol in args.symbols] if args.symbols else store.list_symbols(args.timeframe)
    if not symbols:
        raise SystemExit("No symbols to scan.")

    config = settings.scan_config()
    config.backtest.timeframe = args.timeframe
    params = resolve_params(args.strategy, args.preset, args.timeframe) if args.strategy else None
    metrics = load_metrics(args.metrics) if args.metrics else None

    try:
        report = asyncio.run(
            run_bulk_scan(
                symbols,
                LocalStoreProvider(store, args.timeframe),
                config,
                settings.fetch_scheduler(),
                strategy=args.strategy,
                strategy_params=params,
                metrics=metrics,
            )
        )
    except ScanAbortedError as exc:
        for failure in exc.failures:
            logger.error("%s: %s (%s)", failure.symbol, failure.message, failure.kind.value)
        raise SystemExit(f"Scan aborted: {exc}") from exc

    stages = args.stage or [CwhStage.FORMING.value, CwhStage.READY.value]
    filtered = report.filter(stages=stages, max_distance_pct=args.max_distance)
    frame = filtered.to_frame()
    logger.info("%d of %d symbols matched; %d failures", len(filtered.rows), len(symbols), len(report.failures))
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(args.output, index=False)
    with pd.option_context("display.max_columns", None, "display.width", 160):
        print(frame.to_string(index=False) if not frame.empty else "No matching patterns.")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
