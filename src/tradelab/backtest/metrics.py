"""Reusable helpers for computing backtest statistics from closed trades."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from math import sqrt
from typing import Dict, Sequence

import statistics

from .portfolio import Trade

ANNUALIZATION_PERIODS: Dict[str, int] = {
    "daily": 250,
    "weekly": 52,
}

PROFIT_FACTOR_CAP = 999.0


@dataclass(slots=True)
class BacktestStats:
    """Container for trade based performance statistics. Percentages are 0-100."""

    num_trades: int = 0
    num_wins: int = 0
    num_losses: int = 0
    win_rate: float = 0.0
    total_return_pct: float = 0.0
    median_return_pct: float = 0.0
    mean_return_pct: float = 0.0
    sharpe: float = 0.0
    max_drawdown_pct: float = 0.0
    profit_factor: float = 0.0
    avg_win_pct: float = 0.0
    avg_loss_pct: float = 0.0
    avg_holding_bars: float = 0.0
    final_equity: float = 0.0
    net_profit: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def compute_trade_stats(
    trades: Sequence[Trade],
    *,
    initial_capital: float = 1_000_000.0,
    timeframe: str = "daily",
) -> BacktestStats:
    """Derive statistics from closed trades traded all-in, compounding each return.

    With no trades every statistic is ``0`` and the final equity is the initial
    capital.
    """

    if initial_capital <= 0:
        raise ValueError("initial_capital must be positive")
    if timeframe not in ANNUALIZATION_PERIODS:
        raise ValueError(f"Unsupported timeframe '{timeframe}'")
    if not trades:
        return BacktestStats(final_equity=float(initial_capital))

    returns = [trade.return_pct for trade in trades]
    wins = [value for value in returns if value > 0]
    losses = [value for value in returns if value <= 0]

    curve = [float(initial_capital)]
    for value in returns:
        curve.append(curve[-1] * (1 + value / 100))
    final_equity = curve[-1]

    return BacktestStats(
        num_trades=len(trades),
        num_wins=len(wins),
        num_losses=len(losses),
        win_rate=len(wins) / len(trades) * 100,
        total_return_pct=(final_equity / initial_capital - 1) * 100,
        median_return_pct=float(statistics.median(returns)),
        mean_return_pct=statistics.fmean(returns),
        sharpe=_sharpe_ratio(returns, ANNUALIZATION_PERIODS[timeframe]),
        max_drawdown_pct=_max_drawdown(curve) * 100,
        profit_factor=_profit_factor(wins, losses),
        avg_win_pct=statistics.fmean(wins) if wins else 0.0,
        avg_loss_pct=statistics.fmean(losses) if losses else 0.0,
        avg_holding_bars=statistics.fmean(trade.holding_bars for trade in trades),
        final_equity=final_equity,
        net_profit=final_equity - initial_capital,
    )


def _max_drawdown(curve: Sequence[float]) -> float:
    drawdown = 0.0
    peak = float("-inf")
    for value in curve:
        peak = max(peak, value)
        if peak <= 0:
            continue
        drawdown = min(drawdown, (value / peak) - 1.0)
    return abs(drawdown)


def _sharpe_ratio(returns: Sequence[float], periods: int) -> float:
    if len(returns) < 2:
        return 0.0
    std_dev = statistics.stdev(returns)
    if std_dev == 0:
        return 0.0
    return (statistics.fmean(returns) / std_dev) * sqrt(periods)


def _profit_factor(wins: Sequence[float], losses: Sequence[float]) -> float:
    gross_win = sum(wins)
    gross_loss = abs(sum(losses))
    if gross_loss == 0:
        return PROFIT_FACTOR_CAP if gross_win > 0 else 0.0
    return min(gross_win / gross_loss, PROFIT_FACTOR_CAP)


__all__ = [
    "ANNUALIZATION_PERIODS",
    "BacktestStats",
    "compute_trade_stats",
]
