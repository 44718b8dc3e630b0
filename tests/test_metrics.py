from datetime import date, timedelta
from math import sqrt

import pytest

from tradelab.backtest.engine import BacktestConfig, run_backtest
from tradelab.backtest.metrics import PROFIT_FACTOR_CAP, BacktestStats, compute_trade_stats
from tradelab.backtest.portfolio import ExitReason, Trade
from tradelab.data.schemas import Bar


def _trade(entry: float, exit_: float, index: int = 0, holding: int = 2) -> Trade:
    start = date(2024, 1, 1) + timedelta(days=index)
    return Trade(
        symbol="TEST",
        entry_index=index,
        entry_date=start,
        entry_price=entry,
        exit_index=index + holding,
        exit_date=start + timedelta(days=holding),
        exit_price=exit_,
        exit_reason=ExitReason.SIGNAL,
    )


def test_zero_trades_yield_neutral_stats() -> None:
    stats = compute_trade_stats([], initial_capital=50_000)

    expected = BacktestStats(final_equity=50_000.0).to_dict()
    assert stats.to_dict() == expected
    assert stats.final_equity == 50_000
    assert all(value == 0 for key, value in expected.items() if key != "final_equity")


def test_identical_returns_have_zero_sharpe() -> None:
    trades = [_trade(100, 110, index=idx * 5) for idx in range(4)]

    stats = compute_trade_stats(trades)

    assert stats.sharpe == 0.0
    assert stats.win_rate == 100.0
    assert stats.profit_factor == PROFIT_FACTOR_CAP
    assert stats.total_return_pct == pytest.approx((1.1 ** 4 - 1) * 100)


def test_mixed_trades_statistics() -> None:
    trades = [_trade(100, 120), _trade(100, 90, index=5), _trade(100, 100, index=10, holding=4)]

    stats = compute_trade_stats(trades, initial_capital=1_000, timeframe="weekly")

    assert stats.num_wins == 1
    assert stats.num_losses == 2
    assert stats.win_rate == pytest.approx(100 / 3)
    assert stats.median_return_pct == pytest.approx(0.0)
    assert stats.profit_factor == pytest.approx(2.0)
    assert stats.final_equity == pytest.approx(1_000 * 1.2 * 0.9)
    assert stats.net_profit == pytest.approx(80.0)
    assert stats.max_drawdown_pct == pytest.approx(10.0)
    assert stats.avg_holding_bars == pytest.approx(8 / 3)
    returns = [20.0, -10.0, 0.0]
    mean = sum(returns) / 3
    std = sqrt(sum((value - mean) ** 2 for value in returns) / 2)
    assert stats.sharpe == pytest.approx(mean / std * sqrt(52))
    assert 0 <= stats.win_rate <= 100


def test_invalid_inputs_raise() -> None:
    with pytest.raises(ValueError):
        compute_trade_stats([], initial_capital=0)
    with pytest.raises(ValueError):
        compute_trade_stats([], timeframe="hourly")


def test_run_backtest_on_too_few_bars_is_empty() -> None:
    bars = [
        Bar(date=date(2024, 1, 1) + timedelta(days=idx), open=10, high=10, low=10, close=10)
        for idx in range(5)
    ]

    result = run_backtest(bars, "ma_cross", symbol="TEST", config=BacktestConfig(initial_capital=10_000))

    assert result.trades == []
    assert result.open_position is None
    assert len(result.actions) == 5
    assert result.stats.final_equity == 10_000
    assert result.to_row()["strategy"] == "ma_cross"
