import pytest

from tradelab.backtest.strategy import StrategyId
from tradelab.strategies import OPTIMIZED_PRESETS, PresetType, get_strategy, preset_info, resolve_params


def test_default_preset_returns_declared_defaults() -> None:
    for strategy_id in StrategyId:
        assert resolve_params(strategy_id) == get_strategy(strategy_id).defaults()


@pytest.mark.parametrize("timeframe", ["daily", "weekly"])
def test_every_optimized_preset_is_valid(timeframe: str) -> None:
    for strategy_id in StrategyId:
        params = resolve_params(strategy_id, PresetType.OPTIMIZED, timeframe)
        assert set(params) == set(get_strategy(strategy_id).defaults())


def test_optimized_preset_overrides_defaults() -> None:
    params = resolve_params("ma_cross", "optimized", "weekly")

    assert params == {"short_period": 10, "long_period": 20}
    info = preset_info("ma_cross", "weekly")
    assert info is not None and info.trades == 18


def test_unknown_timeframe_falls_back_to_defaults() -> None:
    assert resolve_params("dip_buy", "optimized", "monthly") == get_strategy("dip_buy").defaults()
    assert preset_info("dip_buy", "monthly") is None
    assert set(OPTIMIZED_PRESETS) == set(StrategyId)
