"""Buy-the-dip strategy measured from the running peak since the last exit."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from ..backtest.portfolio import ExitRules, FoldResult, PositionState, step_position
from ..backtest.strategy import Action, ParameterDefinition, Params
from ..data.schemas import Bar

PARAMETERS = (
    ParameterDefinition("dip_pct", 10.0, 1.0, 50.0, integer=False),
    ParameterDefinition("recovery_pct", 15.0, 1.0, 100.0, integer=False),
    ParameterDefinition("stop_loss_pct", 15.0, 1.0, 50.0, integer=False),
)


@dataclass(slots=True)
class DipState:
    """Fold state: the position plus the reference peak used for dip detection."""

    position: PositionState = field(default_factory=PositionState)
    reference_peak: float | None = None


def simulate_dip_buy(bars: Sequence[Bar], params: Params, symbol: str = "") -> FoldResult:
    """Buy once the close sits ``dip_pct`` below the reference peak.

    The reference peak tracks the highest close while flat and restarts from
    the exit price after each trade.
    """

    rules = ExitRules(take_profit_pct=params["recovery_pct"], stop_loss_pct=params["stop_loss_pct"])
    rules.validate()
    state = DipState()
    result = FoldResult(actions=[])
    for idx, bar in enumerate(bars):
        price = bar.close
        if price <= 0:
            result.actions.append(Action.HOLD)
            continue

        signal = Action.HOLD
        if not state.position.in_position:
            peak = state.reference_peak
            state.reference_peak = price if peak is None else max(peak, price)
            drop_pct = (state.reference_peak - price) / state.reference_peak * 100
            if drop_pct >= params["dip_pct"]:
                signal = Action.BUY

        state.position, action, trade = step_position(
            state.position, bar, idx, signal, rules, symbol=symbol)
        result.actions.append(action)
        if trade is not None:
            result.trades.append(trade)
            state.reference_peak = price
    result.open_position = state.position.position
    return result


__all__ = ["DipState", "PARAMETERS", "simulate_dip_buy"]
