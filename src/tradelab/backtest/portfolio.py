"""Position and trade state machine.

A symbol is either flat or holds exactly one long position. Folding a sequence
of raw actions over the bars resolves them into executed actions and closed
trades: ``buy`` is honored only while flat, ``sell`` while flat is ignored, and
while in position every bar after the entry bar evaluates exits in the order
take-profit, stop-loss, trailing-stop, strategy signal.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum
from typing import List, Sequence, Tuple

from ..data.schemas import Bar
from .strategy import Action


class ExitReason(str, Enum):
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"
    TRAILING_STOP = "trailing_stop"
    SIGNAL = "signal"


@dataclass(slots=True, frozen=True)
class ExitRules:
    """Fixed exits applied to an open position, in percent of the entry or peak price."""

    take_profit_pct: float | None = None
    stop_loss_pct: float | None = None
    trailing_stop_pct: float | None = None

    def validate(self) -> None:
        if self.take_profit_pct is not None and self.take_profit_pct <= 0:
            raise ValueError("take_profit_pct must be positive when provided")
        if self.stop_loss_pct is not None and not 0 < self.stop_loss_pct < 100:
            raise ValueError("stop_loss_pct must be within (0, 100)")
        if self.trailing_stop_pct is not None and not 0 < self.trailing_stop_pct < 100:
            raise ValueError("trailing_stop_pct must be within (0, 100)")


@dataclass(slots=True, frozen=True)
class Position:
    symbol: str
    entry_index: int
    entry_date: date
    entry_price: float
    peak_price: float
    stop_price: float | None = None


@dataclass(slots=True, frozen=True)
class Trade:
    symbol: str
    entry_index: int
    entry_date: date
    entry_price: float
    exit_index: int
    exit_date: date
    exit_price: float
    exit_reason: ExitReason

    @property
    def return_pct(self) -> float:
        return (self.exit_price / self.entry_price - 1.0) * 100.0

    @property
    def is_win(self) -> bool:
        return self.return_pct > 0

    @property
    def holding_bars(self) -> int:
        return self.exit_index - self.entry_index


@dataclass(slots=True, frozen=True)
class PositionState:
    """Explicit fold state: the open position, if any."""

    position: Position | None = None

    @property
    def in_position(self) -> bool:
        return self.position is not None


@dataclass(slots=True)
class FoldResult:
    actions: List[Action]
    trades: List[Trade] = field(default_factory=list)
    open_position: Position | None = None


def _exit_reason(position: Position, price: float, signal: Action, rules: ExitRules) -> ExitReason | None:
    entry = position.entry_price
    if rules.take_profit_pct is not None and price >= entry * (1 + rules.take_profit_pct / 100):
        return ExitReason.TAKE_PROFIT
    if rules.stop_loss_pct is not None and price <= entry * (1 - rules.stop_loss_pct / 100):
        return ExitReason.STOP_LOSS
    if position.stop_price is not None and price <= position.stop_price:
        return ExitReason.STOP_LOSS
    if rules.trailing_stop_pct is not None and price <= position.peak_price * (1 - rules.trailing_stop_pct / 100):
        return ExitReason.TRAILING_STOP
    if signal is Action.SELL:
        return ExitReason.SIGNAL
    return None


def step_position(
    state: PositionState,
    bar: Bar,
    index: int,
    signal: Action,
    rules: ExitRules,
    *,
    symbol: str = "",
    entry_stop: float | None = None,
) -> Tuple[PositionState, Action, Trade | None]:
    """Advance the state machine by one bar.

    Returns the new state, the executed action and the trade closed on this
    bar, if any. Bars with a non-positive close never open or close a position.
    """

    price = bar.close
    if price <= 0:
        return state, Action.HOLD, None

    position = state.position
    if position is None:
        if signal is not Action.BUY:
            return state, Action.HOLD, None
        opened = Position(
            symbol=symbol,
            entry_index=index,
            entry_date=bar.date,
            entry_price=price,
            peak_price=price,
            stop_price=entry_stop,
        )
        return PositionState(opened), Action.BUY, None

    if index <= position.entry_index:
        return state, Action.HOLD, None

    position = replace(position, peak_price=max(position.peak_price, price))
    reason = _exit_reason(position, price, signal, rules)
    if reason is None:
        return PositionState(position), Action.HOLD, None

    trade = Trade(
        symbol=position.symbol,
        entry_index=position.entry_index,
        entry_date=position.entry_date,
        entry_price=position.entry_price,
        exit_index=index,
        exit_date=bar.date,
        exit_price=price,
        exit_reason=reason,
    )
    return PositionState(), Action.SELL, trade


def fold_actions(
    bars: Sequence[Bar],
    signals: Sequence[Action],
    rules: ExitRules | None = None,
    *,
    symbol: str = "",
    entry_stops: Sequence[float | None] | None = None,
) -> FoldResult:
    """Resolve raw signals into executed actions and closed trades."""

    if len(signals) != len(bars):
        raise ValueError("signals must align with bars")
    if entry_stops is not None and len(entry_stops) != len(bars):
        raise ValueError("entry_stops must align with bars")
    rules = rules or ExitRules()
    rules.validate()

    state = PositionState()
    result = FoldResult(actions=[])
    for index, (bar, signal) in enumerate(zip(bars, signals)):
        stop = entry_stops[index] if entry_stops is not None else None
        state, action, trade = step_position(
            state, bar, index, signal, rules, symbol=symbol, entry_stop=stop)
        result.actions.append(action)
        if trade is not None:
            result.trades.append(trade)
    result.open_position = state.position
    return result


__all__ = [
    "ExitReason",
    "ExitRules",
    "FoldResult",
    "Position",
    "PositionState",
    "Trade",
    "fold_actions",
    "step_position",
]
