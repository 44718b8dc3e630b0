"""Signal generator interface for the backtest engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Mapping, Protocol, Sequence

from ..data.schemas import Bar
from ..errors import InvalidParameterError

if TYPE_CHECKING:
    from .portfolio import FoldResult


class Action(str, Enum):
    """Per-bar decision emitted by a signal generator."""

    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


class StrategyId(str, Enum):
    """Closed set of supported strategies."""

    MA_CROSS = "ma_cross"
    RSI_REVERSAL = "rsi_reversal"
    MACD_SIGNAL = "macd_signal"
    MACD_TRAIL = "macd_trail"
    DIP_BUY = "dip_buy"
    CWH_BREAKOUT = "cwh_breakout"
    CWH_TRAIL = "cwh_trail"


Params = Mapping[str, float]


class SignalGenerator(Protocol):
    """Pure strategy function folding its signals into executed actions and trades.

    ``len(result.actions) == len(bars)`` and the action at ``i`` depends only on
    bars ``<= i``.
    """

    def __call__(self, bars: Sequence[Bar], params: Params, symbol: str = "") -> "FoldResult":
        ...


@dataclass(slots=True, frozen=True)
class ParameterDefinition:
    """Declared parameter of a strategy with its default and allowed range."""

    key: str
    default: float
    minimum: float
    maximum: float
    step: float = 1.0
    integer: bool = True

    def coerce(self, value: float) -> float:
        if self.integer:
            if float(value) != int(value):
                raise InvalidParameterError(f"{self.key} must be an integer")
            return int(value)
        return float(value)

    def check(self, value: float) -> None:
        if value < self.minimum or value > self.maximum:
            raise InvalidParameterError(
                f"{self.key}={value} outside [{self.minimum}, {self.maximum}]")


@dataclass(slots=True, frozen=True)
class StrategyDefinition:
    """Registry entry binding a strategy id to its parameters and generator."""

    strategy_id: StrategyId
    name: str
    parameters: tuple[ParameterDefinition, ...]
    simulate: SignalGenerator
    constraints: tuple[Callable[[Dict[str, float]], None], ...] = ()

    def defaults(self) -> Dict[str, float]:
        return {definition.key: definition.default for definition in self.parameters}

    def resolve(self, params: Params | None = None) -> Dict[str, float]:
        """Merge ``params`` over the defaults and validate the result."""

        supplied = dict(params or {})
        known = {definition.key for definition in self.parameters}
        unknown = sorted(set(supplied) - known)
        if unknown:
            raise InvalidParameterError(
                f"Unknown parameters for {self.strategy_id.value}: {unknown}")
        resolved: Dict[str, float] = {}
        for definition in self.parameters:
            value = definition.coerce(supplied.get(definition.key, definition.default))
            definition.check(value)
            resolved[definition.key] = value
        for constraint in self.constraints:
            constraint(resolved)
        return resolved

    def run(self, bars: Sequence[Bar], params: Params | None = None, *, symbol: str = "") -> "FoldResult":
        return self.simulate(bars, self.resolve(params), symbol)

    def compute(self, bars: Sequence[Bar], params: Params | None = None) -> List[Action]:
        """One executed action per bar."""

        return self.run(bars, params).actions


def require_less_than(lower: str, upper: str) -> Callable[[Dict[str, float]], None]:
    """Build a constraint requiring ``params[lower] < params[upper]``."""

    def _check(params: Dict[str, float]) -> None:
        if params[lower] >= params[upper]:
            raise InvalidParameterError(f"{lower} must be less than {upper}")

    return _check


__all__ = [
    "Action",
    "ParameterDefinition",
    "Params",
    "SignalGenerator",
    "StrategyDefinition",
    "StrategyId",
    "require_less_than",
]
