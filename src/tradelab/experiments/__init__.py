"""Parameter optimization: grid search and walk-forward analysis."""

from .grid import (
    AggregateStats,
    FloatRange,
    GridRow,
    GridSearchResult,
    ParameterCombination,
    ParameterGrid,
    ParameterRange,
    ParameterSpec,
    ScoreWeights,
    default_parameter_spec,
    generate_parameter_grid,
    normalize,
    run_grid_search,
)
from .walkforward import (
    DateRange,
    StabilityReport,
    WalkForwardConfig,
    WalkForwardResult,
    WalkForwardWindow,
    WindowResult,
    default_windows,
    evaluate_stability,
    generate_windows,
    run_walk_forward,
)

__all__ = [
    "AggregateStats",
    "DateRange",
    "FloatRange",
    "GridRow",
    "GridSearchResult",
    "ParameterCombination",
    "ParameterGrid",
    "ParameterRange",
    "ParameterSpec",
    "ScoreWeights",
    "StabilityReport",
    "WalkForwardConfig",
    "WalkForwardResult",
    "WalkForwardWindow",
    "WindowResult",
    "default_parameter_spec",
    "default_windows",
    "evaluate_stability",
    "generate_parameter_grid",
    "generate_windows",
    "normalize",
    "run_grid_search",
    "run_walk_forward",
]
