"""Chart pattern detectors."""

from .cwh import CwhConfig, CwhPattern, CwhStage, RimPoint, detect_cwh, find_cwh_breakouts, find_peaks

__all__ = [
    "CwhConfig",
    "CwhPattern",
    "CwhStage",
    "RimPoint",
    "detect_cwh",
    "find_cwh_breakouts",
    "find_peaks",
]
