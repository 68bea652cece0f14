from .common import StabilityReport, leaderboard
from .passing import passing_sensitivity, passing_stability
from .rushing import RushingReport, rushing_over_expected, rushing_sensitivity

__all__ = [
    "RushingReport",
    "StabilityReport",
    "leaderboard",
    "passing_sensitivity",
    "passing_stability",
    "rushing_over_expected",
    "rushing_sensitivity",
]
