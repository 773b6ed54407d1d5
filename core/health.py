# core/health.py
import math

from core.portfolio import Valuation

WELL_BALANCED = 80
NEEDS_ATTENTION = 50


def health_score(valuation: Valuation) -> int:
    """
    0-100 summary of allocation drift. A full inversion of the allocation
    drifts by at most 200 percentage points in total, hence the /2.
    A heuristic indicator, not a distance metric.
    """
    if not valuation.positions or valuation.total_value == 0:
        return 100
    total_deviation = sum(
        abs(pos.current_percent - pos.asset.target_percent) for pos in valuation.positions
    )
    score = max(0.0, 100 - total_deviation / 2)
    # round half up, not banker's rounding
    return int(math.floor(score + 0.5))


def health_label(score: int) -> str:
    if score >= WELL_BALANCED:
        return "Well balanced"
    if score >= NEEDS_ATTENTION:
        return "Needs attention"
    return "Rebalance needed"
