# core/rebalance.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from core.assets import coerce_category
from core.portfolio import Position, Valuation

# Differences below one unit of currency are float/rounding noise.
DEADBAND = 1.0


class Direction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass
class RebalanceAction:
    direction: Direction
    amount: float  # in the selected currency
    units: float   # 0 when the price is not known yet


def rebalance_action(value: float, target_percent: float, total_value: float,
                     price: float) -> Optional[RebalanceAction]:
    """
    Trade needed to move `value` to `target_percent` of `total_value`.
    Returns None when the asset is balanced (inside the deadband).
    """
    target_value = (target_percent / 100) * total_value
    difference = target_value - value
    if abs(difference) < DEADBAND:
        return None
    return RebalanceAction(
        direction=Direction.BUY if difference > 0 else Direction.SELL,
        amount=abs(difference),
        units=abs(difference / price) if price > 0 else 0.0,
    )


def position_action(pos: Position, total_value: float) -> Optional[RebalanceAction]:
    return rebalance_action(pos.value, pos.asset.target_percent, total_value, pos.price)


def plan_rebalance(valuation: Valuation) -> List[Tuple[Position, Optional[RebalanceAction]]]:
    # computed whether or not targets add up to 100
    return [(pos, position_action(pos, valuation.total_value)) for pos in valuation.positions]


@dataclass
class CategoryTotals:
    value: float = 0.0
    percent_of_portfolio: float = 0.0
    target_percent: float = 0.0
    count: int = 0


def category_summary(valuation: Valuation) -> Dict[Optional[str], CategoryTotals]:
    """Totals for safe, risky and uncategorised (None) assets."""
    out: Dict[Optional[str], CategoryTotals] = {
        "safe": CategoryTotals(),
        "risky": CategoryTotals(),
        None: CategoryTotals(),
    }
    for pos in valuation.positions:
        bucket = out[coerce_category(pos.asset.category)]
        bucket.value += pos.value
        bucket.target_percent += pos.asset.target_percent
        bucket.count += 1
    if valuation.total_value > 0:
        for bucket in out.values():
            bucket.percent_of_portfolio = bucket.value / valuation.total_value * 100
    return out


def target_status(total_target_percent: float) -> Tuple[str, float]:
    """
    ("over", excess) / ("under", remaining) / ("complete", 0.0).
    Targets are never forced to 100; this only feeds the warning line.
    """
    if total_target_percent > 100:
        return "over", total_target_percent - 100
    if total_target_percent < 100:
        return "under", 100 - total_target_percent
    return "complete", 0.0
