# core/portfolio.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from core.assets import Asset, DEFAULT_CURRENCY


@dataclass
class Position:
    """One asset with everything derived from it for the selected currency."""
    asset: Asset
    price: float
    value: float
    cost_basis: float
    pnl: float
    current_percent: float
    change_24h: Optional[float] = None


@dataclass
class Valuation:
    currency: str
    positions: List[Position] = field(default_factory=list)
    total_value: float = 0.0
    total_cost_basis: float = 0.0
    total_pnl: float = 0.0
    pnl_pct: float = 0.0
    total_target_percent: float = 0.0


def asset_price(asset: Asset, currency: str) -> float:
    return asset.price(currency) or 0.0


def asset_value(asset: Asset, currency: str) -> float:
    return asset.holdings * asset_price(asset, currency)


def sort_by_value(assets: Sequence[Asset], currency: str) -> List[Asset]:
    """Highest value first; sorted() is stable so ties keep insertion order."""
    return sorted(assets, key=lambda a: asset_value(a, currency), reverse=True)


def valuate(assets: Sequence[Asset], currency: str = DEFAULT_CURRENCY) -> Valuation:
    """Compute total and per-asset value, P/L and allocation share."""
    total_value = sum(asset_value(a, currency) for a in assets)

    positions = []
    total_cost = 0.0
    total_pnl = 0.0
    for asset in sort_by_value(assets, currency):
        price = asset_price(asset, currency)
        value = asset.holdings * price
        cost = asset.holdings * asset.buy_price
        pnl = value - cost
        current_pct = (value / total_value) * 100 if total_value > 0 else 0.0
        positions.append(Position(
            asset=asset,
            price=price,
            value=value,
            cost_basis=cost,
            pnl=pnl,
            current_percent=current_pct,
            change_24h=asset.change_24h(currency),
        ))
        total_cost += cost
        total_pnl += pnl

    return Valuation(
        currency=currency,
        positions=positions,
        total_value=total_value,
        total_cost_basis=total_cost,
        total_pnl=total_pnl,
        pnl_pct=(total_pnl / total_cost) * 100 if total_cost > 0 else 0.0,
        total_target_percent=sum(a.target_percent for a in assets),
    )
