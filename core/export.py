# core/export.py
from __future__ import annotations
import csv
import os
from typing import List, Optional

from core.assets import CURRENCY_SYMBOLS
from core.portfolio import Valuation
from core.rebalance import RebalanceAction, plan_rebalance

HEADER = [
    "Symbol", "Name", "Category", "Holdings", "Buy Price", "Current Price",
    "Value", "P&L", "Current %", "Target %", "Action",
]


def format_currency(amount: float, currency: str) -> str:
    """$1,234.56 for usd, 1.234,56 € for eur."""
    sign = "-" if amount < 0 else ""
    body = f"{abs(amount):,.2f}"
    if currency == "eur":
        body = body.replace(",", "_").replace(".", ",").replace("_", ".")
        return f"{sign}{body} {CURRENCY_SYMBOLS['eur']}"
    return f"{sign}{CURRENCY_SYMBOLS.get(currency, '$')}{body}"


def format_units(num: float) -> str:
    # fewer decimals for bigger quantities
    if num >= 1000:
        return f"{num:,.2f}"
    if num >= 1:
        return f"{num:,.4f}".rstrip("0").rstrip(".")
    return f"{num:.6f}".rstrip("0").rstrip(".") or "0"


def _plain(num: float) -> str:
    return f"{num:.8f}".rstrip("0").rstrip(".")


def format_action(action: Optional[RebalanceAction], currency: str) -> str:
    if action is None:
        return "Balanced"
    return f"{action.direction.value} {format_currency(action.amount, currency)}"


def export_rows(valuation: Valuation) -> List[List[str]]:
    """Header plus one row per position, in the same order as the report."""
    rows = [list(HEADER)]
    for pos, action in plan_rebalance(valuation):
        a = pos.asset
        rows.append([
            a.symbol,
            a.name,
            a.category or "uncategorized",
            _plain(a.holdings),
            _plain(a.buy_price),
            _plain(pos.price),
            f"{pos.value:.2f}",
            f"{pos.pnl:.2f}",
            f"{pos.current_percent:.2f}%",
            f"{a.target_percent:.2f}%",
            format_action(action, valuation.currency),
        ])
    return rows


def write_csv(path: str, valuation: Valuation) -> str:
    out_path = os.path.abspath(path)
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerows(export_rows(valuation))
    return out_path
