# core/assets.py
from __future__ import annotations
import math
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

CURRENCIES = ("eur", "usd")
DEFAULT_CURRENCY = "eur"
CURRENCY_SYMBOLS = {"eur": "€", "usd": "$"}

CATEGORIES = ("safe", "risky")
NUMERIC_FIELDS = ("holdings", "buy_price", "target_percent")
EDITABLE_FIELDS = NUMERIC_FIELDS + ("category",)


_CURRENCY_MARKS = "€$ \u00a0"
_THOUSANDS_ONLY = re.compile(r"^\d{1,3}(,\d{3})+$")


def _normalise_number_text(text: str) -> str:
    """
    Accept both 1,234.50 and 1.234,50 styles. With both separators present
    the last one is the decimal point. A lone comma is a thousands
    separator only in the 1,234 shape; otherwise it is the decimal point.
    """
    s = text.strip().strip(_CURRENCY_MARKS)
    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            return s.replace(".", "").replace(",", ".")
        return s.replace(",", "")
    if "," in s:
        if s.count(",") > 1 or _THOUSANDS_ONLY.match(s):
            return s.replace(",", "")
        return s.replace(",", ".")
    if s.count(".") > 1:
        return s.replace(".", "")
    return s


def coerce_amount(value: Any, upper: Optional[float] = None) -> float:
    """
    Turn user input into a usable non-negative number.
    Unparsable, missing, negative, NaN and infinite values all become 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = _normalise_number_text(value)
    try:
        num = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(num) or num < 0:
        return 0.0
    if upper is not None and num > upper:
        return upper
    return num


def coerce_category(value: Any) -> Optional[str]:
    if value is None:
        return None
    v = str(value).strip().lower()
    return v if v in CATEGORIES else None


def coerce_change(value: Any) -> Optional[float]:
    # 24h change may legitimately be negative
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


@dataclass
class Asset:
    id: str
    symbol: str
    name: str
    thumb: str = ""
    holdings: float = 0.0
    buy_price: float = 0.0
    target_percent: float = 0.0
    category: Optional[str] = None
    price_eur: float = 0.0
    price_usd: float = 0.0
    change_24h_eur: Optional[float] = None
    change_24h_usd: Optional[float] = None

    def __post_init__(self):
        self.category = coerce_category(self.category)

    def price(self, currency: str) -> float:
        return self.price_usd if currency == "usd" else self.price_eur

    def change_24h(self, currency: str) -> Optional[float]:
        return self.change_24h_usd if currency == "usd" else self.change_24h_eur

    @classmethod
    def from_coin(cls, coin: Dict[str, Any]) -> "Asset":
        """Fresh asset from a search result; prices start unfetched."""
        return cls(
            id=str(coin["id"]),
            symbol=str(coin.get("symbol") or "").upper(),
            name=str(coin.get("name") or ""),
            thumb=str(coin.get("thumb") or ""),
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Asset":
        return cls(
            id=str(d["id"]),
            symbol=str(d.get("symbol") or ""),
            name=str(d.get("name") or ""),
            thumb=str(d.get("thumb") or ""),
            holdings=coerce_amount(d.get("holdings")),
            buy_price=coerce_amount(d.get("buy_price")),
            target_percent=coerce_amount(d.get("target_percent"), upper=100.0),
            category=coerce_category(d.get("category")),
            price_eur=coerce_amount(d.get("price_eur")),
            price_usd=coerce_amount(d.get("price_usd")),
            change_24h_eur=coerce_change(d.get("change_24h_eur")),
            change_24h_usd=coerce_change(d.get("change_24h_usd")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
