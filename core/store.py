# core/store.py
from __future__ import annotations
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from core.assets import (
    Asset, CURRENCIES, DEFAULT_CURRENCY, EDITABLE_FIELDS,
    coerce_amount, coerce_category, coerce_change,
)
from utils.logging import get_logger

log = get_logger("store")


class PortfolioStore:
    """
    Process-wide asset list and currency selection.
    All writes go through the named operations below, which clamp input
    and fire `on_change` so the caller can persist.
    """

    def __init__(self, assets: Optional[Iterable[Asset]] = None,
                 currency: str = DEFAULT_CURRENCY,
                 on_change: Optional[Callable[["PortfolioStore"], None]] = None):
        self._lock = threading.RLock()
        self._assets: List[Asset] = []
        seen = set()
        for a in assets or []:
            if a.id in seen:
                log.warning("Dropping duplicate asset id %s", a.id)
                continue
            seen.add(a.id)
            self._assets.append(a)
        self.currency = currency if currency in CURRENCIES else DEFAULT_CURRENCY
        self.on_change = on_change

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]], currency: str = DEFAULT_CURRENCY,
                     on_change=None) -> "PortfolioStore":
        assets = []
        for rec in records:
            try:
                assets.append(Asset.from_dict(rec))
            except (KeyError, TypeError, AttributeError):
                log.warning("Skipping malformed asset record: %r", rec)
        return cls(assets, currency=currency, on_change=on_change)

    # ---- reads ----

    @property
    def assets(self) -> List[Asset]:
        """Snapshot copy of the list, in insertion order."""
        with self._lock:
            return list(self._assets)

    def ids(self) -> List[str]:
        with self._lock:
            return [a.id for a in self._assets]

    def get(self, asset_id: str) -> Optional[Asset]:
        with self._lock:
            return next((a for a in self._assets if a.id == asset_id), None)

    def find(self, key: str) -> Optional[Asset]:
        """Look up by id or symbol, case-insensitive."""
        k = key.strip().lower()
        with self._lock:
            for a in self._assets:
                if a.id.lower() == k:
                    return a
            for a in self._assets:
                if a.symbol.lower() == k:
                    return a
        return None

    def to_records(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [a.to_dict() for a in self._assets]

    # ---- writes ----

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _require(self, asset_id: str) -> Asset:
        asset = self.get(asset_id)
        if asset is None:
            raise ValueError(f"Unknown asset '{asset_id}'.")
        return asset

    def add_asset(self, coin: Dict[str, Any]) -> Optional[Asset]:
        """Add a search result; returns None if that id is already tracked."""
        with self._lock:
            if self.get(str(coin["id"])) is not None:
                return None
            asset = Asset.from_coin(coin)
            self._assets.append(asset)
        log.info("Added %s (%s)", asset.symbol, asset.id)
        self._changed()
        return asset

    def remove_asset(self, asset_id: str) -> Asset:
        with self._lock:
            asset = self._require(asset_id)
            self._assets.remove(asset)
        self._changed()
        return asset

    def update_field(self, asset_id: str, field: str, value: Any) -> Asset:
        if field not in EDITABLE_FIELDS:
            raise ValueError(f"Field '{field}' is not editable. Allowed: {', '.join(EDITABLE_FIELDS)}")
        with self._lock:
            asset = self._require(asset_id)
            if field == "category":
                asset.category = coerce_category(value)
            elif field == "target_percent":
                asset.target_percent = coerce_amount(value, upper=100.0)
            else:
                setattr(asset, field, coerce_amount(value))
        self._changed()
        return asset

    def set_currency(self, currency: str) -> None:
        code = (currency or "").strip().lower()
        if code not in CURRENCIES:
            raise ValueError(f"Unsupported currency '{currency}'. Allowed: {', '.join(CURRENCIES)}")
        self.currency = code
        self._changed()

    def merge_prices(self, data: Dict[str, Any]) -> int:
        """
        Apply a /simple/price response by id. Ids absent from `data` are
        left alone; a missing or zero price never replaces a known one.
        Returns the number of assets touched.
        """
        if not isinstance(data, dict):
            log.warning("Ignoring malformed price response of type %s", type(data).__name__)
            return 0
        touched = 0
        with self._lock:
            for asset in self._assets:
                row = data.get(asset.id)
                if not isinstance(row, dict):
                    continue
                asset.price_eur = coerce_amount(row.get("eur")) or asset.price_eur
                asset.price_usd = coerce_amount(row.get("usd")) or asset.price_usd
                asset.change_24h_eur = coerce_change(row.get("eur_24h_change"))
                asset.change_24h_usd = coerce_change(row.get("usd_24h_change"))
                touched += 1
        if touched:
            self._changed()
        return touched
