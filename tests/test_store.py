import math

import pytest

from core.assets import Asset
from core.store import PortfolioStore

BTC = {"id": "bitcoin", "symbol": "btc", "name": "Bitcoin", "thumb": "https://img/btc.png"}
ETH = {"id": "ethereum", "symbol": "eth", "name": "Ethereum", "thumb": ""}


def test_add_asset_starts_unpriced_and_dedupes():
    calls = []
    store = PortfolioStore(on_change=calls.append)
    a = store.add_asset(BTC)
    assert a.symbol == "BTC"
    assert (a.holdings, a.buy_price, a.target_percent, a.price_eur, a.price_usd) == (0, 0, 0, 0, 0)
    assert a.category is None
    assert store.add_asset(BTC) is None
    assert store.ids() == ["bitcoin"]
    assert len(calls) == 1


@pytest.mark.parametrize("raw, expected", [
    ("1.5", 1.5),
    ("abc", 0.0),
    ("", 0.0),
    (None, 0.0),
    (-3, 0.0),
    (float("nan"), 0.0),
    (float("inf"), 0.0),
    ("1,000", 1000.0),
])
def test_update_numeric_fields_are_coerced(raw, expected):
    store = PortfolioStore()
    store.add_asset(BTC)
    a = store.update_field("bitcoin", "holdings", raw)
    assert a.holdings == expected
    assert not math.isnan(a.holdings)


def test_target_percent_clamped_per_asset_but_not_in_sum():
    store = PortfolioStore()
    store.add_asset(BTC)
    store.add_asset(ETH)
    assert store.update_field("bitcoin", "target_percent", "150").target_percent == 100
    assert store.update_field("ethereum", "target_percent", "60").target_percent == 60
    assert sum(a.target_percent for a in store.assets) == 160


def test_category_accepts_known_values_only():
    store = PortfolioStore()
    store.add_asset(BTC)
    assert store.update_field("bitcoin", "category", "Safe").category == "safe"
    assert store.update_field("bitcoin", "category", "none").category is None
    assert store.update_field("bitcoin", "category", "yolo").category is None


def test_unknown_asset_or_field_raises():
    store = PortfolioStore()
    store.add_asset(BTC)
    with pytest.raises(ValueError):
        store.update_field("dogecoin", "holdings", 1)
    with pytest.raises(ValueError):
        store.update_field("bitcoin", "price_eur", 1)
    with pytest.raises(ValueError):
        store.remove_asset("dogecoin")


def test_remove_asset():
    store = PortfolioStore()
    store.add_asset(BTC)
    store.add_asset(ETH)
    store.remove_asset("bitcoin")
    assert store.ids() == ["ethereum"]


def test_find_by_id_or_symbol():
    store = PortfolioStore()
    store.add_asset(BTC)
    assert store.find("BTC").id == "bitcoin"
    assert store.find("Bitcoin").id == "bitcoin"
    assert store.find("sol") is None


def test_set_currency():
    store = PortfolioStore()
    store.set_currency("USD")
    assert store.currency == "usd"
    with pytest.raises(ValueError):
        store.set_currency("gbp")


def test_unknown_currency_falls_back_to_default():
    assert PortfolioStore(currency="jpy").currency == "eur"


def test_merge_prices_updates_by_id_only():
    store = PortfolioStore()
    store.add_asset(BTC)
    store.add_asset(ETH)
    store.merge_prices({"bitcoin": {"eur": 50000, "usd": 54000, "eur_24h_change": -1.2, "usd_24h_change": -1.0}})
    btc, eth = store.get("bitcoin"), store.get("ethereum")
    assert (btc.price_eur, btc.price_usd) == (50000, 54000)
    assert btc.change_24h_eur == -1.2
    assert (eth.price_eur, eth.price_usd) == (0, 0)


def test_merge_prices_never_regresses_known_price():
    store = PortfolioStore([Asset(id="bitcoin", symbol="BTC", name="Bitcoin", price_eur=50000, price_usd=54000)])
    store.merge_prices({"bitcoin": {"usd": 55000}})
    store.merge_prices({"bitcoin": {"eur": 0, "usd": None}})
    btc = store.get("bitcoin")
    assert btc.price_eur == 50000
    assert btc.price_usd == 55000


def test_merge_prices_ignores_malformed_payload():
    calls = []
    store = PortfolioStore([Asset(id="bitcoin", symbol="BTC", name="Bitcoin", price_eur=1.0)],
                           on_change=calls.append)
    assert store.merge_prices(["not", "a", "dict"]) == 0
    assert store.merge_prices({"bitcoin": "oops"}) == 0
    assert store.get("bitcoin").price_eur == 1.0
    assert calls == []


def test_from_records_skips_bad_rows_and_duplicates():
    records = [
        {"id": "bitcoin", "symbol": "BTC", "name": "Bitcoin", "holdings": -2, "target_percent": 250},
        {"symbol": "no id"},
        {"id": "bitcoin", "symbol": "BTC", "name": "dupe"},
    ]
    store = PortfolioStore.from_records(records)
    assert store.ids() == ["bitcoin"]
    btc = store.get("bitcoin")
    assert btc.holdings == 0
    assert btc.target_percent == 100
    assert btc.name == "Bitcoin"


@pytest.mark.parametrize("raw, expected", [
    ("1.234,50", 1234.5),
    ("1.234,50 €", 1234.5),
    ("$1,234.50", 1234.5),
    ("0,5", 0.5),
    ("12,75", 12.75),
    ("1,234,567", 1234567.0),
    ("1.234.567", 1234567.0),
])
def test_amounts_in_either_locale_style(raw, expected):
    store = PortfolioStore()
    store.add_asset(BTC)
    assert store.update_field("bitcoin", "buy_price", raw).buy_price == expected


def test_eur_formatted_amount_reads_back():
    from core.export import format_currency
    shown = format_currency(1234.5, "eur")
    store = PortfolioStore()
    store.add_asset(BTC)
    assert store.update_field("bitcoin", "buy_price", shown).buy_price == 1234.5


def test_category_normalised_on_construction():
    assert Asset(id="x", symbol="X", name="x", category="Safe").category == "safe"
    assert Asset(id="x", symbol="X", name="x", category="moon").category is None


def test_null_symbol_and_name_become_blank():
    a = PortfolioStore().add_asset({"id": "mystery", "symbol": None, "name": None})
    assert (a.symbol, a.name) == ("", "")
