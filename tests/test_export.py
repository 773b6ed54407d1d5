import csv

from core.assets import Asset
from core.export import export_rows, write_csv, format_currency, HEADER
from core.portfolio import valuate


def _valuation(currency="eur"):
    return valuate([
        Asset(id="ethereum", symbol="ETH", name="Ethereum", holdings=0, price_eur=50, price_usd=55,
              target_percent=50),
        Asset(id="bitcoin", symbol="BTC", name="Bitcoin", holdings=1, buy_price=80, price_eur=100,
              price_usd=110, target_percent=50, category="safe"),
    ], currency)


def test_format_currency():
    assert format_currency(1234.5, "usd") == "$1,234.50"
    assert format_currency(1234.5, "eur") == "1.234,50 €"
    assert format_currency(-50, "usd") == "-$50.00"


def test_rows_follow_report_order_and_engine_values():
    rows = export_rows(_valuation())
    assert rows[0] == HEADER
    assert rows[1] == ["BTC", "Bitcoin", "safe", "1", "80", "100", "100.00", "20.00",
                       "100.00%", "50.00%", "SELL 50,00 €"]
    assert rows[2] == ["ETH", "Ethereum", "uncategorized", "0", "0", "50", "0.00", "0.00",
                       "0.00%", "50.00%", "BUY 50,00 €"]


def test_balanced_row_and_usd_formatting():
    v = valuate([Asset(id="bitcoin", symbol="BTC", name="Bitcoin", holdings=2, price_usd=100,
                       target_percent=100)], "usd")
    rows = export_rows(v)
    assert rows[1][5] == "100"
    assert rows[1][-1] == "Balanced"
    assert export_rows(_valuation("usd"))[1][-1] == "SELL $55.00"


def test_write_csv(tmp_path):
    out = write_csv(str(tmp_path / "portfolio.csv"), _valuation())
    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows == export_rows(_valuation())
