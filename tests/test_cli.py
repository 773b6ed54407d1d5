import csv
import json

import pytest

import cli
import storage.json_store as js

COINS = [
    {"id": "wrapped-bitcoin", "symbol": "wbtc", "name": "Wrapped Bitcoin", "thumb": ""},
    {"id": "bitcoin", "symbol": "btc", "name": "Bitcoin", "thumb": ""},
]


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setattr(js, "HOME_DIR", str(tmp_path))
    monkeypatch.setattr(js, "ASSETS_PATH", str(tmp_path / "assets.json"))
    monkeypatch.setattr(js, "CONFIG_PATH", str(tmp_path / "config.json"))
    monkeypatch.setattr(cli, "search_coins", lambda q: list(COINS))
    monkeypatch.setattr(cli, "get_prices",
                        lambda ids: {i: {"eur": 100.0, "usd": 110.0, "eur_24h_change": 2.5} for i in ids})
    return tmp_path


def _saved(home):
    with open(home / "assets.json", encoding="utf-8") as f:
        return {r["id"]: r for r in json.load(f)}


def test_add_picks_exact_symbol_and_fetches_price(home, capsys):
    assert cli.main(["add", "btc", "--holdings", "2", "--target", "100", "--category", "safe"]) == 0
    rows = _saved(home)
    assert list(rows) == ["bitcoin"]
    btc = rows["bitcoin"]
    assert btc["holdings"] == 2
    assert btc["target_percent"] == 100
    assert btc["category"] == "safe"
    assert btc["price_eur"] == 100.0
    assert "Added BTC" in capsys.readouterr().out


def test_add_twice_keeps_one_asset(home, capsys):
    cli.main(["add", "btc"])
    cli.main(["add", "bitcoin", "--holdings", "1"])
    rows = _saved(home)
    assert list(rows) == ["bitcoin"]
    assert rows["bitcoin"]["holdings"] == 1
    assert "already in your portfolio" in capsys.readouterr().out


def test_add_with_pick(home):
    cli.main(["add", "bitcoin", "--pick", "1"])
    assert list(_saved(home)) == ["wrapped-bitcoin"]


def test_add_no_results(home, monkeypatch, capsys):
    monkeypatch.setattr(cli, "search_coins", lambda q: [])
    assert cli.main(["add", "zzz"]) == 1
    assert "No coins found" in capsys.readouterr().out


def test_set_coerces_bad_input(home):
    cli.main(["add", "btc"])
    cli.main(["set", "btc", "--holdings", "lots", "--buy-price", "-5", "--target", "140"])
    btc = _saved(home)["bitcoin"]
    assert (btc["holdings"], btc["buy_price"], btc["target_percent"]) == (0, 0, 100)


def test_set_unknown_coin(home, capsys):
    assert cli.main(["set", "doge", "--holdings", "1"]) == 1
    assert "not in your portfolio" in capsys.readouterr().out


def test_rm(home):
    cli.main(["add", "btc"])
    cli.main(["rm", "BTC"])
    assert _saved(home) == {}


def test_currency_is_persisted(home):
    assert cli.main(["currency", "usd"]) == 0
    assert js.read_config()["currency"] == "usd"


def test_show_keeps_stale_prices_when_fetch_fails(home, monkeypatch, capsys):
    cli.main(["add", "btc", "--holdings", "1", "--target", "100"])

    def failing(ids):
        raise RuntimeError("Price fetch failed after 5 attempts.")
    monkeypatch.setattr(cli, "get_prices", failing)
    capsys.readouterr()

    assert cli.main(["show"]) == 0
    out = capsys.readouterr().out
    assert "Health" in out
    assert _saved(home)["bitcoin"]["price_eur"] == 100.0


def test_show_empty_portfolio(home, capsys):
    assert cli.main(["show", "--offline"]) == 0
    assert "No assets yet" in capsys.readouterr().out


def test_export(home):
    cli.main(["add", "btc", "--holdings", "3", "--target", "100"])
    out = home / "out.csv"
    assert cli.main(["export", "--out", str(out)]) == 0
    with open(out, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[1][:3] == ["BTC", "Bitcoin", "uncategorized"]
    assert rows[1][6] == "300.00"
    assert rows[1][-1] == "Balanced"


def test_config_set_validates(home, capsys):
    assert cli.main(["config", "--set", "update_interval_sec=10"]) == 1
    assert cli.main(["config", "--set", "currency=usd", "search_debounce_ms=250"]) == 0
    cfg = js.read_config()
    assert cfg["currency"] == "usd"
    assert cfg["search_debounce_ms"] == 250


def test_add_fetches_price_before_reporting(home, monkeypatch):
    import threading
    fetch_threads = []

    def fetch(ids):
        fetch_threads.append(threading.current_thread())
        return {i: {"eur": 42.0, "usd": 45.0} for i in ids}
    monkeypatch.setattr(cli, "get_prices", fetch)

    assert cli.main(["add", "btc", "--holdings", "1"]) == 0
    # runs in the command's own thread, so nothing is left running on exit
    assert fetch_threads == [threading.main_thread()]
    assert _saved(home)["bitcoin"]["price_eur"] == 42.0
    assert [p.name for p in home.iterdir() if p.name.startswith(".tmp-")] == []
