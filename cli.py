# cli.py
import argparse
import json
import sys
from typing import Optional

from rich.console import Console
from rich.table import Table

from core.assets import CATEGORIES, CURRENCIES, CURRENCY_SYMBOLS
from core.export import format_action, format_currency, format_units, write_csv
from core.health import health_label, health_score
from core.portfolio import Valuation, valuate
from core.rebalance import category_summary, plan_rebalance, target_status
from core.store import PortfolioStore
from services.coingecko_client import get_prices, search_coins
from services.tasks import DebouncedSearch, PriceRefresher
from storage.json_store import (
    MIN_INTERVAL_SEC, ensure_config_exists, load_assets, load_currency,
    read_config, save_assets, save_currency, write_config,
)
from scheduler.runner import run_daemon
from utils.logging import get_logger
from utils.timeutils import utc_today

log = get_logger("cli")
console = Console()


def _persist(store: PortfolioStore):
    save_assets(store.to_records())
    if load_currency() != store.currency:
        save_currency(store.currency)


def _load_store() -> PortfolioStore:
    cfg = read_config()
    return PortfolioStore.from_records(load_assets(), currency=cfg["currency"], on_change=_persist)


def _require_asset(store: PortfolioStore, key: str):
    asset = store.find(key)
    if asset is None:
        raise ValueError(f"'{key}' is not in your portfolio. Use `crypto-alloc add {key}` first.")
    return asset


def _pnl_markup(amount: float, text: str) -> str:
    color = "green" if amount >= 0 else "red"
    return f"[{color}]{text}[/{color}]"


def _print_report(valuation: Valuation):
    cur = valuation.currency
    if not valuation.positions:
        console.print("No assets yet. Add one with `crypto-alloc add <coin>`.")
        return

    table = Table(title=f"Crypto Allocator ({cur.upper()})")
    table.add_column("Symbol", justify="left")
    table.add_column("Category", justify="left")
    table.add_column("Holdings", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("24h", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("P/L", justify="right")
    table.add_column("Now %", justify="right")
    table.add_column("Target %", justify="right")
    table.add_column("Action", justify="left")

    for pos, action in plan_rebalance(valuation):
        a = pos.asset
        change = "" if pos.change_24h is None else _pnl_markup(pos.change_24h, f"{pos.change_24h:+.2f}%")
        action_txt = format_action(action, cur)
        if action is not None:
            action_txt += f" ({format_units(action.units)} {a.symbol})" if action.units else " (no price yet)"
        table.add_row(
            a.symbol,
            a.category or "",
            format_units(a.holdings),
            format_currency(pos.price, cur),
            change,
            format_currency(pos.value, cur),
            _pnl_markup(pos.pnl, format_currency(pos.pnl, cur)),
            f"{pos.current_percent:.1f}%",
            f"{a.target_percent:.1f}%",
            action_txt,
        )
    console.print(table)

    score = health_score(valuation)
    console.print(f"Total value: [b]{format_currency(valuation.total_value, cur)}[/b]")
    console.print(
        "P/L: " + _pnl_markup(
            valuation.total_pnl,
            f"{format_currency(valuation.total_pnl, cur)} ({valuation.pnl_pct:+.2f}%)",
        )
    )
    console.print(f"Health: [b]{score}[/b] ({health_label(score)})")

    status, delta = target_status(valuation.total_target_percent)
    target_line = f"Targets: {valuation.total_target_percent:.0f}%"
    if status == "over":
        target_line += " [red]Over allocated![/red]"
    elif status == "under":
        target_line += f" ({delta:.0f}% to assign)"
    console.print(target_line)

    for cat, totals in category_summary(valuation).items():
        if not totals.count:
            continue
        label = cat or "uncategorized"
        console.print(
            f"  {label:<14} {format_currency(totals.value, cur):>16}  "
            f"{totals.percent_of_portfolio:.1f}% of portfolio, target {totals.target_percent:.0f}%"
        )


def _print_search_results(results):
    if not results:
        console.print("No coins found.")
        return
    t = Table(title="Search results")
    t.add_column("#", justify="right")
    t.add_column("Id", justify="left")
    t.add_column("Symbol", justify="left")
    t.add_column("Name", justify="left")
    for i, c in enumerate(results, 1):
        t.add_row(str(i), c["id"], c["symbol"].upper(), c["name"])
    console.print(t)


def _refresh(store: PortfolioStore) -> int:
    return PriceRefresher(store, fetch_fn=get_prices).refresh_now()


def _apply_edits(store: PortfolioStore, asset_id: str, args: argparse.Namespace) -> bool:
    edits = {
        "holdings": args.holdings,
        "buy_price": args.buy_price,
        "target_percent": args.target,
        "category": args.category,
    }
    changed = False
    for field, value in edits.items():
        if value is None:
            continue
        store.update_field(asset_id, field, value)
        changed = True
    return changed


def _pick_coin(results, query: str, pick: Optional[int]):
    if pick is not None:
        if not 1 <= pick <= len(results):
            raise ValueError(f"--pick must be between 1 and {len(results)}.")
        return results[pick - 1]
    q = query.strip().lower()
    for c in results:
        if c["id"].lower() == q:
            return c
    for c in results:
        if c["symbol"].lower() == q:
            return c
    return results[0]

# -------- Commands --------

def cmd_show(args: argparse.Namespace):
    store = _load_store()
    if args.currency:
        store.set_currency(args.currency)
    if not args.offline and store.ids():
        _refresh(store)
    _print_report(valuate(store.assets, store.currency))


def cmd_search(args: argparse.Namespace):
    if not args.interactive:
        _print_search_results(search_coins(args.query or ""))
        return

    cfg = read_config()
    searcher = DebouncedSearch(
        on_results=lambda q, results: _print_search_results(results) if q else None,
        search_fn=search_coins,
        delay_sec=cfg["search_debounce_ms"] / 1000.0,
    )
    console.print("Type a query (empty line or Ctrl+D to stop).")
    try:
        if args.query:
            searcher.submit(args.query)
        for line in sys.stdin:
            line = line.strip()
            if not line:
                break
            searcher.submit(line)
        searcher.wait()
    except KeyboardInterrupt:
        searcher.cancel()
        print("\nStopped.")


def cmd_add(args: argparse.Namespace):
    results = search_coins(args.query)
    if not results:
        print(f"No coins found for '{args.query}'.")
        return 1
    coin = _pick_coin(results, args.query, args.pick)

    store = _load_store()
    asset = store.add_asset(coin)
    if asset is None:
        asset = store.get(coin["id"])
        print(f"{asset.symbol} is already in your portfolio.")
    else:
        print(f"Added {asset.symbol} ({asset.name}).")
        # one follow-up fetch for the new asset only
        PriceRefresher(store, fetch_fn=get_prices).refresh_now([asset.id])

    _apply_edits(store, asset.id, args)
    _print_report(valuate(store.assets, store.currency))


def cmd_rm(args: argparse.Namespace):
    store = _load_store()
    asset = _require_asset(store, args.coin)
    store.remove_asset(asset.id)
    print(f"Removed {asset.symbol}.")


def cmd_set(args: argparse.Namespace):
    store = _load_store()
    asset = _require_asset(store, args.coin)
    if not _apply_edits(store, asset.id, args):
        print("Nothing to change. Use --holdings, --buy-price, --target or --category.")
        return 1
    print(f"Updated {asset.symbol}: holdings={format_units(asset.holdings)} "
          f"buy={asset.buy_price:g} target={asset.target_percent:g}% "
          f"category={asset.category or 'none'}")
    _print_report(valuate(store.assets, store.currency))


def cmd_currency(args: argparse.Namespace):
    store = _load_store()
    store.set_currency(args.code)
    print(f"Currency set to {store.currency.upper()} ({CURRENCY_SYMBOLS[store.currency]}).")


def cmd_refresh(args: argparse.Namespace):
    store = _load_store()
    ids = store.ids()
    if not ids:
        print("No assets to refresh.")
        return
    touched = _refresh(store)
    print(f"Updated prices for {touched}/{len(ids)} assets.")


def cmd_daemon(args: argparse.Namespace):
    cfg = read_config()
    interval = args.interval or int(cfg["update_interval_sec"])
    if interval < MIN_INTERVAL_SEC:
        raise ValueError(f"--interval must be >= {MIN_INTERVAL_SEC}.")

    def job():
        store = _load_store()
        if store.ids():
            _refresh(store)
        _print_report(valuate(store.assets, store.currency))

    print(f"Refreshing every {interval}s (Ctrl+C to stop).")
    run_daemon(job_fn=job, interval_sec=interval, jitter_sec=args.jitter)


def cmd_export(args: argparse.Namespace):
    store = _load_store()
    if not store.ids():
        print("No assets to export.")
        return
    valuation = valuate(store.assets, store.currency)
    out_path = write_csv(args.out or f"portfolio-{utc_today()}.csv", valuation)
    print(f"Exported {len(valuation.positions)} assets → {out_path}")


def _parse_kv_list(pairs: list[str]) -> dict:
    out = {}
    for item in pairs or []:
        if "=" not in item:
            raise ValueError(f"Expected key=value, got '{item}'")
        k, v = item.split("=", 1)
        out[k.strip()] = v.strip()
    return out


def cmd_config(args: argparse.Namespace):
    ensure_config_exists()
    cfg = read_config()

    if args.path:
        from storage.json_store import CONFIG_PATH
        print(CONFIG_PATH)
        return

    did_change = False
    if args.set:
        kv = _parse_kv_list(args.set)
        for k, v in kv.items():
            if k == "currency":
                if v.lower() not in CURRENCIES:
                    raise ValueError(f"currency must be one of: {', '.join(CURRENCIES)}")
                cfg["currency"] = v.lower()
            elif k in ("update_interval_sec", "search_debounce_ms"):
                try:
                    n = int(v)
                except ValueError:
                    raise ValueError(f"{k} must be an integer.")
                if k == "update_interval_sec" and n < MIN_INTERVAL_SEC:
                    raise ValueError(f"update_interval_sec must be >= {MIN_INTERVAL_SEC}.")
                if n < 0:
                    raise ValueError(f"{k} must be >= 0.")
                cfg[k] = n
            else:
                raise ValueError(
                    f"Unknown key '{k}'. Allowed: currency, update_interval_sec, search_debounce_ms"
                )
            did_change = True

    if did_change:
        write_config(cfg)
        print("Config updated.")

    if args.show or not args.set:
        print(json.dumps(cfg, indent=2, ensure_ascii=False))

# -------- Parser --------

def _add_edit_args(p: argparse.ArgumentParser):
    p.add_argument("--holdings", help="Quantity owned")
    p.add_argument("--buy-price", dest="buy_price", help="Average buy price per unit")
    p.add_argument("--target", help="Target allocation percent (0-100)")
    p.add_argument("--category", choices=list(CATEGORIES) + ["none"], help="Category tag")


def build_parser():
    p = argparse.ArgumentParser(prog="crypto-alloc", description="Crypto portfolio allocation tracker")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_show = sub.add_parser("show", help="Refresh prices and print the portfolio report")
    p_show.add_argument("--currency", choices=CURRENCIES, help="Switch display currency first")
    p_show.add_argument("--offline", action="store_true", help="Skip the price refresh")
    p_show.set_defaults(func=cmd_show)

    p_search = sub.add_parser("search", help="Search coins by name or symbol")
    p_search.add_argument("query", nargs="?", help="e.g., bitcoin, sol")
    p_search.add_argument("--interactive", "-i", action="store_true",
                          help="Read queries from stdin with debounced lookups")
    p_search.set_defaults(func=cmd_search)

    p_add = sub.add_parser("add", help="Add a coin found by search")
    p_add.add_argument("query", help="Coin id, symbol or name")
    p_add.add_argument("--pick", type=int, help="Pick the Nth search result (1-based)")
    _add_edit_args(p_add)
    p_add.set_defaults(func=cmd_add)

    p_rm = sub.add_parser("rm", help="Remove a coin from the portfolio")
    p_rm.add_argument("coin", help="Id or symbol, e.g., btc")
    p_rm.set_defaults(func=cmd_rm)

    p_set = sub.add_parser("set", help="Edit holdings, buy price, target or category")
    p_set.add_argument("coin", help="Id or symbol, e.g., btc")
    _add_edit_args(p_set)
    p_set.set_defaults(func=cmd_set)

    p_cur = sub.add_parser("currency", help="Select display currency")
    p_cur.add_argument("code", choices=CURRENCIES)
    p_cur.set_defaults(func=cmd_currency)

    p_ref = sub.add_parser("refresh", help="Fetch fresh prices for all coins")
    p_ref.set_defaults(func=cmd_refresh)

    p_daemon = sub.add_parser("daemon", help="Refresh and print on an interval")
    p_daemon.add_argument("--interval", type=int, help="Seconds between runs (overrides config)")
    p_daemon.add_argument("--jitter", type=int, default=10, help="±seconds jitter (default 10)")
    p_daemon.set_defaults(func=cmd_daemon)

    p_exp = sub.add_parser("export", help="Export the report to CSV")
    p_exp.add_argument("--out", help="Output CSV path (default portfolio-YYYY-MM-DD.csv)")
    p_exp.set_defaults(func=cmd_export)

    p_cfg = sub.add_parser("config", help="Show or edit configuration")
    p_cfg.add_argument("--show", action="store_true", help="Show current config")
    p_cfg.add_argument("--set", nargs="*",
                       help="Set key=value (currency, update_interval_sec, search_debounce_ms)")
    p_cfg.add_argument("--path", action="store_true", help="Print the config file path and exit")
    p_cfg.set_defaults(func=cmd_config)

    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args) or 0
    except ValueError as e:
        print(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
