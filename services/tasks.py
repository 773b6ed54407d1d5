# services/tasks.py
from __future__ import annotations
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

from core.store import PortfolioStore
from services.coingecko_client import get_prices, search_coins
from utils.logging import get_logger

log = get_logger("tasks")

SearchFn = Callable[[str], List[Dict[str, str]]]
FetchFn = Callable[[Sequence[str]], Dict[str, Any]]


class DebouncedSearch:
    """
    Runs `search_fn` once the query has been quiet for `delay_sec`.
    Each submit() cancels the pending timer and bumps a generation token,
    so a result for a superseded query is dropped instead of delivered.
    """

    def __init__(self, on_results: Callable[[str, List[Dict[str, str]]], None],
                 search_fn: SearchFn = search_coins,
                 delay_sec: float = 0.5,
                 min_query_len: int = 2):
        self.on_results = on_results
        self.search_fn = search_fn
        self.delay_sec = delay_sec
        self.min_query_len = min_query_len
        self.searching = False
        self._lock = threading.Lock()
        self._token = 0
        self._timer: Optional[threading.Timer] = None

    def submit(self, query: str) -> None:
        q = (query or "").strip()
        with self._lock:
            self._token += 1
            token = self._token
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if len(q) < self.min_query_len:
                self.searching = False
                deliver_empty = True
            else:
                deliver_empty = False
                self._timer = threading.Timer(self.delay_sec, self._run, args=(token, q))
                self._timer.daemon = True
                self._timer.start()
        if deliver_empty:
            self.on_results(q, [])

    def cancel(self) -> None:
        with self._lock:
            self._token += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self.searching = False

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until the pending timer (if any) has fired and finished."""
        with self._lock:
            timer = self._timer
        if timer is not None:
            timer.join(timeout)

    def _run(self, token: int, query: str) -> None:
        with self._lock:
            if token != self._token:
                return
            self.searching = True
        results = self.search_fn(query)
        with self._lock:
            if token != self._token:
                log.debug("Dropping stale results for %r", query)
                return
            self.searching = False
        self.on_results(query, results)


class PriceRefresher:
    """
    Fire-and-forget price refresh. Results are merged into the store by id,
    so overlapping refreshes are harmless: the last one to finish wins.
    """

    def __init__(self, store: PortfolioStore, fetch_fn: FetchFn = get_prices):
        self.store = store
        self.fetch_fn = fetch_fn
        self._lock = threading.Lock()
        self._in_flight = 0

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._in_flight > 0

    def submit(self, ids: Optional[Sequence[str]] = None) -> threading.Thread:
        wanted = list(ids) if ids is not None else self.store.ids()
        with self._lock:
            self._in_flight += 1
        t = threading.Thread(target=self._run, args=(wanted,), daemon=True)
        t.start()
        return t

    def refresh_now(self, ids: Optional[Sequence[str]] = None) -> int:
        """Synchronous variant; returns the number of assets updated."""
        wanted = list(ids) if ids is not None else self.store.ids()
        with self._lock:
            self._in_flight += 1
        return self._run(wanted)

    def _run(self, ids: List[str]) -> int:
        try:
            if not ids:
                return 0
            try:
                data = self.fetch_fn(ids)
            except RuntimeError as e:
                # stale-but-present prices beat blank ones
                log.warning("Price refresh failed, keeping previous prices: %s", e)
                return 0
            touched = self.store.merge_prices(data)
            log.info("Refreshed %d/%d assets.", touched, len(ids))
            return touched
        finally:
            with self._lock:
                self._in_flight -= 1
