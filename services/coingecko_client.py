# services/coingecko_client.py
from __future__ import annotations
import time, random
from typing import Sequence, Dict, Any, List, Optional
import requests
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone

from core.assets import CURRENCIES
from utils.logging import get_logger

log = get_logger("coingecko")

API_BASE = "https://api.coingecko.com/api/v3"
PRICE_URL = f"{API_BASE}/simple/price"
SEARCH_URL = f"{API_BASE}/search"

SEARCH_LIMIT = 8

# Resilience tuning
MAX_RETRIES = 5                 # total attempts (first try + 4 retries)
BASE_BACKOFF = 0.6              # seconds (exponential)
MAX_BACKOFF = 8.0               # cap seconds
JITTER_RANGE = (0.0, 0.35)      # random jitter added to backoff


def _parse_retry_after(header_val: Optional[str]) -> float:
    """
    Returns seconds to wait per RFC7231 Retry-After:
      - if number: seconds
      - if HTTP-date: difference from now
      - else: 0
    """
    if not header_val:
        return 0.0
    header_val = header_val.strip()
    if header_val.isdigit():
        return float(int(header_val))
    try:
        dt = parsedate_to_datetime(header_val)
    except (TypeError, ValueError):
        return 0.0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = (dt - datetime.now(timezone.utc)).total_seconds()
    return max(0.0, delta)


def _sleep_backoff(attempt: int, retry_after_hdr: Optional[str]) -> None:
    # Prefer server's Retry-After if present and non-zero
    ra = _parse_retry_after(retry_after_hdr)
    if ra > 0:
        time.sleep(min(ra, MAX_BACKOFF * 4))
        return
    delay = min(MAX_BACKOFF, BASE_BACKOFF * (2 ** attempt))
    delay += random.uniform(*JITTER_RANGE)
    time.sleep(delay)


def _get_json(url: str, params: Dict[str, Any],
              session: Optional[requests.Session],
              timeout: tuple[float, float]) -> Any:
    """GET with Retry-After handling, backoff + jitter, and timing logs."""
    sess = session or requests.Session()

    last_exc: Optional[Exception] = None
    for attempt in range(MAX_RETRIES):
        t0 = time.perf_counter()
        try:
            r = sess.get(url, params=params, timeout=timeout)
            elapsed_ms = (time.perf_counter() - t0) * 1000.0

            # Rate limited
            if r.status_code == 429:
                ra = r.headers.get("Retry-After")
                log.warning("429 Too Many Requests (%.1f ms). Retry-After=%s", elapsed_ms, ra)
                _sleep_backoff(attempt, ra)
                continue

            # Transient 5xx
            if 500 <= r.status_code < 600:
                log.warning("%s on attempt %d (%.1f ms). Retrying...",
                            r.status_code, attempt + 1, elapsed_ms)
                _sleep_backoff(attempt, r.headers.get("Retry-After"))
                continue

            # Other errors raise
            r.raise_for_status()

            data = r.json()
            log.info("GET %s in %.1f ms (status %d).", url, elapsed_ms, r.status_code)
            return data

        except requests.HTTPError:
            # 4xx other than 429 will not get better by retrying
            raise
        except requests.Timeout as e:
            last_exc = e
            log.warning("Timeout on attempt %d. Retrying...", attempt + 1)
            _sleep_backoff(attempt, None)
        except requests.RequestException as e:
            last_exc = e
            log.warning("RequestException on attempt %d: %s. Retrying...", attempt + 1, type(e).__name__)
            _sleep_backoff(attempt, None)
        except ValueError as e:
            # body was not JSON
            last_exc = e
            log.warning("Malformed JSON on attempt %d. Retrying...", attempt + 1)
            _sleep_backoff(attempt, None)

    msg = f"Request to {url} failed after {MAX_RETRIES} attempts."
    if last_exc:
        msg += f" Last error: {type(last_exc).__name__}"
    log.error(msg)
    raise RuntimeError(msg)


def get_prices(ids: Sequence[str],
               session: Optional[requests.Session] = None,
               timeout: tuple[float, float] = (3.0, 10.0)) -> Dict[str, Any]:
    """
    Batch price lookup in both supported currencies with 24h change.
    Returns e.g. {"bitcoin": {"eur": 1.0, "usd": 1.1, "eur_24h_change": -0.4, ...}}.
    Ids the API has no data for are simply absent.
    Raises RuntimeError when every attempt failed.
    """
    if not ids:
        return {}
    params = {
        "ids": ",".join(ids),
        "vs_currencies": ",".join(CURRENCIES),
        "include_24hr_change": "true",
    }
    try:
        data = _get_json(PRICE_URL, params, session, timeout)
    except requests.HTTPError as e:
        raise RuntimeError(f"Price fetch rejected: {e}") from e
    if not isinstance(data, dict):
        raise RuntimeError(f"Unexpected price payload: {type(data).__name__}")
    log.info("Fetched prices for %d of %d ids.", len(data), len(ids))
    return data


def search_coins(query: str,
                 session: Optional[requests.Session] = None,
                 timeout: tuple[float, float] = (3.0, 10.0)) -> List[Dict[str, str]]:
    """
    Coin candidates for a free-text query, at most SEARCH_LIMIT of them.
    Never raises: any failure is logged and yields [].
    """
    q = (query or "").strip()
    if not q:
        return []
    try:
        data = _get_json(SEARCH_URL, {"query": q}, session, timeout)
    except (RuntimeError, requests.HTTPError) as e:
        log.warning("Search for %r failed: %s", q, e)
        return []

    coins = data.get("coins") if isinstance(data, dict) else None
    if not isinstance(coins, list):
        log.warning("Search for %r returned no coin list.", q)
        return []
    out = []
    for c in coins[:SEARCH_LIMIT]:
        if not isinstance(c, dict) or not c.get("id"):
            continue
        out.append({
            "id": str(c["id"]),
            "symbol": str(c.get("symbol") or ""),
            "name": str(c.get("name") or ""),
            "thumb": str(c.get("thumb") or ""),
        })
    return out
