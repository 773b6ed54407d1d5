# storage/json_store.py
import io
import json
import os
import tempfile
from typing import Any, Dict, List

from core.assets import CURRENCIES, DEFAULT_CURRENCY
from utils.logging import get_logger

log = get_logger("store.json")

HOME_DIR = os.environ.get("CRYPTO_ALLOCATOR_HOME") or os.path.expanduser("~/.crypto_allocator")
ASSETS_PATH = os.path.join(HOME_DIR, "assets.json")
CONFIG_PATH = os.path.join(HOME_DIR, "config.json")

MIN_INTERVAL_SEC = 30

DEFAULT_CONFIG = {
    "currency": DEFAULT_CURRENCY,
    "update_interval_sec": 300,
    "search_debounce_ms": 500,
}


def ensure_home():
    os.makedirs(HOME_DIR, exist_ok=True)


def _atomic_write_text(path: str, text: str):
    ensure_home()
    directory = os.path.dirname(str(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=".tmp-", text=True)
    try:
        with io.open(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)


def write_json(path: str, data: Any):
    _atomic_write_text(path, json.dumps(data, ensure_ascii=False, indent=2))


def read_json(path: str, default: Any = None) -> Any:
    """Parsed file contents, or `default` if missing or not valid JSON."""
    if not os.path.exists(path):
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        log.warning("Could not read %s (%s); using defaults.", path, e)
        return default


# ---- Assets ----

def load_assets() -> List[Dict[str, Any]]:
    """Last-saved asset records, or [] if none or corrupt."""
    data = read_json(ASSETS_PATH, [])
    if not isinstance(data, list):
        log.warning("Ignoring %s: expected a list, got %s.", ASSETS_PATH, type(data).__name__)
        return []
    return [r for r in data if isinstance(r, dict)]


def save_assets(records: List[Dict[str, Any]]) -> bool:
    """Best-effort save; failures are logged, never raised."""
    try:
        write_json(ASSETS_PATH, records)
        return True
    except OSError as e:
        log.error("Failed to save assets: %s", e)
        return False


# ---- Config ----

def read_config() -> Dict[str, Any]:
    cfg = dict(DEFAULT_CONFIG)
    disk = read_json(CONFIG_PATH, {})
    if isinstance(disk, dict):
        cfg.update(disk)
    if cfg.get("currency") not in CURRENCIES:
        cfg["currency"] = DEFAULT_CURRENCY
    for key in ("update_interval_sec", "search_debounce_ms"):
        try:
            cfg[key] = int(cfg[key])
        except (TypeError, ValueError):
            cfg[key] = DEFAULT_CONFIG[key]
    cfg["update_interval_sec"] = max(MIN_INTERVAL_SEC, cfg["update_interval_sec"])
    return cfg


def write_config(cfg: dict) -> bool:
    """Atomic, best-effort write of config.json (known keys only)."""
    clean = {
        "currency": cfg.get("currency", DEFAULT_CONFIG["currency"]),
        "update_interval_sec": int(
            cfg.get("update_interval_sec", DEFAULT_CONFIG["update_interval_sec"])
        ),
        "search_debounce_ms": int(
            cfg.get("search_debounce_ms", DEFAULT_CONFIG["search_debounce_ms"])
        ),
    }
    try:
        write_json(CONFIG_PATH, clean)
        return True
    except OSError as e:
        log.error("Failed to save config: %s", e)
        return False


def ensure_config_exists():
    """Create config.json with defaults if missing."""
    if not os.path.exists(CONFIG_PATH):
        write_config(DEFAULT_CONFIG.copy())


def load_currency() -> str:
    return read_config()["currency"]


def save_currency(currency: str) -> bool:
    cfg = read_config()
    cfg["currency"] = currency
    return write_config(cfg)
