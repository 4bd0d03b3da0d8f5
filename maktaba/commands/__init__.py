"""CLI subcommands. Each module exposes ``run(args)`` (or one function per subcommand)."""

from maktaba.catalog import Catalog
from maktaba.config_loader import load_config
from maktaba.logging_config import setup_logging
from maktaba.watchlist import WatchlistStore


def load_runtime(args) -> tuple[dict, Catalog]:
    """Config + logging + catalog, shared by every command."""
    config = load_config(getattr(args, "config", None))
    log_cfg = config.get("logging", {})
    setup_logging(log_cfg.get("level", "INFO"), log_cfg.get("dir"))
    catalog = Catalog.load(config.get("catalog", {}).get("path") or None)
    return config, catalog


def open_watchlist(config: dict) -> WatchlistStore:
    store = WatchlistStore(config.get("watchlist", {}).get("path", "~/.local/share/maktaba/watchlist.db"))
    store.init_db()
    return store
