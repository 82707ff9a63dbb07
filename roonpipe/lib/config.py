"""
Shared configuration loader for RoonPipe.

Loads a single JSON config file per user.  Search order:
  1. $ROONPIPE_CONFIG                  (explicit override)
  2. ~/.config/roonpipe/config.json    (per-user install)
  3. config.json                       (CWD, for local dev)

The pairing token is not config; it lives in ~/.config/roonpipe/token and is
managed by roonpipe.core.

Usage:
    from roonpipe.lib.config import cfg

    socket_path = cfg("ipc", "socket_path", default="/tmp/roonpipe.sock")
    per_cat     = cfg("search", "max_results_per_category", default=5)
    core        = cfg("core")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

CONFIG_DIR = os.path.join(os.path.expanduser("~"), ".config", "roonpipe")


def _search_paths() -> list[str]:
    paths = []
    override = os.environ.get("ROONPIPE_CONFIG")
    if override:
        paths.append(override)
    paths.append(os.path.join(CONFIG_DIR, "config.json"))
    paths.append("config.json")
    return paths


def _validate(config: dict, path: str) -> None:
    """Warn about suspicious config values."""
    per_cat = (config.get("search") or {}).get("max_results_per_category")
    if per_cat is not None and (not isinstance(per_cat, int) or per_cat < 1):
        logger.warning("Config %s: search.max_results_per_category must be a positive int", path)
    core = config.get("core") or {}
    if core.get("port") and not core.get("host"):
        logger.warning("Config %s: core.port set without core.host; port ignored, using discovery", path)
    level = (config.get("logging") or {}).get("level")
    if level and str(level).upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        logger.warning("Config %s: unknown logging.level '%s'", path, level)


def load_config() -> dict:
    """Load config from the first JSON file found. Cached after first call."""
    global _config
    if _config is not None:
        return _config

    for path in _search_paths():
        try:
            with open(path) as f:
                _config = json.load(f)
                logger.info("Config loaded from %s", path)
                _validate(_config, path)
                return _config
        except FileNotFoundError:
            continue
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in %s: %s", path, e)
            continue

    logger.debug("No config.json found, using defaults")
    _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("core")                       → config["core"]
    cfg("core", "host")               → config["core"]["host"]
    cfg("images", "size", default=300)  → config["images"]["size"] or 300
    """
    config = load_config()
    val = config.get(section)
    if key is None:
        return val if val is not None else default
    if isinstance(val, dict):
        return val.get(key, default)
    return default


def reload_config():
    """Force re-read from disk (for testing or hot-reload)."""
    global _config
    _config = None
    return load_config()
