"""
Paths, logging setup, config load/save, safe_print.
"""

import os
import json
import sys
import logging
from pathlib import Path

from .constants import (
    PLUGIN_VERSION, IDLE_THRESHOLD_SEC, DEFAULT_SERVER_URL, DEFAULT_USER_ID,
    DEDUP_AT_LEAST_ONCE, DEDUP_MODES,
)


# ─── Paths ───────────────────────────────────────────────────────
# One data directory per user per machine. COLLECTOR_HOME overrides it.

def data_dir():
    return Path(os.environ.get("COLLECTOR_HOME", "~/.fatigue-collector")).expanduser()


BASE_DIR = data_dir()

CONFIG_FILE = BASE_DIR / "config.json"
LOG_FILE = BASE_DIR / "collector.log"
SESSIONS_FILE = BASE_DIR / "sessions.jsonl"
ERROR_LOG_FILE = BASE_DIR / "delivery_errors.jsonl"
DIFF_DIR = BASE_DIR / "diffs"


# ─── Safe print (no crash when stdout is gone) ───────────────────

def safe_print(*args, **kwargs):
    try:
        print(*args, **kwargs)
    except Exception:
        pass


# ─── Logging ─────────────────────────────────────────────────────

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

log = logging.getLogger("collector")


def setup_logging(log_file=None, level=logging.INFO):
    """Attach the file + console handlers. Safe to call more than once."""
    log_file = Path(log_file or LOG_FILE)
    log.setLevel(level)
    if log.handlers:
        return log

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        if log_file.exists() and log_file.stat().st_size > 1_000_000:
            log_file.write_text("")
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        log.addHandler(file_handler)
    except OSError as e:
        safe_print(f"Log file unavailable ({e}); logging to console only", file=sys.stderr)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    log.addHandler(console_handler)
    return log


# ─── Config Management ──────────────────────────────────────────

DEFAULTS = {
    "userId": DEFAULT_USER_ID,
    "serverUrl": DEFAULT_SERVER_URL,
    "idleThresholdSec": IDLE_THRESHOLD_SEC,
    "pluginVersion": PLUGIN_VERSION,
    "repoPath": None,
    "taskDedup": DEDUP_AT_LEAST_ONCE,
    "extractDiffs": True,
}

_ENV_KEYS = {
    "COLLECTOR_USER_ID": "userId",
    "COLLECTOR_SERVER_URL": "serverUrl",
    "COLLECTOR_IDLE_THRESHOLD_SEC": "idleThresholdSec",
    "COLLECTOR_TASK_DEDUP": "taskDedup",
    "COLLECTOR_EXTRACT_DIFFS": "extractDiffs",
}


def _read_config_file(config_file):
    """Load config.json from disk. Returns dict or None."""
    if config_file.exists():
        try:
            with open(config_file, "r") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else None
        except (json.JSONDecodeError, IOError):
            log.warning("Ignoring unreadable config file %s", config_file)
            return None
    return None


def _as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() not in ("0", "false", "no", "off", "")
    return bool(value)


def load_config(config_file=None, environ=None):
    """
    Build the config dict: environment > config.json > defaults.
    Never raises; bad values fall back to their defaults.
    """
    config_file = Path(config_file or CONFIG_FILE)
    environ = os.environ if environ is None else environ

    config = dict(DEFAULTS)
    stored = _read_config_file(config_file)
    if stored:
        for key in DEFAULTS:
            if key in stored:
                config[key] = stored[key]

    for env_key, key in _ENV_KEYS.items():
        value = environ.get(env_key)
        if value:
            config[key] = value

    try:
        config["idleThresholdSec"] = float(config["idleThresholdSec"])
        if config["idleThresholdSec"] < 0:
            raise ValueError(config["idleThresholdSec"])
    except (TypeError, ValueError):
        log.warning("Invalid idle threshold %r — using %ds",
                    config["idleThresholdSec"], IDLE_THRESHOLD_SEC)
        config["idleThresholdSec"] = float(IDLE_THRESHOLD_SEC)

    if config["taskDedup"] not in DEDUP_MODES:
        log.warning("Unknown task dedup mode %r — using %s", config["taskDedup"], DEDUP_AT_LEAST_ONCE)
        config["taskDedup"] = DEDUP_AT_LEAST_ONCE

    config["extractDiffs"] = _as_bool(config["extractDiffs"])
    config["serverUrl"] = str(config["serverUrl"]).rstrip("/")
    config["userId"] = str(config["userId"])
    return config

