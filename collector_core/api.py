"""
Remote collector API calls — session events, task lookup/creation, AI detection.

All functions are blocking (run via asyncio.to_thread, never on the loop).
No automatic retry: a failed call is logged and reported once.
"""

import requests

from .config import log
from .constants import (
    API_TIMEOUT_EVENT, API_TIMEOUT_TASK, API_TIMEOUT_AI_DETECTION,
    EVENTS_PATH, TASKS_PATH, LATEST_TASK_PATH, TASK_BY_COMMIT_PATH, AI_DETECTION_PATH,
)
from . import http_client


def _url(config, path):
    return f"{config['serverUrl']}{path}"


def _json_or_empty(resp):
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


# ─── Session events ──────────────────────────────────────────────

def send_event(config, payload):
    """
    POST one session payload. Raises requests.RequestException on network
    error or non-2xx (via raise_for_status); the caller handles durability.
    """
    url = _url(config, EVENTS_PATH)
    resp = http_client.http.post(url, json=payload, timeout=API_TIMEOUT_EVENT)
    resp.raise_for_status()
    log.info("Session event sent | task=%s | HTTP %d", payload.get("task_id"), resp.status_code)
    return True


# ─── Tasks ───────────────────────────────────────────────────────

def get_task_id_for_commit(config, commit_hash):
    """Existing task id tagged with commit_hash, or None. Raises on transport failure."""
    url = _url(config, TASK_BY_COMMIT_PATH)
    resp = http_client.http.post(url, json={"prev_commit_hash": commit_hash}, timeout=API_TIMEOUT_TASK)
    if resp.status_code == 404:
        return None
    resp.raise_for_status()
    task_id = _json_or_empty(resp).get("task_id")
    return str(task_id) if task_id else None


def create_task(config, title, description, prev_commit_hash=None):
    """Create a task record. Returns the new id. Raises on failure."""
    url = _url(config, TASKS_PATH)
    payload = {
        "user_id": config["userId"],
        "title": title,
        "description": description,
    }
    if prev_commit_hash:
        payload["prev_commit_hash"] = prev_commit_hash

    resp = http_client.http.post(url, json=payload, timeout=API_TIMEOUT_TASK)
    resp.raise_for_status()
    task_id = _json_or_empty(resp).get("ID")
    if not task_id:
        raise requests.RequestException(f"Task creation returned no ID: {resp.text[:200]}")
    log.info("Task created: %s (commit=%s)", task_id, (prev_commit_hash or "-")[:8])
    return str(task_id)


def get_latest_task(config):
    """Most recent task id for this user, or None. Raises on transport failure."""
    url = _url(config, LATEST_TASK_PATH.format(user_id=config["userId"]))
    resp = http_client.http.get(url, timeout=API_TIMEOUT_TASK)
    if resp.status_code == 404:
        return None
    resp.raise_for_status()
    task_id = _json_or_empty(resp).get("task_id")
    return str(task_id) if task_id else None


# ─── AI detection (side channel) ─────────────────────────────────

def send_ai_detection(config, commit_diff):
    """Forward a raw commit diff. Best-effort: returns True on success, never raises."""
    url = _url(config, AI_DETECTION_PATH)
    payload = {"user_id": config["userId"], "commit_diff": commit_diff}
    try:
        resp = http_client.http.post(url, json=payload, timeout=API_TIMEOUT_AI_DETECTION)
        if 200 <= resp.status_code < 300:
            log.info("AI detection response: %s", resp.text[:200])
            return True
        log.warning("AI detection failed: HTTP %d — %s", resp.status_code, resp.text[:200])
        return False
    except requests.RequestException as e:
        log.warning("AI detection network error: %s", e)
        return False
