"""
DeliveryPipeline — one session record → one telemetry POST, with local durability.

Every record is appended to the session log. The POST runs in a worker
thread bounded by a timeout. On failure, one structured line goes to the
delivery error log; if that write fails, to the secondary log; if that
fails too, to stderr. Never retried, never raises.
"""

import asyncio
import json
import sys
import time
from pathlib import Path

import requests

from .config import log, safe_print, SESSIONS_FILE, ERROR_LOG_FILE, LOG_FILE
from .constants import API_TIMEOUT_EVENT
from .models import build_payload, iso_utc
from .storage import append_jsonl, append_line
from . import api


class DeliveryPipeline:
    def __init__(self, config, sessions_file=None, error_file=None, secondary_file=None,
                 timeout=API_TIMEOUT_EVENT + 2, clock=time.time):
        self._config = config
        self.sessions_file = Path(sessions_file or SESSIONS_FILE)
        self.error_file = Path(error_file or ERROR_LOG_FILE)
        self.secondary_file = Path(secondary_file or LOG_FILE)
        self._timeout = timeout
        self._clock = clock

    async def deliver(self, record, task_id, plugin_version=None) -> bool:
        plugin_version = plugin_version or self._config.get("pluginVersion")
        payload = build_payload(record, task_id, plugin_version, self._clock())
        self._append_session(payload["features"])

        try:
            await asyncio.wait_for(
                asyncio.to_thread(api.send_event, self._config, payload),
                timeout=self._timeout,
            )
            return True
        except asyncio.TimeoutError:
            detail = f"timeout after {self._timeout}s"
        except requests.RequestException as e:
            detail = str(e) or type(e).__name__

        log.warning("Session delivery failed (task=%s): %s", payload["task_id"], detail)
        self._record_failure(payload, detail)
        return False

    def _append_session(self, features):
        try:
            append_jsonl(self.sessions_file, features)
        except OSError as e:
            log.warning("Failed to append session log %s: %s", self.sessions_file, e)

    def _record_failure(self, payload, detail):
        entry = {
            "ts": iso_utc(self._clock()),
            "error": detail,
            "task_id": payload["task_id"],
            "client_ts": payload["client_ts"],
            "payload": payload,
        }
        line = json.dumps(entry, ensure_ascii=False)

        try:
            append_line(self.error_file, line)
            return
        except OSError as e:
            log.warning("Error log %s unwritable: %s — trying secondary", self.error_file, e)

        try:
            append_line(self.secondary_file, "ERROR: delivery failed " + line)
            return
        except OSError as e:
            log.error("Secondary log %s unwritable: %s", self.secondary_file, e)

        safe_print("ERROR: telemetry delivery failed and could not be persisted: " + line,
                   file=sys.stderr)
