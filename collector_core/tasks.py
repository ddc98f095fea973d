"""
TaskResolver — maps a commit hash to a remote task id (check, then create).

The check-then-create pair is not atomic on the server. Two dedup modes:

  at-least-once  → every resolve asks the server first; two processes
                   resolving the same new commit may both create a task.
  exactly-once   → additionally serializes resolves per commit inside this
                   process and caches the answer, so one process never
                   creates twice. Cross-process races remain possible.
"""

import asyncio

import requests

from .config import log
from .constants import DEDUP_AT_LEAST_ONCE, DEDUP_EXACTLY_ONCE, UNKNOWN_TASK_ID
from . import api


def fallback_task_id(commit_hash=None):
    """Identifier used when no task could be resolved."""
    return commit_hash or UNKNOWN_TASK_ID


class TaskResolver:
    def __init__(self, config, dedup=None):
        self._config = config
        self.dedup = dedup or config.get("taskDedup", DEDUP_AT_LEAST_ONCE)
        self._locks = {}
        self._resolved = {}

    async def resolve_task_for_commit(self, commit_hash):
        """Return the task id for commit_hash, creating one if needed. None on failure."""
        if not commit_hash:
            return None
        if self.dedup != DEDUP_EXACTLY_ONCE:
            return await self._check_then_create(commit_hash)

        if commit_hash in self._resolved:
            return self._resolved[commit_hash]
        lock = self._locks.setdefault(commit_hash, asyncio.Lock())
        async with lock:
            if commit_hash in self._resolved:
                return self._resolved[commit_hash]
            task_id = await self._check_then_create(commit_hash)
            if task_id:
                self._resolved[commit_hash] = task_id
            return task_id

    async def _check_then_create(self, commit_hash):
        short = commit_hash[:8]
        try:
            existing = await asyncio.to_thread(api.get_task_id_for_commit, self._config, commit_hash)
        except requests.RequestException as e:
            log.warning("Task lookup failed for %s: %s — creating", short, e)
            existing = None
        if existing:
            log.info("Reusing task %s for commit %s", existing, short)
            return existing

        try:
            return await asyncio.to_thread(
                api.create_task,
                self._config,
                f"Work after commit {short}",
                f"Session task created automatically for commit {commit_hash}",
                commit_hash,
            )
        except requests.RequestException as e:
            log.warning("Task creation failed for %s: %s", short, e)
            return None

    async def resolve_initial_task(self, commit_hash=None):
        """Task for a session opened at startup: by commit if known, else the user's latest."""
        if commit_hash:
            task_id = await self.resolve_task_for_commit(commit_hash)
            if task_id:
                return task_id
        try:
            task_id = await asyncio.to_thread(api.get_latest_task, self._config)
        except requests.RequestException as e:
            log.warning("Latest task lookup failed: %s", e)
            return None
        if task_id:
            log.info("Using latest task %s for user %s", task_id, self._config["userId"])
        return task_id
