"""
SessionController — owns one SessionContext and the session lifecycle.

    INACTIVE ──start()──▶ ACTIVE (ticking) ──close()──▶ INACTIVE

One session per inter-commit interval: a new commit closes the running
session (tagged with the previous task/commit), waits briefly, resolves
the task for the new commit and starts the next session. Rollovers and
the final shutdown close are serialized by one asyncio.Lock, so sessions
never overlap and the process never exits with an unflushed record.

Subscription points for the host adapter:
  on_tick          ← Ticker (1 Hz)
  on_activity      ← edit / selection / open / save
  on_file_change   ← active file changed (file identity string)
  on_commit_changed← CommitWatcher
"""

import asyncio
import time

from .config import log
from .constants import ROLLOVER_DELAY_SEC, CLOSE_TIMEOUT_SEC
from .delivery import DeliveryPipeline
from .signals import Signal
from .state import SessionContext
from .tasks import TaskResolver, fallback_task_id
from .ticker import Ticker
from .tracker import ActivityMonitor, SessionAccumulator

INACTIVE = "INACTIVE"
ACTIVE = "ACTIVE"


class SessionController:
    def __init__(self, config, watcher=None, resolver=None, pipeline=None, ticker=None,
                 clock=time.time, rollover_delay=ROLLOVER_DELAY_SEC,
                 close_timeout=CLOSE_TIMEOUT_SEC):
        self._config = config
        self._clock = clock
        self._rollover_delay = rollover_delay
        self._close_timeout = close_timeout
        self._lock = asyncio.Lock()

        self.context = SessionContext()
        self.context.activity.last_activity_at = clock()
        self.monitor = ActivityMonitor(self.context, clock=clock)
        self.accumulator = SessionAccumulator(
            self.context, idle_threshold=config["idleThresholdSec"], clock=clock,
        )
        self.ticker = ticker or Ticker(clock=clock)
        self.resolver = resolver or TaskResolver(config)
        self.pipeline = pipeline or DeliveryPipeline(config, clock=clock)
        self.watcher = watcher

        self.state = INACTIVE
        self.last_record = None

        # ── Subscription points ───────────────────────────────
        self.on_tick = self.ticker.on_tick
        self.on_activity = Signal("activity")
        self.on_file_change = Signal("file_change")
        self.on_commit_changed = watcher.on_commit_changed if watcher else Signal("commit_changed")

        self.on_tick.subscribe(self._on_tick)
        self.on_activity.subscribe(self.monitor.record_activity)
        self.on_file_change.subscribe(self.monitor.record_file_activation)
        self.on_commit_changed.subscribe(self.on_commit_detected)

    # ─── Tick ────────────────────────────────────────────────

    def _on_tick(self, now=None):
        if self.state == ACTIVE:
            self.accumulator.on_tick(now)

    # ─── Lifecycle ───────────────────────────────────────────

    async def activate(self, initial_file=None):
        """
        Editor activation: start watching, resolve the opening task, start the session.

        The resolve runs outside the rollover lock; a commit that rolls over
        meanwhile owns the commit state, and this activation then leaves it alone.
        """
        if initial_file:
            self.monitor.seed_file(initial_file)
        if self.watcher is not None:
            await self.watcher.start()

        async with self._lock:
            if self.watcher is not None and self.state != ACTIVE:
                self.context.commit.commit_hash = self.watcher.current_commit_hash
            commit_hash = self.context.commit.commit_hash

        task_id = await self.resolver.resolve_initial_task(commit_hash)

        async with self._lock:
            if self.state == ACTIVE or self.context.commit.commit_hash != commit_hash:
                log.info("Session already opened by a commit rollover")
                return
            self.context.commit.task_id = task_id or fallback_task_id(commit_hash)
            await self.start()

    async def start(self):
        """Reset counters, stamp session_start and begin ticking."""
        if self.state == ACTIVE:
            return
        self.context.reset(self._clock())
        self.state = ACTIVE
        self.ticker.start()
        log.info("Session started (task=%s, commit=%s)",
                 self.context.commit.task_id, (self.context.commit.commit_hash or "none")[:8])

    async def close(self):
        """
        Stop ticking, snapshot exactly one SessionRecord and await its delivery
        (or durable fallback). Returns the record, or None if no session was open.
        """
        if self.state != ACTIVE:
            return None
        self.ticker.stop()
        self.state = INACTIVE

        commit = self.context.commit
        record = self.accumulator.snapshot(
            session_end=self._clock(),
            task_id=commit.task_id,
            prev_commit_hash=commit.commit_hash,
        )
        self.last_record = record
        log.info(
            "Session closed | active=%ds idle=%ds switches=%d task=%s",
            record.active_seconds, record.idle_seconds, record.file_switch_count, record.task_id,
        )

        try:
            await asyncio.wait_for(
                self.pipeline.deliver(record, commit.task_id, self._config.get("pluginVersion")),
                timeout=self._close_timeout,
            )
        except asyncio.TimeoutError:
            log.error("Session delivery did not finish within %ss", self._close_timeout)
        except Exception as e:
            log.error("Session delivery error: %s", e, exc_info=True)
        return record

    async def on_commit_detected(self, commit_hash):
        """Roll the session over: close (old task), pause, resolve new task, start."""
        # Stopping the watcher cancels its emit; the rollover itself must finish.
        await asyncio.shield(self._rollover(commit_hash))

    async def _rollover(self, commit_hash):
        async with self._lock:
            if commit_hash == self.context.commit.commit_hash:
                return
            log.info("Commit %s — rolling session over", commit_hash[:8])
            await self.close()
            await asyncio.sleep(self._rollover_delay)

            self.context.commit.commit_hash = commit_hash
            task_id = await self.resolver.resolve_task_for_commit(commit_hash)
            if task_id is None:
                log.warning("No task for commit %s — using fallback id", commit_hash[:8])
                task_id = fallback_task_id(commit_hash)
            self.context.commit.task_id = task_id
            await self.start()

    async def shutdown(self):
        """Process/editor shutdown: stop watching, then close and flush the last session."""
        self.ticker.stop()
        if self.watcher is not None:
            await self.watcher.stop()
        async with self._lock:
            return await self.close()

    # ─── Stats ───────────────────────────────────────────────

    def stats(self):
        """One-line summary of the running session."""
        start = self.context.session_start
        minutes = (self._clock() - start) / 60 if start is not None else 0.0
        c = self.context.counters
        return (
            f"Session length: {minutes:.1f} min | Active: {c.active_seconds}s | "
            f"Idle: {c.idle_seconds}s | File switches: {c.file_switch_count}"
        )
