"""
ActivityMonitor + SessionAccumulator — per-session behavioral metrics.

The monitor turns editor signals (edit, selection, open, save, active-file
change) into "time of last activity" and "current file". The accumulator
classifies each 1-second tick as ACTIVE or IDLE against that timestamp.

PRIVACY: only timestamps and file identities — no document content.
"""

import time

from .constants import IDLE_THRESHOLD_SEC
from .models import SessionRecord


class ActivityMonitor:
    """Maintains last-activity time and the active file identity."""

    def __init__(self, context, clock=time.time):
        self._ctx = context
        self._clock = clock

    def record_activity(self, *_event):
        """Any activity signal. Extra event arguments from adapters are ignored."""
        self._ctx.activity.last_activity_at = self._clock()

    def record_file_activation(self, file_id):
        """
        Active file changed. Counts a switch only when the identity differs
        from the previous one; empty identities (no editor) never count.
        """
        self.record_activity()
        if file_id and file_id != self._ctx.activity.current_file_id:
            self._ctx.counters.file_switch_count += 1
            self._ctx.activity.current_file_id = file_id

    def seed_file(self, file_id):
        """Set the file already open at startup without counting a switch."""
        self._ctx.activity.current_file_id = file_id or ""


class SessionAccumulator:
    """Counts active vs idle ticks for the current session."""

    def __init__(self, context, idle_threshold=IDLE_THRESHOLD_SEC, clock=time.time):
        self._ctx = context
        self._clock = clock
        self.idle_threshold = idle_threshold

    def on_tick(self, now=None):
        """Classify one second. Returns "ACTIVE" or "IDLE"."""
        if now is None:
            now = self._clock()
        elapsed = now - self._ctx.activity.last_activity_at
        if elapsed <= self.idle_threshold:
            self._ctx.counters.active_seconds += 1
            return "ACTIVE"
        self._ctx.counters.idle_seconds += 1
        return "IDLE"

    @property
    def ticks(self):
        return self._ctx.counters.ticks

    def snapshot(self, session_end, task_id=None, prev_commit_hash=None):
        counters = self._ctx.counters
        return SessionRecord(
            session_start=self._ctx.session_start if self._ctx.session_start is not None else session_end,
            session_end=session_end,
            active_seconds=counters.active_seconds,
            idle_seconds=counters.idle_seconds,
            file_switch_count=counters.file_switch_count,
            task_id=task_id,
            prev_commit_hash=prev_commit_hash,
        )
