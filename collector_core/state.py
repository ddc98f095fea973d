"""
SessionContext — single source of truth for all tracker state.

All mutations happen on the asyncio event-loop thread. No locks needed.
The controller owns one SessionContext and hands it to the monitor,
the accumulator and the resolver path; nothing lives in module globals.
"""

import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ActivityState:
    last_activity_at: float = field(default_factory=time.time)
    current_file_id: str = ""


@dataclass
class CommitState:
    commit_hash: Optional[str] = None
    task_id: Optional[str] = None


@dataclass
class SessionCounters:
    active_seconds: int = 0
    idle_seconds: int = 0
    file_switch_count: int = 0

    @property
    def ticks(self) -> int:
        return self.active_seconds + self.idle_seconds


@dataclass
class SessionContext:
    # ── Written by ActivityMonitor ────────────────────────────
    activity: ActivityState = field(default_factory=ActivityState)

    # ── Written by the controller after task resolution ───────
    commit: CommitState = field(default_factory=CommitState)

    # ── Written by SessionAccumulator / ActivityMonitor ───────
    counters: SessionCounters = field(default_factory=SessionCounters)
    session_start: Optional[float] = None

    def reset(self, now: float):
        """Start a fresh measurement window. Activity state carries over."""
        self.counters = SessionCounters()
        self.session_start = now
