"""
SessionRecord — the immutable per-session summary, and the telemetry payload.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional


def iso_utc(ts: float) -> str:
    """Epoch seconds → ISO-8601 UTC with a trailing Z."""
    return (
        datetime.fromtimestamp(ts, tz=timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


@dataclass(frozen=True)
class SessionRecord:
    session_start: float
    session_end: float
    active_seconds: int
    idle_seconds: int
    file_switch_count: int
    task_id: Optional[str] = None
    prev_commit_hash: Optional[str] = None

    @property
    def active_minutes(self) -> float:
        return round(self.active_seconds / 60, 2)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["session_start"] = iso_utc(self.session_start)
        data["session_end"] = iso_utc(self.session_end)
        data["active_minutes"] = self.active_minutes
        data["task_id"] = self.task_id or "unknown"
        if self.prev_commit_hash is None:
            data.pop("prev_commit_hash")
        return data


def build_payload(record: SessionRecord, task_id, plugin_version, now: float) -> dict:
    """Telemetry body for POST /api/v1/events/."""
    return {
        "client_ts": iso_utc(now),
        "plugin_version": plugin_version,
        "task_id": task_id or "unknown",
        "features": record.to_dict(),
    }
