"""
Constants: version, thresholds, intervals, timeouts and API paths.
"""

PLUGIN_VERSION = "1.2.0"

# ─── Thresholds ──────────────────────────────────────────────────
IDLE_THRESHOLD_SEC = 60        # Gap since last activity still counted as ACTIVE
TICK_INTERVAL_SEC = 1          # One accounting step per second
COMMIT_POLL_SEC = 2            # How often the HEAD reference files are stat'ed
ROLLOVER_DELAY_SEC = 1.0       # Pause between closing and reopening on commit

# ─── Network ─────────────────────────────────────────────────────
API_TIMEOUT_EVENT = 10         # Seconds for the session event POST
API_TIMEOUT_TASK = 10          # Task lookup / creation
API_TIMEOUT_AI_DETECTION = 30  # Diff upload can be large
CLOSE_TIMEOUT_SEC = 15         # Upper bound for close() awaiting delivery

# ─── Defaults ────────────────────────────────────────────────────
DEFAULT_SERVER_URL = "http://localhost:8000"
DEFAULT_USER_ID = "anonymous"
UNKNOWN_TASK_ID = "unknown-task"

DEDUP_AT_LEAST_ONCE = "at-least-once"
DEDUP_EXACTLY_ONCE = "exactly-once"
DEDUP_MODES = (DEDUP_AT_LEAST_ONCE, DEDUP_EXACTLY_ONCE)

# ─── Remote collector API ────────────────────────────────────────
EVENTS_PATH = "/api/v1/events/"
TASKS_PATH = "/api/v1/tasks"
LATEST_TASK_PATH = "/api/v1/tasks/getLatestTask/{user_id}"
TASK_BY_COMMIT_PATH = "/api/v1/tasks/getTaskID"
AI_DETECTION_PATH = "/api/v1/ai-detection"
