"""
Session Telemetry Collector — standalone entry point
=====================================================
PRIVACY: only activity timestamps, file identities and commit diffs of the
watched repository are recorded. No keystrokes, no screen content.

Usage:
    python collector.py [repo_path]

Reads adapter events from stdin (see collector_core.runner).
"""

import sys

from collector_core.runner import main

if __name__ == "__main__":
    sys.exit(main())
