"""
Entry point: wires the controller and drives it from a stdin line adapter.

The editor integration normally owns the event loop and emits into the
controller's signals. Standalone, this module plays that role with a small
line protocol on stdin:

    activity | edit | select | open | save   → on_activity
    file <identity>                          → on_file_change
    stats                                    → print the running totals
    quit                                     → close the session and exit
"""

import asyncio
import signal
import sys
import threading
from pathlib import Path

from .config import log, safe_print, load_config, setup_logging
from .constants import PLUGIN_VERSION
from .commit_watcher import CommitWatcher
from .session import SessionController

ACTIVITY_COMMANDS = frozenset({"activity", "edit", "select", "open", "save"})


def build_controller(config, repo_path):
    watcher = CommitWatcher(repo_path, config=config, extract_diffs=config["extractDiffs"])
    return SessionController(config, watcher=watcher)


def handle_command(controller, line):
    """Apply one adapter line. Returns False when the adapter should stop."""
    parts = line.strip().split(None, 1)
    if not parts:
        return True
    cmd = parts[0].lower()
    if cmd in ACTIVITY_COMMANDS:
        controller.on_activity.emit(cmd)
    elif cmd == "file":
        controller.on_file_change.emit(parts[1].strip() if len(parts) > 1 else "")
    elif cmd == "stats":
        safe_print(controller.stats())
    elif cmd in ("quit", "exit"):
        return False
    else:
        log.warning("Unknown adapter command: %r", cmd)
    return True


def _start_stdin_reader(loop, controller, stop_event):
    """
    Daemon thread: blocking readline, handed to the loop thread-safely.
    A daemon thread never holds up interpreter exit on a pending read.
    """

    def on_line(line):
        if not line or not handle_command(controller, line):
            stop_event.set()

    def reader():
        while True:
            line = sys.stdin.readline()
            try:
                loop.call_soon_threadsafe(on_line, line)
            except RuntimeError:
                return  # loop closed
            if not line:
                return

    t = threading.Thread(target=reader, name="stdin-adapter", daemon=True)
    t.start()
    return t


async def run(config, repo_path):
    controller = build_controller(config, repo_path)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            pass  # Windows: KeyboardInterrupt path in main()

    await controller.activate()
    _start_stdin_reader(loop, controller, stop_event)
    try:
        await stop_event.wait()
    finally:
        record = await controller.shutdown()
        if record is not None:
            log.info("Final session flushed (%ds active)", record.active_seconds)
    return controller


def main(argv=None):
    """Primary collector entry point."""
    argv = sys.argv[1:] if argv is None else argv
    config = load_config()
    setup_logging()

    repo_path = Path(argv[0] if argv else (config.get("repoPath") or ".")).resolve()
    safe_print(f"Session telemetry collector v{PLUGIN_VERSION}")
    log.info(
        "Starting (user=%s, server=%s, idle=%.0fs, dedup=%s, repo=%s)",
        config["userId"], config["serverUrl"], config["idleThresholdSec"],
        config["taskDedup"], repo_path,
    )

    try:
        asyncio.run(run(config, repo_path))
    except KeyboardInterrupt:
        safe_print("\nCollector stopped by user.")
    return 0
