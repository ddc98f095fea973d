"""
collector_core — Session Telemetry Collector
============================================
Architecture: one asyncio event loop, no locks. Blocking I/O (HTTP, git)
runs in worker threads via asyncio.to_thread.

  constants.py      → Version, thresholds, timeouts, API paths
  config.py         → Paths, logging, config load/save, safe_print
  http_client.py    → HTTP session with pooling, no-retry policy, CA bundle
  signals.py        → Signal (typed observer / subscription points)
  state.py          → SessionContext (single source of truth)
  models.py         → SessionRecord (immutable) + telemetry payload
  ticker.py         → Ticker (1 Hz, loop.call_later)
  tracker.py        → ActivityMonitor + SessionAccumulator
  vcs.py            → git subprocess wrappers
  commit_watcher.py → CommitWatcher + diff extraction
  api.py            → Remote collector API calls
  tasks.py          → TaskResolver (check-then-create per commit)
  storage.py        → Append-only local artifacts
  delivery.py       → DeliveryPipeline (POST, durable fallback)
  session.py        → SessionController (lifecycle, rollover, shutdown)
  runner.py         → main() + stdin adapter
"""
