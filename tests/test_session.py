"""Tests for collector_core.session (SessionController lifecycle)."""

import asyncio

from collector_core.delivery import DeliveryPipeline
from collector_core.session import SessionController, ACTIVE, INACTIVE
from collector_core.signals import Signal
from collector_core.storage import read_jsonl
from collector_core.ticker import Ticker
from conftest import FakeResponse

EVENTS = "/api/v1/events/"
LOOKUP = "/api/v1/tasks/getTaskID"
CREATE = "/api/v1/tasks"


class _StubWatcher:
    def __init__(self, head=None):
        self.current_commit_hash = head
        self.on_commit_changed = Signal("commit_changed")
        self.started = False
        self.stopped = False

    async def start(self):
        self.started = True
        return True

    async def stop(self):
        self.stopped = True


def _controller(config, tmp_path, clock, watcher=None):
    pipeline = DeliveryPipeline(
        config,
        sessions_file=tmp_path / "sessions.jsonl",
        error_file=tmp_path / "errors.jsonl",
        secondary_file=tmp_path / "collector.log",
        clock=clock,
    )
    return SessionController(
        config,
        watcher=watcher,
        pipeline=pipeline,
        ticker=Ticker(interval=3600, clock=clock),
        clock=clock,
        rollover_delay=0,
    )


def _tick(controller, clock, n):
    for _ in range(n):
        clock.advance(1)
        controller.on_tick.emit(clock())


def test_close_produces_exactly_one_record(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(200))
    controller = _controller(config, tmp_path, clock)

    async def scenario():
        await controller.start()
        controller.on_activity.emit()
        _tick(controller, clock, 5)
        first = await controller.close()
        second = await controller.close()
        return first, second

    first, second = asyncio.run(scenario())

    assert first is not None
    assert second is None
    assert controller.last_record is first
    assert first.active_seconds == 5
    assert first.idle_seconds == 0
    assert len(fake_http.calls_to("POST", EVENTS)) == 1
    assert controller.state == INACTIVE


def test_ticks_outside_a_session_are_not_counted(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(200))
    controller = _controller(config, tmp_path, clock)

    async def scenario():
        _tick(controller, clock, 3)
        await controller.start()
        _tick(controller, clock, 2)
        return await controller.close()

    record = asyncio.run(scenario())
    assert record.active_seconds + record.idle_seconds == 2


def test_idle_scenario_through_signals(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(200))
    controller = _controller(config, tmp_path, clock)
    controller.context.activity.last_activity_at = clock() - 3600

    async def scenario():
        await controller.start()
        _tick(controller, clock, 20)
        return await controller.close()

    record = asyncio.run(scenario())
    assert record.idle_seconds == 20
    assert record.active_seconds == 0


def test_process_start_counts_as_activity(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(200))
    controller = _controller(config, tmp_path, clock)

    async def scenario():
        await controller.start()
        _tick(controller, clock, 20)
        return await controller.close()

    record = asyncio.run(scenario())
    # idleThresholdSec is 15 in the test config
    assert record.active_seconds == 15
    assert record.idle_seconds == 5


def test_file_changes_flow_into_record(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(200))
    controller = _controller(config, tmp_path, clock)

    async def scenario():
        await controller.start()
        for file_id in ["fileA", "fileA", "fileB"]:
            controller.on_file_change.emit(file_id)
        return await controller.close()

    assert asyncio.run(scenario()).file_switch_count == 2


def test_commit_rollover_tags_previous_task_and_starts_fresh(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(200))
    watcher = _StubWatcher(head="old111")
    fake_http.route("GET", "/api/v1/tasks/getLatestTask/u-42", FakeResponse(200, {}))
    controller = _controller(config, tmp_path, clock, watcher=watcher)

    async def scenario():
        fake_http.route("POST", LOOKUP, FakeResponse(200, {"task_id": "T1"}))
        await controller.activate()
        fake_http.route("POST", LOOKUP, FakeResponse(200, {"task_id": "T2"}))
        controller.on_file_change.emit("a.py")
        _tick(controller, clock, 4)
        await watcher.on_commit_changed.emit_async("new222")
        _tick(controller, clock, 2)
        return await controller.shutdown()

    last = asyncio.run(scenario())

    sessions = read_jsonl(tmp_path / "sessions.jsonl")
    assert len(sessions) == 2
    first = sessions[0]
    assert first["task_id"] == "T1"
    assert first["prev_commit_hash"] == "old111"
    assert first["active_seconds"] == 4
    assert first["file_switch_count"] == 1
    assert last.task_id == "T2"
    assert last.prev_commit_hash == "new222"
    assert last.active_seconds + last.idle_seconds == 2
    assert last.file_switch_count == 0
    assert watcher.started and watcher.stopped
    assert controller.last_record is last
    assert fake_http.calls_to("POST", CREATE) == []


class _GatedResolver:
    """Initial resolve blocks until released; commit resolves answer at once."""

    def __init__(self):
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    async def resolve_initial_task(self, commit_hash):
        self.entered.set()
        await self.gate.wait()
        return "T-OLD"

    async def resolve_task_for_commit(self, commit_hash):
        return "T-NEW"


def test_commit_during_activation_keeps_the_new_task(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(200))
    watcher = _StubWatcher(head="old111")
    controller = _controller(config, tmp_path, clock, watcher=watcher)

    async def scenario():
        controller.resolver = resolver = _GatedResolver()
        activation = asyncio.ensure_future(controller.activate())
        await resolver.entered.wait()
        await watcher.on_commit_changed.emit_async("new222")
        resolver.gate.set()
        await activation
        assert controller.state == ACTIVE
        return await controller.shutdown()

    record = asyncio.run(scenario())
    assert (record.prev_commit_hash, record.task_id) == ("new222", "T-NEW")
    assert len(read_jsonl(tmp_path / "sessions.jsonl")) == 1


def test_unresolved_task_uses_commit_hash_fallback(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(200))
    controller = _controller(config, tmp_path, clock)

    async def scenario():
        await controller.start()
        await controller.on_commit_detected("deadbeef")
        return await controller.shutdown()

    record = asyncio.run(scenario())
    assert record.task_id == "deadbeef"


def test_repeated_commit_event_does_not_roll_over_twice(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(200))
    fake_http.route("POST", LOOKUP, FakeResponse(200, {"task_id": "T5"}))
    controller = _controller(config, tmp_path, clock)

    async def scenario():
        await controller.start()
        await asyncio.gather(
            controller.on_commit_detected("abc"),
            controller.on_commit_detected("abc"),
        )
        assert controller.state == ACTIVE

    asyncio.run(scenario())
    assert len(read_jsonl(tmp_path / "sessions.jsonl")) == 1
    assert len(fake_http.calls_to("POST", EVENTS)) == 1


def test_delivery_failure_still_yields_record_and_fallback_entry(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(502))
    controller = _controller(config, tmp_path, clock)

    async def scenario():
        await controller.start()
        return await controller.shutdown()

    record = asyncio.run(scenario())
    assert record is not None
    assert len(read_jsonl(tmp_path / "errors.jsonl")) == 1


def test_stats_summary(fake_http, config, tmp_path, clock):
    controller = _controller(config, tmp_path, clock)

    async def scenario():
        await controller.start()
        controller.on_file_change.emit("a")
        _tick(controller, clock, 90)
        return controller.stats()

    assert asyncio.run(scenario()) == (
        "Session length: 1.5 min | Active: 15s | Idle: 75s | File switches: 1"
    )
