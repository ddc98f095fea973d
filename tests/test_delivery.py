"""Tests for collector_core.delivery (DeliveryPipeline)."""

import asyncio
import time

import requests

from collector_core.delivery import DeliveryPipeline
from collector_core.models import SessionRecord
from collector_core.storage import read_jsonl
from conftest import FakeResponse

EVENTS = "/api/v1/events/"


def _record():
    return SessionRecord(
        session_start=1_700_000_000.0,
        session_end=1_700_000_120.0,
        active_seconds=100,
        idle_seconds=20,
        file_switch_count=4,
        task_id="T1",
        prev_commit_hash="abc",
    )


def _pipeline(config, tmp_path, clock, **kwargs):
    return DeliveryPipeline(
        config,
        sessions_file=tmp_path / "sessions.jsonl",
        error_file=tmp_path / "errors.jsonl",
        secondary_file=tmp_path / "collector.log",
        clock=clock,
        **kwargs,
    )


def test_success_appends_no_fallback_entry(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(201, {"ok": True}))
    pipeline = _pipeline(config, tmp_path, clock)

    ok = asyncio.run(pipeline.deliver(_record(), "T1", "1.0.0"))

    assert ok is True
    assert not (tmp_path / "errors.jsonl").exists()
    _, _, body = fake_http.calls_to("POST", EVENTS)[0]
    assert set(body) == {"client_ts", "plugin_version", "task_id", "features"}
    assert body["task_id"] == "T1"
    assert body["plugin_version"] == "1.0.0"
    assert body["features"]["active_seconds"] == 100


def test_every_record_goes_to_session_log(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(200))
    pipeline = _pipeline(config, tmp_path, clock)

    asyncio.run(pipeline.deliver(_record(), "T1"))

    sessions = read_jsonl(tmp_path / "sessions.jsonl")
    assert len(sessions) == 1
    assert sessions[0]["file_switch_count"] == 4


def test_http_error_appends_exactly_one_fallback_entry(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(503, {"error": "unavailable"}))
    pipeline = _pipeline(config, tmp_path, clock)

    ok = asyncio.run(pipeline.deliver(_record(), "T1", "1.0.0"))

    assert ok is False
    entries = read_jsonl(tmp_path / "errors.jsonl")
    assert len(entries) == 1
    entry = entries[0]
    assert entry["task_id"] == "T1"
    assert entry["client_ts"] == entry["payload"]["client_ts"]
    assert "503" in entry["error"]
    assert entry["payload"]["features"]["idle_seconds"] == 20
    assert len(fake_http.calls_to("POST", EVENTS)) == 1


def test_network_error_is_recorded_not_raised(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, requests.ConnectionError("connection refused"))
    pipeline = _pipeline(config, tmp_path, clock)

    assert asyncio.run(pipeline.deliver(_record(), "T1")) is False
    entries = read_jsonl(tmp_path / "errors.jsonl")
    assert len(entries) == 1
    assert "connection refused" in entries[0]["error"]


def test_timeout_is_recorded(fake_http, config, tmp_path, clock):
    def slow(_body):
        time.sleep(0.5)
        return FakeResponse(200)

    fake_http.route("POST", EVENTS, slow)
    pipeline = _pipeline(config, tmp_path, clock, timeout=0.05)

    assert asyncio.run(pipeline.deliver(_record(), "T1")) is False
    entries = read_jsonl(tmp_path / "errors.jsonl")
    assert len(entries) == 1
    assert "timeout" in entries[0]["error"]


def test_unwritable_error_log_falls_back_to_secondary(fake_http, config, tmp_path, clock):
    fake_http.route("POST", EVENTS, FakeResponse(500))
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    pipeline = DeliveryPipeline(
        config,
        sessions_file=tmp_path / "sessions.jsonl",
        error_file=blocker / "errors.jsonl",
        secondary_file=tmp_path / "collector.log",
        clock=clock,
    )

    assert asyncio.run(pipeline.deliver(_record(), "T1")) is False
    text = (tmp_path / "collector.log").read_text()
    assert text.startswith("ERROR: delivery failed ")
    assert '"task_id": "T1"' in text


def test_both_sinks_unwritable_goes_to_stderr(fake_http, config, tmp_path, clock, capsys):
    fake_http.route("POST", EVENTS, FakeResponse(500))
    blocker = tmp_path / "blocker"
    blocker.write_text("x")
    pipeline = DeliveryPipeline(
        config,
        sessions_file=tmp_path / "sessions.jsonl",
        error_file=blocker / "errors.jsonl",
        secondary_file=blocker / "collector.log",
        clock=clock,
    )

    assert asyncio.run(pipeline.deliver(_record(), "T1")) is False
    assert "could not be persisted" in capsys.readouterr().err
