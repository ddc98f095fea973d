"""Shared test fixtures for collector tests."""

import json

import pytest
import requests

from collector_core import http_client
from collector_core.config import DEFAULTS


class FakeResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self._data = data
        self.text = json.dumps(data) if data is not None else ""

    def json(self):
        if self._data is None:
            raise ValueError("no JSON body")
        return self._data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Stands in for http_client.http. Routes by (METHOD, path suffix)."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def route(self, method, path, response):
        """response: FakeResponse, an exception instance, or a callable(json) → FakeResponse."""
        self.routes[(method, path)] = response

    def _dispatch(self, method, url, json=None):
        self.calls.append((method, url, json))
        for (m, path), response in self.routes.items():
            if m == method and url.endswith(path):
                if isinstance(response, Exception):
                    raise response
                if callable(response):
                    return response(json)
                return response
        raise requests.ConnectionError(f"no route for {method} {url}")

    def post(self, url, json=None, timeout=None):
        return self._dispatch("POST", url, json)

    def get(self, url, params=None, timeout=None):
        return self._dispatch("GET", url)

    def calls_to(self, method, path):
        return [c for c in self.calls if c[0] == method and c[1].endswith(path)]


@pytest.fixture
def fake_http(monkeypatch):
    session = FakeSession()
    monkeypatch.setattr(http_client, "http", session)
    return session


@pytest.fixture
def config():
    cfg = dict(DEFAULTS)
    cfg.update({
        "userId": "u-42",
        "serverUrl": "http://collector.test",
        "idleThresholdSec": 15.0,
        "pluginVersion": "9.9.9",
    })
    return cfg


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
