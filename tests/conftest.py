# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""Shared pytest fixtures for TokenTrace SDK tests."""

import asyncio
import json
import os
import threading

import pytest

from tokentrace._internal.transport import TransportResult
from tokentrace.client import TokenTraceClient
from tokentrace.config import TokenTraceConfig, reset_config


class RecordingTransport:
    """In-memory stand-in for HttpTransport that records every send."""

    def __init__(self, status_code=200, raises=None):
        self.status_code = status_code
        self.raises = raises
        self.calls = []
        self._lock = threading.Lock()

    def send(self, url, body, headers):
        with self._lock:
            self.calls.append((url, body, headers))
        if self.raises is not None:
            raise self.raises
        ok = 200 <= self.status_code < 300
        return TransportResult(
            success=ok,
            status_code=self.status_code,
            error=None if ok else f"HTTP {self.status_code}",
        )

    def bodies(self, path):
        return [json.loads(body) for url, body, _ in self.calls if url.endswith(path)]

    def traces(self):
        return [t for body in self.bodies("/v1/traces/batch") for t in body["traces"]]

    def events(self):
        return [e for body in self.bodies("/v1/ingest/batch") for e in body["events"]]


@pytest.fixture(autouse=True)
def reset_sdk():
    """Reset config singleton and TOKENTRACE_* env vars around each test."""
    for key in list(os.environ.keys()):
        if key.startswith("TOKENTRACE_"):
            del os.environ[key]
    reset_config()
    yield
    for key in list(os.environ.keys()):
        if key.startswith("TOKENTRACE_"):
            del os.environ[key]
    reset_config()


@pytest.fixture
def config():
    """A config pointing at a fake endpoint, with a long flush interval."""
    return TokenTraceConfig(
        endpoint="https://ingest.test",
        project_key="tt_test_key",
        environment="test",
        release="1.0.0",
        max_buffer_size=5,
        flush_interval_ms=60_000,
    )


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def client(config, transport):
    return TokenTraceClient(config, transport=transport)


@pytest.fixture
def flushed_traces(client, transport):
    """Flush the client and return every trace payload delivered so far."""

    def _flush():
        asyncio.run(client.flush())
        return transport.traces()

    return _flush


@pytest.fixture
def make_transport():
    """Factory for RecordingTransport with a chosen status or exception."""
    return RecordingTransport
