# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for the TokenTraceClient facade."""

import asyncio
import os

import pytest

from tokentrace import ErrorEvent, ModelRate, TokenTraceClient
from tokentrace.models import SpanStatus


def test_client_defaults_to_env_config(transport):
    os.environ["TOKENTRACE_ENDPOINT"] = "https://env.example.com"
    os.environ["TOKENTRACE_RELEASE"] = "9.9.9"

    client = TokenTraceClient(transport=transport)

    assert client.config.endpoint == "https://env.example.com"
    assert client.config.release == "9.9.9"


def test_manual_trace_is_delivered(client, flushed_traces):
    trace = client.start_trace(
        "chat-completion",
        session_id="sess-123",
        user_id="user-456",
        input="What is the weather?",
        metadata={"source": "api"},
        prompt_name="weather-prompt",
        prompt_version="2.1",
    )
    span = trace.start_span("generation", model="gpt-4o", provider="openai")
    span.end("ok", input_tokens=100, output_tokens=50, cost=0.0025, output="Sunny")
    trace.end("completed", output="Sunny")

    traces = flushed_traces()
    assert len(traces) == 1
    data = traces[0]
    assert data["session_id"] == "sess-123"
    assert data["user_id"] == "user-456"
    assert data["prompt_version"] == "2.1"
    assert data["metadata"] == {"source": "api"}
    assert data["spans"][0]["cost"] == 0.0025


def test_unended_trace_is_not_delivered(client, flushed_traces):
    client.start_trace("never-ended")
    assert flushed_traces() == []


def test_trace_generation_sync(client, flushed_traces):
    def call(span):
        span.end("ok", input_tokens=10, output_tokens=5, output="Hi!")
        return "result"

    result = client.trace_generation(call, name="quick-gen", model="gpt-4o", provider="openai")

    assert result == "result"
    trace = flushed_traces()[0]
    assert trace["name"] == "quick-gen"
    assert trace["status"] == "completed"
    assert trace["output"] == "Hi!"
    assert trace["spans"][0]["span_type"] == "generation"
    assert trace["spans"][0]["model"] == "gpt-4o"


def test_trace_generation_async(client, transport):
    async def call(span):
        await asyncio.sleep(0)
        span.end("ok", output="async result")
        return 42

    async def run():
        value = await client.trace_generation(call, name="async-gen", input="Hello")
        await client.flush()
        return value

    assert asyncio.run(run()) == 42
    trace = transport.traces()[0]
    assert trace["input"] == "Hello"
    assert trace["spans"][0]["input"] == "Hello"
    assert trace["output"] == "async result"


def test_trace_generation_error_ends_span(client, flushed_traces):
    error = RuntimeError("model overloaded")

    def call(span):
        raise error

    with pytest.raises(RuntimeError) as excinfo:
        client.trace_generation(call, name="failing")

    assert excinfo.value is error
    trace = flushed_traces()[0]
    assert trace["status"] == "error"
    assert trace["spans"][0]["status"] == "error"
    assert trace["spans"][0]["error_message"] == "model overloaded"


def test_trace_generation_error_keeps_callback_span_state(client, flushed_traces):
    def call(span):
        span.end(SpanStatus.ERROR, error_message="recorded by callback")
        raise ValueError("raised afterwards")

    with pytest.raises(ValueError):
        client.trace_generation(call, name="failing")

    span = flushed_traces()[0]["spans"][0]
    assert span["error_message"] == "recorded by callback"


def test_trace_generation_async_error(client, transport):
    async def call(span):
        raise KeyError("missing")

    async def run():
        try:
            await client.trace_generation(call, name="async-fail")
        finally:
            await client.flush()

    with pytest.raises(KeyError):
        asyncio.run(run())

    assert transport.traces()[0]["status"] == "error"


def test_trace_generation_plain_function_returning_coroutine(client, transport):
    async def generate(span):
        await asyncio.sleep(0)
        span.end("ok", output="deferred result")
        return "done"

    def call(span):
        return generate(span)

    async def run():
        value = await client.trace_generation(call, name="deferred-gen")
        await client.flush()
        return value

    assert asyncio.run(run()) == "done"
    trace = transport.traces()[0]
    assert trace["status"] == "completed"
    assert trace["output"] == "deferred result"
    assert trace["spans"][0]["status"] == "ok"


def test_trace_generation_cancelled_callback_ends_trace(client, transport):
    async def call(span):
        await asyncio.sleep(5)

    async def run():
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(client.trace_generation(call, name="slow-gen"), 0.01)
        await client.flush()

    asyncio.run(run())

    trace = transport.traces()[0]
    assert trace["status"] == "error"
    assert trace["spans"][0]["status"] == "error"


def test_set_model_costs_forms(client):
    client.set_model_costs("my-custom-model", input=0.001, output=0.002)
    client.set_model_costs("gpt-4o", ModelRate(0.003, 0.01))

    assert client.costs.rate_for("my-custom-model") == ModelRate(0.001, 0.002)
    assert client.costs.rate_for("gpt-4o") == ModelRate(0.003, 0.01)


def test_set_model_costs_requires_both_rates(client):
    with pytest.raises(TypeError):
        client.set_model_costs("gpt-4o", input=0.1)


def test_cost_overrides_are_per_client(config, transport):
    first = TokenTraceClient(config, transport=transport)
    second = TokenTraceClient(config, transport=transport)
    first.set_model_costs("gpt-4o", input=1.0, output=1.0)

    assert second.costs.compute("gpt-4o", 100, 50) == pytest.approx(0.00075)


def test_capture_builds_ingest_event(client, transport):
    client.capture(
        ErrorEvent(
            error_type="HttpError",
            message="upstream failed",
            route="/api/users",
            http_status=502,
            request_id="req-1",
            metadata={"attempt": 2},
        )
    )
    asyncio.run(client.flush())

    event = transport.events()[0]
    assert event["source"] == "api"
    assert event["environment"] == "test"
    assert event["release"] == "1.0.0"
    assert event["error_type"] == "HttpError"
    assert event["route_or_procedure"] == "/api/users"
    assert event["http_status"] == 502
    assert event["request_id"] == "req-1"
    assert event["metadata"] == {"attempt": 2}
    assert "stack" not in event
    assert "user_id_hash" not in event
    assert event["timestamp"] > 0


def test_capture_error_truncates_stack(client, transport):
    try:
        raise ValueError("x" * 10_000)
    except ValueError as exc:
        client.capture_error(exc, route="/checkout")

    asyncio.run(client.flush())

    event = transport.events()[0]
    assert event["error_type"] == "ValueError"
    assert event["route_or_procedure"] == "/checkout"
    assert len(event["stack"]) == 8192
    assert event["stack"].startswith("Traceback")


def test_capture_threshold_flushes_in_background(client, transport, config):
    async def run():
        for i in range(config.max_buffer_size):
            client.capture(ErrorEvent(error_type="E", message=str(i)))
        for _ in range(200):
            if transport.calls:
                break
            await asyncio.sleep(0.01)
        await client.close()

    asyncio.run(run())

    assert len(transport.events()) == config.max_buffer_size
    assert len(transport.calls) == 1


def test_async_context_manager_closes(config, transport):
    async def run():
        async with TokenTraceClient(config, transport=transport) as client:
            client.start_trace("scoped").end("completed")

    asyncio.run(run())

    assert [t["name"] for t in transport.traces()] == ["scoped"]
