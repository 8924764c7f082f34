# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""TokenTraceClient, the entry point applications hold on to.

The client owns one DeliveryPipeline and one CostTable. Traces started
through it, error events captured by it, and calls made through the
provider clients it wraps all end up in that pipeline.

Usage:
    client = TokenTraceClient(TokenTraceConfig(
        endpoint="https://ingest.example.com",
        project_key="tt_abc123",
        environment="production",
        release="1.4.2",
    ))

    openai_client = client.wrap_openai(AsyncOpenAI())
    await openai_client.chat.completions.create(model="gpt-4o", messages=[...])

    trace = client.start_trace("rag-answer", user_id="u-1")
    ...

    await client.close()
"""

from __future__ import annotations

import inspect
import logging
import traceback
from typing import Any, Awaitable, Callable, TypeVar

from tokentrace._internal.clock import wall_clock_ms
from tokentrace.config import TokenTraceConfig
from tokentrace.costs import CostTable, ModelRate
from tokentrace.exporter import DeliveryPipeline
from tokentrace.instrumentation import wrap_anthropic, wrap_openai
from tokentrace.models import ErrorEvent, IngestEvent, SpanStatus, SpanType, TraceStatus
from tokentrace.tracer import Span, Trace

logger = logging.getLogger("tokentrace")

C = TypeVar("C")
T = TypeVar("T")

_MAX_STACK_CHARS = 8192


class TokenTraceClient:
    """Records LLM traces and application errors and delivers them in batches.

    Args:
        config: SDK configuration. Defaults to ``TokenTraceConfig.from_env()``.
        transport: Replacement for the HTTP transport
            (``send(url, body, headers) -> TransportResult``).
    """

    def __init__(
        self,
        config: TokenTraceConfig | None = None,
        *,
        transport: Any | None = None,
    ) -> None:
        self._config = config or TokenTraceConfig.from_env()
        self.costs = CostTable()
        self.pipeline = DeliveryPipeline(self._config, transport=transport)

    @property
    def config(self) -> TokenTraceConfig:
        return self._config

    # ── LLM tracing ────────────────────────────────────────────────────

    def start_trace(
        self,
        name: str,
        *,
        session_id: str | None = None,
        user_id: str | None = None,
        input: str | None = None,
        metadata: dict[str, Any] | None = None,
        prompt_name: str | None = None,
        prompt_version: str | None = None,
    ) -> Trace:
        """Start a new trace; add spans with ``trace.start_span()``."""
        return Trace(
            name,
            self.pipeline,
            session_id=session_id,
            user_id=user_id,
            input=input,
            metadata=metadata,
            prompt_name=prompt_name,
            prompt_version=prompt_version,
        )

    def trace_generation(
        self,
        fn: Callable[[Span], T] | Callable[[Span], Awaitable[T]],
        *,
        name: str,
        model: str | None = None,
        provider: str | None = None,
        input: str | None = None,
        session_id: str | None = None,
        user_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Any:
        """Run ``fn(span)`` inside a trace holding a single generation span.

        ``fn`` is expected to end the span itself. The trace ends
        ``completed`` with the span's output, or ``error`` if ``fn`` raises,
        in which case the span is ended with the error (unless ``fn`` already
        ended it) and the exception propagates. If ``fn`` returns an awaitable
        (a coroutine function, or a plain function returning a coroutine),
        an awaitable is returned and the trace ends once it settles.
        """
        trace = self.start_trace(
            name, session_id=session_id, user_id=user_id, input=input, metadata=metadata
        )
        span = trace.start_span(
            SpanType.GENERATION, name=name, model=model, provider=provider, input=input
        )

        try:
            result = fn(span)
        except BaseException as exc:
            self._fail_generation(trace, span, exc)
            raise
        # Coroutine functions, and plain functions returning an awaitable
        if inspect.isawaitable(result):
            return self._finish_generation(result, trace, span)
        trace.end(TraceStatus.COMPLETED, output=span.output)
        return result

    async def _finish_generation(self, awaitable: Awaitable[T], trace: Trace, span: Span) -> T:
        try:
            result = await awaitable
        except BaseException as exc:
            self._fail_generation(trace, span, exc)
            raise
        trace.end(TraceStatus.COMPLETED, output=span.output)
        return result

    @staticmethod
    def _fail_generation(trace: Trace, span: Span, exc: BaseException) -> None:
        if not span.is_ended:
            span.end(SpanStatus.ERROR, error_message=str(exc) or type(exc).__name__)
        trace.end(TraceStatus.ERROR)

    # ── Auto-instrumentation ───────────────────────────────────────────

    def set_model_costs(
        self,
        model: str,
        rate: ModelRate | None = None,
        *,
        input: float | None = None,
        output: float | None = None,
    ) -> None:
        """Set per-token rates for ``model`` on this client.

        Overrides take precedence over the built-in MODEL_COSTS for every
        later instrumented call. Pass a ModelRate or both ``input`` and
        ``output``.
        """
        if rate is None:
            if input is None or output is None:
                raise TypeError("set_model_costs() needs a ModelRate or both input= and output=")
            rate = ModelRate(input, output)
        self.costs.set_rate(model, rate)

    def wrap_openai(self, client: C) -> C:
        """Trace every chat completion and embedding call made through ``client``."""
        return wrap_openai(client, self)

    def wrap_anthropic(self, client: C) -> C:
        """Trace every ``messages.create`` call made through ``client``."""
        return wrap_anthropic(client, self)

    # ── Error capture ──────────────────────────────────────────────────

    def capture(self, event: ErrorEvent) -> None:
        """Queue a structured error event for the ingest endpoint."""
        self.pipeline.enqueue_error(
            IngestEvent(
                timestamp=wall_clock_ms(),
                source=self._config.source,
                environment=self._config.environment,
                release=self._config.release,
                error_type=event.error_type,
                message=event.message,
                route_or_procedure=event.route or None,
                stack=event.stack[:_MAX_STACK_CHARS] if event.stack else None,
                http_status=event.http_status or None,
                request_id=event.request_id or None,
                user_id_hash=event.user_id_hash or None,
                metadata=event.metadata or None,
            )
        )

    def capture_error(self, exc: BaseException, **context: Any) -> None:
        """Capture an exception, with optional ErrorEvent fields as keywords."""
        stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        fields: dict[str, Any] = {
            "error_type": type(exc).__name__,
            "message": str(exc),
            "stack": stack,
        }
        fields.update(context)
        self.capture(ErrorEvent(**fields))

    # ── Delivery ───────────────────────────────────────────────────────

    async def flush(self) -> None:
        """Send everything buffered so far."""
        await self.pipeline.flush()

    async def close(self) -> None:
        """Stop periodic flushing and send what is left. Call before exit."""
        await self.pipeline.close()

    async def __aenter__(self) -> TokenTraceClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"TokenTraceClient(endpoint={self._config.endpoint!r})"
