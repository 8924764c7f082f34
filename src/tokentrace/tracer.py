# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""Trace and Span, the manual tracing API of the TokenTrace SDK.

A Trace is one logical operation; it owns an ordered list of Spans, each a
single timed step such as one LLM call. Ending a trace snapshots it into an
immutable TracePayload and hands that to the trace's sink (normally the
DeliveryPipeline).

Usage:
    trace = client.start_trace("answer-question", user_id="u-1")
    span = trace.start_span("generation", model="gpt-4o", provider="openai")
    ...
    span.end("ok", input_tokens=100, output_tokens=50, output=text)
    trace.end("completed", output=text)

Both ``Span.end`` and ``Trace.end`` must be called at most once. A second
call is logged as a warning and ignored.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Protocol

from tokentrace._internal.clock import elapsed_ms, monotonic_ns, wall_clock_ms
from tokentrace.models import SpanPayload, SpanStatus, SpanType, TracePayload, TraceStatus

logger = logging.getLogger("tokentrace")


class TraceSink(Protocol):
    """Anything that accepts finished trace payloads."""

    def enqueue_trace(self, payload: TracePayload) -> None: ...


class Span:
    """A single timed unit of work within a Trace.

    Identity and request details are fixed at construction. The metric
    fields (status, tokens, cost, latency, output, error message) stay
    ``None`` until ``end()`` fills them in. ``end()`` records what it is
    given; it never computes cost.
    """

    __slots__ = (
        "id",
        "parent_span_id",
        "span_type",
        "name",
        "model",
        "provider",
        "input",
        "metadata",
        "started_at",
        "ended_at",
        "_start_mono_ns",
        "status",
        "input_tokens",
        "output_tokens",
        "cost",
        "latency_ms",
        "time_to_first_token_ms",
        "error_message",
        "output",
        "_ended",
    )

    def __init__(
        self,
        span_type: SpanType | str,
        name: str | None = None,
        model: str | None = None,
        provider: str | None = None,
        input: str | None = None,
        metadata: dict[str, Any] | None = None,
        parent_span_id: str | None = None,
    ) -> None:
        # Identity
        self.id: str = str(uuid.uuid4())
        self.parent_span_id: str | None = parent_span_id
        self.span_type: SpanType = SpanType(span_type)
        self.name: str = name or self.span_type.value

        # Request details
        self.model = model
        self.provider = provider
        self.input = input
        self.metadata = metadata

        # Timing: wall-clock for timestamps, monotonic for latency
        self.started_at: int = wall_clock_ms()
        self._start_mono_ns: int = monotonic_ns()
        self.ended_at: int | None = None

        # Set on end()
        self.status: SpanStatus | None = None
        self.input_tokens: int | None = None
        self.output_tokens: int | None = None
        self.cost: float | None = None
        self.latency_ms: int | None = None
        self.time_to_first_token_ms: int | None = None
        self.error_message: str | None = None
        self.output: str | None = None

        self._ended: bool = False

    def end(
        self,
        status: SpanStatus | str,
        *,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
        cost: float | None = None,
        error_message: str | None = None,
        output: str | None = None,
        time_to_first_token_ms: int | None = None,
    ) -> None:
        """End this span and record its metrics.

        Args:
            status: ``"ok"`` or ``"error"``.
            input_tokens: Prompt tokens consumed.
            output_tokens: Completion tokens produced.
            cost: Monetary cost, if the caller computed one.
            error_message: Failure description; expected when status is error.
            output: Output payload.
            time_to_first_token_ms: Streaming latency to the first token.
        """
        if self._ended:
            logger.warning("Span %s already ended; ignoring second end()", self.id)
            return
        status = SpanStatus(status)
        self._ended = True

        self.latency_ms = elapsed_ms(self._start_mono_ns, monotonic_ns())
        self.ended_at = self.started_at + self.latency_ms
        self.status = status
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.cost = cost
        self.error_message = error_message
        self.output = output
        self.time_to_first_token_ms = time_to_first_token_ms

    @property
    def is_ended(self) -> bool:
        """Whether this span has been ended."""
        return self._ended

    def to_model(self) -> SpanPayload:
        """Snapshot this span's current state as a SpanPayload."""
        return SpanPayload(
            id=self.id,
            parent_span_id=self.parent_span_id,
            span_type=self.span_type,
            name=self.name,
            model=self.model,
            provider=self.provider,
            input=self.input,
            output=self.output,
            metadata=self.metadata,
            started_at=self.started_at,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            cost=self.cost,
            latency_ms=self.latency_ms,
            time_to_first_token_ms=self.time_to_first_token_ms,
            status=self.status,
            error_message=self.error_message,
        )

    def serialize(self) -> dict[str, Any]:
        """Wire-format dict; unset optional fields are present as None."""
        return self.to_model().to_export_dict()

    def __repr__(self) -> str:
        status = self.status.value if self.status else "open"
        return f"Span(name={self.name!r}, id={self.id[:8]}..., status={status})"


class Trace:
    """A named logical operation grouping one or more Spans.

    The trace keeps a reference to its sink but does not manage it. After
    ``end()`` the trace has done its job: the payload it produced belongs
    to the sink.
    """

    def __init__(
        self,
        name: str,
        sink: TraceSink,
        *,
        session_id: str | None = None,
        user_id: str | None = None,
        input: str | None = None,
        metadata: dict[str, Any] | None = None,
        prompt_name: str | None = None,
        prompt_version: str | None = None,
    ) -> None:
        self.id: str = str(uuid.uuid4())
        self.name = name
        self.session_id = session_id
        self.user_id = user_id
        self.input = input
        self.metadata = metadata
        self.prompt_name = prompt_name
        self.prompt_version = prompt_version
        self.started_at: int = wall_clock_ms()
        self.ended_at: int | None = None
        self.status: TraceStatus = TraceStatus.RUNNING
        self.output: str | None = None
        self.spans: list[Span] = []
        self._sink = sink

    def start_span(
        self,
        span_type: SpanType | str,
        *,
        name: str | None = None,
        model: str | None = None,
        provider: str | None = None,
        input: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Span:
        """Create a root-level span in this trace and return it.

        The caller ends the span. Spans still open when the trace ends are
        serialized as they are, with their metric fields unset.
        """
        span = Span(
            span_type,
            name=name,
            model=model,
            provider=provider,
            input=input,
            metadata=metadata,
            parent_span_id=None,
        )
        self.spans.append(span)
        return span

    def end(self, status: TraceStatus | str, *, output: str | None = None) -> None:
        """End the trace and forward its payload to the sink."""
        if self.ended_at is not None:
            logger.warning("Trace %s already ended; ignoring second end()", self.id)
            return
        status = TraceStatus(status)

        self.ended_at = wall_clock_ms()
        self.status = status
        if output is not None:
            self.output = output

        payload = self.to_model()
        try:
            self._sink.enqueue_trace(payload)
        except Exception:
            logger.debug("Failed to queue trace %s for export", self.id, exc_info=True)

    @property
    def is_ended(self) -> bool:
        return self.ended_at is not None

    def to_model(self) -> TracePayload:
        """Snapshot the trace and all of its spans as a TracePayload."""
        return TracePayload(
            id=self.id,
            session_id=self.session_id,
            user_id=self.user_id,
            name=self.name,
            status=self.status,
            input=self.input,
            output=self.output,
            metadata=self.metadata,
            prompt_name=self.prompt_name,
            prompt_version=self.prompt_version,
            started_at=self.started_at,
            ended_at=self.ended_at,
            spans=[span.to_model() for span in self.spans],
        )

    def serialize(self) -> dict[str, Any]:
        return self.to_model().to_export_dict()

    def __repr__(self) -> str:
        return (
            f"Trace(name={self.name!r}, id={self.id[:8]}..., "
            f"status={self.status.value}, spans={len(self.spans)})"
        )
