# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""Pydantic v2 wire models for traces, spans and error events.

Field names match what the ingest server expects. Trace and span payloads
keep every field in the serialized output (absent values become ``null``);
error events drop their optional fields when unset.
"""

from __future__ import annotations

import enum
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SpanType(str, enum.Enum):
    """Kind of work a span represents."""

    GENERATION = "generation"
    TOOL = "tool"
    RETRIEVAL = "retrieval"
    CUSTOM = "custom"


class SpanStatus(str, enum.Enum):
    """Status of a completed span."""

    OK = "ok"
    ERROR = "error"


class TraceStatus(str, enum.Enum):
    """Lifecycle status of a trace."""

    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class SpanPayload(BaseModel):
    """Serialized form of a Span as sent inside a trace batch."""

    model_config = ConfigDict(frozen=True)

    id: str
    parent_span_id: str | None = None
    span_type: SpanType
    name: str
    model: str | None = None
    provider: str | None = None
    input: str | None = None
    output: str | None = None
    metadata: dict[str, Any] | None = None
    started_at: int = Field(description="Wall-clock start time in milliseconds since epoch")
    input_tokens: int | None = None
    output_tokens: int | None = None
    cost: float | None = None
    latency_ms: int | None = None
    time_to_first_token_ms: int | None = None
    status: SpanStatus | None = None
    error_message: str | None = None

    def to_export_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary suitable for JSON export / transport."""
        return self.model_dump(mode="json")


class TracePayload(BaseModel):
    """Immutable snapshot of a Trace, built when the trace ends."""

    model_config = ConfigDict(frozen=True)

    id: str
    session_id: str | None = None
    user_id: str | None = None
    name: str
    status: TraceStatus
    input: str | None = None
    output: str | None = None
    metadata: dict[str, Any] | None = None
    prompt_name: str | None = None
    prompt_version: str | None = None
    started_at: int
    ended_at: int | None = None
    spans: list[SpanPayload] = Field(default_factory=list)

    def to_export_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary suitable for JSON export / transport."""
        return self.model_dump(mode="json")


class ErrorEvent(BaseModel):
    """A structured application error handed to ``TokenTraceClient.capture``."""

    error_type: str
    message: str
    route: str | None = None
    stack: str | None = None
    http_status: int | None = None
    request_id: str | None = None
    user_id_hash: str | None = None
    metadata: dict[str, Any] | None = None


class IngestEvent(BaseModel):
    """An error event as it sits in the pending buffer and goes over the wire."""

    model_config = ConfigDict(frozen=True)

    timestamp: int
    source: str
    environment: str
    release: str
    error_type: str
    message: str
    route_or_procedure: str | None = None
    stack: str | None = None
    http_status: int | None = None
    request_id: str | None = None
    user_id_hash: str | None = None
    metadata: dict[str, Any] | None = None

    def to_export_dict(self) -> dict[str, Any]:
        """Serialize, leaving out optional fields that were never set."""
        return self.model_dump(mode="json", exclude_none=True)


class ErrorBatch(BaseModel):
    """Body of ``POST /v1/ingest/batch``."""

    events: list[IngestEvent]

    def to_json_bytes(self) -> bytes:
        return _compact_json({"events": [e.to_export_dict() for e in self.events]})


class TraceBatch(BaseModel):
    """Body of ``POST /v1/traces/batch``."""

    traces: list[TracePayload]

    def to_json_bytes(self) -> bytes:
        return _compact_json({"traces": [t.to_export_dict() for t in self.traces]})


def _compact_json(data: dict[str, Any]) -> bytes:
    return json.dumps(data, separators=(",", ":"), default=str).encode("utf-8")
