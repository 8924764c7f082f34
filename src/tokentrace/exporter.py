# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""DeliveryPipeline: buffers telemetry and ships it in signed batches.

Two independent buffers are kept: captured error events and finished trace
payloads. Each is flushed as one signed POST per batch:

    errors -> POST {endpoint}/v1/ingest/batch   {"events": [...]}
    traces -> POST {endpoint}/v1/traces/batch   {"traces": [...]}

Flush triggers:
    - Periodic timer (flush_interval_ms)
    - Error buffer reaching max_buffer_size (detached, fire-and-forget)
    - Manual ``await flush()``
    - ``await close()``

Delivery is best-effort and at-most-once. A failed batch is logged and
dropped, never retried and never put back in the buffer. Threshold flushes
run as detached tasks; their failures are logged and never reach the code
that enqueued the event.

All of the pipeline's async machinery lives on one asyncio event loop. It
is started at construction if a loop is running, otherwise on the first
enqueue or flush made inside a loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

from tokentrace._internal.buffer import PendingBuffer
from tokentrace._internal.signing import derive_signing_key, sign
from tokentrace._internal.transport import HttpTransport, TransportResult
from tokentrace.config import TokenTraceConfig
from tokentrace.models import ErrorBatch, IngestEvent, TraceBatch, TracePayload

logger = logging.getLogger("tokentrace")

ERRORS_PATH = "/v1/ingest/batch"
TRACES_PATH = "/v1/traces/batch"


class DeliveryPipeline:
    """Collects error events and trace payloads and exports them in batches.

    Args:
        config: SDK configuration (endpoint, keys, thresholds).
        transport: Object with ``send(url, body, headers) -> TransportResult``.
            Defaults to an HttpTransport. ``send`` is called on a worker thread.
    """

    def __init__(
        self,
        config: TokenTraceConfig,
        transport: Any | None = None,
    ) -> None:
        self._config = config
        self._transport = transport or HttpTransport(timeout_s=config.timeout_s)
        self._errors: PendingBuffer[IngestEvent] = PendingBuffer()
        self._traces: PendingBuffer[TracePayload] = PendingBuffer()

        self._loop: asyncio.AbstractEventLoop | None = None
        self._signing_key: bytes | None = None
        self._key_task: asyncio.Task[None] | None = None
        self._timer_task: asyncio.Task[None] | None = None
        self._detached: set[asyncio.Task[None]] = set()
        self._closed = False

        # Stats
        self._sent_batches = 0
        self._failed_batches = 0
        self._sent_items = 0
        self._dropped_items = 0

        self._maybe_start()

    # ── Lifecycle ──────────────────────────────────────────────────────

    def _maybe_start(self) -> None:
        """Bind to the running loop and start key derivation and the timer."""
        if self._closed:
            return
        if self._loop is not None and not self._loop.is_closed():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._loop is not None:
            logger.debug("Previous event loop closed; rebinding delivery pipeline")
        self._loop = loop
        self._key_task = loop.create_task(self._derive_key())
        self._timer_task = loop.create_task(self._flush_periodically())

    async def _derive_key(self) -> None:
        self._signing_key = derive_signing_key(self._config.signing_secret)

    async def _signing_key_ready(self) -> bytes:
        if self._signing_key is None:
            task = self._key_task
            stale = task is not None and (
                task.cancelled()
                or (not task.done() and task.get_loop() is not asyncio.get_running_loop())
            )
            if task is None or stale:
                task = self._key_task = asyncio.ensure_future(self._derive_key())
            await task
        return self._signing_key or b""

    async def _flush_periodically(self) -> None:
        interval = self._config.flush_interval_s
        while True:
            await asyncio.sleep(interval)
            try:
                await self.flush()
            except Exception:
                logger.debug("Periodic flush failed", exc_info=True)

    async def close(self) -> None:
        """Stop the periodic timer and perform one final flush.

        Detached threshold flushes that are already in flight are not
        awaited. Calling close() again only flushes.
        """
        self._closed = True
        timer, self._timer_task = self._timer_task, None
        if timer is not None and not timer.done() and timer.get_loop() is asyncio.get_running_loop():
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
        await self.flush()

    # ── Producers ──────────────────────────────────────────────────────

    def enqueue_error(self, event: IngestEvent) -> None:
        """Buffer an error event; spawn a flush once the threshold is reached."""
        self._maybe_start()
        size = self._errors.add(event)
        if size >= self._config.max_buffer_size:
            self._spawn(self.flush())

    def enqueue_trace(self, payload: TracePayload) -> None:
        """Buffer a finished trace payload until the next flush."""
        self._maybe_start()
        self._traces.add(payload)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        """Run ``coro`` detached. Its outcome is only ever logged."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(coro)
            self._detached.add(task)
            task.add_done_callback(self._on_detached_done)
            return

        # Enqueued from a thread with no loop: hand the flush to ours
        if self._loop is not None and self._loop.is_running():
            future = asyncio.run_coroutine_threadsafe(coro, self._loop)
            future.add_done_callback(self._on_detached_done)
            return

        coro.close()
        logger.debug("No event loop available; threshold flush deferred to next flush()")

    def _on_detached_done(self, fut: Any) -> None:
        if isinstance(fut, asyncio.Task):
            self._detached.discard(fut)
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.warning("Background flush failed: %s", exc, exc_info=exc)

    # ── Flushing ───────────────────────────────────────────────────────

    async def flush(self) -> None:
        """Flush both buffers concurrently. Never raises on delivery failure.

        Both buffers are drained before the first suspension point, so the
        batches hold exactly what was buffered when ``flush()`` was awaited.
        """
        self._maybe_start()
        events = self._errors.drain()
        traces = self._traces.drain()
        await asyncio.gather(self._send_errors(events), self._send_traces(traces))

    async def _send_errors(self, events: list[IngestEvent]) -> None:
        if not events:
            return
        key = await self._signing_key_ready()
        try:
            body = ErrorBatch(events=events).to_json_bytes()
        except Exception:
            logger.warning("Failed to serialize %d error events; dropping batch", len(events), exc_info=True)
            self._dropped_items += len(events)
            return
        await self._deliver(ERRORS_PATH, body, key, len(events))

    async def _send_traces(self, traces: list[TracePayload]) -> None:
        if not traces:
            return
        key = await self._signing_key_ready()
        try:
            body = TraceBatch(traces=traces).to_json_bytes()
        except Exception:
            logger.warning("Failed to serialize %d traces; dropping batch", len(traces), exc_info=True)
            self._dropped_items += len(traces)
            return
        await self._deliver(TRACES_PATH, body, key, len(traces))

    def _headers(self, body: bytes, key: bytes) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Signature": sign(key, body),
        }
        if self._config.project_key:
            headers["X-Project-Key"] = self._config.project_key
        return headers

    async def _deliver(self, path: str, body: bytes, key: bytes, count: int) -> None:
        url = self._config.endpoint + path
        headers = self._headers(body, key)
        loop = asyncio.get_running_loop()
        try:
            result: TransportResult = await loop.run_in_executor(
                None, self._transport.send, url, body, headers
            )
        except Exception as exc:
            result = TransportResult(success=False, error=f"Transport raised: {exc}")

        if result.success:
            self._sent_batches += 1
            self._sent_items += count
            logger.debug("Delivered %d items to %s", count, path)
            return

        self._failed_batches += 1
        self._dropped_items += count
        logger.warning(
            "Batch of %d items to %s failed (%s); dropping",
            count, path, result.error or result.status_code,
        )

    # ── Introspection ──────────────────────────────────────────────────

    @property
    def stats(self) -> dict[str, int]:
        """Delivery statistics."""
        return {
            "sent_batches": self._sent_batches,
            "failed_batches": self._failed_batches,
            "sent_items": self._sent_items,
            "dropped_items": self._dropped_items,
            "pending_errors": self._errors.size,
            "pending_traces": self._traces.size,
        }

    def __repr__(self) -> str:
        return (
            f"DeliveryPipeline(endpoint={self._config.endpoint!r}, "
            f"errors={self._errors.size}, traces={self._traces.size})"
        )
