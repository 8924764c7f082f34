# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""Transparent instrumentation of LLM provider clients.

``wrap_openai`` and ``wrap_anthropic`` return an InstrumentedClient: a
delegating proxy that looks and behaves like the client it wraps. Only the
leaf methods on a few known attribute paths are replaced:

    OpenAI-compatible:  chat.completions.create, embeddings.create
    Anthropic:          messages.create

Everything else (other resources, attributes, methods added later) is read
straight from the wrapped object. Interception is by attribute path, not by
type, so any object with the right nested names can be wrapped, including a
bare mock holding only ``chat.completions.create``.

Each intercepted call opens a Trace with one ``generation`` span, invokes
the original method, pulls token usage and output text from the response,
prices the call, and ends both. Provider errors, cancellation included,
are recorded and re-raised untouched. Failures inside the bookkeeping
itself are logged and never reach the caller.

Usage:
    from openai import OpenAI
    openai_client = client.wrap_openai(OpenAI())
    openai_client.chat.completions.create(model="gpt-4o", messages=[...])
"""

from __future__ import annotations

import functools
import inspect
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Mapping, TypeVar

from tokentrace.models import SpanStatus, SpanType, TraceStatus
from tokentrace.providers import detect_provider

if TYPE_CHECKING:
    from tokentrace.client import TokenTraceClient
    from tokentrace.tracer import Span, Trace

logger = logging.getLogger("tokentrace")

C = TypeVar("C")


# ── Response shape helpers ─────────────────────────────────────────────


def _dig(obj: Any, *path: str | int) -> Any:
    """Follow ``path`` through attributes, mapping keys and sequence indexes.

    SDK responses are attribute objects, test doubles are often plain dicts;
    both are supported. Returns None as soon as a step is missing.
    """
    current = obj
    for step in path:
        if current is None:
            return None
        if isinstance(step, int):
            try:
                current = current[step]
            except (IndexError, KeyError, TypeError):
                return None
        elif isinstance(current, Mapping):
            current = current.get(step)
        else:
            current = getattr(current, step, None)
    return current


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _request_params(args: tuple, kwargs: dict) -> Mapping[str, Any]:
    """Request parameters: keyword arguments, or a mapping passed positionally."""
    if kwargs:
        return kwargs
    if args and isinstance(args[0], Mapping):
        return args[0]
    return {}


def _last_message(params: Mapping[str, Any]) -> str | None:
    messages = params.get("messages")
    if not messages:
        return None
    try:
        return json.dumps(list(messages)[-1:], default=str)
    except Exception:
        logger.debug("Could not serialize request messages", exc_info=True)
        return None


def _openai_chat_output(response: Any) -> str | None:
    return _as_text(_dig(response, "choices", 0, "message", "content"))


def _anthropic_output(response: Any) -> str | None:
    return _as_text(_dig(response, "content", 0, "text"))


def _no_output(response: Any) -> str | None:
    return None


# ── Routes ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CallRoute:
    """How to instrument one intercepted method.

    Attributes:
        path: Attribute path from the client root to the method.
        input_tokens_field: Key under ``response.usage`` holding input tokens.
        output_tokens_field: Key under ``response.usage`` holding output
            tokens, or None when the endpoint produces none.
        capture_input: Whether to record the last request message as input.
        extract_output: Pulls the output text out of a response.
    """

    path: tuple[str, ...]
    input_tokens_field: str
    output_tokens_field: str | None
    capture_input: bool
    extract_output: Callable[[Any], str | None]

    @property
    def method(self) -> str:
        return ".".join(self.path)


OPENAI_CHAT = CallRoute(
    path=("chat", "completions", "create"),
    input_tokens_field="prompt_tokens",
    output_tokens_field="completion_tokens",
    capture_input=True,
    extract_output=_openai_chat_output,
)

OPENAI_EMBEDDINGS = CallRoute(
    path=("embeddings", "create"),
    input_tokens_field="prompt_tokens",
    output_tokens_field=None,
    capture_input=False,
    extract_output=_no_output,
)

ANTHROPIC_MESSAGES = CallRoute(
    path=("messages", "create"),
    input_tokens_field="input_tokens",
    output_tokens_field="output_tokens",
    capture_input=True,
    extract_output=_anthropic_output,
)


# ── Call recording ─────────────────────────────────────────────────────


class CallRecorder:
    """Opens, fills in and closes the trace/span pair around one provider call."""

    def __init__(self, client: TokenTraceClient, provider: str, route: CallRoute) -> None:
        self._client = client
        self._provider = provider
        self._route = route
        self.trace_name = f"{provider}.{route.method}"

    def begin(self, args: tuple, kwargs: dict) -> tuple[Trace, Span, str] | None:
        """Open the trace and span. Returns None if telemetry could not start."""
        try:
            params = _request_params(args, kwargs)
            model = _as_text(params.get("model")) or "unknown"
            trace = self._client.start_trace(self.trace_name)
            span = trace.start_span(
                SpanType.GENERATION,
                name=self.trace_name,
                model=model,
                provider=self._provider,
                input=_last_message(params) if self._route.capture_input else None,
            )
            return trace, span, model
        except Exception:
            logger.debug("Failed to open trace for %s", self.trace_name, exc_info=True)
            return None

    def succeed(self, opened: tuple[Trace, Span, str] | None, response: Any) -> None:
        if opened is None:
            return
        trace, span, model = opened
        try:
            route = self._route
            usage = _dig(response, "usage")
            input_tokens = _as_int(_dig(usage, route.input_tokens_field))
            output_tokens = (
                _as_int(_dig(usage, route.output_tokens_field))
                if route.output_tokens_field
                else 0
            )
            cost = self._client.costs.compute(model, input_tokens, output_tokens)
            output = route.extract_output(response)

            span.end(
                SpanStatus.OK,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                cost=cost,
                output=output,
            )
            trace.end(TraceStatus.COMPLETED, output=output)
        except Exception:
            logger.debug("Failed to record response for %s", self.trace_name, exc_info=True)

    def fail(self, opened: tuple[Trace, Span, str] | None, exc: BaseException) -> None:
        if opened is None:
            return
        trace, span, _ = opened
        try:
            span.end(SpanStatus.ERROR, error_message=str(exc) or type(exc).__name__)
            trace.end(TraceStatus.ERROR)
        except Exception:
            logger.debug("Failed to record error for %s", self.trace_name, exc_info=True)

    async def _finish_awaitable(self, awaitable: Any, opened: tuple[Trace, Span, str] | None) -> Any:
        try:
            response = await awaitable
        except BaseException as exc:
            self.fail(opened, exc)
            raise
        self.succeed(opened, response)
        return response

    def instrument(self, method: Callable[..., Any]) -> Callable[..., Any]:
        """Wrap a bound provider method, keeping it sync or async as it was."""
        if inspect.iscoroutinefunction(method):

            @functools.wraps(method)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                opened = self.begin(args, kwargs)
                return await self._finish_awaitable(method(*args, **kwargs), opened)

            return async_wrapper

        @functools.wraps(method)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            opened = self.begin(args, kwargs)
            try:
                result = method(*args, **kwargs)
            except BaseException as exc:
                self.fail(opened, exc)
                raise
            # Async SDK clients return a coroutine from a plain method
            if inspect.isawaitable(result):
                return self._finish_awaitable(result, opened)
            self.succeed(opened, result)
            return result

        return wrapper


# ── Delegating proxy ───────────────────────────────────────────────────


class InstrumentedClient:
    """Proxy over a provider client that instruments a few nested methods.

    Reads resolve against the wrapped object every time, so the proxy
    tracks attributes that are replaced or added after wrapping. Writes and
    deletes go straight through to the wrapped object.

    Args:
        wrapped: The object being proxied (a client or one of its resources).
        recorders: Recorder per full method path.
        prefix: Path of ``wrapped`` from the client root.
    """

    __slots__ = ("_tt_wrapped", "_tt_recorders", "_tt_prefix")

    def __init__(
        self,
        wrapped: Any,
        recorders: Mapping[tuple[str, ...], CallRecorder],
        prefix: tuple[str, ...] = (),
    ) -> None:
        object.__setattr__(self, "_tt_wrapped", wrapped)
        object.__setattr__(self, "_tt_recorders", recorders)
        object.__setattr__(self, "_tt_prefix", prefix)

    def __getattr__(self, name: str) -> Any:
        wrapped = object.__getattribute__(self, "_tt_wrapped")
        value = getattr(wrapped, name)

        recorders = object.__getattribute__(self, "_tt_recorders")
        path = object.__getattribute__(self, "_tt_prefix") + (name,)

        recorder = recorders.get(path)
        if recorder is not None:
            if callable(value):
                return recorder.instrument(value)
            return value
        # Only proxy objects that actually continue an instrumented path
        for route in recorders:
            if route[: len(path)] == path and hasattr(value, route[len(path)]):
                return InstrumentedClient(value, recorders, path)
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(object.__getattribute__(self, "_tt_wrapped"), name, value)

    def __delattr__(self, name: str) -> None:
        delattr(object.__getattribute__(self, "_tt_wrapped"), name)

    def __dir__(self) -> list[str]:
        return dir(object.__getattribute__(self, "_tt_wrapped"))

    # Protocol methods are looked up on the type, so __getattr__ never sees
    # them. A wrapped object that returns itself hands back the proxy.

    def __enter__(self) -> Any:
        wrapped = object.__getattribute__(self, "_tt_wrapped")
        entered = wrapped.__enter__()
        return self if entered is wrapped else entered

    def __exit__(self, *exc_info: Any) -> Any:
        return object.__getattribute__(self, "_tt_wrapped").__exit__(*exc_info)

    async def __aenter__(self) -> Any:
        wrapped = object.__getattribute__(self, "_tt_wrapped")
        entered = await wrapped.__aenter__()
        return self if entered is wrapped else entered

    async def __aexit__(self, *exc_info: Any) -> Any:
        return await object.__getattribute__(self, "_tt_wrapped").__aexit__(*exc_info)

    @property  # type: ignore[misc]
    def __class__(self) -> type:
        return type(object.__getattribute__(self, "_tt_wrapped"))

    def __repr__(self) -> str:
        return repr(object.__getattribute__(self, "_tt_wrapped"))

    def __str__(self) -> str:
        return str(object.__getattribute__(self, "_tt_wrapped"))


def unwrap(obj: Any) -> Any:
    """Return the original object behind an InstrumentedClient (or ``obj``)."""
    if type(obj) is InstrumentedClient:
        return object.__getattribute__(obj, "_tt_wrapped")
    return obj


def _wrap(client: C, tracer: TokenTraceClient, provider: str, routes: list[CallRoute]) -> C:
    by_path = {route.path: CallRecorder(tracer, provider, route) for route in routes}
    return InstrumentedClient(client, by_path)  # type: ignore[return-value]


def wrap_openai(client: C, tracer: TokenTraceClient) -> C:
    """Instrument ``chat.completions.create`` and ``embeddings.create``.

    The provider name is detected from the client's base URL at wrap time,
    so OpenAI-compatible endpoints (MiniMax, Kimi, ...) are labelled
    correctly.
    """
    provider = detect_provider(client)
    return _wrap(client, tracer, provider, [OPENAI_CHAT, OPENAI_EMBEDDINGS])


def wrap_anthropic(client: C, tracer: TokenTraceClient) -> C:
    """Instrument ``messages.create``; the provider is always ``anthropic``."""
    return _wrap(client, tracer, "anthropic", [ANTHROPIC_MESSAGES])
