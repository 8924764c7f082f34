# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""TokenTrace SDK: LLM call tracing and cost accounting.

Records traces of LLM-backed operations, either manually or by wrapping an
OpenAI-compatible or Anthropic client so every call is traced with token
counts and cost. Finished traces and captured errors are delivered to the
ingest server in signed batches.

Quick Start:
    from tokentrace import TokenTraceClient

    client = TokenTraceClient()          # reads TOKENTRACE_* env vars
    openai = client.wrap_openai(OpenAI())
    openai.chat.completions.create(model="gpt-4o", messages=[...])
    await client.close()

Public API:
    - TokenTraceClient: Owns delivery and pricing; starts traces, wraps clients
    - TokenTraceConfig: Configuration (explicit or from environment)
    - Trace / Span: Manual tracing primitives
    - MODEL_COSTS / ModelRate: Built-in per-token pricing
    - init: Configure SDK logging
"""

from __future__ import annotations

__version__ = "0.1.0"
__all__ = [
    "TokenTraceClient",
    "TokenTraceConfig",
    "ConfigError",
    "Trace",
    "Span",
    "SpanType",
    "SpanStatus",
    "TraceStatus",
    "ErrorEvent",
    "MODEL_COSTS",
    "ModelRate",
    "detect_provider",
    "init",
    "__version__",
]

import logging

from tokentrace.client import TokenTraceClient
from tokentrace.config import ConfigError, TokenTraceConfig, get_config, reset_config
from tokentrace.costs import MODEL_COSTS, ModelRate
from tokentrace.models import ErrorEvent, SpanStatus, SpanType, TraceStatus
from tokentrace.providers import detect_provider
from tokentrace.tracer import Span, Trace


def init(
    *,
    log_level: str | None = None,
    debug: bool | None = None,
) -> None:
    """Configure the ``tokentrace`` logger.

    Any provided arguments override the corresponding TOKENTRACE_* environment
    variables.

    Args:
        log_level: Logging level name (overrides TOKENTRACE_LOG_LEVEL).
        debug: Enable debug logging to stderr (overrides TOKENTRACE_DEBUG).
    """
    import os

    if log_level is not None:
        os.environ["TOKENTRACE_LOG_LEVEL"] = log_level
    if debug is not None:
        os.environ["TOKENTRACE_DEBUG"] = str(debug).lower()

    reset_config()

    config = get_config()
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.getLogger("tokentrace").setLevel(level)

    if config.debug:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("[tokentrace] %(levelname)s %(name)s: %(message)s")
        )
        tokentrace_logger = logging.getLogger("tokentrace")
        if not tokentrace_logger.handlers:
            tokentrace_logger.addHandler(handler)
