# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""Provider detection from a client's configured base URL."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

logger = logging.getLogger("tokentrace")

PROVIDER_MAP: dict[str, str] = {
    "api.openai.com": "openai",
    "api.anthropic.com": "anthropic",
    "api.minimax.io": "minimax",
    "api.minimaxi.com": "minimax",
    "api.moonshot.ai": "kimi",
    "generativelanguage.googleapis.com": "google",
}

# Where SDK clients keep their base URL, most common first
_BASE_URL_PATHS: tuple[tuple[str, ...], ...] = (
    ("base_url",),
    ("_base_url",),
    ("baseURL",),
    ("_client", "base_url"),
    ("_options", "base_url"),
)


def _base_url(client: Any) -> str:
    for path in _BASE_URL_PATHS:
        value = client
        for attr in path:
            value = getattr(value, attr, None)
            if value is None:
                break
        if value:
            return str(value)
    return ""


def detect_provider(client: Any) -> str:
    """Classify a client object by the host its base URL points at.

    Known hosts map through PROVIDER_MAP; other hosts are returned as-is.
    Returns ``"unknown"`` when no base URL can be found or parsed. Never raises.
    """
    try:
        hostname = urlsplit(_base_url(client)).hostname
    except Exception:
        logger.debug("Could not read base URL from %r", type(client), exc_info=True)
        return "unknown"
    if not hostname:
        return "unknown"
    return PROVIDER_MAP.get(hostname, hostname)
