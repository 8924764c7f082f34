# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""HMAC-SHA256 request signing.

The ingest server verifies ``X-Signature`` against the exact request body,
so the signature must be computed over the bytes that are actually sent.
"""

from __future__ import annotations

import hashlib
import hmac


def derive_signing_key(secret: str) -> bytes:
    """Turn the configured project key (or legacy secret) into raw key bytes."""
    return secret.encode("utf-8")


def sign(key: bytes, body: bytes) -> str:
    """Return the lowercase hex HMAC-SHA256 digest of ``body``."""
    return hmac.new(key, body, hashlib.sha256).hexdigest()
