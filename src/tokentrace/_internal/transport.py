# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""HTTP transport for signed telemetry batches.

Posts an already-serialized body to the ingest server. Uses stdlib urllib
to avoid adding external dependencies (httpx, aiohttp).

Delivery is at-most-once: a batch is sent exactly one time and never
retried. Every failure (connection error, timeout, non-2xx status) is
reported through the returned TransportResult; ``send`` does not raise.
"""

from __future__ import annotations

import urllib.error
import urllib.request

_TIMEOUT_S = 10  # HTTP request timeout
_USER_AGENT = "tokentrace-sdk/0.1.0"


class TransportResult:
    """Result of an HTTP transport attempt."""

    __slots__ = ("success", "status_code", "error")

    def __init__(
        self,
        success: bool,
        status_code: int | None = None,
        error: str | None = None,
    ) -> None:
        self.success = success
        self.status_code = status_code
        self.error = error

    def __repr__(self) -> str:
        return f"TransportResult(success={self.success}, status={self.status_code})"


class HttpTransport:
    """Blocking HTTP POST client for batch delivery.

    The DeliveryPipeline runs ``send`` on a worker thread so the event loop
    never blocks on the network.

    Args:
        timeout_s: HTTP request timeout in seconds.
    """

    def __init__(self, timeout_s: float = _TIMEOUT_S) -> None:
        self._timeout = timeout_s

    def send(self, url: str, body: bytes, headers: dict[str, str]) -> TransportResult:
        """POST ``body`` to ``url`` with ``headers``.

        Args:
            url: Absolute endpoint URL.
            body: Serialized JSON request body.
            headers: Request headers (signature and project key included).

        Returns:
            TransportResult indicating success/failure.
        """
        req = urllib.request.Request(
            url,
            data=body,
            headers={"User-Agent": _USER_AGENT, **headers},
            method="POST",
        )
        try:
            # nosec B310 relies on the configured ingest endpoint
            with urllib.request.urlopen(req, timeout=self._timeout) as response:  # nosec B310
                status = response.getcode()
        except urllib.error.HTTPError as e:
            return TransportResult(success=False, status_code=e.code, error=f"HTTP {e.code}: {e.reason}")
        except (urllib.error.URLError, OSError, TimeoutError) as e:
            return TransportResult(success=False, error=f"Connection error: {e}")
        except Exception as e:
            return TransportResult(success=False, error=f"Unexpected error: {e}")

        if 200 <= status < 300:
            return TransportResult(success=True, status_code=status)
        return TransportResult(success=False, status_code=status, error=f"Unexpected status: {status}")

    def __repr__(self) -> str:
        return f"HttpTransport(timeout={self._timeout}s)"
