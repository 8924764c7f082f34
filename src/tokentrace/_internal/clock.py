# Copyright 2026 TokenTrace Contributors
# SPDX-License-Identifier: Apache-2.0

"""Clock helpers for span and trace timing.

- wall_clock_ms(): Wall-clock time for absolute ``started_at``/``ended_at`` stamps
- monotonic_ns(): Monotonic clock for latency measurement

Latency is always measured on the monotonic clock so it cannot go negative
when the system clock is adjusted mid-span.
"""

import time


def wall_clock_ms() -> int:
    """Return current wall-clock time in milliseconds since epoch."""
    return time.time_ns() // 1_000_000


def monotonic_ns() -> int:
    """Return monotonic clock value in nanoseconds."""
    return time.monotonic_ns()


def elapsed_ms(start_mono_ns: int, end_mono_ns: int) -> int:
    """Milliseconds between two monotonic nanosecond readings, floored at zero."""
    return max(0, (end_mono_ns - start_mono_ns) // 1_000_000)
