"""Time-ordered UUIDv7 ids for memory file names.

Layout follows RFC 9562: 48-bit unix milliseconds, version 7, a 12-bit
counter in ``rand_a`` that keeps ids strictly increasing within the same
millisecond, variant bits, then 62 random bits.
"""

from __future__ import annotations

import os
import time
import uuid

_COUNTER_MAX = 0xFFF


class UUID7Generator:
    """Monotonic within one generator (one per process is enough)."""

    def __init__(self) -> None:
        self._last_ms = 0
        self._counter = 0

    def __call__(self) -> uuid.UUID:
        now_ms = time.time_ns() // 1_000_000
        if now_ms > self._last_ms:
            self._last_ms = now_ms
            # Random start, top bit clear, leaves room to count upward.
            self._counter = int.from_bytes(os.urandom(2), "big") & 0x7FF
        else:
            # Same millisecond or the clock stepped back.
            self._counter += 1
            if self._counter > _COUNTER_MAX:
                self._last_ms += 1
                self._counter = 0

        rand_b = int.from_bytes(os.urandom(8), "big") & ((1 << 62) - 1)
        value = (
            (self._last_ms & ((1 << 48) - 1)) << 80
            | 0x7 << 76
            | self._counter << 64
            | 0b10 << 62
            | rand_b
        )
        return uuid.UUID(int=value)


uuid7 = UUID7Generator()
