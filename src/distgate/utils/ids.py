"""Run identifiers: ``run-`` followed by a ULID (time-ordered, Crockford Base32)."""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable
from typing import Final

CROCKFORD_BASE32_ALPHABET: Final[str] = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
ULID_LENGTH: Final[int] = 26
ULID_RANDOM_BYTES: Final[int] = 10
RUN_ID_PREFIX: Final[str] = "run"

_RandBytes = Callable[[int], bytes]


def generate_run_id(
    *,
    timestamp_ms: int | None = None,
    randbytes: _RandBytes | None = None,
) -> str:
    ts_ms = time.time_ns() // 1_000_000 if timestamp_ms is None else timestamp_ms
    if ts_ms < 0 or ts_ms >= 1 << 48:
        raise ValueError("timestamp_ms must fit in 48 bits")

    random_bytes = (randbytes or secrets.token_bytes)(ULID_RANDOM_BYTES)
    if len(random_bytes) != ULID_RANDOM_BYTES:
        raise ValueError(f"randbytes must return exactly {ULID_RANDOM_BYTES} bytes")

    value = (ts_ms << 80) | int.from_bytes(random_bytes, "big")
    return f"{RUN_ID_PREFIX}-{_encode_crockford_base32(value, ULID_LENGTH)}"


def _encode_crockford_base32(value: int, length: int) -> str:
    mask = 0b11111
    chars = ["0"] * length
    working = value
    for index in range(length - 1, -1, -1):
        chars[index] = CROCKFORD_BASE32_ALPHABET[working & mask]
        working >>= 5
    return "".join(chars)


__all__ = ["RUN_ID_PREFIX", "ULID_LENGTH", "generate_run_id"]
