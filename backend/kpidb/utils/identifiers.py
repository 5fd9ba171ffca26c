from __future__ import annotations

import os
import time
import uuid
from typing import Optional


def generate_uuid7() -> str:
    """
    Generate a UUIDv7 string (time-ordered).

    Used as the primary key default for every table so that identifiers
    never depend on an in-process counter.

    UUIDv7 layout per draft:
    - 48-bit Unix timestamp in milliseconds
    - 4-bit version (0b0111)
    - 74-bit randomness
    """
    ts_ms = int(time.time() * 1000)
    ts_bytes = ts_ms.to_bytes(6, "big", signed=False)
    rand_bytes = os.urandom(10)
    raw = bytearray(ts_bytes + rand_bytes)
    raw[6] = (raw[6] & 0x0F) | 0x70
    raw[8] = (raw[8] & 0x3F) | 0x80
    return str(uuid.UUID(bytes=bytes(raw)))


def kpi_side_effect_key(
    kpi_record_id: str,
    factory: str,
    tag: str,
    recipient: Optional[str] = None,
) -> str:
    """
    Idempotency key for a record spawned by a KPI automation run.

    Shape: ``kpi:<record id>:<factory>:<tag>[:<recipient>]``. The same
    inputs always produce the same key, so a re-run finds what an earlier
    run already created.
    """
    key = f"kpi:{kpi_record_id}:{factory}:{tag}"
    if recipient:
        key = f"{key}:{recipient.strip().lower()}"
    return key
