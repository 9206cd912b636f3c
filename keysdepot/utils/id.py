import os
import time
import uuid


def uuid7() -> str:
    """Time-ordered UUIDv7 string for primary keys.

    Rows inserted close together land close together in the key index.
    """
    unix_ms = time.time_ns() // 1_000_000
    rand = int.from_bytes(os.urandom(10), "big")

    value = (unix_ms & ((1 << 48) - 1)) << 80
    value |= 0x7 << 76                          # version
    value |= ((rand >> 62) & 0xFFF) << 64       # rand_a
    value |= 0b10 << 62                         # RFC 4122 variant
    value |= rand & ((1 << 62) - 1)             # rand_b
    return str(uuid.UUID(int=value))
