"""
price_crypto — Initialization Vectors
=======================================

Helpers for producing and inspecting the 16-byte IV of an encrypted price.

The exchange's convention puts the auction time in the first 8 bytes:
  bytes 0..3   seconds since the epoch, big-endian
  bytes 4..7   microseconds within that second, big-endian
  bytes 8..15  random
The codec never checks this layout; any 16 bytes are a valid IV.
"""

import datetime
import os
import struct
import time
from typing import Optional

from .codec import IV_SIZE

_TIMESTAMP_FORMAT = ">II"
_TIMESTAMP_SIZE = struct.calcsize(_TIMESTAMP_FORMAT)


def generate_iv() -> bytes:
    """16 bytes from the OS CSPRNG."""
    return os.urandom(IV_SIZE)


def timestamp_iv(now: Optional[float] = None) -> bytes:
    """
    Build an IV whose first 8 bytes encode *now* (default: current time).

    The remaining 8 bytes are random so two auctions in the same
    microsecond still get distinct pads.
    """
    if now is None:
        now = time.time()
    seconds = int(now)
    micros = int(round((now - seconds) * 1_000_000))
    if micros >= 1_000_000:
        seconds, micros = seconds + 1, micros - 1_000_000
    prefix = struct.pack(_TIMESTAMP_FORMAT, seconds, micros)
    return prefix + os.urandom(IV_SIZE - _TIMESTAMP_SIZE)


def iv_timestamp(iv: bytes) -> datetime.datetime:
    """Recover the UTC auction time stored in the first 8 bytes of *iv*."""
    if len(iv) != IV_SIZE:
        raise ValueError(f"IV must be {IV_SIZE} bytes, got {len(iv)}")
    seconds, micros = struct.unpack(_TIMESTAMP_FORMAT, iv[:_TIMESTAMP_SIZE])
    epoch = datetime.datetime.fromtimestamp(seconds, tz=datetime.timezone.utc)
    return epoch + datetime.timedelta(microseconds=micros)
