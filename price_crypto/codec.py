"""
price_crypto — Winning-Price Codec
====================================

Encrypts and decrypts the winning price carried in an RTB price macro.

SCHEME (fixed by the exchange, byte-for-byte):
  pad       = HMAC-SHA1(encryption_key, iv)                 20 bytes, first 8 used
  masked    = price_be64 XOR pad[:8]                        8 bytes
  tag       = HMAC-SHA1(integrity_key, price_be64 || iv)[:4]
  wire      = iv (16) || masked (8) || tag (4)              28 bytes
  encoded   = unpadded URL-safe base64(wire)                38 characters

The tag covers the *clear* price followed by the IV.  Decryption unmasks
first, then recomputes the tag over the recovered price.

SECURITY RATIONALE:
  - Tags are compared with ``hmac.compare_digest``.
  - A mismatching tag raises one generic ``INTEGRITY_FAILURE``; wrong keys
    and tampered payloads are indistinguishable to the caller.
  - Nothing is cached: keys are borrowed for the duration of a call.
  - The IV is the caller's responsibility.  Reusing an IV with the same
    encryption key reuses the pad.
"""

import binascii
import hashlib
import hmac
import struct
from typing import NamedTuple, Optional, Tuple, Union

from .audit_log import AuditLog
from .errors import PriceError, PriceErrorCause
from .keys import Base64Variant

IV_SIZE = 16
PRICE_SIZE = 8
TAG_SIZE = 4
PAD_SIZE = hashlib.sha1().digest_size
WIRE_SIZE = IV_SIZE + PRICE_SIZE + TAG_SIZE
ENCODED_SIZE = 38
WIRE_ENCODING = Base64Variant.RAW_URL
MAX_PRICE = 2 ** 64 - 1

_PRICE_FORMAT = ">Q"


class WireFields(NamedTuple):
    """The three fixed-width fields of a 28-byte wire buffer."""
    iv: bytes
    masked_price: bytes
    tag: bytes


# ────────────────────────────────────────────────────────────
#  Primitives
# ────────────────────────────────────────────────────────────

def derive_pad(encryption_key: bytes, iv: bytes) -> bytes:
    """HMAC-SHA1 of *iv* under *encryption_key*; only the first 8 bytes mask the price."""
    return hmac.new(encryption_key, iv, hashlib.sha1).digest()


def mask_price(price_bytes: bytes, pad: bytes) -> bytes:
    """
    XOR 8 price bytes with the first 8 bytes of *pad*.

    Self-inverse: masking a masked price with the same pad recovers it.
    Any other operand width is treated as an integrity failure rather than
    silently truncated.
    """
    if len(price_bytes) != PRICE_SIZE or len(pad) < PRICE_SIZE:
        raise PriceError(
            PriceErrorCause.INTEGRITY_FAILURE,
            f"mask operands have widths {len(price_bytes)} and {len(pad)}",
        )
    return bytes(a ^ b for a, b in zip(price_bytes, pad[:PRICE_SIZE]))


def compute_tag(integrity_key: bytes, price_bytes: bytes, iv: bytes) -> bytes:
    """First 4 bytes of HMAC-SHA1(integrity_key, price_bytes || iv)."""
    return hmac.new(integrity_key, price_bytes + iv, hashlib.sha1).digest()[:TAG_SIZE]


def verify_tag(integrity_key: bytes, price_bytes: bytes, iv: bytes, tag: bytes) -> None:
    """Raise ``PriceError(INTEGRITY_FAILURE)`` unless *tag* matches."""
    expected = compute_tag(integrity_key, price_bytes, iv)
    if not hmac.compare_digest(expected, tag):
        raise PriceError(PriceErrorCause.INTEGRITY_FAILURE, "tag mismatch")


# ────────────────────────────────────────────────────────────
#  Framing
# ────────────────────────────────────────────────────────────

def split_wire_buffer(buffer: bytes) -> WireFields:
    """Split a decoded buffer into ``(iv, masked_price, tag)``."""
    if len(buffer) != WIRE_SIZE:
        raise PriceError(
            PriceErrorCause.WRONG_DECODED_LENGTH,
            f"expected {WIRE_SIZE} got {len(buffer)}",
        )
    return WireFields(
        iv=bytes(buffer[:IV_SIZE]),
        masked_price=bytes(buffer[IV_SIZE:IV_SIZE + PRICE_SIZE]),
        tag=bytes(buffer[IV_SIZE + PRICE_SIZE:]),
    )


def decode_wire(encoded: Union[str, bytes]) -> WireFields:
    """
    Length-check, base64-decode and split an encoded price.

    No keys are involved, so nothing returned here is authenticated yet.
    """
    if len(encoded) != ENCODED_SIZE:
        raise PriceError(
            PriceErrorCause.WRONG_ENCODED_LENGTH,
            f"expected {ENCODED_SIZE} got {len(encoded)}",
        )
    try:
        buffer = WIRE_ENCODING.decode(encoded)
    except binascii.Error as exc:
        raise PriceError(PriceErrorCause.BASE64_DECODE_FAILURE, str(exc)) from exc
    return split_wire_buffer(buffer)


def _check_keys(integrity_key: bytes, encryption_key: bytes) -> None:
    if not integrity_key or not encryption_key:
        missing = "integrity" if not integrity_key else "encryption"
        raise PriceError(PriceErrorCause.EMPTY_KEY, f"{missing} key is empty")


def _record(audit_log: Optional[AuditLog], event: str, err: Optional[PriceError] = None) -> None:
    if audit_log is None:
        return
    data = {"source": "price_crypto", "event": event}
    if err is not None:
        data["cause"] = err.cause.value
        data["detail"] = err.detail
    audit_log.append_entry(data)


# ────────────────────────────────────────────────────────────
#  End-to-end operations
# ────────────────────────────────────────────────────────────

def encrypt_price(
    integrity_key: bytes,
    encryption_key: bytes,
    iv: bytes,
    price: int,
    audit_log: Optional[AuditLog] = None,
) -> str:
    """
    Encrypt *price* into its 38-character macro form.

    Raises:
        PriceError: ``EMPTY_KEY`` or ``INVALID_IV_LENGTH``.
        ValueError: *price* does not fit an unsigned 64-bit integer.
    """
    try:
        _check_keys(integrity_key, encryption_key)
        if iv is None or len(iv) != IV_SIZE:
            raise PriceError(
                PriceErrorCause.INVALID_IV_LENGTH,
                f"expected {IV_SIZE} got {0 if iv is None else len(iv)}",
            )
    except PriceError as err:
        _record(audit_log, "price_encrypt_failed", err)
        raise

    if not 0 <= price <= MAX_PRICE:
        raise ValueError(f"price {price} is outside the unsigned 64-bit range")

    iv = bytes(iv)
    price_bytes = struct.pack(_PRICE_FORMAT, price)
    masked = mask_price(price_bytes, derive_pad(encryption_key, iv))
    tag = compute_tag(integrity_key, price_bytes, iv)

    _record(audit_log, "price_encrypted")
    return WIRE_ENCODING.encode(iv + masked + tag).decode("ascii")


def decrypt_price_with_iv(
    integrity_key: bytes,
    encryption_key: bytes,
    encoded: Union[str, bytes],
    audit_log: Optional[AuditLog] = None,
) -> Tuple[int, bytes]:
    """
    Decrypt and authenticate an encoded price.

    Returns ``(price, iv)``; the IV carries the auction timestamp
    (see ``iv.iv_timestamp``).

    Raises:
        PriceError: any of ``EMPTY_KEY``, ``WRONG_ENCODED_LENGTH``,
            ``BASE64_DECODE_FAILURE``, ``WRONG_DECODED_LENGTH``,
            ``INTEGRITY_FAILURE``.
    """
    try:
        _check_keys(integrity_key, encryption_key)
        fields = decode_wire(encoded)
        price_bytes = mask_price(fields.masked_price, derive_pad(encryption_key, fields.iv))
        verify_tag(integrity_key, price_bytes, fields.iv, fields.tag)
    except PriceError as err:
        _record(audit_log, "price_decrypt_failed", err)
        raise

    _record(audit_log, "price_decrypted")
    return struct.unpack(_PRICE_FORMAT, price_bytes)[0], fields.iv


def decrypt_price(
    integrity_key: bytes,
    encryption_key: bytes,
    encoded: Union[str, bytes],
    audit_log: Optional[AuditLog] = None,
) -> int:
    """Decrypt and authenticate an encoded price; see ``decrypt_price_with_iv``."""
    price, _ = decrypt_price_with_iv(integrity_key, encryption_key, encoded, audit_log)
    return price
