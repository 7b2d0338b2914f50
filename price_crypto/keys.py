"""
price_crypto — Key Loader
===========================

Decodes the integrity and encryption keys handed out by the exchange.

Keys arrive as base64 text, but deployments disagree on the flavour:
some ship the standard alphabet, some the URL-safe one, with or without
``=`` padding.  The caller names the flavour with ``Base64Variant``;
nothing here guesses.

DECODING RULES (per variant):
  - Only characters of the variant's alphabet are accepted.
  - Padded variants require canonical ``=`` padding.
  - Unpadded variants reject any ``=``.
  - The unused low bits of the final character must be zero, so every
    byte string has exactly one accepted encoding.
"""

import base64
import binascii
from enum import Enum
from typing import Optional, Tuple, Union

from .audit_log import AuditLog
from .errors import KeyDecodeError, KeyRole

_ALPHABET = b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"

Text = Union[str, bytes, bytearray]


class Base64Variant(Enum):
    """Base64 alphabet (``+/`` or ``-_``) and padding convention."""
    STD = (b"+/", True)
    RAW_STD = (b"+/", False)
    URL = (b"-_", True)
    RAW_URL = (b"-_", False)

    def __init__(self, altchars: bytes, padded: bool):
        self.altchars = altchars
        self.padded = padded

    def encode(self, data: bytes) -> bytes:
        encoded = base64.b64encode(data, altchars=self.altchars)
        if not self.padded:
            encoded = encoded.rstrip(b"=")
        return encoded

    def decode(self, text: Text) -> bytes:
        """Strictly decode *text*; raises ``binascii.Error`` on malformed input."""
        if isinstance(text, str):
            try:
                text = text.encode("ascii")
            except UnicodeEncodeError as exc:
                raise binascii.Error("non-ascii character in base64 text") from exc
        text = bytes(text)

        body = text.rstrip(b"=")
        if self.padded:
            if len(text) % 4 or len(text) - len(body) > 2:
                raise binascii.Error("incorrect padding")
        elif len(body) != len(text):
            raise binascii.Error("unexpected padding")

        alphabet = _ALPHABET + self.altchars
        for c in body:
            if c not in alphabet:
                raise binascii.Error(f"invalid character {chr(c)!r}")
        if len(body) % 4 == 1:
            raise binascii.Error("invalid length")

        decoded = base64.b64decode(
            body + b"=" * (-len(body) % 4), altchars=self.altchars, validate=True
        )
        # Unused bits of the final character must be zero.
        if self.encode(decoded).rstrip(b"=") != body:
            raise binascii.Error("non-zero trailing bits")
        return decoded


def _decode_key(
    variant: Base64Variant,
    role: KeyRole,
    text: Text,
    audit_log: Optional[AuditLog],
) -> bytes:
    try:
        return variant.decode(text)
    except binascii.Error as exc:
        if audit_log is not None:
            audit_log.append_entry({
                "source": "price_crypto",
                "event": "key_decode_failed",
                "role": role.value,
                "variant": variant.name,
                "detail": str(exc),
            })
        raise KeyDecodeError(role, exc) from exc


def parse_keys(
    variant: Base64Variant,
    integrity_key_text: Text,
    encryption_key_text: Text,
    audit_log: Optional[AuditLog] = None,
) -> Tuple[bytes, bytes]:
    """
    Decode the two exchange keys.

    Args:
        variant:             Base64 flavour both keys are encoded with.
        integrity_key_text:  Encoded integrity key.
        encryption_key_text: Encoded encryption key.
        audit_log:           Optional ledger for decode failures.

    Returns:
        ``(integrity_key, encryption_key)`` as raw bytes.

    Raises:
        KeyDecodeError: ``role`` tells which of the two keys is malformed.
    """
    integrity_key = _decode_key(variant, KeyRole.INTEGRITY, integrity_key_text, audit_log)
    encryption_key = _decode_key(variant, KeyRole.ENCRYPTION, encryption_key_text, audit_log)
    return integrity_key, encryption_key
