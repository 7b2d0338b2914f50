"""
price_crypto — Error Taxonomy
===============================

Two disjoint error families:

  - ``KeyDecodeError``: raised only while loading key material; names the
    key that failed and chains the underlying ``binascii.Error``.
  - ``PriceError``:     raised by both encrypt and decrypt; carries a
    ``PriceErrorCause`` tag so callers can branch on the failure without
    parsing messages.

SECURITY RATIONALE:
  - An integrity failure never says *why* the tag did not match.  "Wrong
    key" and "tampered payload" produce the same public message so the
    decoder cannot be used as an oracle.  The specific reason is kept in
    ``detail`` for internal diagnostics (see ``audit_log``).
  - Both families subclass ``ValueError``: every failure is a rejected
    input, never a transient condition worth retrying.
"""

from enum import Enum


class KeyRole(str, Enum):
    """Which of the two keys an error refers to."""
    INTEGRITY = "integrity"
    ENCRYPTION = "encryption"


class PriceErrorCause(str, Enum):
    EMPTY_KEY = "empty_key"
    INVALID_IV_LENGTH = "invalid_iv_length"
    WRONG_ENCODED_LENGTH = "wrong_encoded_length"
    BASE64_DECODE_FAILURE = "base64_decode_failure"
    WRONG_DECODED_LENGTH = "wrong_decoded_length"
    INTEGRITY_FAILURE = "integrity_failure"


_MESSAGES = {
    PriceErrorCause.EMPTY_KEY: "encryption and integrity keys are required",
    PriceErrorCause.INVALID_IV_LENGTH: "initialization vector has an invalid length",
    PriceErrorCause.WRONG_ENCODED_LENGTH: "encoded price has an invalid length",
    PriceErrorCause.BASE64_DECODE_FAILURE: "encoded price is not valid base64",
    PriceErrorCause.WRONG_DECODED_LENGTH: "decoded price has an invalid length",
    PriceErrorCause.INTEGRITY_FAILURE: "price integrity is invalid",
}


class KeyDecodeError(ValueError):
    """A base64-encoded key could not be decoded."""

    def __init__(self, role: KeyRole, cause: Exception):
        self.role = role
        self.cause = cause
        super().__init__(f"could not decode price {role.value} key: {cause}")


class PriceError(ValueError):
    """
    An encrypted price could not be produced or accepted.

    ``str(err)`` is safe to return to external callers.  ``detail`` may
    contain internal diagnostics and must not leave the process for
    ``INTEGRITY_FAILURE``.
    """

    def __init__(self, cause: PriceErrorCause, detail: str = ""):
        self.cause = cause
        self.detail = detail
        message = _MESSAGES[cause]
        if detail and cause is not PriceErrorCause.INTEGRITY_FAILURE:
            message = f"{message}: {detail}"
        super().__init__(message)
