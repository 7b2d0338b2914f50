"""
price_crypto — Deployment Configuration
=========================================

Reads the encoded key pair a deployment was issued.

ENVIRONMENT:
  PRICE_CRYPTO_INTEGRITY_KEY    encoded integrity key
  PRICE_CRYPTO_ENCRYPTION_KEY   encoded encryption key
  PRICE_CRYPTO_KEY_ENCODING     STD | RAW_STD | URL | RAW_URL (default URL)

The codec never touches the environment; this module is for callers that
want one place to resolve keys at startup.
"""

import os
from typing import Mapping, Optional, Tuple

from pydantic import BaseModel, field_validator

from .audit_log import AuditLog
from .keys import Base64Variant, parse_keys

ENV_INTEGRITY_KEY = "PRICE_CRYPTO_INTEGRITY_KEY"
ENV_ENCRYPTION_KEY = "PRICE_CRYPTO_ENCRYPTION_KEY"
ENV_KEY_ENCODING = "PRICE_CRYPTO_KEY_ENCODING"


class KeyConfig(BaseModel):
    integrity_key: str
    encryption_key: str
    key_encoding: str = Base64Variant.URL.name

    @field_validator("integrity_key", "encryption_key")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("key text must not be blank")
        return value

    @field_validator("key_encoding")
    @classmethod
    def _known_encoding(cls, value: str) -> str:
        name = value.strip().upper()
        if name not in Base64Variant.__members__:
            raise ValueError(
                f"unknown key encoding {value!r}; "
                f"expected one of {', '.join(Base64Variant.__members__)}"
            )
        return name

    @property
    def variant(self) -> Base64Variant:
        return Base64Variant[self.key_encoding]

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "KeyConfig":
        """Build from ``os.environ`` (or *environ*); missing keys fail validation."""
        env = os.environ if environ is None else environ
        return cls(
            integrity_key=env.get(ENV_INTEGRITY_KEY, ""),
            encryption_key=env.get(ENV_ENCRYPTION_KEY, ""),
            key_encoding=env.get(ENV_KEY_ENCODING, Base64Variant.URL.name),
        )

    def load_keys(self, audit_log: Optional[AuditLog] = None) -> Tuple[bytes, bytes]:
        """Decode to ``(integrity_key, encryption_key)``; raises ``KeyDecodeError``."""
        return parse_keys(self.variant, self.integrity_key, self.encryption_key, audit_log)
