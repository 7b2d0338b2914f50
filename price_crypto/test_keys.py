"""
price_crypto — Key Loader Tests
=================================

``parse_keys`` must decode exactly the base64 flavour it is told to,
and say which key is broken when decoding fails.
"""

import binascii

import pytest

from price_crypto.audit_log import AuditLog
from price_crypto.errors import KeyDecodeError, KeyRole
from price_crypto.keys import Base64Variant, parse_keys

IC_URL = "arO23ykdNqUQ5LEoQ0FVmPkBd7xB5CO89PDZlSjpFxo="
EC_URL = "skU7Ax_NL5pPAFyKdkfZjZz2-VhIN8bjj1rVFOaJ_5o="

# 40 bytes: padded variants need "==" for this key.
RAW_KEY = bytes(range(256))[::7] + b"\xfb\xff\xfe"


class TestParseKeys:
    """Test parse_keys decoding and error reporting."""

    def test_sample_keys(self):
        """The sample exchange keys decode to 32 bytes each."""
        ic, ec = parse_keys(Base64Variant.URL, IC_URL, EC_URL)
        assert len(ic) == 32
        assert len(ec) == 32
        assert ic != ec

    def test_order_is_preserved(self):
        """Keys come back in the order they were passed."""
        ic, ec = parse_keys(Base64Variant.URL, IC_URL, EC_URL)
        ec2, ic2 = parse_keys(Base64Variant.URL, EC_URL, IC_URL)
        assert (ic, ec) == (ic2, ec2)

    def test_accepts_bytes(self):
        """Bytes key text decodes like str key text."""
        assert parse_keys(Base64Variant.URL, IC_URL.encode(), EC_URL.encode()) == \
            parse_keys(Base64Variant.URL, IC_URL, EC_URL)

    @pytest.mark.parametrize("variant", list(Base64Variant))
    def test_each_variant_decodes_its_own_encoding(self, variant):
        """Each variant decodes what it encodes."""
        text = variant.encode(RAW_KEY)
        assert parse_keys(variant, text, text) == (RAW_KEY, RAW_KEY)

    def test_url_key_rejected_by_standard_alphabet(self):
        """A URL-alphabet key fails under STD and names the encryption key."""
        # The integrity key happens to use neither '-' nor '_'.
        with pytest.raises(KeyDecodeError) as excinfo:
            parse_keys(Base64Variant.STD, IC_URL, EC_URL)
        assert excinfo.value.role is KeyRole.ENCRYPTION
        assert isinstance(excinfo.value.__cause__, binascii.Error)

    def test_malformed_integrity_key(self):
        """A malformed integrity key is reported as such."""
        with pytest.raises(KeyDecodeError) as excinfo:
            parse_keys(Base64Variant.URL, "not base64!", EC_URL)
        assert excinfo.value.role is KeyRole.INTEGRITY
        assert "integrity" in str(excinfo.value)

    def test_raw_variant_rejects_padding(self):
        """Unpadded variants reject '='."""
        with pytest.raises(KeyDecodeError) as excinfo:
            parse_keys(Base64Variant.RAW_URL, IC_URL, EC_URL.rstrip("="))
        assert excinfo.value.role is KeyRole.INTEGRITY

    def test_padded_variant_requires_padding(self):
        """Padded variants reject missing padding."""
        with pytest.raises(KeyDecodeError) as excinfo:
            parse_keys(Base64Variant.URL, IC_URL, EC_URL.rstrip("="))
        assert excinfo.value.role is KeyRole.ENCRYPTION

    def test_raw_variant_accepts_unpadded(self):
        """Unpadded keys decode to the same bytes as padded ones."""
        ic, ec = parse_keys(Base64Variant.RAW_URL, IC_URL.rstrip("="), EC_URL.rstrip("="))
        assert (ic, ec) == parse_keys(Base64Variant.URL, IC_URL, EC_URL)

    def test_failure_recorded_without_key_text(self):
        """Decode failures are recorded without the key text."""
        audit = AuditLog()
        with pytest.raises(KeyDecodeError):
            parse_keys(Base64Variant.STD, IC_URL, EC_URL, audit_log=audit)
        [entry] = audit.get_entries(event="key_decode_failed")
        assert entry.data["role"] == "encryption"
        assert entry.data["variant"] == "STD"
        assert EC_URL not in str(entry.data)


class TestBase64Variant:
    """Test strict encode/decode per variant."""

    @pytest.mark.parametrize("variant,text", [
        (Base64Variant.URL, "ab=c"),
        (Base64Variant.URL, "a==="),
        (Base64Variant.URL, "abcde==="),
        (Base64Variant.RAW_URL, "a"),
        (Base64Variant.RAW_URL, "ab c"),
        (Base64Variant.RAW_STD, "ab-_"),
        (Base64Variant.STD, "abc"),
        (Base64Variant.STD, "abé="),
    ])
    def test_rejects(self, variant, text):
        """Malformed text raises binascii.Error."""
        with pytest.raises(binascii.Error):
            variant.decode(text)

    def test_empty_text_is_empty_key(self):
        """Empty text decodes to an empty key."""
        assert Base64Variant.URL.decode("") == b""

    def test_unpadded_encoding_strips_padding(self):
        """Unpadded variants drop trailing '='."""
        assert Base64Variant.RAW_STD.encode(b"ab") == b"YWI"
        assert Base64Variant.STD.encode(b"ab") == b"YWI="

    def test_url_alphabet(self):
        """URL variants use '-_' where STD uses '+/'."""
        assert Base64Variant.URL.encode(b"\xfb\xff") == b"-_8="
        assert Base64Variant.STD.encode(b"\xfb\xff") == b"+/8="

    @pytest.mark.parametrize("variant,text", [
        (Base64Variant.URL, "YR=="),
        (Base64Variant.RAW_URL, "YWJ"),
        (Base64Variant.STD, "arO23ykdNqUQ5LEoQ0FVmPkBd7xB5CO89PDZlSjpFxp="),
    ])
    def test_rejects_non_zero_trailing_bits(self, variant, text):
        """Unused bits of the final character must be zero."""
        with pytest.raises(binascii.Error):
            variant.decode(text)

    def test_canonical_trailing_bits_accepted(self):
        """The canonical encodings of the same bytes still decode."""
        assert Base64Variant.URL.decode("YQ==") == b"a"
        assert Base64Variant.RAW_URL.decode("YWI") == b"ab"
