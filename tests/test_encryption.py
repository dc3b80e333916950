import base64

import pytest

from salina.core.encryption import (
    MASKED_PLACEHOLDER, decrypt_tax_id, encrypt_tax_id, generate_encryption_key,
    last_four, mask_tax_id, masked_tax_id_or_placeholder
)
from salina.core.exceptions import TaxIdDecryptionError


def test_encrypt_uses_fresh_nonce():
    first = encrypt_tax_id("123-45-6789")
    second = encrypt_tax_id("123-45-6789")

    assert first != second
    assert decrypt_tax_id(first) == "123-45-6789"


def test_generated_key_is_256_bits():
    assert len(base64.b64decode(generate_encryption_key())) == 32


@pytest.mark.parametrize("tax_id, tin_type, masked", [
    ("123-45-6789", "ssn", "***-**-6789"),
    ("123456789", None, "***-**-6789"),
    ("12-3456789", "ein", "**-***6789"),
    ("12-3456789", "EIN", "**-***6789"),
])
def test_mask_tax_id(tax_id, tin_type, masked):
    assert mask_tax_id(tax_id, tin_type) == masked


def test_mask_rejects_wrong_length():
    with pytest.raises(TaxIdDecryptionError):
        mask_tax_id("12345")


def test_last_four_ignores_punctuation():
    assert last_four("12-3456789") == "6789"


def test_wrong_key_degrades_to_placeholder():
    token = encrypt_tax_id("123-45-6789")
    other_key = base64.b64encode(b"x" * 32).decode()

    assert masked_tax_id_or_placeholder(token, "ssn", key=other_key) == MASKED_PLACEHOLDER


@pytest.mark.parametrize("token", ["not base64!!", base64.b64encode(b"short").decode()])
def test_corrupt_token_degrades_to_placeholder(token):
    assert masked_tax_id_or_placeholder(token, "ssn") == MASKED_PLACEHOLDER


def test_missing_token_is_none():
    assert masked_tax_id_or_placeholder(None, "ssn") is None


def test_short_key_is_rejected():
    with pytest.raises(TaxIdDecryptionError):
        encrypt_tax_id("123-45-6789", key=base64.b64encode(b"short").decode())
