"""
Tax identifier encryption (AES-256-GCM) and masking
"""
from typing import Optional
import base64
import logging
import re
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from salina.core.config import settings
from salina.core.exceptions import TaxIdDecryptionError

logger = logging.getLogger(__name__)

NONCE_SIZE = 12
MASKED_PLACEHOLDER = "***-**-****"


def generate_encryption_key() -> str:
    """Generate a base64-encoded 256-bit key for TAX_ID_ENCRYPTION_KEY"""
    return base64.b64encode(secrets.token_bytes(32)).decode("utf-8")


def _load_key(key: Optional[str] = None) -> bytes:
    encoded = key or settings.TAX_ID_ENCRYPTION_KEY
    if not encoded:
        raise TaxIdDecryptionError("TAX_ID_ENCRYPTION_KEY is not configured")
    try:
        raw = base64.b64decode(encoded)
    except (ValueError, TypeError) as e:
        raise TaxIdDecryptionError(f"Encryption key is not valid base64: {e}")
    if len(raw) != 32:
        raise TaxIdDecryptionError("Encryption key must decode to 32 bytes")
    return raw


def encrypt_tax_id(plaintext: str, key: Optional[str] = None) -> str:
    """
    Encrypt a tax identifier for storage.

    Returns:
        base64(nonce || ciphertext || tag)
    """
    aesgcm = AESGCM(_load_key(key))
    nonce = secrets.token_bytes(NONCE_SIZE)
    ciphertext = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + ciphertext).decode("utf-8")


def decrypt_tax_id(token: str, key: Optional[str] = None) -> str:
    aesgcm = AESGCM(_load_key(key))
    try:
        raw = base64.b64decode(token)
    except (ValueError, TypeError) as e:
        raise TaxIdDecryptionError(f"Stored tax id is not valid base64: {e}")
    if len(raw) <= NONCE_SIZE:
        raise TaxIdDecryptionError("Stored tax id is truncated")
    try:
        return aesgcm.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], None).decode("utf-8")
    except InvalidTag:
        raise TaxIdDecryptionError("Stored tax id failed authentication")


def last_four(tax_id: str) -> str:
    return re.sub(r"\D", "", tax_id)[-4:]


def mask_tax_id(tax_id: str, tin_type: Optional[str] = "ssn") -> str:
    """
    Mask all but the last four digits.

    SSN: ``***-**-1234``. EIN: ``**-***1234``.
    """
    digits = re.sub(r"\D", "", tax_id or "")
    if len(digits) != 9:
        raise TaxIdDecryptionError("Tax id must have 9 digits")
    if (tin_type or "ssn").lower() == "ein":
        return f"**-***{digits[-4:]}"
    return f"***-**-{digits[-4:]}"


def masked_tax_id_or_placeholder(token: Optional[str], tin_type: Optional[str],
                                 key: Optional[str] = None) -> Optional[str]:
    """Decrypt and mask; any failure degrades to the generic placeholder"""
    if not token:
        return None
    try:
        return mask_tax_id(decrypt_tax_id(token, key), tin_type)
    except TaxIdDecryptionError as e:
        logger.warning(f"Could not unmask stored tax id: {e}")
        return MASKED_PLACEHOLDER
