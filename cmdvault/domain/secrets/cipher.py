"""AES-256-GCM sealing primitives.

Payloads use the "combined" layout: nonce (12 bytes) || ciphertext || tag
(16 bytes), base64 encoded for storage.
"""
import base64
import binascii
import hashlib
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from cmdvault.errors import AuthFailure
from .models import AAD_PREFIX

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def generate_key() -> bytes:
    """Generate 256 bits of key material."""
    return AESGCM.generate_key(bit_length=KEY_SIZE * 8)


def fingerprint(material: bytes) -> str:
    """Short diagnostic hash of key material. Not enough to rebuild the key."""
    return base64.b64encode(hashlib.sha256(material).digest()[:16]).decode("ascii")


def aad_for(ref_id: str) -> bytes:
    # Rule: cmdvault.secure.v1:<ref_id>
    return f"{AAD_PREFIX}:{ref_id}".encode("utf-8")


def seal(material: bytes, plaintext: str, aad: Optional[bytes] = None) -> str:
    """Encrypt ``plaintext`` and return the base64 combined payload."""
    if len(material) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes (AES-256). Got {len(material)}")
    nonce = os.urandom(NONCE_SIZE)
    ct_and_tag = AESGCM(material).encrypt(nonce, plaintext.encode("utf-8"), aad)
    return base64.b64encode(nonce + ct_and_tag).decode("ascii")


def open_sealed(material: bytes, payload: str, aad: Optional[bytes] = None) -> str:
    """Decrypt a combined payload. Raises AuthFailure on any integrity problem."""
    try:
        combined = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AuthFailure(f"Payload is not valid base64: {e}")

    if len(combined) < NONCE_SIZE + TAG_SIZE:
        raise AuthFailure("Payload too short")

    nonce, ct_and_tag = combined[:NONCE_SIZE], combined[NONCE_SIZE:]
    try:
        plaintext = AESGCM(material).decrypt(nonce, ct_and_tag, aad)
    except InvalidTag:
        # Mask internal error to avoid leaking details
        logger.debug("Authentication tag mismatch")
        raise AuthFailure("Authentication tag mismatch or key mismatch")
    except ValueError as e:
        raise AuthFailure(f"Invalid key material: {e}")

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError:
        raise AuthFailure("Decrypted payload is not UTF-8")
