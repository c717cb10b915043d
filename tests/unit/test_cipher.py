"""Tests for AES-GCM sealing primitives."""
import base64

import pytest

from cmdvault.domain.secrets import cipher
from cmdvault.errors import AuthFailure


def test_seal_and_open():
    key = cipher.generate_key()
    payload = cipher.seal(key, "hunter2", aad=cipher.aad_for("abc123"))

    combined = base64.b64decode(payload)
    assert len(combined) == cipher.NONCE_SIZE + len("hunter2") + cipher.TAG_SIZE
    assert cipher.open_sealed(key, payload, aad=cipher.aad_for("abc123")) == "hunter2"


def test_nonce_is_fresh_per_seal():
    key = cipher.generate_key()
    assert cipher.seal(key, "same") != cipher.seal(key, "same")


def test_wrong_key_is_auth_failure():
    payload = cipher.seal(cipher.generate_key(), "secret")
    with pytest.raises(AuthFailure):
        cipher.open_sealed(cipher.generate_key(), payload)


def test_aad_binds_payload_to_ref_id():
    key = cipher.generate_key()
    payload = cipher.seal(key, "secret", aad=cipher.aad_for("aaaaaa"))
    with pytest.raises(AuthFailure):
        cipher.open_sealed(key, payload, aad=cipher.aad_for("bbbbbb"))


def test_tampered_payload_is_auth_failure():
    key = cipher.generate_key()
    raw = bytearray(base64.b64decode(cipher.seal(key, "secret")))
    raw[-1] ^= 0x01
    with pytest.raises(AuthFailure):
        cipher.open_sealed(key, base64.b64encode(bytes(raw)).decode())


@pytest.mark.parametrize("payload", ["not base64!!", base64.b64encode(b"short").decode()])
def test_malformed_payload_is_auth_failure(payload):
    with pytest.raises(AuthFailure):
        cipher.open_sealed(cipher.generate_key(), payload)


def test_seal_rejects_short_key():
    with pytest.raises(ValueError, match="32 bytes"):
        cipher.seal(b"x" * 16, "secret")


def test_fingerprint_is_stable_and_short():
    key = cipher.generate_key()
    assert cipher.fingerprint(key) == cipher.fingerprint(key)
    assert len(base64.b64decode(cipher.fingerprint(key))) == 16
    assert cipher.fingerprint(key) != cipher.fingerprint(cipher.generate_key())
