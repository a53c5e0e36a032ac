"""
Keystore envelope tests.

Tests sealing and opening key maps under a password, failure taxonomy for
wrong passwords and tampered envelopes, and whole-set add/remove.
"""

import json

import pytest
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from nostr_identity.keys import keystore
from nostr_identity.keys.keystore import EncryptedEnvelope, KeystoreCrypto
from nostr_identity.keys.secrets import SecretBytes, SecretKeyMap
from nostr_identity.runtime.config import KdfParams
from nostr_identity.runtime.errors import (
    AuthenticationError,
    BadPassword,
    CorruptEnvelope,
    CryptoError,
    MalformedKeyData,
    ValidationError,
)

from helpers import FAST_KDF, mk_secret_hex


def _flip(data: bytes, index: int) -> bytes:
    out = bytearray(data)
    out[index] ^= 0x01
    return bytes(out)


def _reencrypt(envelope: EncryptedEnvelope, plaintext: bytes) -> EncryptedEnvelope:
    """Replace the payload with ``plaintext`` under the envelope's own key."""
    key = keystore._expand_key(keystore._raw_hash_from_phc(envelope.password_verifier))
    ciphertext = ChaCha20Poly1305(key).encrypt(
        envelope.nonce, plaintext, keystore._associated_data(envelope.version)
    )
    return envelope.model_copy(update={"ciphertext": ciphertext})


class TestSealOpen:
    """Test the seal/open round trip."""

    @pytest.mark.parametrize("hex_map", [
        {},
        {"a": "11" * 32},
        {"acct-1": mk_secret_hex(1), "acct-2": mk_secret_hex(2), "acct-3": mk_secret_hex(3)},
    ])
    def test_roundtrip(self, keystore_crypto, hex_map):
        envelope = keystore_crypto.seal(hex_map, "pw")
        with keystore_crypto.open(envelope, "pw") as keys:
            assert keys.to_hex_map() == hex_map

    @pytest.mark.parametrize("password", ["pw", "correct horse battery staple", "pässwörd ✓", b"\x00\xffraw"])
    def test_password_forms(self, keystore_crypto, password):
        envelope = keystore_crypto.seal({"a": "22" * 32}, password)
        assert keystore_crypto.open(envelope, password).to_hex_map() == {"a": "22" * 32}

    def test_secret_bytes_password_not_wiped(self, keystore_crypto):
        password = SecretBytes.from_str("pw")
        envelope = keystore_crypto.seal({}, password)
        keystore_crypto.open(envelope, password)
        assert not password.wiped

    def test_accepts_secret_key_map(self, keystore_crypto):
        keys = SecretKeyMap.from_hex_map({"a": "33" * 32})
        envelope = keystore_crypto.seal(keys, "pw")
        assert keystore_crypto.open(envelope, "pw") == keys

    def test_fresh_salt_and_nonce_per_seal(self, keystore_crypto):
        first = keystore_crypto.seal({"a": "11" * 32}, "pw")
        second = keystore_crypto.seal({"a": "11" * 32}, "pw")
        assert first.salt != second.salt
        assert first.nonce != second.nonce
        assert first.ciphertext != second.ciphertext

    def test_verifier_is_argon2id_phc(self, keystore_crypto):
        envelope = keystore_crypto.seal({}, "pw")
        parts = envelope.password_verifier.split("$")
        assert parts[1] == "argon2id"
        assert parts[3] == "m=1024,t=1,p=1"
        assert parts[4] == envelope.salt

    def test_encryption_key_differs_from_hash(self, keystore_crypto):
        envelope = keystore_crypto.seal({}, "pw")
        raw = keystore._raw_hash_from_phc(envelope.password_verifier)
        assert keystore._expand_key(raw) != raw

    def test_opens_with_stored_parameters(self, keystore_crypto):
        envelope = keystore_crypto.seal({"a": "44" * 32}, "pw")
        stronger = KeystoreCrypto(KdfParams(time_cost=2, memory_cost=2048, parallelism=1))
        assert stronger.needs_reseal(envelope)
        assert not keystore_crypto.needs_reseal(envelope)
        assert stronger.open(envelope, "pw").to_hex_map() == {"a": "44" * 32}

    def test_empty_password_rejected(self, keystore_crypto):
        with pytest.raises(ValidationError):
            keystore_crypto.seal({}, "")

    @pytest.mark.parametrize("secret", ["11" * 31, "11" * 33, "xyz"])
    def test_bad_secret_rejected(self, keystore_crypto, secret):
        with pytest.raises(ValidationError):
            keystore_crypto.seal({"a": secret}, "pw")


class TestAuthentication:
    """Test password checks."""

    def test_wrong_password(self, keystore_crypto):
        envelope = keystore_crypto.seal({"a": "11" * 32}, "pw")
        with pytest.raises(BadPassword):
            keystore_crypto.open(envelope, "wrong")

    def test_bad_password_is_authentication_error(self, keystore_crypto):
        envelope = keystore_crypto.seal({}, "pw")
        with pytest.raises(AuthenticationError):
            keystore_crypto.open(envelope, "PW")

    def test_verify_password(self, keystore_crypto):
        envelope = keystore_crypto.seal({}, "pw")
        keystore_crypto.verify_password(envelope, "pw")
        with pytest.raises(BadPassword):
            keystore_crypto.verify_password(envelope, "nope")


class TestTampering:
    """Test that corrupted envelopes fail closed."""

    @pytest.fixture
    def envelope(self, keystore_crypto):
        return keystore_crypto.seal({"a": "11" * 32, "b": "22" * 32}, "pw")

    @pytest.mark.parametrize("index", [0, 10, -1])
    def test_flipped_ciphertext_bit(self, keystore_crypto, envelope, index):
        position = index % len(envelope.ciphertext)
        tampered = envelope.model_copy(update={"ciphertext": _flip(envelope.ciphertext, position)})
        with pytest.raises(CorruptEnvelope):
            keystore_crypto.open(tampered, "pw")

    def test_flipped_nonce_bit(self, keystore_crypto, envelope):
        tampered = envelope.model_copy(update={"nonce": _flip(envelope.nonce, 0)})
        with pytest.raises(CorruptEnvelope):
            keystore_crypto.open(tampered, "pw")

    def test_short_nonce(self, keystore_crypto, envelope):
        tampered = envelope.model_copy(update={"nonce": envelope.nonce[:8]})
        with pytest.raises(CorruptEnvelope):
            keystore_crypto.open(tampered, "pw")

    def test_unknown_version(self, keystore_crypto, envelope):
        tampered = envelope.model_copy(update={"version": 99})
        with pytest.raises(CorruptEnvelope):
            keystore_crypto.open(tampered, "pw")

    def test_garbage_verifier(self, keystore_crypto, envelope):
        tampered = envelope.model_copy(update={"password_verifier": "not-a-phc-string"})
        with pytest.raises(CorruptEnvelope):
            keystore_crypto.open(tampered, "pw")

    def test_salt_mismatch(self, keystore_crypto, envelope):
        other = keystore_crypto.seal({}, "pw")
        tampered = envelope.model_copy(update={"salt": other.salt})
        with pytest.raises(CorruptEnvelope):
            keystore_crypto.open(tampered, "pw")

    def test_corrupt_envelope_is_crypto_error(self, keystore_crypto, envelope):
        tampered = envelope.model_copy(update={"ciphertext": b""})
        with pytest.raises(CryptoError):
            keystore_crypto.open(tampered, "pw")

    @pytest.mark.parametrize("plaintext", [
        b"\xff\xfe not utf-8",
        b"not json",
        b"[1, 2, 3]",
        b'{"a": 5}',
        b'{"a": "zz"}',
        b'{"a": "1111"}',
    ])
    def test_malformed_key_data(self, keystore_crypto, envelope, plaintext):
        with pytest.raises(MalformedKeyData):
            keystore_crypto.open(_reencrypt(envelope, plaintext), "pw")


class TestMutations:
    """Test whole-set add and remove."""

    def test_add_key_equals_seal_of_extended_map(self, keystore_crypto):
        base = {"a": "11" * 32}
        envelope = keystore_crypto.seal(base, "pw")
        updated = keystore_crypto.add_key(envelope, "pw", "b", "22" * 32)
        assert keystore_crypto.open(updated, "pw").to_hex_map() == {**base, "b": "22" * 32}

    def test_add_key_overwrites(self, keystore_crypto):
        envelope = keystore_crypto.seal({"a": "11" * 32}, "pw")
        updated = keystore_crypto.add_key(envelope, "pw", "a", "33" * 32)
        assert keystore_crypto.open(updated, "pw").to_hex_map() == {"a": "33" * 32}

    def test_add_key_from_secret_bytes(self, keystore_crypto):
        envelope = keystore_crypto.seal({}, "pw")
        secret = SecretBytes(bytes.fromhex("44" * 32))
        updated = keystore_crypto.add_key(envelope, "pw", "a", secret)
        assert keystore_crypto.open(updated, "pw").to_hex_map() == {"a": "44" * 32}
        assert secret.expose_hex() == "44" * 32

    def test_add_key_short_secret_bytes_rejected(self, keystore_crypto):
        envelope = keystore_crypto.seal({}, "pw")
        with pytest.raises(ValidationError):
            keystore_crypto.add_key(envelope, "pw", "a", SecretBytes(b"\x01" * 31))

    def test_remove_key(self, keystore_crypto):
        envelope = keystore_crypto.seal({"a": "11" * 32, "b": "22" * 32}, "pw")
        updated = keystore_crypto.remove_key(envelope, "pw", "a")
        assert keystore_crypto.open(updated, "pw").to_hex_map() == {"b": "22" * 32}

    def test_remove_missing_key_is_noop(self, keystore_crypto):
        envelope = keystore_crypto.seal({"a": "11" * 32}, "pw")
        updated = keystore_crypto.remove_key(envelope, "pw", "missing")
        assert keystore_crypto.open(updated, "pw").to_hex_map() == {"a": "11" * 32}

    def test_mutation_needs_password(self, keystore_crypto):
        envelope = keystore_crypto.seal({}, "pw")
        with pytest.raises(BadPassword):
            keystore_crypto.add_key(envelope, "wrong", "a", "11" * 32)

    def test_mutation_reseals(self, keystore_crypto):
        envelope = keystore_crypto.seal({}, "pw")
        updated = keystore_crypto.add_key(envelope, "pw", "a", "11" * 32)
        assert updated.salt != envelope.salt
        assert updated.nonce != envelope.nonce


class TestEnvelopeSerialization:
    """Test the on-disk JSON layout."""

    def test_field_names(self, keystore_crypto):
        envelope = keystore_crypto.seal({"a": "11" * 32}, "pw")
        data = json.loads(envelope.to_json())
        assert set(data) == {"salt", "password_hash", "nonce", "encrypted_data", "version"}
        assert data["version"] == 1
        assert isinstance(data["nonce"], list)
        assert len(data["nonce"]) == 12
        assert all(isinstance(b, int) and 0 <= b <= 255 for b in data["encrypted_data"])

    def test_json_roundtrip_opens(self, keystore_crypto):
        envelope = keystore_crypto.seal({"a": "11" * 32}, "pw")
        restored = EncryptedEnvelope.from_json(envelope.to_json())
        assert restored == envelope
        assert keystore_crypto.open(restored, "pw").to_hex_map() == {"a": "11" * 32}

    @pytest.mark.parametrize("text", [
        "",
        "not json",
        "[]",
        '{"salt": "abc"}',
        '{"salt": "abc", "password_hash": "x", "nonce": 5, "encrypted_data": [1], "version": 1}',
    ])
    def test_invalid_json_is_corrupt(self, text):
        with pytest.raises(CorruptEnvelope):
            EncryptedEnvelope.from_json(text)

    def test_from_dict_missing_fields(self):
        with pytest.raises(CorruptEnvelope):
            EncryptedEnvelope.from_dict({"salt": "abc", "version": 1})
