r"""
Password-protected keystore envelope.

Seals a mapping of account id to secret key under a single password:

- Argon2id (memory-hard) hashes the password with a fresh salt. The PHC
  string is stored as the password verifier.
- The raw Argon2id output is expanded with HKDF-SHA256 under a fixed label
  into the ChaCha20-Poly1305 key, so verifier and encryption key never share
  bytes and one memory-hard evaluation serves both.
- Every mutation re-seals the entire key map with a fresh salt and nonce.
"""

from __future__ import annotations
from typing import Dict, Any, Mapping, Union
import base64
import binascii
import hmac
import json
import logging
import os

from argon2 import Type, extract_parameters
from argon2.exceptions import InvalidHashError
from argon2.low_level import hash_secret
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..runtime.config import KdfParams
from ..runtime.errors import (
    BadPassword,
    CorruptEnvelope,
    MalformedKeyData,
    ValidationError,
    ErrorCode,
)
from .secrets import SecretBytes, SecretKeyMap, borrowed_secret

logger = logging.getLogger(__name__)

KEYSTORE_VERSION = 1
NONCE_LENGTH = 12
KEY_LENGTH = 32
SECRET_KEY_LENGTH = 32
ENCRYPTION_KEY_INFO = b"nostr-identity/keystore/v1/encryption-key"

PasswordLike = Union[str, bytes, SecretBytes]
KeyMapLike = Union[SecretKeyMap, Mapping[str, Union[str, bytes, SecretBytes]]]


class EncryptedEnvelope(BaseModel):
    """
    Persisted encrypted container for all accounts' secret keys.

    Serialized field names match the keystore file layout:
    ``salt``, ``password_hash``, ``nonce`` (byte array), ``encrypted_data``
    (byte array) and ``version``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    salt: str
    password_verifier: str = Field(alias="password_hash")
    nonce: bytes
    ciphertext: bytes = Field(alias="encrypted_data")
    version: int = Field(default=KEYSTORE_VERSION, ge=0)

    @field_validator("nonce", "ciphertext", mode="before")
    @classmethod
    def _bytes_from_array(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return bytes(value)
        return value

    @field_serializer("nonce", "ciphertext")
    def _bytes_to_array(self, value: bytes):
        return list(value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk dictionary representation."""
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EncryptedEnvelope:
        """
        Create from the on-disk dictionary representation.

        Raises:
            CorruptEnvelope: If required fields are missing or mistyped
        """
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise CorruptEnvelope(f"Invalid keystore envelope: {e.error_count()} field error(s)", cause=e) from e

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> EncryptedEnvelope:
        try:
            return cls.model_validate_json(text)
        except PydanticValidationError as e:
            raise CorruptEnvelope(f"Invalid keystore envelope: {e.error_count()} field error(s)", cause=e) from e


def _b64encode_nopad(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii").rstrip("=")


def _b64decode_nopad(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    return base64.b64decode(padded, validate=True)


def _raw_hash_from_phc(encoded: str) -> bytes:
    """Extract the hash bytes from ``$argon2id$v=19$m=..,t=..,p=..$salt$hash``."""
    parts = encoded.split("$")
    if len(parts) != 6:
        raise CorruptEnvelope("Password verifier is not a PHC string")
    try:
        return _b64decode_nopad(parts[5])
    except (binascii.Error, ValueError) as e:
        raise CorruptEnvelope("Password verifier hash is not valid base64", cause=e) from e


def _expand_key(raw_hash: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=ENCRYPTION_KEY_INFO,
    ).derive(raw_hash)


def _associated_data(version: int) -> bytes:
    return f"nostr-identity/keystore/v{version}".encode("ascii")


def _secret_bytes(account_id: str, value: Union[str, bytes, bytearray, SecretBytes]) -> SecretBytes:
    """Fresh SecretBytes holding a validated 32-byte key, without a hex round trip."""
    if not isinstance(value, SecretBytes):
        return SecretBytes.from_hex(_normalize_secret(account_id, value))
    if len(value) != SECRET_KEY_LENGTH:
        raise ValidationError(
            f"Secret key for account {account_id} must be {SECRET_KEY_LENGTH} bytes, got {len(value)}",
            ErrorCode.INVALID_LENGTH,
        )
    return value.copy()


def _normalize_secret(account_id: str, value: Union[str, bytes, bytearray, SecretBytes]) -> str:
    if isinstance(value, SecretBytes):
        raw = value.expose()
    elif isinstance(value, str):
        try:
            raw = bytes.fromhex(value)
        except ValueError as e:
            raise ValidationError(
                f"Secret key for account {account_id} is not valid hex", ErrorCode.INVALID_HEX, cause=e
            ) from e
    else:
        raw = bytes(value)
    if len(raw) != SECRET_KEY_LENGTH:
        raise ValidationError(
            f"Secret key for account {account_id} must be {SECRET_KEY_LENGTH} bytes, got {len(raw)}",
            ErrorCode.INVALID_LENGTH,
        )
    return raw.hex()


def _to_hex_map(key_map: KeyMapLike) -> Dict[str, str]:
    if isinstance(key_map, SecretKeyMap):
        return key_map.to_hex_map()
    result = {}
    for account_id, value in key_map.items():
        if not isinstance(account_id, str) or not account_id:
            raise ValidationError("Account id must be a non-empty string", ErrorCode.INVALID_INPUT)
        result[account_id] = _normalize_secret(account_id, value)
    return result


def _parse_key_map(plaintext: bytearray) -> SecretKeyMap:
    try:
        data = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedKeyData("Decrypted keystore is not valid JSON", cause=e) from e

    if not isinstance(data, dict):
        raise MalformedKeyData("Decrypted keystore is not a JSON object")

    keys = SecretKeyMap()
    for account_id, secret_hex in data.items():
        if not isinstance(secret_hex, str):
            keys.wipe()
            raise MalformedKeyData(f"Secret for account {account_id} is not a string")
        try:
            secret = bytes.fromhex(secret_hex)
        except ValueError as e:
            keys.wipe()
            raise MalformedKeyData(f"Secret for account {account_id} is not valid hex", cause=e) from e
        if len(secret) != SECRET_KEY_LENGTH:
            keys.wipe()
            raise MalformedKeyData(f"Secret for account {account_id} has wrong length {len(secret)}")
        keys.set(account_id, secret)
    return keys


class KeystoreCrypto:
    """
    Envelope encryption for the key map.

    Stateless apart from the Argon2id cost parameters used for new envelopes;
    opening honours whatever parameters the envelope was sealed with.
    """

    def __init__(self, params: KdfParams = KdfParams()):
        """
        Initialize keystore crypto.

        Args:
            params: Argon2id parameters for sealing
        """
        self.params = params

    def _hash(self, password: SecretBytes, salt: bytes, time_cost: int, memory_cost: int,
              parallelism: int, hash_len: int) -> str:
        return hash_secret(
            secret=password.expose(),
            salt=salt,
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=hash_len,
            type=Type.ID,
        ).decode("ascii")

    def seal(self, key_map: KeyMapLike, password: PasswordLike) -> EncryptedEnvelope:
        """
        Encrypt a key map under a password.

        Args:
            key_map: account id -> 32-byte secret (hex, bytes or SecretBytes)
            password: Keystore password

        Returns:
            A new envelope with fresh salt and nonce
        """
        hex_map = _to_hex_map(key_map)
        salt = os.urandom(self.params.salt_len)

        with borrowed_secret(password) as pw:
            if len(pw) == 0:
                raise ValidationError("Password must not be empty", ErrorCode.INVALID_INPUT)
            verifier = self._hash(
                pw, salt,
                self.params.time_cost, self.params.memory_cost,
                self.params.parallelism, self.params.hash_len,
            )
        key = _expand_key(_raw_hash_from_phc(verifier))

        plaintext = bytearray(json.dumps(hex_map, sort_keys=True, separators=(",", ":")).encode("utf-8"))
        nonce = os.urandom(NONCE_LENGTH)
        try:
            ciphertext = ChaCha20Poly1305(key).encrypt(
                nonce, bytes(plaintext), _associated_data(KEYSTORE_VERSION)
            )
        finally:
            plaintext[:] = b"\x00" * len(plaintext)

        logger.debug(f"Sealed keystore envelope with {len(hex_map)} key(s)")
        return EncryptedEnvelope(
            salt=_b64encode_nopad(salt),
            password_verifier=verifier,
            nonce=nonce,
            ciphertext=ciphertext,
            version=KEYSTORE_VERSION,
        )

    def _derive_key(self, envelope: EncryptedEnvelope, password: SecretBytes) -> bytes:
        """Check the password against the verifier and return the encryption key."""
        if envelope.version != KEYSTORE_VERSION:
            raise CorruptEnvelope(
                f"Unsupported keystore version: {envelope.version}",
                details={"version": envelope.version},
            )

        try:
            params = extract_parameters(envelope.password_verifier)
        except InvalidHashError as e:
            raise CorruptEnvelope("Invalid password verifier format", cause=e) from e
        if params.type != Type.ID:
            raise CorruptEnvelope(f"Unsupported password hash type: {params.type.name}")

        try:
            salt = _b64decode_nopad(envelope.salt)
        except (binascii.Error, ValueError) as e:
            raise CorruptEnvelope("Invalid salt encoding", cause=e) from e

        expected = _raw_hash_from_phc(envelope.password_verifier)
        if envelope.password_verifier.split("$")[4] != envelope.salt.rstrip("="):
            raise CorruptEnvelope("Salt does not match password verifier")

        candidate = _raw_hash_from_phc(self._hash(
            password, salt,
            params.time_cost, params.memory_cost,
            params.parallelism, params.hash_len,
        ))
        if not hmac.compare_digest(expected, candidate):
            raise BadPassword()
        return _expand_key(candidate)

    def verify_password(self, envelope: EncryptedEnvelope, password: PasswordLike) -> None:
        """
        Check a password against the envelope without decrypting it.

        Raises:
            BadPassword: If the password does not match
            CorruptEnvelope: If the verifier or salt cannot be decoded
        """
        with borrowed_secret(password) as pw:
            self._derive_key(envelope, pw)

    def open(self, envelope: EncryptedEnvelope, password: PasswordLike) -> SecretKeyMap:
        """
        Decrypt an envelope.

        The password is checked against the verifier first; decryption is not
        attempted on mismatch.

        Returns:
            The decrypted key map; wipe it when done

        Raises:
            BadPassword: Verifier mismatch
            CorruptEnvelope: Undecodable fields or AEAD tag failure
            MalformedKeyData: Decrypted payload is not a key map
        """
        with borrowed_secret(password) as pw:
            key = self._derive_key(envelope, pw)

        if len(envelope.nonce) != NONCE_LENGTH:
            raise CorruptEnvelope(
                f"Nonce must be {NONCE_LENGTH} bytes, got {len(envelope.nonce)}"
            )
        try:
            plaintext = bytearray(ChaCha20Poly1305(key).decrypt(
                envelope.nonce, envelope.ciphertext, _associated_data(envelope.version)
            ))
        except InvalidTag as e:
            raise CorruptEnvelope("Decryption failed: authentication tag mismatch", cause=e) from e

        try:
            keys = _parse_key_map(plaintext)
        finally:
            plaintext[:] = b"\x00" * len(plaintext)

        logger.debug(f"Opened keystore envelope with {len(keys)} key(s)")
        return keys

    def add_key(self, envelope: EncryptedEnvelope, password: PasswordLike,
                account_id: str, secret: Union[str, bytes, SecretBytes]) -> EncryptedEnvelope:
        """
        Return a new envelope with ``account_id`` mapped to ``secret``.

        ``secret`` is 64-char hex, 32 raw bytes, or SecretBytes; a SecretBytes
        passed in stays the caller's to wipe.

        Opens and re-seals the entire key set.
        """
        with borrowed_secret(password) as pw:
            with self.open(envelope, pw) as keys:
                keys.set(account_id, _secret_bytes(account_id, secret))
                return self.seal(keys, pw)

    def remove_key(self, envelope: EncryptedEnvelope, password: PasswordLike,
                   account_id: str) -> EncryptedEnvelope:
        """
        Return a new envelope without ``account_id``.

        Removing an id that is not present re-seals the unchanged set.
        """
        with borrowed_secret(password) as pw:
            with self.open(envelope, pw) as keys:
                if not keys.remove(account_id):
                    logger.debug(f"Account {account_id} not present in keystore; re-sealing unchanged")
                return self.seal(keys, pw)

    def needs_reseal(self, envelope: EncryptedEnvelope) -> bool:
        """True if the envelope was sealed with different Argon2id parameters."""
        try:
            params = extract_parameters(envelope.password_verifier)
        except InvalidHashError as e:
            raise CorruptEnvelope("Invalid password verifier format", cause=e) from e
        return (
            params.time_cost != self.params.time_cost
            or params.memory_cost != self.params.memory_cost
            or params.parallelism != self.params.parallelism
            or params.hash_len != self.params.hash_len
        )


__all__ = [
    "EncryptedEnvelope",
    "KeystoreCrypto",
    "KEYSTORE_VERSION",
]
