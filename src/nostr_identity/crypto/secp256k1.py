"""
SECP256K1 signing identities.

Key generation, import and BIP-340 Schnorr signatures over 32-byte digests,
with x-only public keys as used by Nostr (NIP-01).
"""

from __future__ import annotations
import string
from typing import Optional

import coincurve
from coincurve import PrivateKey, PublicKeyXOnly

from ..runtime.errors import CryptoError, ValidationError, ErrorCode
from .encoding import encode_key, decode_key, NPUB_PREFIX, NSEC_PREFIX

SECRET_KEY_LENGTH = 32
PUBLIC_KEY_LENGTH = 32
DIGEST_LENGTH = 32
SIGNATURE_LENGTH = 64


def _decode_hex(value: str, what: str) -> bytes:
    # bytes.fromhex would skip embedded whitespace
    if isinstance(value, str) and not all(c in string.hexdigits for c in value):
        raise ValidationError(f"Invalid {what} hex: non-hex characters", ErrorCode.INVALID_HEX)
    try:
        return bytes.fromhex(value)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"Invalid {what} hex: {e}", ErrorCode.INVALID_HEX, cause=e) from e


def _require_length(data: bytes, expected: int, what: str) -> None:
    if len(data) != expected:
        raise ValidationError(
            f"{what} must be {expected} bytes, got {len(data)}",
            ErrorCode.INVALID_LENGTH,
            details={"expected": expected, "actual": len(data)},
        )


class Keypair:
    """
    SECP256K1 key pair for Schnorr signatures.

    The public key is the 32-byte x-only form; its hex and npub encodings are
    derived deterministically from the secret.
    """

    def __init__(self, private_key: PrivateKey):
        """
        Initialize from a coincurve private key.

        Use :meth:`generate`, :meth:`from_secret_hex` or :meth:`from_nsec`
        rather than calling this directly.
        """
        self._private_key: Optional[PrivateKey] = private_key
        self._public_key = PublicKeyXOnly.from_secret(private_key.secret)

    @classmethod
    def generate(cls) -> Keypair:
        """Generate a new random key pair."""
        try:
            return cls(PrivateKey())
        except OSError as e:
            raise CryptoError("Entropy source failure during key generation", cause=e) from e

    @classmethod
    def from_secret_bytes(cls, secret: bytes) -> Keypair:
        """
        Create key pair from 32 secret bytes.

        Raises:
            ValidationError: If the length is wrong or the scalar is zero or
                not below the curve order
        """
        _require_length(secret, SECRET_KEY_LENGTH, "Secret key")
        try:
            private_key = PrivateKey(bytes(secret))
        except ValueError as e:
            raise ValidationError(
                f"Invalid secret key: {e}", ErrorCode.INVALID_SECRET_KEY, cause=e
            ) from e
        return cls(private_key)

    @classmethod
    def from_secret_hex(cls, secret_hex: str) -> Keypair:
        """Create key pair from a 64-char hex secret key, ignoring surrounding whitespace."""
        if not isinstance(secret_hex, str):
            raise ValidationError("Secret key must be a hex string", ErrorCode.INVALID_HEX)
        secret_hex = secret_hex.strip()
        if len(secret_hex) != 2 * SECRET_KEY_LENGTH:
            raise ValidationError(
                f"Secret key must be {2 * SECRET_KEY_LENGTH} hex characters, got {len(secret_hex)}",
                ErrorCode.INVALID_LENGTH,
                details={"expected": 2 * SECRET_KEY_LENGTH, "actual": len(secret_hex)},
            )
        return cls.from_secret_bytes(_decode_hex(secret_hex, "secret key"))

    @classmethod
    def from_nsec(cls, nsec: str) -> Keypair:
        """Create key pair from a bech32 ``nsec1...`` secret key."""
        return cls.from_secret_bytes(decode_key(NSEC_PREFIX, nsec))

    def _require_secret(self) -> PrivateKey:
        if self._private_key is None:
            raise CryptoError("Key pair has been wiped")
        return self._private_key

    def secret_key_bytes(self) -> bytes:
        """Get the 32-byte secret key."""
        return self._require_secret().secret

    def secret_key_hex(self) -> str:
        """Get the secret key as hex string."""
        return self.secret_key_bytes().hex()

    def secret_key_nsec(self) -> str:
        """Get the secret key in bech32 ``nsec`` form."""
        return encode_key(NSEC_PREFIX, self.secret_key_bytes())

    def public_key_bytes(self) -> bytes:
        """Get the 32-byte x-only public key."""
        return self._public_key.format()

    def public_key_hex(self) -> str:
        """Get the x-only public key as hex string."""
        return self.public_key_bytes().hex()

    def public_key_npub(self) -> str:
        """Get the public key in bech32 ``npub`` form."""
        return encode_key(NPUB_PREFIX, self.public_key_bytes())

    def sign(self, digest: bytes) -> bytes:
        """
        Sign a 32-byte digest.

        BIP-340 with no auxiliary randomness, so the nonce (and therefore the
        signature) is a deterministic function of key and digest.

        Args:
            digest: Exactly 32 bytes

        Returns:
            64-byte Schnorr signature
        """
        _require_length(digest, DIGEST_LENGTH, "Digest")
        try:
            return self._require_secret().sign_schnorr(digest, None)
        except ValueError as e:
            raise CryptoError("Schnorr signing failed", ErrorCode.SIGNING_FAILED, cause=e) from e

    def wipe(self) -> None:
        """Drop the reference to the secret scalar."""
        self._private_key = None

    def __eq__(self, other) -> bool:
        if not isinstance(other, Keypair):
            return False
        return self.public_key_bytes() == other.public_key_bytes()

    def __hash__(self) -> int:
        return hash(self.public_key_bytes())

    def __str__(self) -> str:
        return f"Keypair(public={self.public_key_hex()[:16]}...)"

    __repr__ = __str__


def verify(public_key: bytes, digest: bytes, signature: bytes) -> bool:
    """
    Verify a Schnorr signature.

    Args:
        public_key: 32-byte x-only public key
        digest: 32-byte signed digest
        signature: 64-byte signature

    Returns:
        True if the signature is valid. Forged or mismatched signatures, and
        public keys that are not points on the curve, return False.

    Raises:
        ValidationError: If any input has the wrong length
    """
    _require_length(public_key, PUBLIC_KEY_LENGTH, "Public key")
    _require_length(digest, DIGEST_LENGTH, "Digest")
    _require_length(signature, SIGNATURE_LENGTH, "Signature")

    try:
        xonly = PublicKeyXOnly(bytes(public_key))
    except ValueError:
        return False
    return bool(xonly.verify(bytes(signature), bytes(digest)))


def generate() -> Keypair:
    return Keypair.generate()


def from_secret_hex(secret_hex: str) -> Keypair:
    return Keypair.from_secret_hex(secret_hex)


def get_secp256k1_implementation() -> str:
    """Get the name and version of the backing SECP256K1 library."""
    return f"coincurve {getattr(coincurve, '__version__', 'unknown')}"


__all__ = [
    "Keypair",
    "verify",
    "generate",
    "from_secret_hex",
    "get_secp256k1_implementation",
    "SECRET_KEY_LENGTH",
    "PUBLIC_KEY_LENGTH",
    "DIGEST_LENGTH",
    "SIGNATURE_LENGTH",
]
