"""
Human-readable key encoding.

Bech32 (BIP-173) encoding of 32-byte keys with a fixed human-readable prefix:
``npub`` for x-only public keys and ``nsec`` for secret keys.
"""

from __future__ import annotations

import bech32

from ..runtime.errors import ValidationError, ErrorCode

NPUB_PREFIX = "npub"
NSEC_PREFIX = "nsec"
KEY_LENGTH = 32


def encode_key(prefix: str, key_bytes: bytes) -> str:
    """
    Encode a 32-byte key under a human-readable prefix.

    Args:
        prefix: Human-readable part ("npub" or "nsec")
        key_bytes: 32-byte key

    Returns:
        Checksummed bech32 string
    """
    if len(key_bytes) != KEY_LENGTH:
        raise ValidationError(
            f"Key must be {KEY_LENGTH} bytes, got {len(key_bytes)}",
            ErrorCode.INVALID_LENGTH,
        )
    words = bech32.convertbits(key_bytes, 8, 5, True)
    return bech32.bech32_encode(prefix, words)


def decode_key(expected_prefix: str, encoded: str) -> bytes:
    """
    Decode a bech32 key string, checking prefix, checksum and length.

    Raises:
        ValidationError: If the string is not a valid key under ``expected_prefix``
    """
    hrp, words = bech32.bech32_decode(encoded.strip())
    if hrp is None or words is None:
        raise ValidationError("Invalid bech32 string", ErrorCode.INVALID_INPUT)
    if hrp != expected_prefix:
        raise ValidationError(
            f"Expected '{expected_prefix}' prefix, got '{hrp}'",
            ErrorCode.INVALID_INPUT,
        )
    data = bech32.convertbits(words, 5, 8, False)
    if data is None or len(data) != KEY_LENGTH:
        raise ValidationError(
            f"Decoded key must be {KEY_LENGTH} bytes",
            ErrorCode.INVALID_LENGTH,
        )
    return bytes(data)


def hex_to_npub(public_key_hex: str) -> str:
    """Convert a 64-char hex x-only public key to its npub form."""
    try:
        raw = bytes.fromhex(public_key_hex)
    except ValueError as e:
        raise ValidationError(f"Invalid hex string: {e}", ErrorCode.INVALID_HEX, cause=e) from e
    return encode_key(NPUB_PREFIX, raw)


def npub_to_hex(npub: str) -> str:
    """Convert an npub string back to 64-char hex."""
    return decode_key(NPUB_PREFIX, npub).hex()


__all__ = [
    "NPUB_PREFIX",
    "NSEC_PREFIX",
    "encode_key",
    "decode_key",
    "hex_to_npub",
    "npub_to_hex",
]
