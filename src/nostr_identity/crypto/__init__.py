"""
Cryptographic primitives for Nostr identities.

Provides SECP256K1 Schnorr key pairs and bech32 key encoding.
"""

from .secp256k1 import (
    Keypair,
    verify,
    SECRET_KEY_LENGTH,
    PUBLIC_KEY_LENGTH,
    DIGEST_LENGTH,
    SIGNATURE_LENGTH,
)
from .encoding import hex_to_npub, npub_to_hex, encode_key, decode_key, NPUB_PREFIX, NSEC_PREFIX

__all__ = [
    "Keypair",
    "verify",
    "hex_to_npub",
    "npub_to_hex",
    "encode_key",
    "decode_key",
    "NPUB_PREFIX",
    "NSEC_PREFIX",
    "SECRET_KEY_LENGTH",
    "PUBLIC_KEY_LENGTH",
    "DIGEST_LENGTH",
    "SIGNATURE_LENGTH",
]
