"""
Test factories for creating identities, events and stores consistently.
"""

from __future__ import annotations
from pathlib import Path
from typing import List, Optional

from nostr_identity.crypto.secp256k1 import Keypair
from nostr_identity.codec.event import SignedEvent, UnsignedEvent
from nostr_identity.keys.accounts import AccountStore
from nostr_identity.runtime.config import KdfParams, StorageConfig

# Cheapest parameters argon2 accepts; keeps each hash in the low milliseconds.
FAST_KDF = KdfParams(time_cost=1, memory_cost=1024, parallelism=1)

# BIP-340 test vector 0
VECTOR_SECRET_HEX = "0000000000000000000000000000000000000000000000000000000000000003"
VECTOR_PUBKEY_HEX = "f9308a019258c31049344f85f89d5229b531c845836f99b08601f113bce036f9"
VECTOR_MESSAGE = bytes(32)
VECTOR_SIGNATURE_HEX = (
    "e907831f80848d1069a5371b402410364bdf1c5f8307b0084c55f1ce2dca8215"
    "25f66a4a85ea8b71e482a74f382d2ce5ebeee8fdb2172f477df4900d310536c0"
)

FIXED_TIMESTAMP = 1700000000


def mk_keypair(seed: int = 1) -> Keypair:
    """
    Create a deterministic key pair.

    Args:
        seed: Small positive integer used as the secret scalar

    Returns:
        Key pair whose secret is ``seed`` as a 32-byte big-endian integer
    """
    return Keypair.from_secret_bytes(seed.to_bytes(32, "big"))


def mk_secret_hex(seed: int = 1) -> str:
    return seed.to_bytes(32, "big").hex()


def mk_unsigned(keypair: Keypair, content: str = "hello",
                tags: Optional[List[List[str]]] = None, kind: int = 1) -> UnsignedEvent:
    return UnsignedEvent(
        pubkey=keypair.public_key_hex(),
        created_at=FIXED_TIMESTAMP,
        kind=kind,
        tags=tags or [],
        content=content,
    )


def mk_signed(keypair: Keypair, content: str = "hello",
              tags: Optional[List[List[str]]] = None) -> SignedEvent:
    return mk_unsigned(keypair, content, tags).sign(keypair)


def mk_store(base_dir: Path, clock=None) -> AccountStore:
    """Account store on ``base_dir`` with cheap key derivation."""
    return AccountStore(StorageConfig.at(base_dir), kdf=FAST_KDF, clock=clock)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
