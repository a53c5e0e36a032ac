from .factories import (
    FAST_KDF,
    FIXED_TIMESTAMP,
    VECTOR_SECRET_HEX,
    VECTOR_PUBKEY_HEX,
    VECTOR_MESSAGE,
    VECTOR_SIGNATURE_HEX,
    FakeClock,
    mk_keypair,
    mk_secret_hex,
    mk_unsigned,
    mk_signed,
    mk_store,
)
from .relay import MockRelay

__all__ = [
    "FAST_KDF",
    "FIXED_TIMESTAMP",
    "VECTOR_SECRET_HEX",
    "VECTOR_PUBKEY_HEX",
    "VECTOR_MESSAGE",
    "VECTOR_SIGNATURE_HEX",
    "FakeClock",
    "mk_keypair",
    "mk_secret_hex",
    "mk_unsigned",
    "mk_signed",
    "mk_store",
    "MockRelay",
]
