"""
nostr-identity

Password-protected multi-account key management and signed event encoding
for Nostr clients.
"""

from .runtime import errors as _errors
from .runtime.errors import *
from .runtime.config import KdfParams, StorageConfig

from .crypto import Keypair, hex_to_npub, npub_to_hex
from .keys import (
    AccountStore,
    AccountRecord,
    AccountsConfig,
    SecuritySettings,
    UnlockedIdentity,
    EncryptedEnvelope,
    KeystoreCrypto,
    SecretBytes,
    SecretKeyMap,
)
from .codec import (
    UnsignedEvent,
    SignedEvent,
    OkMessage,
    canonical_bytes,
    compute_id,
    new_text_note,
    event_message,
    encode_message,
    parse_relay_message,
    check_ok,
)
from .codec import sign as sign_event
from .codec import verify as verify_event
from .transport import RelayClient, RelayStatus, validate_relay_url

__version__ = "0.1.0"
__all__ = [
    # Configuration
    "KdfParams",
    "StorageConfig",

    # Identity
    "Keypair",
    "hex_to_npub",
    "npub_to_hex",

    # Keystore and accounts
    "AccountStore",
    "AccountRecord",
    "AccountsConfig",
    "SecuritySettings",
    "UnlockedIdentity",
    "EncryptedEnvelope",
    "KeystoreCrypto",
    "SecretBytes",
    "SecretKeyMap",

    # Events
    "UnsignedEvent",
    "SignedEvent",
    "OkMessage",
    "canonical_bytes",
    "compute_id",
    "sign_event",
    "verify_event",
    "new_text_note",
    "event_message",
    "encode_message",
    "parse_relay_message",
    "check_ok",

    # Transport
    "RelayClient",
    "RelayStatus",
    "validate_relay_url",
]
__all__ += _errors.__all__
