"""
Key management: secret buffers, the encrypted keystore and the account store.
"""

from .secrets import SecretBytes, SecretKeyMap
from .keystore import EncryptedEnvelope, KeystoreCrypto, KEYSTORE_VERSION
from .accounts import (
    AccountStore,
    AccountRecord,
    AccountsConfig,
    SecuritySettings,
    UnlockedIdentity,
)

__all__ = [
    "SecretBytes",
    "SecretKeyMap",
    "EncryptedEnvelope",
    "KeystoreCrypto",
    "KEYSTORE_VERSION",
    "AccountStore",
    "AccountRecord",
    "AccountsConfig",
    "SecuritySettings",
    "UnlockedIdentity",
]
