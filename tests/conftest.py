"""
Shared fixtures: cheap key derivation, temporary storage, deterministic keys.
"""
import pytest

from nostr_identity.keys.keystore import KeystoreCrypto
from nostr_identity.runtime.config import StorageConfig

from helpers import FAST_KDF, FakeClock, mk_keypair, mk_store


@pytest.fixture
def kdf_params():
    """Argon2id parameters cheap enough for unit tests."""
    return FAST_KDF


@pytest.fixture
def keystore_crypto(kdf_params):
    return KeystoreCrypto(kdf_params)


@pytest.fixture
def storage_dir(tmp_path):
    return tmp_path / "nostr-identity"


@pytest.fixture
def storage(storage_dir):
    return StorageConfig.at(storage_dir)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(storage_dir, clock):
    """Account store on a temporary directory, locked and empty."""
    s = mk_store(storage_dir, clock=clock)
    yield s
    s.lock()


@pytest.fixture
def alice_keypair():
    return mk_keypair(0xA11CE)


@pytest.fixture
def bob_keypair():
    return mk_keypair(0xB0B)
