r"""
Account management for Nostr identities.

Owns the account metadata file and the encrypted keystore file, and the
Locked / Unlocked lifecycle of the decrypted key map. Every mutation rewrites
the keystore first and the metadata second.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional
import logging
import os
import tempfile
import time
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..codec.event import SignedEvent, UnsignedEvent
from ..crypto.secp256k1 import Keypair
from ..runtime.config import KdfParams, StorageConfig
from ..runtime.errors import (
    AuthenticationError,
    DuplicateError,
    IntegrityError,
    LockedError,
    NotFoundError,
    StorageError,
    ValidationError,
    ErrorCode,
)
from .keystore import EncryptedEnvelope, KeystoreCrypto, PasswordLike
from .secrets import SecretBytes, SecretKeyMap, borrowed_secret

logger = logging.getLogger(__name__)

KEYSTORE_FILE_MODE = 0o600


class SecuritySettings(BaseModel):
    """User-tunable security behaviour, persisted with the account metadata."""

    model_config = ConfigDict(extra="forbid")

    require_auth_for_signing: bool = True
    auto_lock_timeout_minutes: Optional[int] = Field(default=30, ge=1)


class AccountRecord(BaseModel):
    """
    Public metadata for one account.

    The secret key is never stored here; it lives in the keystore under the
    same ``id``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    display_name: str = Field(alias="name")
    public_key_hex: str
    public_key_npub: str
    created_at: str
    is_active: bool = False

    def display_label(self) -> str:
        """``name (npub1abcd...wxyz)`` for compact display."""
        npub = self.public_key_npub
        short = f"{npub[:9]}...{npub[-4:]}" if len(npub) > 16 else npub
        return f"{self.display_name} ({short})"


class AccountsConfig(BaseModel):
    """Contents of the metadata file."""

    model_config = ConfigDict(populate_by_name=True)

    accounts: List[AccountRecord] = Field(default_factory=list)
    active_account_id: Optional[str] = None
    security_settings: SecuritySettings = Field(default_factory=SecuritySettings)

    def find(self, account_id: str) -> Optional[AccountRecord]:
        for record in self.accounts:
            if record.id == account_id:
                return record
        return None

    def find_by_public_key(self, public_key_hex: str) -> Optional[AccountRecord]:
        needle = public_key_hex.lower()
        for record in self.accounts:
            if record.public_key_hex.lower() == needle:
                return record
        return None

    def set_active(self, account_id: Optional[str]) -> None:
        """Flag exactly ``account_id`` as active (or none)."""
        for record in self.accounts:
            record.is_active = record.id == account_id
        self.active_account_id = account_id

    def check_invariants(self) -> None:
        """
        Raises:
            IntegrityError: If ids repeat or the active flags disagree with
                ``active_account_id``
        """
        ids = [record.id for record in self.accounts]
        if len(ids) != len(set(ids)):
            raise IntegrityError("Duplicate account ids in metadata")

        flagged = [record.id for record in self.accounts if record.is_active]
        if len(flagged) > 1:
            raise IntegrityError("More than one account is flagged active", details={"ids": flagged})

        if self.active_account_id is not None:
            if self.active_account_id not in ids:
                raise IntegrityError(
                    "Active account id does not reference an account",
                    details={"active_account_id": self.active_account_id},
                )
            if flagged and flagged[0] != self.active_account_id:
                raise IntegrityError("Active flag does not match active account id")
        elif self.accounts:
            raise IntegrityError("Accounts exist but none is active")


@dataclass
class UnlockedIdentity:
    """An account record paired with its live key pair. Never persisted."""

    record: AccountRecord
    keypair: Keypair

    @property
    def account_id(self) -> str:
        return self.record.id

    @property
    def public_key_hex(self) -> str:
        return self.record.public_key_hex

    def sign(self, event: UnsignedEvent) -> SignedEvent:
        return event.sign(self.keypair)

    def text_note(self, content: str, tags: Optional[List[List[str]]] = None,
                  created_at: Optional[int] = None) -> SignedEvent:
        """Build and sign a kind-1 note authored by this identity."""
        event = UnsignedEvent.text_note(content, self.public_key_hex, created_at)
        if tags:
            event = event.with_tags(tags)
        return self.sign(event)

    def wipe(self) -> None:
        self.keypair.wipe()


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat()


def _validate_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Account name must not be empty", ErrorCode.INVALID_NAME)
    return name.strip()


def _atomic_write(path: Path, text: str, mode: Optional[int] = None) -> None:
    """Write ``text`` to a temporary sibling, then rename it over ``path``."""
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None and os.name == "posix":
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        logger.error(f"Failed to write {path}: {e}")
        raise StorageError(f"Failed to write {path.name}", details={"path": str(path)}, cause=e) from e


class AccountStore:
    """
    Multi-account manager backed by two sibling files.

    States:
        Locked: only metadata is available.
        Unlocked: the decrypted key map is held in memory.

    Any mutating call made while locked first unlocks with the password it
    was given; a missing keystore file is bootstrapped as an empty keystore
    under that password.
    """

    def __init__(
        self,
        storage: Optional[StorageConfig] = None,
        kdf: Optional[KdfParams] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the account store.

        Args:
            storage: File locations (defaults to the per-user location)
            kdf: Argon2id parameters for newly sealed keystores
            clock: Monotonic seconds, used for auto-lock
        """
        self.storage = storage or StorageConfig.default()
        self.crypto = KeystoreCrypto(kdf or KdfParams())
        self._clock = clock or time.monotonic
        self._unlocked_keys: Optional[SecretKeyMap] = None
        self._last_activity: Optional[float] = None

        try:
            self.storage.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Cannot create storage directory {self.storage.base_dir}", cause=e
            ) from e

        self._config = self._load_config()

    # ------------------------------------------------------------------
    # Lock state
    # ------------------------------------------------------------------

    @property
    def is_unlocked(self) -> bool:
        return self._unlocked_keys is not None

    @property
    def active_account_id(self) -> Optional[str]:
        return self._config.active_account_id

    @property
    def security_settings(self) -> SecuritySettings:
        return self._config.security_settings.model_copy()

    def keystore_exists(self) -> bool:
        return self.storage.keystore_path.exists()

    def unlock(self, password: PasswordLike) -> None:
        """
        Decrypt the keystore into memory.

        A missing keystore file is created empty under ``password``.

        Raises:
            BadPassword: Wrong password
            CorruptEnvelope, MalformedKeyData: Keystore cannot be read
            StorageError: File I/O failure
        """
        with borrowed_secret(password) as pw:
            if not self.keystore_exists():
                envelope = self.crypto.seal({}, pw)
                self._save_keystore(envelope)
                keys = SecretKeyMap()
                logger.info("Created new empty keystore")
            else:
                keys = self.crypto.open(self._load_keystore(), pw)

        if self._unlocked_keys is not None:
            self._unlocked_keys.wipe()
        self._unlocked_keys = keys
        self.touch()
        logger.info(f"Keystore unlocked ({len(keys)} key(s))")

    def lock(self) -> None:
        """Wipe the decrypted key map."""
        if self._unlocked_keys is not None:
            self._unlocked_keys.wipe()
            self._unlocked_keys = None
            logger.info("Keystore locked")
        self._last_activity = None

    def touch(self) -> None:
        """Record secret access for the auto-lock timer."""
        self._last_activity = self._clock()

    def lock_if_idle(self) -> bool:
        """
        Lock if the auto-lock timeout has elapsed since the last secret access.

        Returns:
            True if the store was locked by this call
        """
        timeout = self._config.security_settings.auto_lock_timeout_minutes
        if not self.is_unlocked or timeout is None or self._last_activity is None:
            return False
        if self._clock() - self._last_activity >= timeout * 60:
            logger.warning(f"Auto-locking keystore after {timeout} idle minute(s)")
            self.lock()
            return True
        return False

    def _ensure_unlocked(self, password: PasswordLike) -> None:
        self.lock_if_idle()
        if not self.is_unlocked:
            self.unlock(password)

    def _require_unlocked(self) -> SecretKeyMap:
        self.lock_if_idle()
        if self._unlocked_keys is None:
            raise LockedError()
        return self._unlocked_keys

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_account(self, name: str, password: PasswordLike) -> AccountRecord:
        """
        Generate a new identity and store it.

        The first account becomes active.
        """
        name = _validate_name(name)
        self._ensure_unlocked(password)
        keypair = Keypair.generate()
        try:
            return self._add_account(name, keypair, password)
        finally:
            keypair.wipe()

    def import_account(self, name: str, secret_key: str, password: PasswordLike) -> AccountRecord:
        """
        Store an existing identity given its secret key as 64-char hex or ``nsec``.

        Raises:
            ValidationError: Malformed or out-of-range secret key
            DuplicateError: An account already has this public key
        """
        name = _validate_name(name)
        secret_key = secret_key.strip()
        if secret_key.startswith("nsec1"):
            keypair = Keypair.from_nsec(secret_key)
        else:
            keypair = Keypair.from_secret_hex(secret_key)

        try:
            existing = self._config.find_by_public_key(keypair.public_key_hex())
            if existing is not None:
                raise DuplicateError(details={"account_id": existing.id})
            self._ensure_unlocked(password)
            return self._add_account(name, keypair, password)
        finally:
            keypair.wipe()

    def _new_account_id(self) -> str:
        while True:
            account_id = str(uuid.uuid4())
            if self._config.find(account_id) is None:
                return account_id

    def _add_account(self, name: str, keypair: Keypair, password: PasswordLike) -> AccountRecord:
        account_id = self._new_account_id()
        make_active = self._config.active_account_id is None
        record = AccountRecord(
            id=account_id,
            display_name=name,
            public_key_hex=keypair.public_key_hex(),
            public_key_npub=keypair.public_key_npub(),
            created_at=_now_rfc3339(),
            is_active=make_active,
        )

        with SecretBytes(keypair.secret_key_bytes()) as secret:
            updated = self.crypto.add_key(self._load_keystore(), password, account_id, secret)
            self._save_keystore(updated)
            self._require_unlocked().set(account_id, secret.copy())

        config = self._config.model_copy(deep=True)
        config.accounts.append(record)
        if make_active:
            config.set_active(account_id)
        self._commit_config(config)

        logger.info(f"Added account {account_id} ({record.public_key_npub})")
        return record.model_copy()

    def delete_account(self, account_id: str, password: PasswordLike) -> None:
        """
        Remove an account and its secret key.

        If it was active, the first remaining account becomes active.

        Raises:
            NotFoundError: Unknown ``account_id``
        """
        if self._config.find(account_id) is None:
            raise NotFoundError(details={"account_id": account_id})
        self._ensure_unlocked(password)

        updated = self.crypto.remove_key(self._load_keystore(), password, account_id)
        self._save_keystore(updated)
        self._require_unlocked().remove(account_id)

        config = self._config.model_copy(deep=True)
        was_active = config.active_account_id == account_id
        config.accounts = [record for record in config.accounts if record.id != account_id]
        if was_active:
            config.set_active(config.accounts[0].id if config.accounts else None)
        self._commit_config(config)

        logger.info(f"Deleted account {account_id}")
        if was_active:
            logger.info(f"Active account is now {config.active_account_id}")

    def set_active(self, account_id: str) -> None:
        """
        Make ``account_id`` the active account. Touches metadata only.

        Raises:
            NotFoundError: Unknown ``account_id``
        """
        if self._config.find(account_id) is None:
            raise NotFoundError(details={"account_id": account_id})
        config = self._config.model_copy(deep=True)
        config.set_active(account_id)
        self._commit_config(config)
        logger.info(f"Active account is now {account_id}")

    def update_security_settings(self, **changes: Any) -> SecuritySettings:
        """
        Persist changed security settings.

        Raises:
            ValidationError: Unknown setting or invalid value
        """
        try:
            settings = SecuritySettings.model_validate(
                {**self._config.security_settings.model_dump(), **changes}
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid security settings: {e.error_count()} error(s)", cause=e) from e
        config = self._config.model_copy(deep=True)
        config.security_settings = settings
        self._commit_config(config)
        return settings.model_copy()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_accounts(self) -> List[AccountRecord]:
        """Account metadata, in insertion order. Available while locked."""
        return [record.model_copy() for record in self._config.accounts]

    list = list_accounts

    def get_active(self) -> Optional[UnlockedIdentity]:
        """
        The active account with its key pair, or None if no account is active.

        Raises:
            LockedError: Store is locked
            IntegrityError: Metadata and keystore disagree
        """
        keys = self._require_unlocked()
        active_id = self._config.active_account_id
        if active_id is None:
            return None
        record = self._config.find(active_id)
        if record is None:
            raise IntegrityError("Active account not found in metadata", details={"account_id": active_id})
        return self._materialize(record, keys)

    def get(self, account_id: str) -> Optional[UnlockedIdentity]:
        """
        An account with its key pair, or None for an unknown id.

        Raises:
            LockedError: Store is locked
            IntegrityError: The account has no matching secret key
        """
        keys = self._require_unlocked()
        record = self._config.find(account_id)
        if record is None:
            return None
        return self._materialize(record, keys)

    def _materialize(self, record: AccountRecord, keys: SecretKeyMap) -> UnlockedIdentity:
        secret = keys.get(record.id)
        if secret is None:
            raise IntegrityError(
                "Private key not found for account", details={"account_id": record.id}
            )
        keypair = Keypair.from_secret_bytes(secret.expose())
        if keypair.public_key_hex() != record.public_key_hex.lower():
            keypair.wipe()
            raise IntegrityError(
                "Stored secret key does not match account public key",
                details={"account_id": record.id},
            )
        self.touch()
        return UnlockedIdentity(record=record.model_copy(), keypair=keypair)

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign_event(self, event: UnsignedEvent, password: Optional[PasswordLike] = None) -> SignedEvent:
        """
        Sign ``event`` with the active account.

        When ``require_auth_for_signing`` is set the password is checked
        against the keystore first.

        Raises:
            NotFoundError: No active account
            AuthenticationError: Password required but missing
            BadPassword: Password does not match
        """
        identity = self.get_active()
        if identity is None:
            raise NotFoundError("No active account")
        try:
            if self._config.security_settings.require_auth_for_signing:
                if password is None:
                    raise AuthenticationError("Password required for signing")
                self.crypto.verify_password(self._load_keystore(), password)
            return identity.sign(event)
        finally:
            identity.wipe()

    def sign_text_note(self, content: str, password: Optional[PasswordLike] = None,
                       tags: Optional[List[List[str]]] = None) -> SignedEvent:
        """Sign a kind-1 note authored by the active account."""
        active = self._config.find(self._config.active_account_id) if self._config.active_account_id else None
        if active is None:
            raise NotFoundError("No active account")
        event = UnsignedEvent.text_note(content, active.public_key_hex)
        if tags:
            event = event.with_tags(tags)
        return self.sign_event(event, password)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load_config(self) -> AccountsConfig:
        path = self.storage.accounts_path
        if not path.exists():
            config = AccountsConfig()
            self._save_config(config)
            return config
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {path.name}", details={"path": str(path)}, cause=e) from e
        try:
            config = AccountsConfig.model_validate_json(text)
        except PydanticValidationError as e:
            raise StorageError(
                f"Invalid account metadata in {path.name}", details={"path": str(path)}, cause=e
            ) from e
        config.check_invariants()
        return config

    def _save_config(self, config: AccountsConfig) -> None:
        _atomic_write(self.storage.accounts_path, config.model_dump_json(by_alias=True, indent=2))

    def _commit_config(self, config: AccountsConfig) -> None:
        config.check_invariants()
        self._save_config(config)
        self._config = config

    def _load_keystore(self) -> EncryptedEnvelope:
        path = self.storage.keystore_path
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise StorageError("Keystore file does not exist", details={"path": str(path)}, cause=e) from e
        except OSError as e:
            raise StorageError(f"Failed to read {path.name}", details={"path": str(path)}, cause=e) from e
        return EncryptedEnvelope.from_json(text)

    def _save_keystore(self, envelope: EncryptedEnvelope) -> None:
        _atomic_write(self.storage.keystore_path, envelope.to_json(), mode=KEYSTORE_FILE_MODE)

    # ------------------------------------------------------------------

    def __enter__(self) -> AccountStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.lock()

    def __repr__(self) -> str:
        state = "unlocked" if self.is_unlocked else "locked"
        return f"AccountStore(path='{self.storage.base_dir}', accounts={len(self._config.accounts)}, {state})"


__all__ = [
    "AccountStore",
    "AccountRecord",
    "AccountsConfig",
    "SecuritySettings",
    "UnlockedIdentity",
]
