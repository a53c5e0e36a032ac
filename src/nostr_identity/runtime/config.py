"""
Configuration for the identity core.

Key-derivation cost parameters and the on-disk storage location.
"""

from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union


HOME_ENV_VAR = "NOSTR_IDENTITY_HOME"
APP_DIR_NAME = "nostr-identity"


@dataclass(frozen=True)
class KdfParams:
    """Argon2id cost parameters used when sealing a keystore."""

    time_cost: int = 3
    memory_cost: int = 65536  # KiB
    parallelism: int = 4
    hash_len: int = 32
    salt_len: int = 16

    def __post_init__(self):
        if self.time_cost < 1:
            raise ValueError(f"time_cost must be >= 1, got {self.time_cost}")
        if self.parallelism < 1:
            raise ValueError(f"parallelism must be >= 1, got {self.parallelism}")
        if self.memory_cost < 8 * self.parallelism:
            raise ValueError(
                f"memory_cost must be >= 8 * parallelism ({8 * self.parallelism}), got {self.memory_cost}"
            )
        if self.hash_len < 32:
            raise ValueError(f"hash_len must be >= 32, got {self.hash_len}")
        if self.salt_len < 8:
            raise ValueError(f"salt_len must be >= 8, got {self.salt_len}")


@dataclass(frozen=True)
class StorageConfig:
    """Location of the metadata file and the encrypted keystore file."""

    base_dir: Path
    accounts_file: str = "accounts.json"
    keystore_file: str = "keystore.json"

    @classmethod
    def at(cls, base_dir: Union[str, Path]) -> StorageConfig:
        """Storage rooted at an explicit directory."""
        return cls(base_dir=Path(base_dir).expanduser())

    @classmethod
    def default(cls, environ: Optional[dict] = None) -> StorageConfig:
        """
        Resolve the per-user storage location.

        Order: $NOSTR_IDENTITY_HOME, then $XDG_CONFIG_HOME/nostr-identity,
        then ~/.config/nostr-identity.
        """
        env = os.environ if environ is None else environ
        explicit = env.get(HOME_ENV_VAR)
        if explicit:
            return cls.at(explicit)
        xdg = env.get("XDG_CONFIG_HOME")
        if xdg:
            return cls.at(Path(xdg) / APP_DIR_NAME)
        return cls.at(Path.home() / ".config" / APP_DIR_NAME)

    @property
    def accounts_path(self) -> Path:
        return self.base_dir / self.accounts_file

    @property
    def keystore_path(self) -> Path:
        return self.base_dir / self.keystore_file


__all__ = [
    "KdfParams",
    "StorageConfig",
    "HOME_ENV_VAR",
]
