"""
In-memory holders for secret material.

Passwords and decrypted secret keys live in mutable buffers that are
overwritten with zeros when released, either explicitly via ``wipe()`` or on
scope exit when used as context managers.
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Union


class SecretBytes:
    """
    A scrubbable byte buffer.

    ``repr``/``str`` never reveal the contents.
    """

    __slots__ = ("_buf",)

    def __init__(self, data: Union[bytes, bytearray, memoryview]):
        self._buf = bytearray(data)

    @classmethod
    def from_str(cls, value: str) -> SecretBytes:
        """Create from a UTF-8 string, e.g. a password."""
        return cls(value.encode("utf-8"))

    @classmethod
    def from_hex(cls, value: str) -> SecretBytes:
        return cls(bytes.fromhex(value))

    def expose(self) -> bytes:
        """Return a copy of the secret; keep the copy's lifetime short."""
        return bytes(self._buf)

    def expose_hex(self) -> str:
        return self._buf.hex()

    def copy(self) -> SecretBytes:
        """Independent buffer with the same contents."""
        return SecretBytes(self._buf)

    def wipe(self) -> None:
        """Overwrite the buffer with zeros and empty it."""
        for i in range(len(self._buf)):
            self._buf[i] = 0
        del self._buf[:]

    @property
    def wiped(self) -> bool:
        return len(self._buf) == 0

    def __len__(self) -> int:
        return len(self._buf)

    def __eq__(self, other) -> bool:
        if isinstance(other, SecretBytes):
            return self._buf == other._buf
        return NotImplemented

    __hash__ = None

    def __enter__(self) -> SecretBytes:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __del__(self):
        # _buf is missing if __init__ raised
        if getattr(self, "_buf", None) is not None:
            self.wipe()

    def __repr__(self) -> str:
        return "SecretBytes(***)"

    __str__ = __repr__


def as_secret(value: Union[str, bytes, bytearray, SecretBytes]) -> SecretBytes:
    """Coerce a password or key given in any common form into SecretBytes."""
    if isinstance(value, SecretBytes):
        return value
    if isinstance(value, str):
        return SecretBytes.from_str(value)
    return SecretBytes(value)


@contextmanager
def borrowed_secret(value: Union[str, bytes, bytearray, SecretBytes]) -> Iterator[SecretBytes]:
    """
    Yield ``value`` as SecretBytes for the duration of a block.

    A buffer created here is wiped on exit; a SecretBytes passed in by the
    caller stays the caller's to wipe.
    """
    if isinstance(value, SecretBytes):
        yield value
        return
    secret = as_secret(value)
    try:
        yield secret
    finally:
        secret.wipe()


class SecretKeyMap:
    """
    Decrypted mapping of account id to 32-byte secret key.

    Exists only while the keystore is unlocked; ``wipe()`` scrubs every key.
    """

    def __init__(self, keys: Optional[Dict[str, SecretBytes]] = None):
        self._keys: Dict[str, SecretBytes] = dict(keys or {})

    @classmethod
    def from_hex_map(cls, hex_map: Dict[str, str]) -> SecretKeyMap:
        return cls({account_id: SecretBytes.from_hex(h) for account_id, h in hex_map.items()})

    def to_hex_map(self) -> Dict[str, str]:
        """Plain hex mapping, used only to re-encrypt the map."""
        return {account_id: secret.expose_hex() for account_id, secret in self._keys.items()}

    def get(self, account_id: str) -> Optional[SecretBytes]:
        return self._keys.get(account_id)

    def set(self, account_id: str, secret: Union[bytes, bytearray, SecretBytes]) -> None:
        previous = self._keys.get(account_id)
        if previous is not None and previous is not secret:
            previous.wipe()
        self._keys[account_id] = secret if isinstance(secret, SecretBytes) else SecretBytes(secret)

    def remove(self, account_id: str) -> bool:
        secret = self._keys.pop(account_id, None)
        if secret is None:
            return False
        secret.wipe()
        return True

    def account_ids(self) -> List[str]:
        return list(self._keys.keys())

    def copy(self) -> SecretKeyMap:
        return SecretKeyMap({k: v.copy() for k, v in self._keys.items()})

    def wipe(self) -> None:
        for secret in self._keys.values():
            secret.wipe()
        self._keys.clear()

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def __eq__(self, other) -> bool:
        if isinstance(other, SecretKeyMap):
            return self._keys == other._keys
        return NotImplemented

    __hash__ = None

    def __enter__(self) -> SecretKeyMap:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return f"SecretKeyMap(accounts={self.account_ids()})"


__all__ = [
    "SecretBytes",
    "SecretKeyMap",
    "as_secret",
    "borrowed_secret",
]
