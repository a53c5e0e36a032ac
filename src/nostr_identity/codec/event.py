"""
Event codec.

Content-addressed, Schnorr-signed events (NIP-01):

- ``id`` is the SHA-256 of the canonical commitment of the five unsigned
  fields, hex encoded.
- ``sig`` is a BIP-340 signature over the 32 id bytes by ``pubkey``.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Union
import hashlib
import json
import logging
import time

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from ..crypto import secp256k1
from ..crypto.secp256k1 import Keypair
from ..runtime.errors import ValidationError, ErrorCode
from .canonical import event_commitment

logger = logging.getLogger(__name__)

KIND_METADATA = 0
KIND_TEXT_NOTE = 1

ID_HEX_LENGTH = 64
SIG_HEX_LENGTH = 128


def _now() -> int:
    return int(time.time())


class UnsignedEvent(BaseModel):
    """Event fields that feed the id."""

    model_config = ConfigDict(frozen=True)

    pubkey: StrictStr
    created_at: StrictInt = Field(ge=0)
    kind: StrictInt = Field(default=KIND_TEXT_NOTE, ge=0, le=65535)
    tags: List[List[StrictStr]] = Field(default_factory=list)
    content: StrictStr = ""

    @classmethod
    def text_note(cls, content: str, pubkey: str, created_at: Optional[int] = None) -> UnsignedEvent:
        """Create a kind-1 text note stamped with the current time."""
        return cls(
            pubkey=pubkey,
            created_at=_now() if created_at is None else created_at,
            kind=KIND_TEXT_NOTE,
            tags=[],
            content=content,
        )

    def _replace(self, **changes: Any) -> UnsignedEvent:
        return type(self).model_validate({**self.model_dump(), **changes})

    def with_timestamp(self, created_at: int) -> UnsignedEvent:
        return self._replace(created_at=created_at)

    def with_tags(self, tags: List[List[str]]) -> UnsignedEvent:
        return self._replace(tags=[list(tag) for tag in tags])

    def with_kind(self, kind: int) -> UnsignedEvent:
        return self._replace(kind=kind)

    def with_content(self, content: str) -> UnsignedEvent:
        return self._replace(content=content)

    def canonical_bytes(self) -> bytes:
        return canonical_bytes(self)

    def compute_id(self) -> str:
        return compute_id(self)

    def sign(self, keypair: Keypair) -> SignedEvent:
        return sign(self, keypair)


class SignedEvent(BaseModel):
    """
    A signed event as sent on the wire.

    Field order matches the NIP-01 JSON object.
    """

    model_config = ConfigDict(frozen=True)

    id: StrictStr
    pubkey: StrictStr
    created_at: StrictInt = Field(ge=0)
    kind: StrictInt = Field(ge=0, le=65535)
    tags: List[List[StrictStr]] = Field(default_factory=list)
    content: StrictStr
    sig: StrictStr

    @property
    def signature(self) -> str:
        return self.sig

    def unsigned(self) -> UnsignedEvent:
        """The five fields that feed the id."""
        return UnsignedEvent(
            pubkey=self.pubkey,
            created_at=self.created_at,
            kind=self.kind,
            tags=self.tags,
            content=self.content,
        )

    def verify(self) -> bool:
        return verify(self)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()

    def to_json(self) -> str:
        """Compact JSON, non-ASCII kept as UTF-8."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SignedEvent:
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid event: {e.error_count()} field error(s)", cause=e) from e

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> SignedEvent:
        try:
            return cls.model_validate_json(text)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid event JSON: {e.error_count()} field error(s)", cause=e) from e


def canonical_bytes(event: Union[UnsignedEvent, SignedEvent]) -> bytes:
    """Deterministic byte form of the five id-bearing fields."""
    return event_commitment(event.pubkey, event.created_at, event.kind, event.tags, event.content)


def compute_id(event: Union[UnsignedEvent, SignedEvent]) -> str:
    """SHA-256 of :func:`canonical_bytes`, as 64 hex chars."""
    return hashlib.sha256(canonical_bytes(event)).hexdigest()


def sign(event: UnsignedEvent, keypair: Keypair) -> SignedEvent:
    """
    Compute the id and sign it.

    Raises:
        ValidationError: If the event's pubkey is not the key pair's public key
    """
    if event.pubkey.lower() != keypair.public_key_hex():
        raise ValidationError(
            "Event pubkey does not match signing key",
            ErrorCode.INVALID_PUBLIC_KEY,
            details={"pubkey": event.pubkey, "signer": keypair.public_key_hex()},
        )
    event_id = compute_id(event)
    signature = keypair.sign(bytes.fromhex(event_id))
    logger.debug(f"Signed event {event_id} kind={event.kind}")
    return SignedEvent(
        id=event_id,
        pubkey=event.pubkey,
        created_at=event.created_at,
        kind=event.kind,
        tags=event.tags,
        content=event.content,
        sig=signature.hex(),
    )


def new_text_note(content: str, keypair: Keypair, created_at: Optional[int] = None) -> SignedEvent:
    """Create and sign a kind-1 text note."""
    return sign(UnsignedEvent.text_note(content, keypair.public_key_hex(), created_at), keypair)


def _decode_field(value: str, expected_bytes: int, name: str) -> bytes:
    if len(value) != expected_bytes * 2:
        raise ValidationError(
            f"{name} must be {expected_bytes * 2} hex chars, got {len(value)}",
            ErrorCode.INVALID_LENGTH,
        )
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise ValidationError(f"{name} is not valid hex", ErrorCode.INVALID_HEX, cause=e) from e


def verify(event: SignedEvent) -> bool:
    """
    Verify an event's id and signature.

    Returns:
        True iff the id matches the fields and the signature is valid for the
        id under ``pubkey``

    Raises:
        ValidationError: If id, sig or pubkey are not 32/64/32 bytes of hex
    """
    id_bytes = _decode_field(event.id, secp256k1.DIGEST_LENGTH, "id")
    sig_bytes = _decode_field(event.sig, secp256k1.SIGNATURE_LENGTH, "sig")
    pubkey_bytes = _decode_field(event.pubkey, secp256k1.PUBLIC_KEY_LENGTH, "pubkey")

    if compute_id(event) != id_bytes.hex():
        logger.debug(f"Event {event.id} does not match its content")
        return False
    return secp256k1.verify(pubkey_bytes, id_bytes, sig_bytes)


__all__ = [
    "UnsignedEvent",
    "SignedEvent",
    "canonical_bytes",
    "compute_id",
    "sign",
    "verify",
    "new_text_note",
    "KIND_METADATA",
    "KIND_TEXT_NOTE",
]
