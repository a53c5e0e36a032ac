"""
Event encoding: canonical serialization, ids, signatures and wire frames.
"""

from .canonical import encode_positional, event_commitment
from .event import (
    UnsignedEvent,
    SignedEvent,
    canonical_bytes,
    compute_id,
    sign,
    verify,
    new_text_note,
    KIND_METADATA,
    KIND_TEXT_NOTE,
)
from .messages import (
    OkMessage,
    NoticeMessage,
    EoseMessage,
    ClosedMessage,
    UnknownMessage,
    event_message,
    encode_message,
    parse_relay_message,
    check_ok,
)

__all__ = [
    "encode_positional",
    "event_commitment",
    "UnsignedEvent",
    "SignedEvent",
    "canonical_bytes",
    "compute_id",
    "sign",
    "verify",
    "new_text_note",
    "KIND_METADATA",
    "KIND_TEXT_NOTE",
    "OkMessage",
    "NoticeMessage",
    "EoseMessage",
    "ClosedMessage",
    "UnknownMessage",
    "event_message",
    "encode_message",
    "parse_relay_message",
    "check_ok",
]
