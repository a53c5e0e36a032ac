"""
Canonical event serialization.

Encodes the fixed-position commitment ``[0, pubkey, created_at, kind, tags, content]``
as compact UTF-8 JSON. Position, not field name, carries meaning, so there is
no key ordering to get wrong; only whitespace and escaping have to be pinned
down, which the encoder settings below do.
"""

import json
from typing import Any, List, Sequence

from ..runtime.errors import ValidationError, ErrorCode

# Compact separators, raw UTF-8 for non-ASCII (NIP-01).
_ENCODER = json.JSONEncoder(
    separators=(",", ":"),
    ensure_ascii=False,
    allow_nan=False,
    sort_keys=False,
)


def _check_int(value: Any, name: str, maximum: int) -> int:
    # bool is an int subclass and would encode as true/false
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer", ErrorCode.INVALID_INPUT)
    if value < 0 or value > maximum:
        raise ValidationError(f"{name} out of range: {value}", ErrorCode.INVALID_INPUT)
    return value


def _check_tags(tags: Any) -> List[List[str]]:
    if not isinstance(tags, (list, tuple)):
        raise ValidationError("tags must be a list of lists of strings", ErrorCode.INVALID_INPUT)
    result = []
    for tag in tags:
        if not isinstance(tag, (list, tuple)) or not all(isinstance(item, str) for item in tag):
            raise ValidationError("tags must be a list of lists of strings", ErrorCode.INVALID_INPUT)
        result.append(list(tag))
    return result


def encode_positional(values: Sequence[Any]) -> bytes:
    """
    Encode a positional tuple as compact UTF-8 JSON.

    Args:
        values: Sequence of JSON-compatible values (no dicts)

    Returns:
        Encoded bytes

    Raises:
        ValidationError: If a string holds a lone surrogate, which has no
            UTF-8 encoding
    """
    try:
        return _ENCODER.encode(list(values)).encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValidationError(
            "Event fields must be valid Unicode text", ErrorCode.INVALID_INPUT, cause=e
        ) from e


def event_commitment(pubkey: str, created_at: int, kind: int,
                     tags: Sequence[Sequence[str]], content: str) -> bytes:
    """
    Serialize the five unsigned event fields into the bytes that are hashed
    to form the event id.
    """
    if not isinstance(pubkey, str):
        raise ValidationError("pubkey must be a string", ErrorCode.INVALID_INPUT)
    if not isinstance(content, str):
        raise ValidationError("content must be a string", ErrorCode.INVALID_INPUT)
    return encode_positional([
        0,
        pubkey,
        _check_int(created_at, "created_at", 2**64 - 1),
        _check_int(kind, "kind", 65535),
        _check_tags(tags),
        content,
    ])


__all__ = [
    "encode_positional",
    "event_commitment",
]
