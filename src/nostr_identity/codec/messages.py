"""
Relay wire messages.

Client to relay: ``["EVENT", <event>]``.
Relay to client: ``["OK", <id>, <accepted>, <message>]``, ``["NOTICE", <message>]``,
``["EOSE", <subscription>]``, ``["CLOSED", <subscription>, <message>]``.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Union
import json

from ..runtime.errors import ProtocolError
from .event import SignedEvent


@dataclass(frozen=True)
class OkMessage:
    """Relay verdict on a published event."""
    event_id: str
    accepted: bool
    message: str = ""

    @property
    def reason(self) -> str:
        """Machine-readable prefix of the message, e.g. ``"duplicate"`` or ``"invalid"``."""
        prefix, sep, _ = self.message.partition(":")
        return prefix.strip() if sep else ""


@dataclass(frozen=True)
class NoticeMessage:
    message: str


@dataclass(frozen=True)
class EoseMessage:
    subscription_id: str


@dataclass(frozen=True)
class ClosedMessage:
    subscription_id: str
    message: str = ""


@dataclass(frozen=True)
class UnknownMessage:
    """Well-formed frame with a label this client does not handle, e.g. ``AUTH``."""
    label: str
    frame: List[Any]


RelayMessage = Union[OkMessage, NoticeMessage, EoseMessage, ClosedMessage, UnknownMessage]


def event_message(event: SignedEvent) -> List[Any]:
    """Build the ``EVENT`` frame for a signed event."""
    return ["EVENT", event.to_dict()]


def encode_message(message: List[Any]) -> str:
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False)


def _require_str(frame: List[Any], index: int, label: str) -> str:
    if len(frame) <= index or not isinstance(frame[index], str):
        raise ProtocolError(f"{label} frame field {index} must be a string", details={"frame": frame})
    return frame[index]


def parse_relay_message(text: Union[str, bytes]) -> RelayMessage:
    """
    Parse a relay frame.

    Raises:
        ProtocolError: For non-JSON, non-array or malformed frames. Frames
            with an unrecognised label come back as :class:`UnknownMessage`.
    """
    try:
        frame = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError("Relay frame is not valid JSON", cause=e) from e

    if not isinstance(frame, list) or not frame or not isinstance(frame[0], str):
        raise ProtocolError("Relay frame must be a non-empty array with a string label")

    label = frame[0]
    if label == "OK":
        if len(frame) != 4 or not isinstance(frame[2], bool):
            raise ProtocolError("OK frame must be [\"OK\", id, bool, message]", details={"frame": frame})
        return OkMessage(
            event_id=_require_str(frame, 1, label),
            accepted=frame[2],
            message=_require_str(frame, 3, label),
        )
    if label == "NOTICE":
        return NoticeMessage(message=_require_str(frame, 1, label))
    if label == "EOSE":
        return EoseMessage(subscription_id=_require_str(frame, 1, label))
    if label == "CLOSED":
        message = _require_str(frame, 2, label) if len(frame) > 2 else ""
        return ClosedMessage(subscription_id=_require_str(frame, 1, label), message=message)

    return UnknownMessage(label=label, frame=frame)


def check_ok(ok: OkMessage, expected_id: str) -> OkMessage:
    """
    Ensure an OK answers the event that was sent.

    Raises:
        ProtocolError: If the returned id differs from ``expected_id``
    """
    if ok.event_id.lower() != expected_id.lower():
        raise ProtocolError(
            "Relay OK refers to a different event",
            details={"expected": expected_id, "received": ok.event_id},
        )
    return ok


__all__ = [
    "OkMessage",
    "NoticeMessage",
    "EoseMessage",
    "ClosedMessage",
    "UnknownMessage",
    "RelayMessage",
    "event_message",
    "encode_message",
    "parse_relay_message",
    "check_ok",
]
