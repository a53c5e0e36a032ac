"""
WebSocket relay transport.

Publishes signed events to a single relay and waits for its ``OK`` verdict.
One connection per publish; no reconnection or retry.
"""

import asyncio
import logging
from enum import Enum
from typing import Dict, List, Optional
from urllib.parse import urlparse

from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

from ..codec.event import SignedEvent
from ..codec.messages import (
    NoticeMessage,
    OkMessage,
    UnknownMessage,
    check_ok,
    encode_message,
    event_message,
    parse_relay_message,
)
from ..runtime.errors import ErrorCode, ProtocolError, RelayError, ValidationError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class RelayStatus(Enum):
    """Connection state of a relay client."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


def validate_relay_url(url: str) -> str:
    """
    Check that ``url`` is a ``ws://`` or ``wss://`` URL with a host.

    Returns:
        The stripped URL

    Raises:
        ValidationError: For any other scheme or a missing host
    """
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("ws", "wss"):
        raise ValidationError(
            "Relay URL must start with ws:// or wss://",
            ErrorCode.INVALID_URL,
            details={"url": url},
        )
    if not parsed.hostname:
        raise ValidationError("Relay URL has no host", ErrorCode.INVALID_URL, details={"url": url})
    return url


class RelayClient:
    """
    Minimal publishing client for one relay.

    Example:
        client = RelayClient("wss://relay.example.com")
        ok = await client.publish(signed_event)
        if not ok.accepted:
            print(ok.message)
    """

    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT,
                 headers: Optional[Dict[str, str]] = None):
        """
        Initialize relay client.

        Args:
            url: Relay URL (ws or wss)
            timeout: Seconds allowed for connect, send and the OK reply together
            headers: Extra handshake headers
        """
        self.url = validate_relay_url(url)
        self.timeout = timeout
        self.headers = headers or {}
        self.status = RelayStatus.DISCONNECTED
        self.notices: List[str] = []

    async def publish(self, event: SignedEvent) -> OkMessage:
        """
        Send ``["EVENT", event]`` and return the relay's ``OK``.

        ``NOTICE`` frames received before the ``OK`` are logged and kept in
        :attr:`notices`, which is reset on each call. Frames with other
        labels, such as ``AUTH``, are logged and skipped.

        Returns:
            The relay's verdict; ``accepted`` may be False

        Raises:
            RelayError: Connection failure, early close or timeout
            ProtocolError: Malformed frame or an ``OK`` for a different event
        """
        frame = encode_message(event_message(event))
        self.notices = []
        self.status = RelayStatus.CONNECTING
        logger.info(f"Connecting to relay: {self.url}")

        try:
            ok = await asyncio.wait_for(self._exchange(frame, event.id), self.timeout)
        except asyncio.TimeoutError as e:
            self.status = RelayStatus.FAILED
            raise RelayError(
                f"No OK from relay within {self.timeout}s",
                ErrorCode.RELAY_TIMEOUT,
                details={"url": self.url, "event_id": event.id},
                cause=e,
            ) from e
        except (OSError, WebSocketException) as e:
            self.status = RelayStatus.FAILED
            raise RelayError(
                f"Relay connection failed: {e}", details={"url": self.url}, cause=e
            ) from e
        except (ProtocolError, RelayError):
            self.status = RelayStatus.FAILED
            raise

        self.status = RelayStatus.DISCONNECTED
        if ok.accepted:
            logger.info(f"Relay accepted event {ok.event_id}")
        else:
            logger.warning(f"Relay rejected event {ok.event_id}: {ok.message}")
        return ok

    async def _exchange(self, frame: str, event_id: str) -> OkMessage:
        async with connect(self.url, additional_headers=self.headers, open_timeout=self.timeout) as ws:
            self.status = RelayStatus.CONNECTED
            logger.info(f"Connected to relay: {self.url}")
            await ws.send(frame)
            logger.debug(f"Sent event {event_id}")

            async for raw in ws:
                message = parse_relay_message(raw)
                if isinstance(message, OkMessage):
                    return check_ok(message, event_id)
                if isinstance(message, NoticeMessage):
                    logger.warning(f"Relay notice: {message.message}")
                    self.notices.append(message.message)
                    continue
                label = message.label if isinstance(message, UnknownMessage) else type(message).__name__
                logger.warning(f"Ignoring unexpected {label} frame from relay")

        raise RelayError(
            "Relay closed the connection before answering",
            details={"url": self.url, "event_id": event_id},
        )

    def __repr__(self) -> str:
        return f"RelayClient(url='{self.url}', status={self.status.value})"


async def publish_event(url: str, event: SignedEvent, timeout: float = DEFAULT_TIMEOUT) -> OkMessage:
    """Publish one event to ``url`` with a throwaway client."""
    return await RelayClient(url, timeout=timeout).publish(event)


__all__ = [
    "RelayClient",
    "RelayStatus",
    "validate_relay_url",
    "publish_event",
    "DEFAULT_TIMEOUT",
]
