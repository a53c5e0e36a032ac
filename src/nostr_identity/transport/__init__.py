"""
Relay transport.
"""

from .ws import RelayClient, RelayStatus, validate_relay_url, publish_event

__all__ = [
    "RelayClient",
    "RelayStatus",
    "validate_relay_url",
    "publish_event",
]
