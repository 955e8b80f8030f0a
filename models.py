"""
Core data models for the Emote Bot.

This module defines the runtime status records shared between the event
handlers, the per-channel timer loops and the reconnect supervisor.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional


def normalize_channel(channel: str) -> str:
    """Return the status key for a channel name ('#Foo' -> 'foo')."""
    return (channel or '').strip().lstrip('#').lower()


@dataclass
class ChannelStatus:
    """Per-channel posting and live state."""

    last_post: float  # ms since epoch
    next_post: float = 0
    live: Optional[bool] = None  # None until the first status query answers

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot for event logging."""
        return asdict(self)


@dataclass
class ServerStatus:
    """Connection state of the chat server."""

    connected: bool = False
    reconnect_try: int = 0
    disconnect_reason: Optional[str] = None
    address: Optional[str] = None
    port: Optional[int] = None

    def mark_connected(self, address: str, port: int) -> None:
        """Record a successful connection and reset the reconnect counter."""
        self.connected = True
        self.reconnect_try = 0
        self.address = address
        self.port = port

    def mark_disconnected(self, reason: Optional[str]) -> bool:
        """
        Record a disconnect.

        Returns:
            True if the server was connected before this call
        """
        previously_connected = self.connected
        self.connected = False
        self.disconnect_reason = reason
        self.address = None
        self.port = None
        return previously_connected

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot for event logging."""
        return asdict(self)


def build_channel_statuses(channels, now_ms: float) -> Dict[str, ChannelStatus]:
    """Create one ChannelStatus per configured channel."""
    return {
        normalize_channel(channel): ChannelStatus(last_post=now_ms)
        for channel in channels
    }
