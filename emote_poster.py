"""
Emote posting for the Emote Bot.
"""

import logging
from typing import Callable, Dict, Optional

from models import ChannelStatus, normalize_channel
from task_scheduler import now_ms


class EmotePoster:
    """Builds the emote message for a channel and sends it through the chat transport."""

    def __init__(self, transport, emote: str, channel_statuses: Dict[str, ChannelStatus],
                 clock: Callable[[], float] = now_ms):
        self.transport = transport
        self.emote = emote
        self.channel_statuses = channel_statuses
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def build_message(self, prefix: Optional[str] = None) -> str:
        """Return the emote, preceded by the trimmed prefix when there is one."""
        if isinstance(prefix, str) and prefix.strip():
            return f"{prefix.strip()} {self.emote}"
        return self.emote

    async def post(self, channel: str, prefix: Optional[str] = None) -> None:
        """
        Send the emote to a channel and record the post time.

        Send errors are left to the caller.
        """
        key = normalize_channel(channel)
        message = self.build_message(prefix)

        status = self.channel_statuses.get(key)
        if status is None:
            status = self.channel_statuses[key] = ChannelStatus(last_post=self.clock())
        status.last_post = self.clock()

        await self.transport.say(key, message)

        self.logger.info(f"Emote posted to {key} with prefix '{prefix or ''}'")
