"""
Live-status polling for the Emote Bot.

Each channel gets one timer chain that asks the streams endpoint whether the
channel is broadcasting and stores the answer in its ChannelStatus. The
auto-post loop only posts while that flag is set.
"""

import asyncio
import logging
from typing import Any, Dict

from models import ChannelStatus, normalize_channel
from event_log import log_event
from stream_status_client import (
    StreamStatusClient, StreamStatusError, is_live, is_valid_status_body
)
from task_scheduler import TaskScheduler


class LiveStatusPoller:
    """Per-channel live-status loop driven by a TaskScheduler."""

    def __init__(self, scheduler: TaskScheduler, status_client: StreamStatusClient,
                 channel_statuses: Dict[str, ChannelStatus], enabled: bool,
                 base_delay: float, rng_delay: float, retry_delay: float = 0):
        """
        Args:
            scheduler: Timer primitive used to re-arm polls
            status_client: Helix streams client
            channel_statuses: Shared per-channel status records
            enabled: The auto_post flag; when False the loop never starts
            base_delay: Auto-post base delay in milliseconds
            rng_delay: Auto-post jitter window in milliseconds
            retry_delay: Pause in milliseconds before re-querying after a
                malformed response (0 re-queries immediately)
        """
        self.scheduler = scheduler
        self.status_client = status_client
        self.channel_statuses = channel_statuses
        self.enabled = enabled
        self.poll_interval = max(base_delay - rng_delay / 2, 0)
        self.retry_delay = retry_delay
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def timer_name(channel: str) -> str:
        return f"livecheck:{normalize_channel(channel)}"

    def start(self, channel: str) -> None:
        """Start (or restart) polling for a channel right away."""
        if not self.enabled:
            return

        name = self.timer_name(channel)
        self.scheduler.cancel(name)
        self.scheduler.call_later(name, 0, self.tick, channel)

    async def query(self, channel: str) -> Dict[str, Any]:
        """Query the status endpoint until it returns a well-formed body."""
        while True:
            try:
                body = await self.status_client.fetch_stream_status(channel)
            except StreamStatusError as e:
                self.logger.debug(f"Status query for {channel} failed, retrying: {e}")
                body = None

            if is_valid_status_body(body):
                return body

            self.logger.debug(f"Malformed status response for {channel}, retrying")
            if self.retry_delay:
                await asyncio.sleep(self.retry_delay / 1000)

    def apply_status(self, channel: str, body: Dict[str, Any]) -> bool:
        """
        Store the live flag derived from a status body.

        Returns:
            True if the live flag changed
        """
        status = self.channel_statuses[channel]
        previous = status.live
        status.live = is_live(body)

        if previous == status.live:
            return False

        log_event(
            logging.INFO,
            f"channel {channel} went {'live' if status.live else 'offline'}",
            label='channelStatus',
            data=status.to_dict()
        )
        self.logger.info(f"Channel {channel} went {'LIVE' if status.live else 'OFFLINE'}")
        return True

    async def tick(self, channel: str) -> None:
        """Run one poll and re-arm the timer."""
        key = normalize_channel(channel)
        body = await self.query(key)
        self.apply_status(key, body)
        self.scheduler.call_later(self.timer_name(key), self.poll_interval, self.tick, key)
