"""
Timed auto-posting for the Emote Bot.

Each channel gets one timer chain. A tick computes the next eligible post time
(a jittered delay after the last post), posts when the channel is live and the
time has come, and re-arms itself for the next eligible time.
"""

import logging
import random
from typing import Callable, Dict, Optional

from models import ChannelStatus, normalize_channel
from emote_poster import EmotePoster
from task_scheduler import TaskScheduler, now_ms


# Added to every re-arm delay so a timer never fires early or at zero
RESCHEDULE_EPSILON_MS = 10


class AutoPostScheduler:
    """Per-channel auto-post loop driven by a TaskScheduler."""

    def __init__(self, scheduler: TaskScheduler, poster: EmotePoster,
                 channel_statuses: Dict[str, ChannelStatus], enabled: bool,
                 base_delay: float, rng_delay: float,
                 clock: Callable[[], float] = now_ms,
                 rng: Optional[random.Random] = None):
        """
        Args:
            scheduler: Timer primitive used to re-arm ticks
            poster: Emote poster
            channel_statuses: Shared per-channel status records
            enabled: The auto_post flag; when False the loop never starts
            base_delay: Mean delay between posts in milliseconds
            rng_delay: Width of the jitter window in milliseconds
            clock: Millisecond clock
            rng: Random source for the jitter
        """
        self.scheduler = scheduler
        self.poster = poster
        self.channel_statuses = channel_statuses
        self.enabled = enabled
        self.base_delay = base_delay
        self.rng_delay = rng_delay
        self.clock = clock
        self.rng = rng or random.Random()
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def timer_name(channel: str) -> str:
        return f"autopost:{normalize_channel(channel)}"

    def next_post_time(self, channel: str) -> float:
        """
        Return the next eligible post time for a channel, computing it if the
        stored value is older than the last post.
        """
        status = self.channel_statuses[normalize_channel(channel)]

        if not status.last_post:
            status.last_post = self.clock()

        if status.next_post < status.last_post:
            jitter = self.rng.randrange(int(self.rng_delay)) if self.rng_delay >= 1 else 0
            status.next_post = status.last_post + self.base_delay + jitter - self.rng_delay / 2

        return status.next_post

    def start(self, channel: str, delay_ms: float = 0) -> None:
        """Start (or restart) the loop for a channel."""
        if not self.enabled:
            return

        name = self.timer_name(channel)
        self.scheduler.cancel(name)
        self.scheduler.call_later(name, delay_ms, self.tick, channel)

    async def tick(self, channel: str) -> None:
        """Run one scheduler step and re-arm the timer."""
        key = normalize_channel(channel)
        status = self.channel_statuses[key]

        if status.live and self.clock() >= self.next_post_time(key):
            try:
                await self.poster.post(key)
            except Exception as e:
                self.logger.error(f"Failed to auto post to {key}: {e}")

        timeout = self.next_post_time(key) - self.clock() + RESCHEDULE_EPSILON_MS
        self.scheduler.call_later(self.timer_name(key), timeout, self.tick, key)

        if status.live:
            self.logger.info(f"Auto post scheduled for {key} in {int(timeout)}ms")
