"""
Reconnection handling for the Emote Bot.

After an unexpected disconnect the supervisor retries the chat connection with
a linearly growing delay (500ms, 1000ms, ...). Once the attempt limit is
exceeded it gives up, which the controller turns into a non-zero exit.
"""

import logging
from typing import Callable

from models import ServerStatus
from task_scheduler import TaskScheduler


MAX_RECONNECT_ATTEMPTS = 10
RECONNECT_DELAY_STEP_MS = 500
TIMER_NAME = 'reconnect'


class ReconnectSupervisor:
    """Retries the chat connection until it succeeds or the limit is reached."""

    def __init__(self, scheduler: TaskScheduler, transport, server_status: ServerStatus,
                 on_give_up: Callable[[], None],
                 max_attempts: int = MAX_RECONNECT_ATTEMPTS,
                 delay_step_ms: float = RECONNECT_DELAY_STEP_MS):
        self.scheduler = scheduler
        self.transport = transport
        self.server_status = server_status
        self.on_give_up = on_give_up
        self.max_attempts = max_attempts
        self.delay_step_ms = delay_step_ms
        self.gave_up = False
        self.logger = logging.getLogger(__name__)

    def trigger(self) -> None:
        """Start the reconnect chain after a disconnect."""
        self.scheduler.cancel(TIMER_NAME)
        self.scheduler.call_later(TIMER_NAME, 0, self.attempt)

    async def attempt(self) -> None:
        """Make one reconnect attempt and arm the next one."""
        if self.server_status.connected or self.gave_up:
            return

        self.server_status.reconnect_try += 1
        retry = self.server_status.reconnect_try

        if retry > self.max_attempts:
            self.logger.error(f"Tried to reconnect {self.max_attempts} times, giving up")
            self.gave_up = True
            self.on_give_up()
            return

        self.logger.info(f"Trying to reconnect #{retry}...")
        try:
            await self.transport.connect()
        except Exception as e:
            self.logger.warning(f"Reconnect attempt #{retry} failed: {e}")

        self.scheduler.call_later(TIMER_NAME, retry * self.delay_step_ms, self.attempt)
