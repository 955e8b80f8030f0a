"""
Named delayed-task scheduling for the Emote Bot.

Every repeating loop in the bot (auto-post, live-status polling, reconnect)
is a chain of one-shot timers registered here under a stable name. Arming a
name again replaces the pending timer, so each name has at most one chain,
and everything can be cancelled on shutdown.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional


def now_ms() -> float:
    """Current wall-clock time in milliseconds."""
    return time.time() * 1000


class TaskScheduler:
    """Schedules sync or async callbacks after a delay given in milliseconds."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._handles: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self.is_running = True

    def call_later(self, name: str, delay_ms: float, callback: Callable, *args: Any) -> Optional[asyncio.TimerHandle]:
        """
        Arm a one-shot timer, replacing any pending timer with the same name.

        Args:
            name: Timer chain name, e.g. 'autopost:somechannel'
            delay_ms: Delay in milliseconds (negative values fire immediately)
            callback: Function or coroutine function to run
            *args: Arguments passed to the callback

        Returns:
            The timer handle, or None if the scheduler has been shut down
        """
        if not self.is_running:
            self.logger.debug(f"Scheduler stopped, not arming {name}")
            return None

        pending = self._handles.pop(name, None)
        if pending:
            pending.cancel()

        loop = asyncio.get_running_loop()
        handle = loop.call_later(max(delay_ms, 0) / 1000, self._fire, name, callback, args)
        self._handles[name] = handle
        return handle

    def _fire(self, name: str, callback: Callable, args: tuple) -> None:
        self._handles.pop(name, None)
        try:
            result = callback(*args)
        except Exception as e:
            self.logger.error(f"Scheduled callback {name} failed: {e}")
            return

        if asyncio.iscoroutine(result):
            task = asyncio.create_task(result)
            self._tasks[name] = task
            task.add_done_callback(lambda t: self._task_done(name, t))

    def _task_done(self, name: str, task: asyncio.Task) -> None:
        if self._tasks.get(name) is task:
            del self._tasks[name]

        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            self.logger.error(f"Scheduled task {name} failed: {error}")

    def is_pending(self, name: str) -> bool:
        """Check whether a timer with this name is armed."""
        return name in self._handles

    def cancel(self, name: str) -> None:
        """Cancel the pending timer and any running task for a name."""
        handle = self._handles.pop(name, None)
        if handle:
            handle.cancel()

        task = self._tasks.pop(name, None)
        if task and not task.done():
            task.cancel()

    async def shutdown(self) -> None:
        """Cancel every timer and wait for running tasks to finish."""
        self.is_running = False

        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    self.logger.error(f"Error stopping scheduled task: {e}")

        self.logger.info("Task scheduler stopped")
