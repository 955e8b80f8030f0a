"""
Main controller for the Emote Bot.

This module wires the configuration, status records, chat transport, timer
loops and event handlers together, and owns the bot's startup and graceful
shutdown.
"""

import asyncio
import logging
from typing import Optional, Dict, Any
from datetime import datetime

from config_manager import ConfigurationManager
from models import ServerStatus, build_channel_statuses
from task_scheduler import TaskScheduler, now_ms
from chat_transport import TwitchTransport
from stream_status_client import StreamStatusClient
from emote_poster import EmotePoster
from auto_poster import AutoPostScheduler
from live_status import LiveStatusPoller
from reconnect import ReconnectSupervisor, TIMER_NAME as RECONNECT_TIMER
from event_handlers import EventHandlers


class EmoteBotController:
    """
    Orchestrates all components of the Emote Bot.

    The status records are created here and handed to the components that
    need them. Shutdown cancels every timer loop and closes the connections.
    """

    def __init__(self, config_path: str = "config.yml"):
        """
        Initialize the controller.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = config_path
        self.logger = logging.getLogger(__name__)

        # Core components
        self.config_manager: Optional[ConfigurationManager] = None
        self.scheduler: Optional[TaskScheduler] = None
        self.transport: Optional[TwitchTransport] = None
        self.status_client: Optional[StreamStatusClient] = None
        self.poster: Optional[EmotePoster] = None
        self.auto_poster: Optional[AutoPostScheduler] = None
        self.live_poller: Optional[LiveStatusPoller] = None
        self.reconnect_supervisor: Optional[ReconnectSupervisor] = None
        self.handlers: Optional[EventHandlers] = None

        # Runtime state
        self.server_status = ServerStatus()
        self.channel_statuses = {}
        self.is_running = False
        self.startup_time: Optional[datetime] = None
        self.exit_code = 0
        self.shutdown_event = asyncio.Event()

    async def initialize(self) -> None:
        """Load configuration and build all components."""
        self.logger.info("Loading configuration...")
        self.config_manager = ConfigurationManager(self.config_path)

        twitch_config = self.config_manager.get_twitch_config()
        bot_config = self.config_manager.get_bot_config()

        self.channel_statuses = build_channel_statuses(self.config_manager.get_channels(), now_ms())
        self.scheduler = TaskScheduler()

        self.transport = TwitchTransport(
            token=twitch_config['token'],
            nick=twitch_config['nick'],
            channels=list(self.channel_statuses)
        )
        self.status_client = StreamStatusClient(
            token=twitch_config['token'],
            client_id=twitch_config.get('client_id'),
            timeout=bot_config['status_timeout']
        )

        self.poster = EmotePoster(self.transport, bot_config['emote'], self.channel_statuses)
        self.auto_poster = AutoPostScheduler(
            self.scheduler, self.poster, self.channel_statuses,
            enabled=bot_config['auto_post'],
            base_delay=bot_config['auto_post_delay'],
            rng_delay=bot_config['auto_post_rng_delay']
        )
        self.live_poller = LiveStatusPoller(
            self.scheduler, self.status_client, self.channel_statuses,
            enabled=bot_config['auto_post'],
            base_delay=bot_config['auto_post_delay'],
            rng_delay=bot_config['auto_post_rng_delay'],
            retry_delay=bot_config['malformed_retry_delay']
        )
        self.reconnect_supervisor = ReconnectSupervisor(
            self.scheduler, self.transport, self.server_status,
            on_give_up=self._give_up
        )
        self.handlers = EventHandlers(
            self.config_manager, self.server_status, self.channel_statuses,
            self.poster, self.auto_poster, self.live_poller, self.reconnect_supervisor
        )
        self.transport.set_handlers(self.handlers)

        self.logger.info(f"Starting {twitch_config['nick']} bot with config {bot_config}")

    async def start(self) -> None:
        """Open the chat connection."""
        if self.is_running:
            self.logger.warning("Bot is already running")
            return

        self.startup_time = datetime.now()
        self.is_running = True
        await self.transport.connect()

    def _give_up(self) -> None:
        """Stop the bot with a failure exit code after reconnecting failed."""
        self.exit_code = 1
        self.shutdown_event.set()

    def request_shutdown(self) -> None:
        """Ask the bot to stop."""
        self.shutdown_event.set()

    async def stop(self) -> None:
        """Stop all components gracefully."""
        if not self.is_running:
            return

        self.logger.info("Stopping Emote Bot...")
        self.logger.info(f"Final status: {self.get_system_status()}")
        self.is_running = False

        try:
            if self.scheduler:
                await self.scheduler.shutdown()

            if self.transport:
                await self.transport.close()
                self.logger.info("Chat connection closed")

            if self.status_client:
                await self.status_client.close()

            if self.startup_time:
                uptime = datetime.now() - self.startup_time
                self.logger.info(f"Emote Bot stopped (uptime: {uptime})")
            else:
                self.logger.info("Emote Bot stopped")

        except Exception as e:
            self.logger.error(f"Error during shutdown: {e}")

    def get_system_status(self) -> Dict[str, Any]:
        """Get the server and per-channel status."""
        return {
            'running': self.is_running,
            'startup_time': self.startup_time.isoformat() if self.startup_time else None,
            'server': self.server_status.to_dict(),
            'reconnect_pending': bool(self.scheduler and self.scheduler.is_pending(RECONNECT_TIMER)),
            'channels': {
                channel: status.to_dict()
                for channel, status in self.channel_statuses.items()
            }
        }
