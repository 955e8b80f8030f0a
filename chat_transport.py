"""
Twitch chat transport for the Emote Bot.

This module wraps a twitchio bot and translates its events into calls on the
bot's EventHandlers (connected, disconnected, notice, message, subscription,
resub). Sending goes through say(). A handler that raises is logged and does
not take the connection down.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional


TWITCH_IRC_ADDRESS = 'irc-ws.chat.twitch.tv'
TWITCH_IRC_PORT = 443

# How long a new connection may take to log in and join before it counts as failed
READY_TIMEOUT_SECONDS = 20.0


class ChatTransportError(Exception):
    """Raised when a message cannot be handed to the chat connection."""
    pass


def build_userstate(message) -> Dict[str, Any]:
    """Convert a twitchio message into a tag dictionary for the handlers."""
    userstate = dict(message.tags or {})
    author = message.author
    if author is not None:
        userstate.setdefault('username', author.name)
        if getattr(author, 'display_name', None):
            userstate.setdefault('display-name', author.display_name)

    content = message.content or ''
    userstate['message-type'] = 'action' if content.startswith('\x01ACTION') else 'chat'
    return userstate


def subscription_methods(tags: Dict[str, Any]) -> Dict[str, Any]:
    """Extract the plan details of a sub/resub notice."""
    plan = tags.get('msg-param-sub-plan') or ''
    return {
        'plan': plan,
        'planName': tags.get('msg-param-sub-plan-name') or '',
        'prime': plan == 'Prime',
    }


class TwitchTransport:
    """
    Chat connection built on twitchio.

    connect() returns once the bot has been started in the background; the
    outcome arrives later as a connected or disconnected event.

    twitchio reconnects a dropped websocket on its own, forever. The transport
    watches the connection instead, reports the drop as a disconnect and closes
    that bot, so reconnecting is left to the caller.
    """

    def __init__(self, token: str, nick: str, channels: List[str], handlers=None,
                 ready_timeout: float = READY_TIMEOUT_SECONDS):
        """
        Args:
            token: Twitch OAuth token (with oauth: prefix)
            nick: Bot username
            channels: Channels to join
            handlers: EventHandlers receiving translated events
            ready_timeout: Seconds to wait for login and channel joins
        """
        self.token = token
        self.nick = nick
        self.channels = [channel.lstrip('#').lower() for channel in channels]
        self.handlers = handlers
        self.ready_timeout = ready_timeout
        self.logger = logging.getLogger(__name__)

        self.bot_instance = None
        self._run_task: Optional[asyncio.Task] = None
        self._closing = False

    def set_handlers(self, handlers) -> None:
        self.handlers = handlers

    async def connect(self) -> None:
        """Start a connection attempt unless one is already running."""
        if self._run_task and not self._run_task.done():
            self.logger.debug("Connection attempt already in progress")
            return

        self._closing = False
        self.bot_instance = self._create_client()
        self.logger.info(f"Connecting to Twitch chat as {self.nick} for channels: {self.channels}")
        self._run_task = asyncio.create_task(self._run(self.bot_instance))

    async def _run(self, bot) -> None:
        """Run one bot until it stops or its connection drops, then report it."""
        start_task = asyncio.ensure_future(bot.start())
        watch_task = asyncio.ensure_future(self._watch_connection(bot))

        try:
            await asyncio.wait({start_task, watch_task}, return_when=asyncio.FIRST_COMPLETED)
            if self._closing:
                return

            if watch_task.done():
                reason = watch_task.result()
                self.logger.warning(f"Twitch connection lost: {reason}")
                await self._close_client(bot)
            else:
                reason = 'Connection closed'
                error = start_task.exception()
                if error is not None:
                    reason = str(error) or error.__class__.__name__
                    self.logger.error(f"Twitch connection failed: {reason}")
        finally:
            for task in (start_task, watch_task):
                if not task.done():
                    task.cancel()

        if not self._closing:
            await self.dispatch('on_disconnected', reason)

    async def _watch_connection(self, bot) -> str:
        """
        Wait until the bot's websocket stops and return the reason.

        A bot that is not ready within ready_timeout counts as failed, since
        twitchio keeps retrying a refused connection without ever returning.
        """
        connection = bot._connection
        try:
            await asyncio.wait_for(connection.is_ready.wait(), timeout=self.ready_timeout)
        except asyncio.TimeoutError:
            return f"Not connected after {self.ready_timeout}s"

        # The keep-alive task reads the socket and ends when it closes
        keeper = connection._keeper
        await asyncio.wait({keeper})

        if not keeper.cancelled() and keeper.exception() is not None:
            return f"Websocket error: {keeper.exception()}"
        return 'Websocket connection closed'

    async def _close_client(self, bot) -> None:
        """Close a bot whose connection dropped, stopping its own reconnect."""
        if self.bot_instance is bot:
            self.bot_instance = None
        try:
            await bot.close()
        except Exception as e:
            self.logger.error(f"Error closing Twitch bot: {e}")

    async def say(self, channel: str, text: str) -> None:
        """
        Send a chat message.

        Raises:
            ChatTransportError: If the bot is not connected or has not joined the channel
        """
        if self.bot_instance is None:
            raise ChatTransportError("Not connected to Twitch chat")

        channel_obj = self.bot_instance.get_channel(channel.lstrip('#'))
        if channel_obj is None:
            raise ChatTransportError(f"Channel {channel} not found or not joined")

        await channel_obj.send(text)

    async def close(self) -> None:
        """Close the connection without reporting a disconnect."""
        self._closing = True

        if self.bot_instance:
            try:
                await self.bot_instance.close()
            except Exception as e:
                self.logger.error(f"Error closing Twitch bot: {e}")
            finally:
                self.bot_instance = None

        if self._run_task and not self._run_task.done():
            self._run_task.cancel()
            try:
                await self._run_task
            except asyncio.CancelledError:
                pass

    async def dispatch(self, event: str, *args: Any) -> None:
        """Deliver an event to the handlers, logging any handler error."""
        handler = getattr(self.handlers, event, None)
        if handler is None:
            return

        try:
            await handler(*args)
        except Exception as e:
            self.logger.error(f"Error in {event} handler: {e}")

    def _create_client(self):
        """Create the twitchio bot that feeds this transport."""
        from twitchio.ext import commands

        outer = self

        class EmoteTwitchBot(commands.Bot):
            def __init__(self):
                super().__init__(
                    token=outer.token,
                    prefix='!',
                    initial_channels=outer.channels
                )
                # A server RECONNECT closes the socket and is reported like any other drop
                self._connection._actions['RECONNECT'] = self._server_reconnect

            async def _server_reconnect(self, parsed):
                outer.logger.info("Twitch requested a reconnect")
                await self._connection._websocket.close()

            async def event_ready(self):
                await outer.dispatch('on_connected', TWITCH_IRC_ADDRESS, TWITCH_IRC_PORT)

            async def event_message(self, message):
                channel = message.channel.name if message.channel else ''
                await outer.dispatch(
                    'on_message',
                    channel,
                    build_userstate(message),
                    message.content or '',
                    bool(message.echo)
                )

            async def event_notice(self, message, msg_id, channel):
                await outer.dispatch('on_notice', channel.name if channel else '', msg_id, message)

            async def event_raw_usernotice(self, channel, tags):
                msg_id = tags.get('msg-id')
                username = tags.get('login') or ''
                methods = subscription_methods(tags)

                if msg_id == 'sub':
                    await outer.dispatch('on_subscription', channel.name, username, methods, None, tags)
                elif msg_id == 'resub':
                    await outer.dispatch(
                        'on_resub', channel.name, username,
                        tags.get('msg-param-streak-months') or 0, None, tags, methods
                    )

            async def event_error(self, error, data=None):
                outer.logger.error(f"Twitch bot error: {error}")

        return EmoteTwitchBot()
