"""
Chat event handling for the Emote Bot.

This module turns chat events delivered by the transport into status updates
and emote posts: connection lifecycle, mention replies and subscription
greetings.
"""

import logging
import re
from typing import Any, Dict, Optional

from config_manager import ConfigurationManager
from models import ChannelStatus, ServerStatus, normalize_channel
from event_log import log_event
from emote_poster import EmotePoster
from auto_poster import AutoPostScheduler
from live_status import LiveStatusPoller
from reconnect import ReconnectSupervisor


# Lets the connection settle before the first auto-post tick
AUTO_POST_START_DELAY_MS = 500

NUMERIC_RE = re.compile(r'^[0-9]+$')


def get_user_from_state(userstate: Optional[Dict[str, Any]], fallback: Optional[str]) -> str:
    """Return '@display-name', falling back to '@username', or '' if neither is known."""
    if isinstance(userstate, dict) and userstate.get('display-name'):
        return '@' + str(userstate['display-name'])

    if fallback:
        return '@' + fallback.strip().lstrip('#')

    return ''


def parse_months(userstate: Dict[str, Any], months: Any) -> int:
    """Pick the cumulative month count, then the streak, then the given value."""
    for key in ('msg-param-cumulative-months', 'msg-param-streak-months'):
        value = str(userstate.get(key) or '')
        if NUMERIC_RE.match(value):
            return int(value)

    try:
        return int(months)
    except (TypeError, ValueError):
        return 0


class EventHandlers:
    """Receives transport events and drives the bot's components."""

    def __init__(self, config_manager: ConfigurationManager, server_status: ServerStatus,
                 channel_statuses: Dict[str, ChannelStatus], poster: EmotePoster,
                 auto_poster: AutoPostScheduler, live_poller: LiveStatusPoller,
                 reconnect_supervisor: ReconnectSupervisor):
        self.config_manager = config_manager
        self.server_status = server_status
        self.channel_statuses = channel_statuses
        self.poster = poster
        self.auto_poster = auto_poster
        self.live_poller = live_poller
        self.reconnect_supervisor = reconnect_supervisor
        self.logger = logging.getLogger(__name__)

        bot_config = config_manager.get_bot_config()
        self.emote = bot_config['emote']
        self.reply_mentions = bot_config['reply_mentions']
        self.greet_subs = bot_config['greet_subs']

        self.username = config_manager.get_twitch_config()['nick'].lower()
        self.mention_re = re.compile(r'(?<!\w)@?' + re.escape(self.username) + r'(?!\w)', re.IGNORECASE)

    def contains_mention(self, message: Optional[str]) -> bool:
        """Check whether a message mentions the bot's username as a whole word."""
        return bool(self.mention_re.search((message or '').strip()))

    def is_self(self, username: Optional[str]) -> bool:
        return (username or '').lower() == self.username

    def _tier_prefix(self, methods: Dict[str, Any]) -> str:
        plan = methods.get('plan') or ''
        return self.config_manager.get_tier_prefix(plan) if plan else ''

    async def on_connected(self, address: str, port: int) -> None:
        self.server_status.mark_connected(address, port)

        log_event(logging.INFO, 'connected to twitch', label='connection',
                  arguments={'address': address, 'port': port},
                  server_status=self.server_status.to_dict())
        self.logger.info(f"Connected to {address}:{port}")

        for channel in self.channel_statuses:
            self.live_poller.start(channel)
            self.auto_poster.start(channel, AUTO_POST_START_DELAY_MS)

    async def on_disconnected(self, reason: Optional[str]) -> None:
        previously_connected = self.server_status.mark_disconnected(reason)

        log_event(logging.WARNING, f"disconnected from server: {reason}", label='connection',
                  arguments={'reason': reason},
                  server_status=self.server_status.to_dict())
        self.logger.warning(f"Disconnected from server: {reason}")

        if previously_connected:
            self.reconnect_supervisor.trigger()

    async def on_notice(self, channel: str, msg_id: Optional[str], message: Optional[str]) -> None:
        log_event(logging.DEBUG, f"notice received: {msg_id}", label='notice',
                  arguments={'channel': channel, 'msg_id': msg_id, 'message': message})

    async def on_message(self, channel: str, userstate: Optional[Dict[str, Any]],
                         message: Optional[str], is_self: bool) -> None:
        userstate = userstate or {}
        log_event(logging.INFO, f"message received in {channel}", label='message',
                  arguments={'channel': channel, 'userstate': userstate,
                             'message': message, 'self': is_self})

        if is_self:
            return

        if userstate.get('message-type') != 'chat':
            return

        if self.reply_mentions and self.contains_mention(message):
            await self.poster.post(
                normalize_channel(channel),
                get_user_from_state(userstate, userstate.get('username'))
            )

    async def on_subscription(self, channel: str, username: Optional[str],
                              methods: Optional[Dict[str, Any]], message: Optional[str],
                              userstate: Optional[Dict[str, Any]]) -> None:
        if not self.greet_subs:
            return

        userstate = userstate or {}
        methods = methods or {}
        log_event(logging.INFO, f"subscription in {channel} by {username}", label='subscription',
                  arguments={'channel': channel, 'username': username, 'methods': methods,
                             'message': message, 'userstate': userstate})

        if self.is_self(username):
            return

        prefix = self.build_prefix(userstate, username, methods, months=0)
        await self.poster.post(normalize_channel(channel), prefix)

    async def on_resub(self, channel: str, username: Optional[str], months: Any,
                       message: Optional[str], userstate: Optional[Dict[str, Any]],
                       methods: Optional[Dict[str, Any]]) -> None:
        if not self.greet_subs:
            return

        userstate = userstate or {}
        methods = methods or {}
        log_event(logging.INFO, f"resub in {channel} by {username} for {months} months", label='resub',
                  arguments={'channel': channel, 'username': username, 'months': months,
                             'message': message, 'userstate': userstate, 'methods': methods})

        if self.is_self(username):
            return

        prefix = self.build_prefix(userstate, username, methods, parse_months(userstate, months))
        await self.poster.post(normalize_channel(channel), prefix)

    def build_prefix(self, userstate: Dict[str, Any], username: Optional[str],
                     methods: Dict[str, Any], months: int) -> str:
        """
        Compose the greeting prefix: sender, tier prefix, and one extra emote
        per month beyond the first.
        """
        parts = [get_user_from_state(userstate, username), self._tier_prefix(methods)]
        if months > 1:
            parts.append(' '.join([self.emote] * (months - 1)))
        return ' '.join(part for part in parts if part)
