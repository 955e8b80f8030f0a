#!/usr/bin/env python3
"""
Unit tests for chat event handling.

Covers mentions, subscription greetings, self-exclusion and the connection
lifecycle.
"""

import copy
import pytest
from unittest.mock import AsyncMock, MagicMock

from config_manager import ConfigurationManager
from conftest import BASE_CONFIG, write_config

from event_handlers import (
    EventHandlers, AUTO_POST_START_DELAY_MS, get_user_from_state, parse_months
)
from models import ServerStatus, build_channel_statuses


@pytest.fixture
def server_status():
    return ServerStatus()


@pytest.fixture
def components():
    poster = MagicMock()
    poster.post = AsyncMock()
    return {
        'poster': poster,
        'auto_poster': MagicMock(),
        'live_poller': MagicMock(),
        'reconnect_supervisor': MagicMock(),
    }


def make_handlers(config_manager, server_status, components):
    statuses = build_channel_statuses(config_manager.get_channels(), 0)
    return EventHandlers(
        config_manager, server_status, statuses,
        components['poster'], components['auto_poster'],
        components['live_poller'], components['reconnect_supervisor']
    )


@pytest.fixture
def handlers(config_manager, server_status, components):
    return make_handlers(config_manager, server_status, components)


def chat_state(username='viewer', display_name='Viewer', message_type='chat'):
    return {'username': username, 'display-name': display_name, 'message-type': message_type}


class TestHelpers:
    """Test sender formatting and month parsing."""

    def test_user_from_display_name(self):
        assert get_user_from_state({'display-name': 'CoolGuy'}, 'coolguy') == '@CoolGuy'

    def test_user_fallback(self):
        assert get_user_from_state({'display-name': ''}, ' #coolguy ') == '@coolguy'
        assert get_user_from_state(None, 'coolguy') == '@coolguy'
        assert get_user_from_state({}, None) == ''

    def test_parse_months(self):
        assert parse_months({'msg-param-cumulative-months': '7', 'msg-param-streak-months': '2'}, 1) == 7
        assert parse_months({'msg-param-cumulative-months': 'x', 'msg-param-streak-months': '2'}, 1) == 2
        assert parse_months({}, '4') == 4
        assert parse_months({}, None) == 0


class TestMentions:
    """Test mention detection and replies."""

    def test_contains_mention(self, handlers):
        assert handlers.contains_mention("hey @BotName check this") == True
        assert handlers.contains_mention("botname") == True
        assert handlers.contains_mention("hi BOTNAME!") == True
        assert handlers.contains_mention("robotname nope") == False
        assert handlers.contains_mention("botnames are cool") == False
        assert handlers.contains_mention("") == False
        assert handlers.contains_mention(None) == False

    @pytest.mark.asyncio
    async def test_mention_reply(self, handlers, components):
        await handlers.on_message('#testchannel', chat_state(), 'hey @BotName check this', False)

        components['poster'].post.assert_called_once_with('testchannel', '@Viewer')

    @pytest.mark.asyncio
    async def test_mention_reply_without_display_name(self, handlers, components):
        await handlers.on_message('testchannel', chat_state(display_name=None), 'botname hi', False)

        components['poster'].post.assert_called_once_with('testchannel', '@viewer')

    @pytest.mark.asyncio
    async def test_self_message_ignored(self, handlers, components):
        await handlers.on_message('testchannel', chat_state(), '@botname', True)
        components['poster'].post.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_chat_message_ignored(self, handlers, components):
        await handlers.on_message('testchannel', chat_state(message_type='action'), '@botname', False)
        await handlers.on_message('testchannel', None, '@botname', False)
        components['poster'].post.assert_not_called()

    @pytest.mark.asyncio
    async def test_reply_mentions_disabled(self, tmp_path, server_status, components):
        config = copy.deepcopy(BASE_CONFIG)
        config['bot']['reply_mentions'] = False
        config_manager = ConfigurationManager(str(write_config(tmp_path / 'config.yml', config)))
        handlers = make_handlers(config_manager, server_status, components)

        await handlers.on_message('testchannel', chat_state(), '@botname', False)

        components['poster'].post.assert_not_called()


class TestSubscriptions:
    """Test subscription and resubscription greetings."""

    @pytest.mark.asyncio
    async def test_subscription_with_tier(self, handlers, components):
        await handlers.on_subscription(
            '#testchannel', 'subber', {'plan': '2000'}, None, {'display-name': 'Subber'}
        )

        components['poster'].post.assert_called_once_with('testchannel', '@Subber Tier2!')

    @pytest.mark.asyncio
    async def test_subscription_without_plan(self, handlers, components):
        await handlers.on_subscription('testchannel', 'subber', None, None, None)

        components['poster'].post.assert_called_once_with('testchannel', '@subber')

    @pytest.mark.asyncio
    async def test_subscription_from_self_ignored(self, handlers, components):
        await handlers.on_subscription('testchannel', 'BOTNAME', {'plan': '1000'}, None, {})
        components['poster'].post.assert_not_called()

    @pytest.mark.asyncio
    async def test_resub_escalation(self, handlers, components):
        """Test that three cumulative months add the emote twice."""
        await handlers.on_resub(
            'testchannel', 'subber', 1, None,
            {'display-name': 'Subber', 'msg-param-cumulative-months': '3'},
            {'plan': '3000'}
        )

        prefix = components['poster'].post.call_args[0][1]
        assert prefix == '@Subber Tier3!! PogChamp PogChamp'
        assert prefix.count('PogChamp') == 2

    @pytest.mark.asyncio
    async def test_resub_streak_fallback(self, handlers, components):
        await handlers.on_resub(
            'testchannel', 'subber', 0, None,
            {'msg-param-cumulative-months': '', 'msg-param-streak-months': '2'},
            {'plan': 'Prime'}
        )

        components['poster'].post.assert_called_once_with('testchannel', '@subber Prime! PogChamp')

    @pytest.mark.asyncio
    async def test_resub_first_month(self, handlers, components):
        await handlers.on_resub('testchannel', 'subber', 1, None, None, None)

        components['poster'].post.assert_called_once_with('testchannel', '@subber')

    @pytest.mark.asyncio
    async def test_resub_from_self_ignored(self, handlers, components):
        await handlers.on_resub('testchannel', 'botname', 5, None, {}, {})
        components['poster'].post.assert_not_called()

    @pytest.mark.asyncio
    async def test_greet_subs_disabled(self, handlers, components):
        handlers.greet_subs = False

        await handlers.on_subscription('testchannel', 'subber', {}, None, {})
        await handlers.on_resub('testchannel', 'subber', 3, None, {}, {})

        components['poster'].post.assert_not_called()


class TestConnectionLifecycle:
    """Test connected, disconnected and notice events."""

    @pytest.mark.asyncio
    async def test_connected_starts_loops(self, handlers, components, server_status):
        server_status.reconnect_try = 3

        await handlers.on_connected('irc.example', 443)

        assert server_status.connected == True
        assert server_status.reconnect_try == 0
        assert (server_status.address, server_status.port) == ('irc.example', 443)

        started = [c[0][0] for c in components['live_poller'].start.call_args_list]
        assert started == ['testchannel', 'other_channel']
        components['auto_poster'].start.assert_any_call('testchannel', AUTO_POST_START_DELAY_MS)
        components['auto_poster'].start.assert_any_call('other_channel', AUTO_POST_START_DELAY_MS)

    @pytest.mark.asyncio
    async def test_disconnect_after_connect_triggers_reconnect(self, handlers, components, server_status):
        await handlers.on_connected('irc.example', 443)
        await handlers.on_disconnected('ping timeout')

        assert server_status.connected == False
        assert server_status.disconnect_reason == 'ping timeout'
        assert server_status.address is None
        components['reconnect_supervisor'].trigger.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_initial_connect_does_not_reconnect(self, handlers, components, server_status):
        await handlers.on_disconnected('login authentication failed')

        assert server_status.disconnect_reason == 'login authentication failed'
        components['reconnect_supervisor'].trigger.assert_not_called()

    @pytest.mark.asyncio
    async def test_notice_changes_nothing(self, handlers, components, server_status):
        await handlers.on_notice('testchannel', 'msg_ratelimit', 'slow down')

        assert server_status.connected == False
        components['poster'].post.assert_not_called()
