"""Shared fixtures for Emote Bot tests."""

import asyncio

import pytest
import yaml

from config_manager import ConfigurationManager


BASE_CONFIG = {
    'twitch': {
        'nick': 'BotName',
        'token': 'oauth:test_token',
        'client_id': 'test_client',
        'channels': ['#TestChannel', 'other_channel'],
    },
    'bot': {
        'emote': 'PogChamp',
        'auto_post': True,
        'reply_mentions': True,
        'greet_subs': True,
        'auto_post_delay': 60000,
        'auto_post_rng_delay': 20000,
        'tier_prefixes': {
            '1000': '',
            '2000': 'Tier2!',
            '3000': 'Tier3!!',
            'Prime': 'Prime!',
        },
    },
}


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: float = 1_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeScheduler:
    """Records armed timers instead of running them."""

    def __init__(self):
        self.pending = {}
        self.cancelled = []

    def call_later(self, name, delay_ms, callback, *args):
        self.pending[name] = (delay_ms, callback, args)

    def cancel(self, name):
        self.pending.pop(name, None)
        self.cancelled.append(name)

    def delay(self, name):
        return self.pending[name][0]

    async def fire(self, name):
        _, callback, args = self.pending.pop(name)
        result = callback(*args)
        if asyncio.iscoroutine(result):
            await result


def write_config(path, config):
    with open(path, 'w', encoding='utf-8') as file:
        yaml.safe_dump(config, file)
    return path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def config_path(tmp_path):
    """A valid configuration file."""
    return write_config(tmp_path / 'config.yml', BASE_CONFIG)


@pytest.fixture
def config_manager(config_path):
    return ConfigurationManager(str(config_path))
