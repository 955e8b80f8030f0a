"""
Configuration management for the Emote Bot.

This module handles loading and validating configuration settings from YAML
files, filling in defaults for the optional bot options and providing a
centralized interface for all configuration needs.
"""

import yaml
import copy
from typing import Dict, Any, Optional, List
from pathlib import Path
import logging


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""
    pass


DEFAULT_BOT_OPTIONS: Dict[str, Any] = {
    'auto_post': True,
    'reply_mentions': True,
    'greet_subs': True,
    'auto_post_delay': 900000,
    'auto_post_rng_delay': 300000,
    'malformed_retry_delay': 0,
    'status_timeout': 10,
    'tier_prefixes': {},
}


class ConfigurationManager:
    """Manages bot configuration from YAML files."""

    def __init__(self, config_path: str = "config.yml"):
        """Initialize configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self.config: Dict[str, Any] = {}
        self.logger = logging.getLogger(__name__)

        # Load configuration on initialization
        self.load_config()

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file.

        Returns:
            The loaded configuration dictionary with defaults applied

        Raises:
            ConfigurationError: If config file cannot be loaded or is invalid
        """
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r', encoding='utf-8') as file:
                raw_config = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error loading config file: {e}")

        if not isinstance(raw_config, dict):
            raise ConfigurationError("Configuration root must be a mapping")

        config = self._apply_defaults(raw_config)
        self.validate_config(config)
        self.config = config
        self.logger.info(f"Configuration loaded successfully from {self.config_path}")
        return self.config

    def _apply_defaults(self, raw_config: Dict[str, Any]) -> Dict[str, Any]:
        """Fill in optional bot options that are missing."""
        config = copy.deepcopy(raw_config)
        bot = config.get('bot')
        if isinstance(bot, dict):
            for key, value in DEFAULT_BOT_OPTIONS.items():
                bot.setdefault(key, copy.deepcopy(value))
            if bot.get('tier_prefixes') is None:
                bot['tier_prefixes'] = {}
            elif isinstance(bot['tier_prefixes'], dict):
                # YAML reads unquoted plan ids such as 1000 as integers
                bot['tier_prefixes'] = {
                    str(plan): prefix for plan, prefix in bot['tier_prefixes'].items()
                }
        return config

    def validate_config(self, config: Dict[str, Any]) -> bool:
        """Validate configuration structure and values.

        Args:
            config: Configuration dictionary to validate

        Returns:
            True if configuration is valid

        Raises:
            ConfigurationError: If configuration is invalid
        """
        required_sections = ['twitch', 'bot']

        for section in required_sections:
            if not isinstance(config.get(section), dict):
                raise ConfigurationError(f"Missing required configuration section: {section}")

        self._validate_twitch(config['twitch'])
        self._validate_bot(config['bot'])

        return True

    def _validate_twitch(self, twitch: Dict[str, Any]) -> None:
        """Validate Twitch identity and channel list."""
        for field in ['nick', 'token']:
            if not isinstance(twitch.get(field), str) or not twitch[field].strip():
                raise ConfigurationError(f"Missing required Twitch field: {field}")

        channels = twitch.get('channels')
        if not isinstance(channels, list) or not channels:
            raise ConfigurationError("Twitch channels must be a non-empty list")

        for channel in channels:
            if not isinstance(channel, str) or not channel.strip().lstrip('#'):
                raise ConfigurationError(f"Invalid Twitch channel name: {channel!r}")

    def _validate_bot(self, bot: Dict[str, Any]) -> None:
        """Validate bot behaviour options."""
        if not isinstance(bot.get('emote'), str) or not bot['emote'].strip():
            raise ConfigurationError("Missing required bot field: emote")

        for flag in ['auto_post', 'reply_mentions', 'greet_subs']:
            if not isinstance(bot[flag], bool):
                raise ConfigurationError(f"Bot option {flag} must be a boolean")

        delay = bot['auto_post_delay']
        rng_delay = bot['auto_post_rng_delay']

        if not self._is_number(delay) or delay <= 0:
            raise ConfigurationError("auto_post_delay must be a positive number of milliseconds")

        if not self._is_number(rng_delay) or rng_delay < 0:
            raise ConfigurationError("auto_post_rng_delay must be a non-negative number of milliseconds")

        if rng_delay >= 2 * delay:
            raise ConfigurationError("auto_post_rng_delay must be less than twice auto_post_delay")

        if not self._is_number(bot['malformed_retry_delay']) or bot['malformed_retry_delay'] < 0:
            raise ConfigurationError("malformed_retry_delay must be a non-negative number of milliseconds")

        if not self._is_number(bot['status_timeout']) or bot['status_timeout'] <= 0:
            raise ConfigurationError("status_timeout must be a positive number of seconds")

        if not isinstance(bot['tier_prefixes'], dict):
            raise ConfigurationError("tier_prefixes must be a mapping of plan to prefix")

    @staticmethod
    def _is_number(value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    def get_twitch_config(self) -> Dict[str, Any]:
        """Get Twitch identity configuration."""
        return self.config.get('twitch', {})

    def get_bot_config(self) -> Dict[str, Any]:
        """Get bot behaviour configuration."""
        return self.config.get('bot', {})

    def get_channels(self) -> List[str]:
        """Get the configured channel names as written in the config."""
        return list(self.get_twitch_config().get('channels', []))

    def get_tier_prefix(self, plan: Optional[str]) -> str:
        """Look up the prefix for a subscription plan ('1000', '2000', '3000', 'Prime').

        Args:
            plan: Subscription plan identifier

        Returns:
            The configured prefix, or an empty string if none is set
        """
        if not plan:
            return ''
        prefixes = self.get_bot_config().get('tier_prefixes', {})
        return str(prefixes.get(str(plan)) or '')

    def get_config(self) -> Dict[str, Any]:
        """Get the complete configuration dictionary.

        Returns:
            The complete configuration dictionary
        """
        return self.config.copy()
