#!/usr/bin/env python3
"""
Emote Bot Startup Script

Entry point for running the Emote Bot: parses the command line, sets up
logging, runs the controller until shutdown and exits with its status code.
"""

import asyncio
import sys
import signal
import argparse
import logging
from pathlib import Path

from config_manager import ConfigurationError
from controller import EmoteBotController
from event_log import setup_event_log


def setup_logging(log_level: str = "INFO"):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler('emote_bot.log')
        ]
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Start the Twitch Emote Bot')
    parser.add_argument(
        '-c', '--config',
        default='config.yml',
        help='Path to configuration file (default: config.yml)'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Set logging level (default: INFO)'
    )
    parser.add_argument(
        '--event-log',
        default=None,
        help='Write structured event records as JSON lines to this file'
    )
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Main entry point. Returns the process exit code."""
    args = parse_args(argv)

    setup_logging(args.log_level)
    setup_event_log(args.event_log)
    logger = logging.getLogger(__name__)

    config_path = Path(args.config)
    if not config_path.exists():
        logger.error(f"Configuration file not found: {config_path}")
        logger.info("Please create a config.yml file or specify a different path with --config")
        return 1

    controller = EmoteBotController(str(config_path))
    loop = asyncio.get_running_loop()
    shutdown_signals = (signal.SIGINT, signal.SIGTERM)

    def signal_handler(signum):
        logger.info(f"Received signal {signum}, initiating shutdown...")
        controller.request_shutdown()

    for signum in shutdown_signals:
        try:
            loop.add_signal_handler(signum, signal_handler, signum)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(signum, lambda received, frame: signal_handler(received))

    try:
        await controller.initialize()
        await controller.start()

        # Wait for shutdown signal or for reconnecting to give up
        await controller.shutdown_event.wait()

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    finally:
        await controller.stop()
        for signum in shutdown_signals:
            try:
                loop.remove_signal_handler(signum)
            except NotImplementedError:
                signal.signal(signum, signal.SIG_DFL)

    return controller.exit_code


def run():
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
