"""Runs the bridge: python -m tribridge, or the tribridge script."""

import logging
import sys

import trio_asyncio

from tribridge.bridge import BridgeBot
from tribridge.config import BridgeConfig
from tribridge.errors import TribridgeConfigError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def main():
    try:
        config = BridgeConfig.from_env()

    except TribridgeConfigError as err:
        logging.basicConfig(format=LOG_FORMAT)
        logging.getLogger("tribridge").critical("Bad configuration: %s", err)
        sys.exit(1)

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)

    bot = BridgeBot(config)

    try:
        trio_asyncio.run(bot.start)

    except KeyboardInterrupt:
        logging.getLogger("tribridge").info("Interrupted, exiting")

    if bot.fatal_error is not None:
        sys.exit(1)


if __name__ == "__main__":
    main()
