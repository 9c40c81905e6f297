"""
Runs the bridge described by config.json in the working directory.

The log level is read from the IRCBRIDGE_LOG_LEVEL environment variable.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import trio

from . import __version__
from .bridge import Bridge
from .config import DEFAULT_CONFIG_PATH, load_config
from .errors import ConfigError

LOG_LEVEL_VARIABLE = "IRCBRIDGE_LOG_LEVEL"

logger = logging.getLogger("ircbridge")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="irc-bridge",
        description="Relays chat activity between IRC networks.",
    )

    parser.add_argument(
        "--version", action="version", version="%(prog)s {}".format(__version__)
    )

    return parser.parse_args(argv)


def setup_logging():
    level = os.environ.get(LOG_LEVEL_VARIABLE, "INFO").upper()

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    parse_args(argv)
    setup_logging()

    try:
        bridge = Bridge.from_config(load_config(DEFAULT_CONFIG_PATH))

    except ConfigError as err:
        logger.error("%s", err)
        return 1

    try:
        trio.run(bridge.start)

    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
