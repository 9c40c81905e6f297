"""
The Bridge: every Endpoint of a configuration, run together.
"""

import logging
import typing
from typing import Callable

import trio

from .backends.irc import IRCConnection
from .config import BridgeConfig
from .endpoint import Endpoint
from .errors import ConfigError
from .relay import EndpointSet

logger = logging.getLogger(__name__)


class Bridge:
    """
    Holds the sealed EndpointSet of a bridge, and runs each Endpoint's
    connection concurrently. An Endpoint failing to connect keeps
    retrying on its own, without affecting the others.
    """

    def __init__(self, endpoints: EndpointSet):
        self.endpoints = endpoints

    @classmethod
    def from_config(
        cls: typing.Type["Bridge"],
        config: BridgeConfig,
        connection_factory: Callable[..., IRCConnection] = IRCConnection,
    ) -> "Bridge":
        """Creates one Endpoint per configured server, in order.

        Raises:
            ConfigError: Two servers share the same identifier.
        """

        endpoints = EndpointSet()
        identifiers = set()

        for server in config.servers:
            if server.identifier in identifiers:
                raise ConfigError(
                    "Duplicate server identifier {!r}".format(server.identifier)
                )

            identifiers.add(server.identifier)
            Endpoint(endpoints, config.bridge, server, connection_factory)

        endpoints.seal()

        return cls(endpoints)

    async def start(self):
        """Runs every Endpoint until the bridge is stopped."""

        logger.info("Starting bridge with %d endpoints", len(self.endpoints))

        async with trio.open_nursery() as nursery:
            for endpoint in self.endpoints:
                nursery.start_soon(endpoint.run)

    async def stop(self):
        """Stops every Endpoint's connection."""

        for endpoint in self.endpoints:
            await endpoint.stop()

    def __repr__(self):
        return "{}({} endpoints)".format(type(self).__name__, len(self.endpoints))
