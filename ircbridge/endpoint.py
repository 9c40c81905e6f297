"""
Endpoints: one per network the bridge is connected to.

An Endpoint owns its IRC connection, turns the events it receives into
relayed lines for every other Endpoint, and posts the lines relayed by
the others into the channels it has joined.
"""

import logging
import ssl
import typing
from typing import Callable, List

from . import relay
from .backends.irc import IRCConnection
from .config import GlobalConfig, ServerConfig
from .errors import BridgeError
from .events import (Action, ChannelMessage, Join, Kick, NickChange, Part,
                     Quit, Registered, RelayEvent)
from .relay import EndpointSet, RelayPeer


class Endpoint:
    """A connection to a single network, and its share of the relay."""

    def __init__(
        self,
        endpoints: EndpointSet,
        config: GlobalConfig,
        server_config: ServerConfig,
        connection_factory: Callable[..., IRCConnection] = IRCConnection,
    ):
        """
        Arguments:
            endpoints {EndpointSet} -- Every Endpoint of the bridge, this one included.
            config {GlobalConfig} -- The identity of the bridge.
            server_config {ServerConfig} -- The network this Endpoint connects to.

        Keyword Arguments:
            connection_factory {callable} -- Builds the underlying connection.
                                             (default: IRCConnection)
        """

        self.endpoints = endpoints
        self.config = config
        self.server_config = server_config

        self.logger = logging.getLogger("ircbridge." + self.get_identifier())
        self.channels = []  # type: List[str]
        self.connection = None  # type: typing.Optional[IRCConnection]

        self.initialize(connection_factory)
        self.endpoints.add(self)

    def initialize(self, connection_factory: Callable[..., IRCConnection]):
        """Creates the connection and registers the event handlers."""

        self.connection = connection_factory(
            self.server_config.address,
            port=self.server_config.port,
            nickname=self.config.nickname,
            ident=self.config.ident,
            realname=self.config.realname,
            passw=self.server_config.password,
            channels=self.server_config.channels,
            ssl_ctx=ssl.create_default_context() if self.server_config.secure else None,
            logger=self.logger,
        )

        handlers = {
            Registered.kind: self.on_registered,
            ChannelMessage.kind: self.on_message,
            Action.kind: self.on_action,
            Join.kind: self.on_join,
            Kick.kind: self.on_kick,
            Part.kind: self.on_part,
            Quit.kind: self.on_quit,
            NickChange.kind: self.on_nick,
        }

        for kind, handler in handlers.items():
            self.connection.listen(kind)(handler)

    def get_identifier(self) -> str:
        return self.server_config.identifier

    def is_self(self, nickname: str) -> bool:
        """Whether a nickname is this Endpoint's current one."""
        return nickname.lower() == self.connection.nickname.lower()

    # === Relay ===

    def forward(self, line_handler: Callable[[RelayPeer], typing.Any]) -> int:
        """Applies line_handler to every other Endpoint of the bridge."""

        return relay.forward(self.endpoints, self, line_handler)

    def relay_event(self, event: RelayEvent) -> int:
        """Renders an event and forwards the line to every other Endpoint.

        Returns:
            int -- The number of Endpoints the line was forwarded to.
        """

        line = event.relay_line(self.get_identifier())

        if event.is_action:
            return self.forward(lambda peer: peer.send_action(line))

        return self.forward(lambda peer: peer.send_message(line))

    # === Event handlers ===

    async def on_registered(self, kind: str, event: Registered):
        self.logger.debug("Registered with server as %s.", event.nickname)
        self.channels.clear()

        if self.server_config.modes:
            self.connection.send_raw("MODE", event.nickname, self.server_config.modes)

    async def on_message(self, kind: str, event: ChannelMessage):
        self.logger.debug("Received message on %s", self.get_identifier())
        self.relay_event(event)

    async def on_action(self, kind: str, event: Action):
        self.logger.debug("Received action on %s", self.get_identifier())
        self.relay_event(event)

    async def on_join(self, kind: str, event: Join):
        self.logger.debug("Received join on %s", self.get_identifier())

        if self.is_self(event.nick):
            if event.channel not in self.channels:
                self.channels.append(event.channel)

            self.logger.debug("Skipping own join!")
            return

        self.relay_event(event)

    async def on_kick(self, kind: str, event: Kick):
        self.logger.debug("Received kick on %s", self.get_identifier())

        if self.is_self(event.nick) and event.channel in self.channels:
            self.channels.remove(event.channel)

        self.relay_event(event)

    async def on_part(self, kind: str, event: Part):
        self.logger.debug("Received part on %s", self.get_identifier())

        if self.is_self(event.nick) and event.channel in self.channels:
            self.channels.remove(event.channel)

        self.relay_event(event)

    async def on_quit(self, kind: str, event: Quit):
        self.logger.debug("Received quit on %s", self.get_identifier())
        self.relay_event(event)

    async def on_nick(self, kind: str, event: NickChange):
        self.logger.debug("Received nick change on %s", self.get_identifier())
        self.relay_event(event)

    # === Outbound ===

    def _send_each(self, send: Callable[[str, str], None], text: str) -> int:
        sent = 0

        for channel in list(self.channels):
            self.logger.debug("Forwarding to %s:%s", self.get_identifier(), channel)

            try:
                send(channel, text)

            except (BridgeError, OSError) as err:
                self.logger.warning(
                    "Could not forward to %s:%s: %s", self.get_identifier(), channel, err
                )

            else:
                sent += 1

        return sent

    def send_message(self, text: str) -> int:
        """Sends a message to every channel this Endpoint has joined.

        Returns:
            int -- The number of channels the message was queued to.
        """

        return self._send_each(self.connection.say, text)

    def send_action(self, text: str) -> int:
        """Sends an action to every channel this Endpoint has joined.

        Returns:
            int -- The number of channels the action was queued to.
        """

        return self._send_each(self.connection.action, text)

    # === Lifecycle ===

    async def run(self):
        """Runs the connection, reconnecting whenever it drops."""

        self.logger.info(
            "Connecting to %s:%d", self.server_config.address, self.server_config.port
        )
        await self.connection.run_forever(self.config.retry_delay)

    async def stop(self):
        await self.connection.stop()

    def __repr__(self):
        return "{}({!r})".format(type(self).__name__, self.get_identifier())
