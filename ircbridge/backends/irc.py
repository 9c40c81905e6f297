"""
The IRC backend. Use with great care, as IRC networks can be
rather rigid with client behavior, which includes throttling
(and is why throttling is by default enabled).

Inbound lines are parsed and translated into the typed events of
ircbridge.events; outbound commands are queued and written by the
throttled sender of DuplexBackend.
"""

import ssl
import typing
from typing import Iterable, List, Optional, Tuple

import attr
import trio

from ..backend import DuplexBackend
from ..errors import IRCNotRegisteredError
from ..events import (Action, ChannelMessage, Join, Kick, NickChange, Part,
                      Quit, Registered)

CHANNEL_PREFIXES = "#&+!"

RPL_WELCOME = 1
ERR_NICKNAMEINUSE = 433

MAX_NICK_RETRIES = 5


def is_channel(target: str) -> bool:
    """Whether an IRC target names a channel rather than a user.

        >>> is_channel('#chat'), is_channel('bob')
        (True, False)
    """

    return bool(target) and target[0] in CHANNEL_PREFIXES


@attr.s(auto_attribs=True)
class IRCOrigin:
    """The prefix of an IRC line: either a user mask or a server name."""

    full: str

    # Users
    nick: Optional[str] = None
    ident: Optional[str] = None
    hostname: Optional[str] = None

    @classmethod
    def create(cls: typing.Type["IRCOrigin"], origin: str) -> "IRCOrigin":
        """
        Parses a line prefix.

            >>> IRCOrigin.create('bob!~b@example.org').nick
            'bob'
            >>> IRCOrigin.create('irc.example.net').is_server()
            True
        """

        if "!" in origin:
            nick, _, mask = origin.partition("!")
            ident, _, hostname = mask.partition("@")

            return cls(origin, nick, ident, hostname)

        return cls(origin)

    def is_user(self) -> bool:
        """Whether this IRCOrigin was another client."""
        return self.nick is not None

    def is_server(self) -> bool:
        """Whether this IRCOrigin was a server."""
        return self.nick is None


@attr.s(auto_attribs=True, repr=False)
class IRCResponse:
    """A single parsed line received from an IRC server."""

    line: str
    origin: IRCOrigin
    kind: str
    is_numeric: bool
    args: Tuple[str, ...] = ()
    data: Optional[str] = None

    def __repr__(self):
        return "IRCResponse({})".format(repr(self.line))

    @property
    def numeric(self) -> Optional[int]:
        """The reply code, for numeric replies."""
        return int(self.kind) if self.is_numeric else None

    @staticmethod
    def lex(resp: str) -> Tuple[str, str, bool, List[str], Optional[str]]:
        """Splits a single IRC response line into its constituent parts."""

        if resp.startswith("@"):
            # IRCv3 message tags are not used by the bridge.
            resp = resp.partition(" ")[2]

        origin = ""

        if resp.startswith(":"):
            origin, _, resp = resp[1:].partition(" ")

        resp, sep, trailing = resp.partition(" :")
        tokens = resp.split()

        if not tokens:
            raise ValueError("IRC line has no command")

        kind = tokens[0].upper()
        is_numeric = kind.isdigit() and len(kind) == 3

        return origin, kind, is_numeric, tokens[1:], (trailing if sep else None)

    @classmethod
    def parse(cls: typing.Type["IRCResponse"], resp: str) -> Optional["IRCResponse"]:
        """Parses an IRC server response, according to RFC 1459.

            >>> IRCResponse.parse(':irc.example.net 001 bridge :Welcome').numeric
            1

            >>> print(IRCResponse.parse(':irc.example.net IS okay :a Good Word').args[0])
            okay

            >>> print(IRCResponse.parse(':bob!b@host PART #chat').data)
            None

            >>> IRCResponse.parse('') is None
            True

        Arguments:
            resp {str} -- The IRC response to parse.

        Returns:
            IRCResponse -- The parsed representation, or None for blank lines.
        """

        if not resp.strip():
            return None

        origin, kind, is_numeric, args, data = cls.lex(resp)

        return cls(resp, IRCOrigin.create(origin), kind, is_numeric, tuple(args), data)


def _single_line(text: str) -> str:
    """Keeps outbound text from smuggling extra IRC commands."""

    return text.replace("\r", " ").replace("\n", " ")


class IRCConnection(DuplexBackend):
    """An IRC connection.

    Besides keeping the connection alive, it keeps track of the current
    nickname of the bridge on its network and of whether the server has
    accepted the registration yet.
    """

    def __init__(
        self,
        host: str,
        port: int = 6667,
        nickname: str = "ircbridge",
        ident: Optional[str] = None,
        realname: str = "IRC bridge",
        passw: Optional[str] = None,
        channels: Iterable[str] = (),
        ssl_ctx: Optional[ssl.SSLContext] = None,
        **kwargs
    ):
        """Sets up an IRC connection.

            >>> conn = IRCConnection('irc.example.net')
            >>> conn.running(), conn.registered
            (False, False)
            >>> print(conn.ssl_context)
            None

        Arguments:
            host {str} -- The host of the IRC server.

        Keyword Arguments:
            port {int} -- The port of the IRC server. (default: 6667)

            nickname {str} -- The nickname requested by this connection. (default: 'ircbridge')

            ident {str} -- The username (ident) sent with USER. (default: the nickname)

            realname {str} -- The IRC 'real name' used by this connection.

            passw {str} --  The IRC server password, if any. (default: None)

            channels {Iterable[str]} -- The channels to join after registering. (default: ())

            ssl_ctx {ssl.SSLContext} -- The SSL context used (or None if not using any).
                                        (default: None)
        """

        super().__init__(**kwargs)

        self.host = host
        self.port = port
        self.ssl_context = ssl_ctx
        self.connection = None  # type: Optional[trio.abc.Stream]

        self.default_nickname = nickname
        self.nickname = nickname
        self.nick_retries = 0
        self.ident = ident or nickname
        self.realname = realname
        self.passw = passw
        self.join_channels = list(channels)

        self.registered = False

    # === Inbound ===

    async def _receive(self, line: str) -> bool:
        """
        This function is called asynchronously everytime
        the IRC backend receives a line from the
        remote host (server).

            >>> import trio
            >>> conn = IRCConnection('irc.example.net', nickname='bridge')
            ...
            >>> @conn.listen('JOIN')
            ... async def print_join(_, event):
            ...     print(event)
            ...
            >>> trio.run(conn._receive, ':bob!b@host JOIN #chat')
            Join(channel='#chat', nick='bob')
            True

        Arguments:
            line {str} --   A single line, after being extracted from received data, and
                            stripped of its trailing CRLF.

        Returns:
            bool -- Whether the line is valid IRC data.
        """

        await self.receive_message("_RAW", line)

        try:
            response = IRCResponse.parse(line)

        except ValueError:
            self.logger.debug("Ignoring malformed line %r", line)
            return False

        if response is None:
            return False

        if response.is_numeric:
            await self._receive_numeric(response)

        elif response.kind == "PING":
            self.send_nowait("PONG :{}".format(response.data or " ".join(response.args)))

        elif response.kind == "ERROR":
            self.logger.warning("Server error: %s", response.data)

        elif response.origin.is_user():
            await self._receive_user_command(response)

        return True

    async def _receive_numeric(self, response: IRCResponse):
        if response.numeric == RPL_WELCOME:
            self.registered = True

            if response.args:
                self.nickname = response.args[0]

            self.logger.info("Registered with %s as %s", self.host, self.nickname)
            await self.receive_message(Registered.kind, Registered(self.nickname))

            for channel in self.join_channels:
                self.join(channel)

        elif response.numeric == ERR_NICKNAMEINUSE and not self.registered:
            if self.nick_retries >= MAX_NICK_RETRIES:
                self.logger.error("Nickname %s and its fallbacks are in use", self.default_nickname)
                return

            self.nick_retries += 1
            self.nickname = self.default_nickname + "_" * self.nick_retries
            self.logger.info("Nickname in use, retrying as %s", self.nickname)
            self.send_nowait("NICK {}".format(self.nickname))

    async def _receive_user_command(self, response: IRCResponse):
        nick = response.origin.nick
        args = response.args
        data = response.data
        event = None

        if response.kind == "PRIVMSG" and args and data is not None:
            if not is_channel(args[0]):
                return

            if data.startswith("\x01ACTION ") or data == "\x01ACTION\x01":
                event = Action(nick, args[0], data[len("\x01ACTION ") :].rstrip("\x01"))

            elif not data.startswith("\x01"):
                event = ChannelMessage(nick, args[0], data)

        elif response.kind == "JOIN" and (args or data):
            event = Join(args[0] if args else data, nick)

        elif response.kind == "PART" and args:
            event = Part(args[0], nick, data)

        elif response.kind == "KICK" and len(args) >= 2:
            event = Kick(args[0], args[1], nick, data)

        elif response.kind == "QUIT":
            event = Quit(nick, data)

        elif response.kind == "NICK" and (args or data):
            new = args[0] if args else data

            if nick.lower() == self.nickname.lower():
                self.nickname = new

            event = NickChange(nick, new)

        if event is not None:
            await self.receive_message(event.kind, event)

    async def _receiver(self):
        buf = b""

        try:
            async for data in self.connection:
                buf += data

                while b"\n" in buf:
                    line, buf = buf.split(b"\n", 1)

                    await self._receive(line.rstrip(b"\r").decode("utf-8", "replace"))

        except (trio.BrokenResourceError, trio.ClosedResourceError):
            pass

    # === Outbound ===

    async def _send(self, item: str):
        await self.connection.send_all(item.encode("utf-8") + b"\r\n")

    def send_raw(self, command: str, *params: str):
        """Queues a raw IRC command. The last parameter is sent as
        the trailing one whenever it needs to be.

            >>> conn = IRCConnection('irc.example.net')
            >>> conn.send_raw('MODE', 'bridge', '+B')
            >>> conn.send_raw('PRIVMSG', '#chat', 'hi there')
            >>> conn.pending()
            ['MODE bridge +B', 'PRIVMSG #chat :hi there']
        """

        params = [_single_line(param) for param in params]

        if params and (not params[-1] or " " in params[-1] or params[-1][0] == ":"):
            params[-1] = ":" + params[-1]

        self.send_nowait(" ".join([command] + params))

    def _ensure_registered(self):
        if not self.registered:
            raise IRCNotRegisteredError(
                "Connection to {} is not registered yet".format(self.host)
            )

    def say(self, channel: str, text: str):
        """Queues a message to an IRC channel (or user).

        Raises:
            IRCNotRegisteredError: The server has not accepted this connection yet.
        """

        self._ensure_registered()
        self.send_nowait("PRIVMSG {} :{}".format(channel, _single_line(text)))

    def action(self, channel: str, text: str):
        """Queues a CTCP ACTION to an IRC channel (or user).

        Raises:
            IRCNotRegisteredError: The server has not accepted this connection yet.
        """

        self._ensure_registered()
        self.send_nowait(
            "PRIVMSG {} :\x01ACTION {}\x01".format(channel, _single_line(text))
        )

    def join(self, channel: str):
        """Queues a JOIN to an IRC channel."""

        self.send_nowait("JOIN {}".format(channel))

    def send_irc_handshake(self):
        """
        Queues the IRC handshake, including
        nickname, ident, real name, and optionally
        the server password.
        """

        if self.passw:
            self.send_nowait("PASS {}".format(self.passw))

        self.send_nowait("NICK {}".format(self.nickname))
        self.send_nowait("USER {} 0 * :{}".format(self.ident, self.realname))

    # === Lifecycle ===

    async def _connect(self) -> trio.abc.Stream:
        if self.ssl_context:
            return await trio.open_ssl_over_tcp_stream(
                self.host, self.port, ssl_context=self.ssl_context
            )

        return await trio.open_tcp_stream(self.host, self.port)

    async def start(self):
        """
        Connects and runs the IRC connection until it is closed,
        either by the server or by stop().

        Raises:
            OSError: The connection could not be established.
        """

        with self.stop_scope():
            self.connection = await self._connect()
            self.registered = False
            self.nickname = self.default_nickname
            self.nick_retries = 0
            self.pending()  # stale items from a previous connection
            self._running = True

            self.logger.info("Connected to %s:%d", self.host, self.port)

            try:
                self.send_irc_handshake()

                async with trio.open_nursery() as nursery:
                    nursery.start_soon(self._cooldown)
                    nursery.start_soon(self._sender)

                    await self._receiver()
                    nursery.cancel_scope.cancel()

            finally:
                self._running = False
                self.registered = False

                with trio.CancelScope(shield=True):
                    await self.connection.aclose()

    async def run_forever(self, retry_delay: float = 30.0):
        """
        Runs the connection, reconnecting after `retry_delay` seconds
        whenever it fails or drops, until stop() is called.
        """

        while not self._stopping:
            try:
                await self.start()

            except (OSError, trio.BrokenResourceError) as err:
                self.logger.error(
                    "Could not connect to %s:%d: %s", self.host, self.port, err
                )

            # pylint: disable=broad-except
            except Exception:
                self.logger.exception("Connection to %s:%d failed", self.host, self.port)

            else:
                if not self._stopping:
                    self.logger.warning("Disconnected from %s:%d", self.host, self.port)

            with self.stop_scope():
                await trio.sleep(retry_delay)

    async def stop(self):
        """Stops the connection for good."""

        self._stopping = True

        for scope in list(self.stop_scopes):
            scope.cancel()
