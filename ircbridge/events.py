"""
Typed inbound events.

The IRC backend translates protocol lines into one of the classes
below and emits it under the class's `kind`. Relayable events know how
to render themselves into the line every other network receives.
"""

import typing
from typing import Optional

import attr

from .antiping import break_ping


def _reason_suffix(reason: Optional[str]) -> str:
    """Renders an optional reason; an absent or empty one is omitted."""

    if reason:
        return " ({})".format(reason)

    return ""


@attr.s(auto_attribs=True, frozen=True)
class Registered:
    """The server accepted the connection's registration (numeric 001)."""

    kind: typing.ClassVar[str] = "REGISTERED"

    nickname: str


class RelayEvent:
    """
    Superclass of every event that gets relayed to other networks.

    Subclasses render the relayed line through relay_line, which is
    a pure function of the event's fields and the origin identifier.
    """

    kind: typing.ClassVar[str] = "_"

    #: Whether the line is sent as a CTCP ACTION instead of a plain PRIVMSG.
    is_action: typing.ClassVar[bool] = False

    def relay_line(self, identifier: str) -> str:
        """Renders the line relayed on behalf of the network `identifier`."""

        raise NotImplementedError("Please subclass and implement!")


@attr.s(auto_attribs=True, frozen=True)
class ChannelMessage(RelayEvent):
    """
    A PRIVMSG to a channel.

        >>> ChannelMessage('bob', '#chat', 'hello').relay_line('neta')
        '(neta:b\\x1f\\x1fob) hello'
    """

    kind: typing.ClassVar[str] = "MESSAGE"

    nick: str
    channel: str
    text: str

    def relay_line(self, identifier: str) -> str:
        return "({}:{}) {}".format(identifier, break_ping(self.nick), self.text)


@attr.s(auto_attribs=True, frozen=True)
class Action(RelayEvent):
    """A CTCP ACTION ('/me') to a channel."""

    kind: typing.ClassVar[str] = "ACTION"
    is_action: typing.ClassVar[bool] = True

    nick: str
    channel: str
    text: str

    def relay_line(self, identifier: str) -> str:
        return "({}:{}) {}".format(identifier, break_ping(self.nick), self.text)


@attr.s(auto_attribs=True, frozen=True)
class Join(RelayEvent):
    kind: typing.ClassVar[str] = "JOIN"

    channel: str
    nick: str

    def relay_line(self, identifier: str) -> str:
        return "{}:{} has joined".format(identifier, break_ping(self.nick))


@attr.s(auto_attribs=True, frozen=True)
class Part(RelayEvent):
    kind: typing.ClassVar[str] = "PART"

    channel: str
    nick: str
    reason: Optional[str] = None

    def relay_line(self, identifier: str) -> str:
        return "{}:{} has left{}".format(
            identifier, break_ping(self.nick), _reason_suffix(self.reason)
        )


@attr.s(auto_attribs=True, frozen=True)
class Kick(RelayEvent):
    """
    Someone (`by`) kicked `nick` out of a channel.

        >>> Kick('#chat', 'eve', 'mod', 'spam').relay_line('netb')
        'netb:m\\x1f\\x1fod has kicked e\\x1f\\x1fve (spam)'
    """

    kind: typing.ClassVar[str] = "KICK"

    channel: str
    nick: str
    by: str
    reason: Optional[str] = None

    def relay_line(self, identifier: str) -> str:
        return "{}:{} has kicked {}{}".format(
            identifier,
            break_ping(self.by),
            break_ping(self.nick),
            _reason_suffix(self.reason),
        )


@attr.s(auto_attribs=True, frozen=True)
class Quit(RelayEvent):
    kind: typing.ClassVar[str] = "QUIT"

    nick: str
    reason: Optional[str] = None

    def relay_line(self, identifier: str) -> str:
        return "{}:{} has quit{}".format(
            identifier, break_ping(self.nick), _reason_suffix(self.reason)
        )


@attr.s(auto_attribs=True, frozen=True)
class NickChange(RelayEvent):
    kind: typing.ClassVar[str] = "NICK"

    old: str
    new: str

    def relay_line(self, identifier: str) -> str:
        return "{}:{} is now known as {}".format(
            identifier, break_ping(self.old), break_ping(self.new)
        )


EVENT_TYPES = (
    Registered,
    ChannelMessage,
    Action,
    Join,
    Part,
    Kick,
    Quit,
    NickChange,
)
