"""
Relay coordination: the set of every Endpoint of the bridge, and
the fan-out that hands a line to every Endpoint but its origin.
"""

import typing
from typing import Callable, Iterator, List

from .errors import EndpointSetSealedError


class RelayPeer(typing.Protocol):
    """What the relay needs from an Endpoint it forwards lines to."""

    def send_message(self, text: str) -> int:
        """Sends a line to every channel the peer manages."""
        ...

    def send_action(self, text: str) -> int:
        """Sends a line as an action to every channel the peer manages."""
        ...

    def get_identifier(self) -> str:
        """The identifier of the network the peer is connected to."""
        ...


class EndpointSet:
    """
    The insertion-ordered set of all Endpoints of a bridge.

    Endpoints add themselves while the bridge starts up; the set is
    then sealed, and stays read-only for the rest of the process.

        >>> endpoints = EndpointSet()
        >>> endpoints.add('a')
        >>> endpoints.seal()
        >>> endpoints.add('b')
        Traceback (most recent call last):
            ...
        ircbridge.errors.EndpointSetSealedError: Cannot add 'b': the endpoint set is sealed
    """

    def __init__(self):
        self._members = []  # type: List[RelayPeer]
        self.sealed = False

    def add(self, endpoint: RelayPeer):
        if self.sealed:
            raise EndpointSetSealedError(
                "Cannot add {!r}: the endpoint set is sealed".format(endpoint)
            )

        if not any(member is endpoint for member in self._members):
            self._members.append(endpoint)

    def seal(self):
        """Forbids any further addition."""
        self.sealed = True

    def __iter__(self) -> Iterator[RelayPeer]:
        return iter(self._members)

    def __len__(self) -> int:
        return len(self._members)

    def __repr__(self):
        return "{}({})".format(
            type(self).__name__,
            ", ".join(repr(member.get_identifier()) for member in self._members),
        )


def forward(
    endpoints: EndpointSet,
    origin: RelayPeer,
    line_handler: Callable[[RelayPeer], typing.Any],
) -> int:
    """Applies line_handler to every Endpoint in the set except origin.

    Fan-out is synchronous: every peer is handled before this returns,
    and the handler is expected to merely queue the line on the peer.

    Arguments:
        endpoints {EndpointSet} -- Every Endpoint of the bridge.
        origin {RelayPeer} -- The Endpoint the event was received on; never handled.
        line_handler {callable} -- Called once with each other Endpoint.

    Returns:
        int -- The number of peers handled.
    """

    handled = 0

    for peer in endpoints:
        if peer is origin:
            continue

        line_handler(peer)
        handled += 1

    return handled
