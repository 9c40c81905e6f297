import pytest

from ircbridge.bridge import Bridge
from ircbridge.config import parse_config

NICKNAME = "bridge"


def make_config(*identifiers, modes="", channels=("#chat",)):
    return parse_config(
        {
            "nickname": NICKNAME,
            "ident": "relay",
            "realname": "Test bridge",
            "servers": [
                {
                    "address": "irc.{}.test".format(identifier),
                    "identifier": identifier,
                    "modes": modes,
                    "channels": list(channels),
                }
                for identifier in identifiers
            ],
        }
    )


async def feed(endpoint, *lines):
    """Hands raw server lines to an endpoint's connection."""

    for line in lines:
        await endpoint.connection._receive(line)


async def bring_up(endpoint, channels=("#chat",)):
    """Registers an endpoint and makes it join its channels, then
    discards everything queued so far (handshake, MODE, JOINs)."""

    await feed(endpoint, ":irc.test 001 {} :Welcome".format(NICKNAME))

    for channel in channels:
        await feed(endpoint, ":{}!relay@bridge.host JOIN {}".format(NICKNAME, channel))

    endpoint.connection.pending()


@pytest.fixture
def three_networks():
    bridge = Bridge.from_config(make_config("neta", "netb", "netc"))
    return bridge, list(bridge.endpoints)


@pytest.fixture
async def live_networks(three_networks):
    bridge, endpoints = three_networks

    for endpoint in endpoints:
        await bring_up(endpoint)

    return endpoints
