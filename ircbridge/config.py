"""
Bridge configuration.

The configuration is a JSON document holding the identity the bridge
uses on every network, plus one entry per network to connect to:

    {
        "nickname": "bridge",
        "ident": "bridge",
        "realname": "IRC bridge",
        "servers": [
            {
                "address": "irc.example.net",
                "port": 6697,
                "secure": true,
                "identifier": "neta",
                "modes": "+B",
                "channels": ["#chat"]
            }
        ]
    }
"""

import json
import typing
from typing import Any, Dict, Optional, Tuple

import attr
from attr.validators import ge, instance_of, optional

from .errors import ConfigError

DEFAULT_CONFIG_PATH = "config.json"

DEFAULT_PORT = 6667
DEFAULT_SECURE_PORT = 6697


def _require(data: Dict[str, Any], key: str, where: str) -> Any:
    if key not in data:
        raise ConfigError("Missing '{}' in {}".format(key, where))

    return data[key]


@attr.s(auto_attribs=True, frozen=True)
class GlobalConfig:
    """The identity of the bridge, shared by every network."""

    nickname: str = attr.ib(validator=instance_of(str))
    ident: str = attr.ib(validator=instance_of(str))
    realname: str = attr.ib(validator=instance_of(str))
    retry_delay: float = attr.ib(default=30.0, validator=[instance_of((int, float)), ge(0)])

    @classmethod
    def from_dict(cls: typing.Type["GlobalConfig"], data: Dict[str, Any]) -> "GlobalConfig":
        nickname = _require(data, "nickname", "the global configuration")

        return cls(
            nickname,
            data.get("ident", nickname),
            data.get("realname", nickname),
            data.get("retry_delay", 30.0),
        )


@attr.s(auto_attribs=True, frozen=True)
class ServerConfig:
    """A single network the bridge connects to."""

    address: str = attr.ib(validator=instance_of(str))
    identifier: str = attr.ib(validator=instance_of(str))
    port: int = attr.ib(default=DEFAULT_PORT, validator=instance_of(int))
    secure: bool = attr.ib(default=False, validator=instance_of(bool))
    modes: str = attr.ib(default="", validator=instance_of(str))
    channels: Tuple[str, ...] = attr.ib(default=(), converter=tuple)
    password: Optional[str] = attr.ib(default=None, validator=optional(instance_of(str)))

    @channels.validator
    def _check_channels(self, attribute, value):
        for channel in value:
            if not isinstance(channel, str):
                raise TypeError(
                    "'{}' must only hold strings, got {!r}".format(attribute.name, channel)
                )

    @classmethod
    def from_dict(cls: typing.Type["ServerConfig"], data: Dict[str, Any]) -> "ServerConfig":
        where = "server {!r}".format(data.get("identifier", data.get("address")))
        secure = data.get("secure", False)
        channels = data.get("channels", ())

        if isinstance(channels, str):
            raise ConfigError("'channels' of {} must be a list".format(where))

        return cls(
            _require(data, "address", where),
            _require(data, "identifier", where),
            data.get("port", DEFAULT_SECURE_PORT if secure is True else DEFAULT_PORT),
            secure,
            data.get("modes", ""),
            channels,
            data.get("password"),
        )


@attr.s(auto_attribs=True, frozen=True)
class BridgeConfig:
    bridge: GlobalConfig
    servers: Tuple[ServerConfig, ...] = attr.ib(converter=tuple)


def parse_config(data: Any) -> BridgeConfig:
    """Builds a BridgeConfig out of an already decoded JSON document.

        >>> config = parse_config({
        ...     'nickname': 'bridge',
        ...     'servers': [{'address': 'irc.example.net', 'identifier': 'neta'}],
        ... })
        >>> config.bridge.ident, config.servers[0].port
        ('bridge', 6667)

    Raises:
        ConfigError: The document is missing a required value, or holds a
                     value of the wrong type or out of range.
    """

    if not isinstance(data, dict):
        raise ConfigError("The configuration must be a JSON object")

    servers = _require(data, "servers", "the global configuration")

    if not isinstance(servers, list) or not all(isinstance(s, dict) for s in servers):
        raise ConfigError("'servers' must be a list of objects")

    try:
        return BridgeConfig(
            GlobalConfig.from_dict(data),
            [ServerConfig.from_dict(server) for server in servers],
        )

    except (TypeError, ValueError) as err:
        raise ConfigError("Invalid configuration: {}".format(err)) from err


def load_config(path: str = DEFAULT_CONFIG_PATH) -> BridgeConfig:
    """Reads and parses the configuration file at `path`.

    Raises:
        ConfigError: The file cannot be read, is not JSON, or is not
                     a valid configuration.
    """

    try:
        with open(path, encoding="utf-8") as config_file:
            data = json.load(config_file)

    except OSError as err:
        raise ConfigError("Cannot read {}: {}".format(path, err)) from err

    except ValueError as err:
        raise ConfigError("{} is not valid JSON: {}".format(path, err)) from err

    return parse_config(data)
