import functools
import logging

import pytest
import trio

from ircbridge.backends.irc import MAX_NICK_RETRIES, IRCConnection, IRCOrigin, IRCResponse
from ircbridge.errors import IRCNotRegisteredError
from ircbridge.events import Action, ChannelMessage, Kick, NickChange, Quit, Registered


def record(conn, *kinds):
    events = []

    for kind in kinds:

        @conn.listen(kind)
        async def _record(_, event):
            events.append(event)

    return events


def test_parse_user_command():
    response = IRCResponse.parse(":bob!~b@example.org KICK #chat eve :no spam please")

    assert response.kind == "KICK"
    assert not response.is_numeric
    assert response.args == ("#chat", "eve")
    assert response.data == "no spam please"
    assert response.origin == IRCOrigin("bob!~b@example.org", "bob", "~b", "example.org")


def test_parse_numeric_and_tags():
    response = IRCResponse.parse("@time=2020-01-01T00:00:00Z :irc.test 433 * bridge :in use")

    assert response.is_numeric
    assert response.numeric == 433
    assert response.origin.is_server()
    assert response.args == ("*", "bridge")


def test_parse_without_prefix():
    response = IRCResponse.parse("PING :irc.test")

    assert response.kind == "PING"
    assert response.origin.full == ""
    assert response.data == "irc.test"


async def test_ping_is_answered():
    conn = IRCConnection("irc.test")

    assert await conn._receive("PING :irc.test")
    assert conn.pending() == ["PONG :irc.test"]


async def test_raw_lines_reach_global_listeners():
    conn = IRCConnection("irc.test")
    raw = []

    @conn.listen_all()
    async def _everything(kind, data):
        raw.append((kind, data))

    await conn._receive(":irc.test NOTICE * :hello")

    assert raw == [("_RAW", ":irc.test NOTICE * :hello")]


async def test_malformed_and_blank_lines_are_ignored():
    conn = IRCConnection("irc.test")

    assert not await conn._receive("")
    assert not await conn._receive(":only.a.prefix")


async def test_welcome_registers_and_joins():
    conn = IRCConnection("irc.test", nickname="bridge", channels=["#a", "#b"])
    events = record(conn, "REGISTERED")

    await conn._receive(":irc.test 001 bridge :Welcome to the test network")

    assert conn.registered
    assert events == [Registered("bridge")]
    assert conn.pending() == ["JOIN #a", "JOIN #b"]


async def test_nickname_in_use_retries_before_registration():
    conn = IRCConnection("irc.test", nickname="bridge")

    await conn._receive(":irc.test 433 * bridge :Nickname is already in use")

    assert conn.nickname == "bridge_"
    assert conn.pending() == ["NICK bridge_"]

    await conn._receive(":irc.test 001 bridge_ :Welcome")
    await conn._receive(":irc.test 433 bridge_ other :Nickname is already in use")

    assert conn.nickname == "bridge_"
    assert conn.pending() == []


async def test_nickname_retries_are_bounded():
    conn = IRCConnection("irc.test", nickname="bridge")

    for _ in range(MAX_NICK_RETRIES + 2):
        await conn._receive(":irc.test 433 * bridge :Nickname is already in use")

    assert conn.nickname == "bridge" + "_" * MAX_NICK_RETRIES
    assert conn.pending() == ["NICK bridge" + "_" * n for n in range(1, MAX_NICK_RETRIES + 1)]


async def test_privmsg_translation():
    conn = IRCConnection("irc.test", nickname="bridge")
    events = record(conn, "MESSAGE", "ACTION")

    await conn._receive(":bob!b@h PRIVMSG #chat :hello: there")
    await conn._receive(":bob!b@h PRIVMSG #chat :\x01ACTION waves\x01")
    await conn._receive(":bob!b@h PRIVMSG #chat :\x01VERSION\x01")
    await conn._receive(":bob!b@h PRIVMSG bridge :private")

    assert events == [
        ChannelMessage("bob", "#chat", "hello: there"),
        Action("bob", "#chat", "waves"),
    ]


async def test_presence_translation():
    conn = IRCConnection("irc.test", nickname="bridge")
    events = record(conn, "KICK", "QUIT", "NICK")

    await conn._receive(":mod!m@h KICK #chat eve")
    await conn._receive(":zed!z@h QUIT :Ping timeout: 240 seconds")
    await conn._receive(":bob!b@h NICK robert")

    assert events == [
        Kick("#chat", "eve", "mod", None),
        Quit("zed", "Ping timeout: 240 seconds"),
        NickChange("bob", "robert"),
    ]
    assert conn.nickname == "bridge"


async def test_server_originated_commands_are_not_events():
    conn = IRCConnection("irc.test")
    events = record(conn, "QUIT", "MESSAGE")

    await conn._receive(":irc.test PRIVMSG #chat :server notice")

    assert events == []


def test_send_raw_uses_trailing_parameter_when_needed():
    conn = IRCConnection("irc.test")

    conn.send_raw("MODE", "bridge", "+B")
    conn.send_raw("PRIVMSG", "#chat", ":)")
    conn.send_raw("TOPIC", "#chat", "")
    conn.send_raw("QUIT")

    assert conn.pending() == ["MODE bridge +B", "PRIVMSG #chat ::)", "TOPIC #chat :", "QUIT"]


async def test_say_and_action_require_registration():
    conn = IRCConnection("irc.test")

    with pytest.raises(IRCNotRegisteredError):
        conn.say("#chat", "hello")

    with pytest.raises(IRCNotRegisteredError):
        conn.action("#chat", "waves")

    await conn._receive(":irc.test 001 ircbridge :Welcome")

    conn.say("#chat", "hello\r\nQUIT :injected")
    conn.action("#chat", "waves")

    assert conn.pending() == [
        "PRIVMSG #chat :hello  QUIT :injected",
        "PRIVMSG #chat :\x01ACTION waves\x01",
    ]


def test_handshake_lines():
    conn = IRCConnection("irc.test", nickname="bridge", ident="relay", realname="A bridge", passw="s3cret")

    conn.send_irc_handshake()

    assert conn.pending() == ["PASS s3cret", "NICK bridge", "USER relay 0 * :A bridge"]


async def test_start_talks_to_a_server(nursery):
    received = []

    async def server(stream):
        await stream.send_all(b":irc.test 001 bridge :Welcome\r\n")

        buf = b""

        async for data in stream:
            buf += data

            while b"\r\n" in buf:
                line, buf = buf.split(b"\r\n", 1)
                received.append(line.decode("utf-8"))

            if "JOIN #chat" in received:
                break

        await stream.aclose()

    listeners = await nursery.start(functools.partial(trio.serve_tcp, server, 0, host="127.0.0.1"))
    port = listeners[0].socket.getsockname()[1]

    conn = IRCConnection("127.0.0.1", port, nickname="bridge", channels=["#chat"], throttle=False)
    events = record(conn, "REGISTERED")

    with trio.fail_after(5):
        await conn.start()

    assert received[:2] == ["NICK bridge", "USER bridge 0 * :IRC bridge"]
    assert "JOIN #chat" in received
    assert events == [Registered("bridge")]
    assert not conn.registered
    assert not conn.running()


async def test_run_forever_retries_until_stopped():
    conn = IRCConnection("irc.test")
    attempts = []

    async def refuse():
        attempts.append(len(attempts))
        raise OSError("Connection refused")

    conn._connect = refuse

    async with trio.open_nursery() as nursery:
        nursery.start_soon(conn.run_forever, 0.01)

        with trio.fail_after(5):
            while len(attempts) < 3:
                await trio.sleep(0.01)

        await conn.stop()

    assert len(attempts) >= 3


async def test_each_session_starts_with_the_configured_nickname(nursery):
    sessions = []

    async def server(stream):
        lines = []
        sessions.append(lines)
        buf = b""

        async for data in stream:
            buf += data

            while b"\r\n" in buf:
                line, buf = buf.split(b"\r\n", 1)
                lines.append(line.decode("utf-8"))

                if line.startswith(b"USER "):
                    await stream.send_all(b":irc.test 433 * bridge :Nickname is already in use\r\n")

            if "NICK bridge_" in lines:
                break

        await stream.aclose()

    listeners = await nursery.start(functools.partial(trio.serve_tcp, server, 0, host="127.0.0.1"))
    port = listeners[0].socket.getsockname()[1]

    conn = IRCConnection("127.0.0.1", port, nickname="bridge", throttle=False)

    with trio.fail_after(5):
        await conn.start()
        await conn.start()

    assert len(sessions) == 2

    for lines in sessions:
        assert lines == ["NICK bridge", "USER bridge 0 * :IRC bridge", "NICK bridge_"]


async def test_run_forever_survives_a_failing_listener(nursery, caplog):
    connections = []

    async def server(stream):
        connections.append(stream)
        await stream.send_all(b":irc.test 001 bridge :Welcome\r\n")

        async for _ in stream:
            pass

    listeners = await nursery.start(functools.partial(trio.serve_tcp, server, 0, host="127.0.0.1"))
    port = listeners[0].socket.getsockname()[1]

    conn = IRCConnection("127.0.0.1", port, nickname="bridge", throttle=False)

    @conn.listen("REGISTERED")
    async def _broken(_, event):
        raise RuntimeError("listener bug")

    with caplog.at_level(logging.ERROR):
        async with trio.open_nursery() as inner:
            inner.start_soon(conn.run_forever, 0.01)

            with trio.fail_after(5):
                while len(connections) < 2:
                    await trio.sleep(0.01)

            await conn.stop()

    assert "Connection to 127.0.0.1:{} failed".format(port) in caplog.text
    assert not conn.running()
