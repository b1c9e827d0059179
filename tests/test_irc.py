import trio

from tribridge.backends.irc import IRCConnection, IRCMessage, IRCResponse, split_size


def recording_connection():
    conn = IRCConnection("irc.test", nickname="relay")
    sent = []

    async def send(line):
        sent.append(line)
        return True

    conn.send = send
    return conn, sent


def test_split_size():
    assert list(split_size("a" * 650)) == ["a" * 300, "a" * 300, "a" * 50]
    assert list(split_size("one\r\ntwo\n\nthree")) == ["one", "two", "three"]


def test_parse_privmsg():
    response = IRCResponse.parse(":bob!~bob@host PRIVMSG #lounge :hello there")

    assert response.origin == "bob!~bob@host"
    assert response.kind == "PRIVMSG"
    assert response.args == ("#lounge",)
    assert response.data == "hello there"
    assert not response.is_numeric


def test_ping_is_answered():
    conn, sent = recording_connection()

    trio.run(conn._receive, "PING :irc.test")

    assert sent == ["PONG :irc.test"]


def test_registration_is_announced_once():
    conn, _ = recording_connection()
    events = []

    @conn.listen("REGISTERED")
    async def on_registered(kind, data):
        events.append(data)

    async def main():
        await conn._receive(":irc.test 001 relay_ :Welcome")
        await conn._receive(":irc.test 376 relay_ :End of MOTD")

    trio.run(main)

    assert events == [conn]
    assert conn.registered
    assert conn.nickname == "relay_"


def test_nickname_in_use_is_retried():
    conn, sent = recording_connection()

    trio.run(conn._receive, ":irc.test 433 * relay :Nickname is already in use")

    assert conn.nickname == "relay_"
    assert sent == ["NICK relay_"]


def test_privmsg_becomes_a_message_event():
    conn, sent = recording_connection()
    messages = []

    @conn.listen("MESSAGE")
    async def on_message(kind, message):
        messages.append(message)

    trio.run(conn._receive, ":bob!~bob@host PRIVMSG #lounge :hi all")

    message = messages[0]
    assert isinstance(message, IRCMessage)
    assert (message.author_name, message.channel, message.line) == ("bob", "#lounge", "hi all")


def test_character_split_across_reads_is_decoded():
    conn, _ = recording_connection()
    messages = []

    @conn.listen("MESSAGE")
    async def on_message(kind, message):
        messages.append(message.line)

    data = ":bob!~bob@host PRIVMSG #lounge :caf\u00e9 ok\r\n".encode("utf-8")
    split = data.index(b"\xa9")

    async def main():
        buf = await conn._receive_data(b"", data[:split])
        assert messages == []

        return await conn._receive_data(buf, data[split:] + b":bob")

    assert trio.run(main) == b":bob"
    assert messages == ["caf\u00e9 ok"]


def test_nothing_is_sent_while_disconnected():
    conn = IRCConnection("irc.test")

    assert not trio.run(conn.message, "#lounge", "hello")
