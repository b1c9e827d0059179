"""
The IRC backend. Use with great care, as IRC networks can be
rather rigid with client behavior, which includes throttling
(and is why throttling is by default enabled).
"""

import logging
import ssl
from typing import Iterable, List, Optional, Tuple

import trio

from tribridge.backend import DuplexBackend
from tribridge.bot import Message

RPL_WELCOME = 1
RPL_ENDOFMOTD = 376
ERR_NOMOTD = 422
ERR_NICKNAMEINUSE = 433

MAX_LINE_SIZE = 300


def split_size(line: str, size: int = MAX_LINE_SIZE):
    """Splits a message into lines, and lines into chunks of at most
    a given size.

        >>> list(split_size('abcde\\nfg', 2))
        ['ab', 'cd', 'e', 'fg']
    """

    for part in line.split("\n"):
        part = part.rstrip("\r")

        while part:
            yield part[:size]
            part = part[size:]


class IRCMessage(Message):
    """A message received via the IRC backend."""

    def __init__(self, backend: "IRCConnection", line: str, origin: str, channel: str):
        super().__init__(
            backend,
            line,
            origin.split("!")[0],
            "!".join(origin.split("!")[1:]),
            channel,
            backend.host + "/" + channel,
        )


def irc_lex_response(resp: str) -> Tuple[str, str, str, bool, Tuple[str, ...], str]:
    if resp[:1] == ":":
        resp = resp[1:]

    tokens = iter(resp.split(" "))

    origin = next(tokens, "")
    kind = next(tokens, "")

    if kind.isdigit() and len(kind) == 3:
        kind = int(kind)
        is_numeric = True

    else:
        is_numeric = False

    args = []
    data = []

    for tok in tokens:
        if data:
            data.append(" " + tok)

        elif tok.startswith(":"):
            data.append(tok[1:])

        else:
            args.append(tok)

    dataline = "".join(data)
    del data

    return (resp, origin, kind, is_numeric, tuple(args), dataline)


class IRCParams:
    def __init__(self, args: Iterable[str], data: Optional[str] = None):
        self.args = tuple(args)
        self.data = data and str(data) or ""


class IRCResponse:
    def __init__(
        self,
        line: str,
        origin: str,
        is_numeric: bool,
        kind: str,
        args: List[str],
        data: Optional[str] = None,
    ):
        self.line = line
        self.origin = origin
        self.is_numeric = is_numeric
        self.kind = kind
        self.params = IRCParams(args, data)

    def __repr__(self):
        return "IRCResponse({})".format(repr(self.line))

    @property
    def args(self):
        return self.params.args

    @property
    def data(self):
        return self.params.data

    @classmethod
    def parse(cls, resp: str) -> "IRCResponse":
        """Parses an IRC server response, according to RFC 1459.

            >>> IRCResponse.parse(':zirconium.libera.chat 404 :Not Found').kind
            404

            >>> print(IRCResponse.parse(':zirconium.libera.chat IS okay :a Good Word').args[0])
            okay

            >>> IRCResponse.parse(':irc.test 322 relay #lounge 12 :chit chat').args
            ('relay', '#lounge', '12')

        Arguments:
            resp {str} -- The IRC response to parse.

        Returns:
            IRCResponse -- The parsed representation.
        """

        resp, origin, kind, is_numeric, args, data = irc_lex_response(resp)
        return cls(resp, origin, is_numeric, kind, args, data)


class IRCConnection(DuplexBackend):
    """An IRC connection. Used in order to bridge IRC
    channels elsewhere.
    """

    def __init__(
        self,
        host: str,
        port: int = 6667,
        nickname: str = "DiscordRelay",
        realname: str = "Discord IRC Relay Bot",
        passw: Optional[str] = None,
        ssl_ctx: Optional[ssl.SSLContext] = None,
        logger: Optional[logging.Logger] = None,
        **kwargs
    ):
        """Sets up an IRC connection that can be used as
        a tribridge backend.

            >>> conn = IRCConnection('abcd')
            >>> conn._heat
            0
            >>> print(conn.ssl_context)
            None

            >>> import ssl
            >>> conn = IRCConnection('abcd', ssl_ctx=ssl.create_default_context())
            >>> conn.ssl_context is None
            False

        Arguments:
            host {str} -- The host of the IRC server.

        Keyword Arguments:
            port {int} -- The port of the IRC server. (default: 6667)

            nickname {str} -- The nickname used by this connection. {default: 'DiscordRelay'}

            realname {str} --   The IRC 'real name' used by this connection.
                                (default: 'Discord IRC Relay Bot')

            passw {str} --  The IRC server password used by this connection, if any.
                            (default: None)

            ssl_ctx {ssl.SSLContext} -- The SSL context used (or None if not using any).
                                        (default: None)

            logger {logging.Logger} -- Where to log to. (default: the 'tribridge.irc' logger)
        """

        super().__init__(logger=logger or logging.getLogger("tribridge.irc"), **kwargs)

        self.host = host
        self.port = port
        self.ssl_context = ssl_ctx  # type: Optional[ssl.SSLContext]
        self.connection = None  # type: trio.SocketStream | trio.SSLStream

        self.nickname = nickname
        self.realname = realname
        self.passw = passw

        self.registered = False

    async def send(self, line: str) -> bool:
        """
        Queues to send a raw IRC command (string).
        May be throttled. This function
        blocks, because it must emit the _SENT event.

        Arguments:
            line {str} -- The line to send.

        Returns:
            bool -- Whether the line was queued; False when not connected.
        """

        if not self.running():
            self.logger.debug("Not connected, not sending %r", line)
            return False

        waiting = [True]

        async def post_wait():
            waiting[0] = False

        self._out_queue.put((line, post_wait))

        with self.new_stop_scope():
            while waiting[0]:
                await trio.sleep(0.05)

        return True

    async def _sender(self):
        """
        This async loop is responsible for sending messages,
        handling throttling, and other similar things.
        """

        with self.new_stop_scope():
            while self.running():
                while not self._out_queue.empty():
                    if self.throttle:
                        self._heat += 1

                        if self._heat > self.max_heat():
                            break

                    item, on_send = self._out_queue.get()

                    await self._send(item)

                    if on_send:
                        await on_send()

                    await self.receive_message("_SENT", item)

                if self.running():
                    if self._heat > self.max_heat() and self.throttle:
                        while self._heat:
                            await trio.sleep(0.2)

                    else:
                        await trio.sleep(0.05)

    async def _send(self, item: str):
        try:
            await self.connection.send_all(str(item).encode("utf-8") + b"\r\n")

        except (trio.BrokenResourceError, trio.ClosedResourceError) as err:
            self.logger.warning("Could not send to %s: %s", self.host, err)
            self._shutdown()

    async def _receive(self, line: str) -> bool:
        """
        This function is called asynchronously everytime
        the IRC backend receives a response from the
        remote host (server).

            >>> import trio
            >>> conn = IRCConnection('i.have.no.mouth.and.i.must.scream')
            ...
            >>> @conn.listen('IRC__NUMERIC')
            ... async def print_received(_, msg):
            ...     print(msg)
            ...
            >>> async def print_a_test():
            ...     print(await conn._receive(':skynet.ai 404 DEATH :AAAAAAAAA'))
            ...
            >>> trio.run(print_a_test)
            ...
            IRCResponse('skynet.ai 404 DEATH :AAAAAAAAA')
            True

        Arguments:
            line {str} --   A single line, after being extracted from received data, and
                            stripped of its trailing CRLF.

        Returns:
            bool -- Whether the line is valid IRC data.
        """

        await self.receive_message("_RAW", line)

        if not line:
            return False

        if line.split(" ")[0].upper() == "PING":
            data = " ".join(line.split(" ")[1:])
            await self.send("PONG " + data)

            return True

        response = IRCResponse.parse(line)

        if response.is_numeric:
            received_kind = "_NUMERIC"

        else:
            received_kind = response.kind

        await self.receive_message("IRC_" + received_kind, response)

        if response.is_numeric:
            await self._receive_numeric(response)

        elif response.kind.upper() == "PRIVMSG" and response.args:
            await self.receive_message(
                "MESSAGE",
                IRCMessage(self, response.params.data, response.origin, response.params.args[0]),
            )

        return True

    async def _receive_numeric(self, response: IRCResponse):
        if response.kind in (RPL_WELCOME, RPL_ENDOFMOTD, ERR_NOMOTD):
            if response.kind == RPL_WELCOME and response.args:
                self.nickname = response.args[0]

            if not self.registered:
                self.registered = True
                self.logger.info("Registered on %s as %s", self.host, self.nickname)
                await self.receive_message("REGISTERED", self)

        elif response.kind == ERR_NICKNAMEINUSE and not self.registered:
            self.nickname += "_"
            self.logger.warning("Nickname in use, trying %s", self.nickname)
            await self.send("NICK " + self.nickname)

    async def _receive_data(self, buf: bytes, data: bytes) -> bytes:
        """Handles every complete line in what was buffered plus
        the newly received data, and returns what is left over.

        Lines are decoded only once complete.
        """

        buf += data

        while b"\n" in buf:
            raw, buf = buf.split(b"\n", 1)
            line = raw.decode("utf-8", errors="replace")

            if line[-1:] == "\r":
                line = line[:-1]

            await self._receive(line)

        return buf

    async def _receiver(self):
        with self.new_stop_scope():
            buf = b""

            try:
                async for data in self.connection:
                    buf = await self._receive_data(buf, data)

            except (trio.BrokenResourceError, trio.ClosedResourceError) as err:
                self.logger.warning("IRC connection lost: %s", err)

        self.logger.warning("Socket to %s closed", self.host)
        self._shutdown()

    def _shutdown(self):
        self._running = False
        self.registered = False
        self.cancel_stop_scopes()

    async def send_irc_handshake(self):
        """
        Sends the IRC handshake, including
        nickname, real name, and optionally
        the server password.
        """

        if self.passw:
            await self.send("PASS {}".format(self.passw))

        await self.send("NICK " + self.nickname.split(" ")[0])
        await self.send(
            "USER {} * * :{}".format(self.nickname.split(" ")[0], self.realname)
        )

    async def start(self):
        """
        Starts the IRC connection. Returns once the connection is closed.
        """

        self.logger.info("Connecting to %s:%d...", self.host, self.port)

        connection = await trio.open_tcp_stream(self.host, self.port)

        if self.ssl_context:
            connection = trio.SSLStream(connection, self.ssl_context, server_hostname=self.host)

        self.connection = connection
        self._running = True

        try:
            async with trio.open_nursery() as nursery:

                async def _loaded_stop_scopes():
                    nursery.start_soon(self._cooldown)
                    nursery.start_soon(self._sender)
                    nursery.start_soon(self._receiver)
                    nursery.start_soon(self.send_irc_handshake)

                nursery.start_soon(self._watch_stop_scopes, _loaded_stop_scopes)

        finally:
            self._shutdown()
            self._out_queue.queue.clear()

            with trio.CancelScope(shield=True):
                await self.connection.aclose()

        await self.receive_message("_CLOSED", self)

    # === IRC commands ===

    async def list_channels(self) -> bool:
        """Asks the server for its channel list. Entries come in as
        RPL_LIST (322) numerics, possibly followed by RPL_LISTEND (323)."""

        return await self.send("LIST")

    async def join(self, channel: str) -> bool:
        """Joins an IRC channel

        Arguments:
            channel {str} -- The name of the channel.
        """

        return await self.send("JOIN {}".format(channel))

    async def message(self, target: str, message: str) -> bool:
        """Sends a message to an IRC target (nickname or channel),
        split in as many lines as needed.

        Arguments:
            target {str} -- The IRC target. Can either be another client or a channel.
            message {str} -- The message.
        """

        success = True

        for line in split_size(message):
            if not await self.send("PRIVMSG {} :{}".format(target, line)):
                success = False

        return success
