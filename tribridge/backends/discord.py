"""
The Discord backend.

Uses the high-level discord.py library for actually
communicating to Discord, unlike the IRC backend, which
is an IRC client in and of itself.

Also requires trio_asyncio, since Tribridge uses trio,
whereas discord.py uses asyncio, requiring bridging in
order to maintain proper, seamless asynchronous functionality.

Besides sending and receiving messages, this backend manages
the channels and categories of a single guild, which is what
the bridge mirrors IRC channels into.
"""

import asyncio
import logging
from typing import Callable, List, Optional

import aiohttp
import discord
import trio
import trio_asyncio

from tribridge.backend import DuplexBackend
from tribridge.bot import Message
from tribridge.errors import GatewayError, TribridgeConfigError
from tribridge.gateway import CATEGORY, TEXT, GatewayResource

MAX_MESSAGE_SIZE = 1900

# what a discord.py call can fail with, short of a bug
CALL_ERRORS = (discord.DiscordException, aiohttp.ClientError, asyncio.TimeoutError, OSError)


def as_resource(channel: "discord.abc.GuildChannel") -> GatewayResource:
    """Describes a discord.py guild channel as a GatewayResource."""

    if isinstance(channel, discord.CategoryChannel):
        return GatewayResource(str(channel.id), channel.name, CATEGORY, None, channel.position)

    return GatewayResource(
        str(channel.id),
        channel.name,
        TEXT,
        str(channel.category_id) if channel.category_id is not None else None,
        channel.position,
    )


class DiscordMessage(Message):
    """A message received via the Discord backend."""

    def __init__(self, backend: "DiscordClient", line: str, discord_message: discord.Message):
        author, channel = discord_message.author, discord_message.channel

        super().__init__(
            backend,
            line,
            getattr(author, "display_name", None) or author.name,
            str(author.id),
            "#" + getattr(channel, "name", str(channel.id)),
            str(channel.id),
            when=discord_message.created_at,
        )

        self.discord_author = author
        self.discord_channel = channel
        self.discord_message = discord_message

    async def reply(self, reply_line: str) -> bool:
        return await self.backend.message(self.channel_addr, reply_line)


class DiscordClient(DuplexBackend):
    """
    A Discord backend. Used in order to mirror IRC channels
    into a Discord guild.
    """

    def __init__(
        self,
        token: str,
        guild_id: int,
        min_send_interval: float = 0.25,
        queue_size: int = 100,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Prepares a Discord bot session, via the
        discord.py library, which can be used as
        a tribridge backend.

            >>> client = DiscordClient('token', 1234)
            >>> client.is_ready()
            False

        Arguments:
            token {str} -- The token of your bot.
            guild_id {int} -- The ID of the guild to mirror channels into.

        Keyword Arguments:
            min_send_interval {float} --  The minimum amount of time, in seconds, between
                                          each sent message. (default: 0.25)

            queue_size {int} -- How many sends may wait in the queue before
                              further ones are dropped. (default: 100)

            logger {logging.Logger} -- Where to log to. (default: the 'tribridge.discord' logger)
        """

        super().__init__(logger=logger or logging.getLogger("tribridge.discord"))

        self._token = token
        self.guild_id = int(guild_id)
        self.min_send_interval = min_send_interval

        self.client = None  # type: Optional[discord.Client]
        self.user_id = None  # type: Optional[str]
        self.nickname = None  # type: Optional[str]

        self._out_queue_in, self._out_queue_out = trio.open_memory_channel(queue_size)

    def _setup_client(self, client: "discord.Client"):
        @client.event
        async def on_message(message: discord.Message):
            if message.author == client.user or message.guild is None:
                return

            if message.guild.id != self.guild_id:
                return

            for line in message.content.split("\n"):
                if line.strip():
                    await trio_asyncio.trio_as_aio(self.receive_message)(
                        "MESSAGE", DiscordMessage(self, line, message)
                    )

        @client.event
        async def on_ready():
            self.user_id = str(client.user.id)
            self.nickname = client.user.mention
            self.logger.info("Logged in as %s", client.user)

            await trio_asyncio.trio_as_aio(self.receive_message)("READY", self)

        @client.event
        async def on_disconnect():
            self.logger.warning("Disconnected from Discord; discord.py will reconnect")

    def is_ready(self) -> bool:
        return self.client is not None and self.client.is_ready()

    def _guild(self) -> "discord.Guild":
        guild = self.client.get_guild(self.guild_id) if self.client else None

        if guild is None:
            raise GatewayError("Guild {} is not available".format(self.guild_id))

        return guild

    def _channel(self, resource_id: str) -> "discord.abc.GuildChannel":
        channel = self._guild().get_channel(int(resource_id))

        if channel is None:
            raise GatewayError("Channel {} does not exist".format(resource_id))

        return channel

    async def _call(self, func: Callable, *args, **kwargs):
        """Calls a discord.py coroutine function from trio, turning its
        failures into GatewayErrors."""

        try:
            return await trio_asyncio.aio_as_trio(func)(*args, **kwargs)

        except CALL_ERRORS as err:
            raise GatewayError("{}: {}".format(type(err).__name__, err)) from err

    # === Directory ===

    async def list_resources(self) -> List[GatewayResource]:
        return [as_resource(channel) for channel in self._guild().channels]

    async def create_resource(
        self, name: str, kind: str, parent_id: Optional[str] = None
    ) -> GatewayResource:
        guild = self._guild()

        if kind == CATEGORY:
            channel = await self._call(guild.create_category, name)

        else:
            category = self._channel(parent_id) if parent_id is not None else None
            channel = await self._call(guild.create_text_channel, name, category=category)

        return as_resource(channel)

    async def move_resource(self, resource_id: str, parent_id: str) -> GatewayResource:
        channel = self._channel(resource_id)
        category = self._channel(parent_id)

        await self._call(channel.edit, category=category)

        return GatewayResource(resource_id, channel.name, TEXT, str(parent_id), channel.position)

    async def delete_resource(self, resource_id: str):
        await self._call(self._channel(resource_id).delete)

    async def set_grouping_position(self, resource_id: str, index: int):
        await self._call(self._channel(resource_id).edit, position=index)

    # === Messaging ===

    async def send(self, callback: Callable) -> bool:
        """
        Queues a callback that is supposed to
        send a message through the Discord client.

        Arguments:
            callback {Callable} -- The callback to be executed
                                   when sending.

        Returns:
            bool -- Whether the callback was queued; it is dropped
                    when the queue is full.
        """

        try:
            self._out_queue_in.send_nowait(callback)

        except trio.WouldBlock:
            self.logger.warning("Send queue is full, dropping a message")
            return False

        return True

    async def _sender(self):
        """
        This async loop is responsible for sending messages,
        no faster than min_send_interval allows.
        """

        with self.new_stop_scope():
            async for callback in self._out_queue_out:
                await callback()
                await trio.sleep(self.min_send_interval)

    def _message_callback(self, target: "discord.abc.Messageable", message: str):
        async def _inner():
            try:
                await self._call(target.send, message)

            except GatewayError as err:
                self.logger.warning("Could not send to #%s: %s", target, err)

            else:
                await self.receive_message("_SENT", message)

        return _inner

    async def message(self, target: str, message: str) -> bool:
        """Sends a message to a Discord channel, split in
        as many messages as needed.

        Arguments:
            target {str} -- The ID of the Discord channel.
            message {str} -- The message.

        Returns:
            bool -- Whether the message was queued for sending.
        """

        try:
            channel = self._channel(target)

        except (GatewayError, ValueError) as err:
            self.logger.warning("Not sending to %s: %s", target, err)
            return False

        while message:
            if not await self.send(self._message_callback(channel, message[:MAX_MESSAGE_SIZE])):
                return False

            message = message[MAX_MESSAGE_SIZE:]

        return True

    # === Lifecycle ===

    async def _trio_asyncio_start(self):
        intents = discord.Intents.default()
        intents.typing = False
        intents.presences = False
        intents.message_content = True

        self.client = discord.Client(intents=intents)

        self._setup_client(self.client)

        try:
            await self.client.login(self._token)

        except discord.LoginFailure as err:
            raise TribridgeConfigError("Discord refused the token: {}".format(err)) from err

        await self.client.connect(reconnect=True)

    async def start(self):
        """Starts the Discord client. Returns once it is closed."""

        self._running = True

        try:
            async with trio.open_nursery() as nursery:

                async def _loaded_stop_scopes():
                    nursery.start_soon(self._sender)

                    try:
                        await trio_asyncio.aio_as_trio(self._trio_asyncio_start)()

                    except TribridgeConfigError as err:
                        self.logger.critical("%s", err)
                        self.fatal_error = err

                    except CALL_ERRORS as err:
                        self.logger.warning("Discord connection failed: %s", err)

                    finally:
                        self._running = False
                        self.cancel_stop_scopes()

                nursery.start_soon(self._watch_stop_scopes, _loaded_stop_scopes)

        finally:
            self._running = False

            if self.client is not None and not self.client.is_closed():
                with trio.CancelScope(shield=True):
                    await trio_asyncio.aio_as_trio(self.client.close)()
