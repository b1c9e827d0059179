"""
The bridge itself: a CommandBot that owns both backends, mirrors
IRC's channels into Discord, and relays messages between them.
"""

import logging
from typing import Optional, Set

import trio

from tribridge.backend import DuplexBackend
from tribridge.backends.discord import DiscordClient
from tribridge.backends.irc import IRCConnection
from tribridge.bot import CommandBot, Message
from tribridge.commands import CommandHandler
from tribridge.config import BridgeConfig
from tribridge.errors import GatewayError
from tribridge.naming import channel_key
from tribridge.reconcile import ReconciliationController
from tribridge.relay import GATEWAY, LINE, RelayRouter
from tribridge.tracker import ChannelSetTracker


class BridgeBot(CommandBot):
    """
    Bridges an IRC network and a Discord guild.

    The IRC connection and the Discord client are kept connected,
    each in its own loop; a reconciliation pass is run every so
    often, starting a while after IRC registration, and the bridge
    joins every IRC channel that has a mirror.
    """

    def __init__(
        self,
        config: BridgeConfig,
        irc: Optional[IRCConnection] = None,
        discord: Optional[DiscordClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Arguments:
            config {BridgeConfig} -- The bridge's configuration.

        Keyword Arguments:
            irc {IRCConnection} -- The IRC side. (default: built from config)
            discord {DiscordClient} -- The Discord side. (default: built from config)
            logger {logging.Logger} -- Where to log to. (default: the 'tribridge.bridge' logger)
        """

        self.config = config

        self.irc = irc or IRCConnection(
            config.irc_host,
            config.irc_port,
            nickname=config.irc_nickname,
            realname=config.irc_realname,
            passw=config.irc_password,
            ssl_ctx=config.ssl_context(),
        )
        self.discord = discord or DiscordClient(config.discord_token, config.guild_id)

        super().__init__(
            "tribridge",
            [self.irc, self.discord],
            prefix=config.command_prefix,
            logger=logger or logging.getLogger("tribridge.bridge"),
        )

        self.tracker = ChannelSetTracker(self.irc)
        self.controller = ReconciliationController(
            self.discord,
            self.tracker,
            capacity=config.grouping_capacity,
            overflow_name=config.overflow_grouping_name,
            privileged_name=config.privileged_grouping_name,
            suffix=config.mirror_suffix,
            list_timeout=config.list_timeout,
            cooldown=config.reconcile_cooldown,
        )
        self.router = RelayRouter(self.controller, self.irc, self.discord)
        self.handler = CommandHandler(self.controller, config.operator_id, on_sync=self.sync_joins)

        self.joined = set()  # type: Set[str]
        self.fatal_error = None  # type: Optional[Exception]

        self._nursery = None  # type: Optional[trio.Nursery]
        self._timer_started = False

    def init(self):
        self.handler.register(self)

    # === Events ===

    async def on_message(self, which, message: Message):
        if which is self.discord:
            if self.is_command(message.line.rstrip()):
                await super().on_message(which, message)
                return

            await self.router.route_inbound(
                GATEWAY,
                message.channel_addr,
                message.author_name,
                message.line,
                author_id=message.author_addr,
            )

        elif which is self.irc:
            if message.channel.lower() == self.irc.nickname.lower():
                # private messages have no mirror
                return

            await self.router.route_inbound(LINE, message.channel, message.author_name, message.line)

    async def on_registered(self, which, data):
        self.joined = set()

        if self._nursery is None:
            return

        self._nursery.start_soon(self.sync_joins)

        if not self._timer_started:
            self._timer_started = True
            self.logger.info(
                "Listing IRC channels in %ss, then every %ss",
                self.config.pre_list_delay,
                self.config.reconcile_interval,
            )
            self._nursery.start_soon(
                self.controller.run_periodically,
                self.config.reconcile_interval,
                self.config.pre_list_delay,
                self.sync_joins,
            )

    async def on_ready(self, which, data):
        self.logger.info("Discord is ready")

    async def on__closed(self, which, data):
        if which is self.irc:
            self.joined = set()

    async def sync_joins(self):
        """Joins every mapped IRC channel not joined yet."""

        for channel in self.controller.mapped_channels():
            if channel_key(channel) in self.joined:
                continue

            if not await self.irc.join(channel):
                return

            self.joined.add(channel_key(channel))

    # === Lifecycle ===

    async def _keep_connected(self, backend: DuplexBackend, label: str):
        while True:
            try:
                await backend.start()

            except (OSError, trio.BrokenResourceError, GatewayError) as err:
                self.logger.warning("%s connection failed: %s", label, err)

            else:
                self.logger.warning("%s connection closed", label)

            if backend.fatal_error is not None:
                self.fatal_error = backend.fatal_error
                self.logger.critical("Not reconnecting to %s: %s", label, backend.fatal_error)
                self._nursery.cancel_scope.cancel()
                return

            self.logger.warning("Reconnecting to %s in %ss", label, self.config.reconnect_delay)
            await trio.sleep(self.config.reconnect_delay)

    async def start(self):
        """Starts the bridge. Returns only if a backend fails fatally."""

        self.init()

        async with trio.open_nursery() as nursery:
            self._nursery = nursery

            nursery.start_soon(self._keep_connected, self.irc, "IRC")
            nursery.start_soon(self._keep_connected, self.discord, "Discord")

        self._nursery = None
