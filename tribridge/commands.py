"""
Privileged operator commands, typed into mirrored Discord channels.
"""

import logging
import typing
from typing import Optional

if typing.TYPE_CHECKING:
    from tribridge.backend import Backend
    from tribridge.bot import CommandBot, Message
    from tribridge.reconcile import ReconciliationController

UNAUTHORIZED_REPLY = "You are not allowed to use this command."


class CommandHandler:
    """
    Handles the commands only the operator may use:

    * star -- moves the current channel's mirror to the starred category;
    * purge -- deletes every mirror, and forgets every mapping;
    * sync -- runs a reconciliation pass right away.
    """

    def __init__(
        self,
        controller: "ReconciliationController",
        operator_id: Optional[str],
        on_sync: Optional[typing.Callable[[], typing.Awaitable[None]]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Arguments:
            controller {ReconciliationController} -- The controller to command.
            operator_id {Optional[str]} -- The Discord user ID of the operator. If None,
                                           nobody may use these commands.

        Keyword Arguments:
            on_sync {Callable} -- Awaited after a pass triggered by the sync command. (default: None)
            logger {logging.Logger} -- Where to log to. (default: the 'tribridge.commands' logger)
        """

        self.controller = controller
        self.operator_id = operator_id
        self.on_sync = on_sync
        self.logger = logger or logging.getLogger("tribridge.commands")

    def authorized(self, message: "Message") -> bool:
        return self.operator_id is not None and str(message.author_addr) == str(self.operator_id)

    async def _reject(self, message: "Message", command: str):
        self.logger.warning(
            "Rejected %s command from %s (%s)", command, message.author_name, message.author_addr
        )
        await message.reply(UNAUTHORIZED_REPLY)

    async def star(self, which: "Backend", message: "Message", *args) -> Optional[str]:
        """Stars the channel the command was issued in.

        Raises:
            NotMappedError: The channel does not mirror any IRC channel.
        """

        if not self.authorized(message):
            await self._reject(message, "star")
            return None

        channel = await self.controller.promote(message.channel_addr)

        await message.reply("{} is now starred.".format(channel))
        return channel

    async def purge(self, which: "Backend", message: "Message", *args) -> Optional[int]:
        """Deletes every mirror channel."""

        if not self.authorized(message):
            await self._reject(message, "purge")
            return None

        removed = await self.controller.purge()

        self.logger.warning("%s purged %d mirrors", message.author_name, removed)
        await message.reply("Deleted {} mirrored channels.".format(removed))
        return removed

    async def sync(self, which: "Backend", message: "Message", *args) -> Optional[bool]:
        """Runs a reconciliation pass now."""

        if not self.authorized(message):
            await self._reject(message, "sync")
            return None

        ran = await self.controller.trigger("command")

        if ran and self.on_sync is not None:
            await self.on_sync()

        if ran:
            await message.reply("Done: {}.".format(self.controller.last_report))

        else:
            await message.reply("Not now; a pass is running, or one ran too recently.")

        return ran

    def register(self, bot: "CommandBot"):
        """Adds these commands to a CommandBot."""

        @bot.add_command("star", "Moves this channel to the starred category.")
        def define_star(define):
            define(self.star)

        @bot.add_command("purge", "Deletes every mirrored channel.")
        def define_purge(define):
            define(self.purge)

        @bot.add_command("sync", "Mirrors IRC's channels right away.")
        def define_sync(define):
            define(self.sync)
