"""
Relays messages between each IRC channel and its Discord mirror.
"""

import logging
import typing
from typing import Iterable, Optional

from tribridge.mutator import Mutator, mutate
from tribridge.mutators.antimention import AntiMention
from tribridge.mutators.formatting import StripFormatting

if typing.TYPE_CHECKING:
    from tribridge.backends.irc import IRCConnection
    from tribridge.gateway import GatewayDirectory
    from tribridge.reconcile import ReconciliationController

LINE = "line"
GATEWAY = "gateway"


class RelayRouter:
    """
    Decides where each inbound message goes, based on the
    controller's mapping table, and forwards it there.

    Text going from IRC into Discord is passed through mutators
    first; by default these strip IRC formatting and neutralize
    mentions.
    """

    def __init__(
        self,
        controller: "ReconciliationController",
        line: "IRCConnection",
        gateway: "GatewayDirectory",
        mutators: Optional[Iterable[Mutator]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.controller = controller
        self.line = line
        self.gateway = gateway
        self.mutators = list(mutators) if mutators is not None else [StripFormatting(), AntiMention()]
        self.logger = logger or logging.getLogger("tribridge.relay")

    async def route_inbound(
        self,
        from_side: str,
        channel: str,
        author: str,
        text: str,
        author_id: Optional[str] = None,
    ) -> bool:
        """Forwards a message to the other side, or drops it.

        Arguments:
            from_side {str} -- Either LINE or GATEWAY.
            channel {str} -- The IRC channel name, or Discord channel ID, the
                             message was posted in.
            author {str} -- The author's display name (or nickname).
            text {str} -- The message.

        Keyword Arguments:
            author_id {Optional[str]} -- The author's platform ID, where the
                                         platform has one. (default: None)

        Returns:
            bool -- Whether the message was forwarded.
        """

        if not text or not text.strip():
            self.logger.debug("Dropping empty message from %s", author)
            return False

        if from_side == GATEWAY:
            return await self._to_line(channel, author, text, author_id)

        if from_side == LINE:
            return await self._to_gateway(channel, author, text)

        raise ValueError("Unknown relay side: {}".format(repr(from_side)))

    async def _to_line(self, resource_id: str, author: str, text: str, author_id: Optional[str]) -> bool:
        if author_id is not None and author_id == self.gateway.user_id:
            return False

        channel = self.controller.channel_for_resource(resource_id)

        if channel is None:
            self.logger.debug("Dropping message in unmapped Discord channel %s", resource_id)
            return False

        if not self.line.registered:
            self.logger.debug("IRC is not connected, dropping message for %s", channel)
            return False

        line = "<{}> {}".format(author, text)

        await self.line.message(channel, line)
        self.logger.info("[Discord→IRC] %s %s", channel, line)

        return True

    async def _to_gateway(self, channel: str, nick: str, text: str) -> bool:
        if nick.lower() == self.line.nickname.lower():
            return False

        resource_id = self.controller.resource_for_channel(channel)

        if resource_id is None:
            self.logger.debug("Dropping message in unmapped IRC channel %s", channel)
            return False

        if not self.gateway.is_ready():
            self.logger.debug("Discord is not ready, dropping message from %s", channel)
            return False

        text = mutate(self.mutators, self.gateway, resource_id, text)

        if text is None:
            self.logger.debug("Message from %s in %s was cancelled by a mutator", nick, channel)
            return False

        line = "<{}> {}".format(nick, text)

        await self.gateway.message(resource_id, line)
        self.logger.info("[IRC→Discord] %s %s", channel, line)

        return True
