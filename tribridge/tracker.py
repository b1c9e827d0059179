"""
Keeps track of which channels exist on the IRC network, by
listing them with the LIST command.
"""

import logging
import re
import typing
from typing import Dict, FrozenSet, Optional

import trio

from tribridge.naming import CHANNEL_PREFIXES, channel_key

if typing.TYPE_CHECKING:
    from tribridge.backends.irc import IRCConnection, IRCResponse

RPL_LIST = 322
RPL_LISTEND = 323

SERVICE_NAMES = re.compile(
    r"(\*|(nick|chan|oper|memo|host|bot|help)serv)", re.IGNORECASE
)


def is_channel_candidate(name: str) -> bool:
    """Whether a LIST entry names an actual discussion channel,
    rather than a service entry or garbage.

        >>> [is_channel_candidate(n) for n in ('#lounge', '#GAMES!!', '')]
        [True, True, False]
        >>> [is_channel_candidate(n) for n in ('#1234', '*', '#ChanServ', 'lounge')]
        [False, False, False, False]

    Arguments:
        name {str} -- The channel name, as listed.

    Returns:
        bool -- Self-explanatory.
    """

    if not name or name[0] not in CHANNEL_PREFIXES:
        return False

    bare = name[1:]

    if not bare or bare.isdigit():
        return False

    return not SERVICE_NAMES.fullmatch(bare)


class ChannelSetTracker:
    """
    Tracks the set of channels on the IRC network.

    Every scan replaces the previous set wholesale. The end of a
    listing is not reliably signalled by every server, so discover()
    gives up waiting after a timeout and keeps whatever it got.
    """

    def __init__(self, backend: "IRCConnection", logger: Optional[logging.Logger] = None):
        """
        Arguments:
            backend {IRCConnection} -- The IRC connection to list channels with.

        Keyword Arguments:
            logger {logging.Logger} -- Where to log to. (default: the 'tribridge.tracker' logger)
        """

        self.backend = backend
        self.logger = logger or logging.getLogger("tribridge.tracker")

        self.channels = frozenset()  # type: FrozenSet[str]
        self.scanning = False

        self._pending = {}  # type: Dict[str, str]
        self._done = trio.Event()

        backend.listen("IRC__NUMERIC")(self._on_numeric)

    async def _on_numeric(self, _, response: "IRCResponse"):
        if response.kind == RPL_LIST and len(response.args) >= 2:
            self.record_candidate(response.args[1])

        elif response.kind == RPL_LISTEND:
            self._done.set()

    async def begin_discovery(self):
        """Starts a new scan, by sending LIST."""

        self._pending = {}
        self._done = trio.Event()
        self.scanning = True

        await self.backend.list_channels()

    def record_candidate(self, name: str) -> bool:
        """Records a single listed channel, unless it is not a
        discussion channel, or no scan is underway.

        Returns:
            bool -- Whether the name was recorded.
        """

        if not self.scanning or not is_channel_candidate(name):
            self.logger.debug("Ignoring listed entry %r", name)
            return False

        self._pending.setdefault(channel_key(name), name)
        return True

    def finish_discovery(self) -> FrozenSet[str]:
        """Ends the current scan, replacing the known channel set."""

        self.channels = frozenset(self._pending.values())
        self.scanning = False
        self._pending = {}

        return self.channels

    async def discover(self, timeout: float = 15.0) -> FrozenSet[str]:
        """Performs a whole scan.

        Keyword Arguments:
            timeout {float} -- How long to wait for the end of the
                               listing, in seconds. (default: 15.0)

        Returns:
            FrozenSet[str] -- The channels found.
        """

        await self.begin_discovery()

        with trio.move_on_after(timeout) as scope:
            await self._done.wait()

        if scope.cancelled_caught:
            self.logger.info(
                "No end of LIST after %ss, proceeding with %d channels",
                timeout,
                len(self._pending),
            )

        return self.finish_discovery()

    def snapshot(self) -> FrozenSet[str]:
        return self.channels

    def clear(self):
        self.channels = frozenset()
