"""
Decides which category each mirrored channel belongs in.

There is one privileged category, holding starred channels, and an
ordered sequence of overflow categories holding everything else. The
gateway caps how many channels a category may hold, so overflow
categories fill up in order, and a new one is opened when the last
one is full.
"""

import logging
from typing import Dict, Optional, Set

import attr

from tribridge.gateway import Directory, GatewayResource
from tribridge.naming import MIRROR_SUFFIX, channel_key, mirror_name, overflow_grouping_index

DEFAULT_CAPACITY = 50


@attr.s(auto_attribs=True, frozen=True)
class GroupingRef:
    """A reference to a category: the privileged one when index
    is None, otherwise the overflow category at that index."""

    index: Optional[int] = None

    @property
    def privileged(self) -> bool:
        return self.index is None

    @classmethod
    def overflow(cls, index: int) -> "GroupingRef":
        return cls(index)

    def __str__(self):
        return "privileged" if self.privileged else "overflow #{}".format(self.index)


PRIVILEGED = GroupingRef()


class PlacementPolicy:
    """
    Places channels into categories over the course of a single
    reconciliation pass.

    Overflow occupancy is tracked in memory, seeded from the directory
    listing the pass started with, and updated with every placement
    decided since. Channels are therefore placed one at a time; placing
    them concurrently would make occupancy go stale.

        >>> policy = PlacementPolicy(Directory(), starred=set(), capacity=2)
        >>> [str(policy.placement_for('#c{}'.format(i))) for i in range(3)]
        ['overflow #0', 'overflow #0', 'overflow #1']
    """

    def __init__(
        self,
        directory: Directory,
        starred: Set[str],
        capacity: int = DEFAULT_CAPACITY,
        overflow_name: str = "IRC",
        privileged_name: str = "IRC Starred",
        suffix: str = MIRROR_SUFFIX,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Arguments:
            directory {Directory} -- The directory listing this pass started with.
            starred {Set[str]} -- The starred channel keys. Channels found under the
                                  privileged category are added to it.

        Keyword Arguments:
            capacity {int} -- How many channels an overflow category may hold. (default: 50)
            overflow_name {str} -- The base name of overflow categories. (default: 'IRC')
            privileged_name {str} -- The name of the privileged category. (default: 'IRC Starred')
            suffix {str} -- The mirror-suffix tag. (default: '-irc')
        """

        self.directory = directory
        self.starred = starred
        self.capacity = capacity
        self.overflow_name = overflow_name
        self.privileged_name = privileged_name
        self.suffix = suffix
        self.logger = logger or logging.getLogger("tribridge.placement")

        self.cursor = 0
        self.privileged_id = None  # type: Optional[str]
        self.grouping_ids = {}  # type: Dict[int, str]
        self.counts = {}  # type: Dict[int, int]

        self._seed()

    def _seed(self):
        starred_names = {mirror_name(chan, self.suffix) for chan in self.starred}

        for grouping in self.directory.groupings():
            if grouping.name.lower() == self.privileged_name.lower():
                if self.privileged_id is None:
                    self.privileged_id = grouping.id

                continue

            index = overflow_grouping_index(self.overflow_name, grouping.name)

            if index is None or index in self.grouping_ids:
                continue

            self.grouping_ids[index] = grouping.id
            self.counts[index] = sum(
                1
                for child in self.directory.children(grouping.id)
                if child.name not in starred_names
            )

    def index_of(self, grouping_id: Optional[str]) -> Optional[int]:
        """The overflow index of a category, by ID, or None."""

        for index, known_id in self.grouping_ids.items():
            if known_id == grouping_id:
                return index

        return None

    def count(self, index: int) -> int:
        return self.counts.get(index, 0)

    def ref_of(self, resource: Optional[GatewayResource]) -> Optional[GroupingRef]:
        """The category a resource currently sits in, if it is a known one."""

        if resource is None or resource.parent_id is None:
            return None

        if resource.parent_id == self.privileged_id:
            return PRIVILEGED

        index = self.index_of(resource.parent_id)

        return None if index is None else GroupingRef.overflow(index)

    def placement_for(
        self, channel: str, resource: Optional[GatewayResource] = None
    ) -> GroupingRef:
        """Decides which category a channel belongs in, and accounts for it.

        Arguments:
            channel {str} -- The IRC channel name.

        Keyword Arguments:
            resource {Optional[GatewayResource]} -- The channel's existing mirror, if any.

        Returns:
            GroupingRef -- Where the channel's mirror should be.
        """

        key = channel_key(channel)
        current = self.ref_of(resource)

        if current is not None and current.privileged:
            if key not in self.starred:
                self.logger.info("%s was moved to the starred category; starring it", channel)
                self.starred.add(key)

            return PRIVILEGED

        if key in self.starred:
            # starred mirrors were never counted towards occupancy
            return PRIVILEGED

        if current is not None and self.count(current.index) <= self.capacity:
            return current

        if current is not None:
            # over capacity, make room
            self.counts[current.index] -= 1

        while self.count(self.cursor) >= self.capacity:
            self.cursor += 1

        self.counts[self.cursor] = self.count(self.cursor) + 1

        return GroupingRef.overflow(self.cursor)
