"""
The gateway side's data model: resources (channels and the
categories grouping them), as listed by the gateway's API, and
the protocol any gateway backend must implement for the bridge
to manage them.
"""

import typing
from typing import Dict, Iterable, List, Optional

import attr

CATEGORY = "category"
TEXT = "text"


@attr.s(auto_attribs=True, frozen=True)
class GatewayResource:
    """A channel or category, as listed by the gateway."""

    id: str
    name: str
    kind: str = TEXT
    parent_id: Optional[str] = None
    position: int = 0

    @property
    def is_grouping(self) -> bool:
        return self.kind == CATEGORY


class Directory:
    """
    A snapshot of a gateway directory listing, indexed for the lookups
    reconciliation needs. It is updated in place as the bridge creates
    and moves resources, so it stays usable for the rest of a pass.

        >>> d = Directory([
        ...     GatewayResource('1', 'IRC', CATEGORY),
        ...     GatewayResource('2', 'lounge-irc', TEXT, '1'),
        ... ])
        >>> d.find_text('lounge-irc').parent_id
        '1'
        >>> [r.name for r in d.children('1')]
        ['lounge-irc']
    """

    def __init__(self, resources: Iterable[GatewayResource] = ()):
        self.resources = {}  # type: Dict[str, GatewayResource]

        for resource in resources:
            self.put(resource)

    def put(self, resource: GatewayResource):
        """Adds a resource to the snapshot, or replaces it by ID."""

        self.resources[resource.id] = resource

    def get(self, resource_id: str) -> Optional[GatewayResource]:
        return self.resources.get(resource_id)

    def _ordered(self) -> List[GatewayResource]:
        return sorted(self.resources.values(), key=lambda r: (r.position, int_or_str(r.id)))

    def find_text(self, name: str) -> Optional[GatewayResource]:
        """Finds a text channel by name. When several share the name,
        the first in directory order wins."""

        for resource in self._ordered():
            if resource.kind == TEXT and resource.name == name:
                return resource

        return None

    def groupings(self) -> List[GatewayResource]:
        """Every category, in display order."""

        return [r for r in self._ordered() if r.is_grouping]

    def children(self, parent_id: str) -> List[GatewayResource]:
        return [r for r in self._ordered() if r.parent_id == parent_id and not r.is_grouping]


def int_or_str(value: str):
    """Sort key that orders numeric IDs numerically.

        >>> sorted(['10', '9'], key=int_or_str)
        ['9', '10']
    """

    try:
        return (0, int(value), "")

    except ValueError:
        return (1, 0, value)


class GatewayDirectory(typing.Protocol):
    """
    What the bridge needs from the gateway platform. Every coroutine
    here may raise tribridge.errors.GatewayError.
    """

    user_id: Optional[str]

    def is_ready(self) -> bool:
        """Whether the gateway connection is up and ready to be used."""
        ...

    async def list_resources(self) -> List[GatewayResource]:
        """Lists every channel and category of the mirrored guild."""
        ...

    async def create_resource(
        self, name: str, kind: str, parent_id: Optional[str] = None
    ) -> GatewayResource:
        """Creates a channel (or a category, when kind is CATEGORY)."""
        ...

    async def move_resource(self, resource_id: str, parent_id: str) -> GatewayResource:
        """Moves a channel under another category."""
        ...

    async def delete_resource(self, resource_id: str):
        """Deletes a channel."""
        ...

    async def set_grouping_position(self, resource_id: str, index: int):
        """Moves a category to a given position in the category order."""
        ...

    async def message(self, target: str, message: str) -> bool:
        """Sends a message to a channel, by ID."""
        ...
