"""
The reconciliation controller: keeps the Discord side's channels
and categories in line with the channels that exist on IRC.

A reconciliation pass goes through the following states, in order:

    idle -> discovering -> diffing -> applying -> repositioning -> idle

Passes never overlap, and never start too soon after one another.
Each run on a timer, or when an operator asks for one.
"""

import logging
import typing
from typing import Dict, FrozenSet, List, Optional

import attr
import trio

from tribridge.errors import GatewayError, NotMappedError
from tribridge.gateway import TEXT, CATEGORY, Directory, GatewayResource
from tribridge.naming import (
    MIRROR_SUFFIX,
    channel_key,
    has_mirror_suffix,
    mirror_name,
    overflow_grouping_index,
    overflow_grouping_name,
)
from tribridge.placement import DEFAULT_CAPACITY, PRIVILEGED, GroupingRef, PlacementPolicy
from tribridge.statedhandler import HandlerStateMachine, HandlingState

if typing.TYPE_CHECKING:
    from tribridge.gateway import GatewayDirectory
    from tribridge.tracker import ChannelSetTracker

NONE = "none"
CREATE = "create"
MOVE = "move"


@attr.s(auto_attribs=True)
class PassReport:
    """What a reconciliation pass did."""

    reason: str = "timer"
    discovered: int = 0
    created: int = 0
    moved: int = 0
    unchanged: int = 0
    failed: int = 0
    repositioned: int = 0

    def __str__(self):
        return (
            "{0.discovered} channels discovered, {0.created} created, {0.moved} moved, "
            "{0.unchanged} unchanged, {0.repositioned} categories repositioned, "
            "{0.failed} failures".format(self)
        )


@attr.s(auto_attribs=True)
class PlannedAction:
    """What needs doing to a single channel's mirror."""

    channel: str
    action: str
    target: GroupingRef
    resource: Optional[GatewayResource] = None


class PassState(HandlingState):
    async def enter(self, machine: "ReconciliationController"):
        machine.logger.debug("Reconciliation: entering %s", self.id)


class IdleState(PassState):
    async def enter(self, machine: "ReconciliationController"):
        await super().enter(machine)
        machine.complete_pass()


class DiscoveringState(PassState):
    async def handle(self, machine: "ReconciliationController", report: PassReport):
        await machine.discover()
        return "diffing"


class DiffingState(PassState):
    async def handle(self, machine: "ReconciliationController", report: PassReport):
        try:
            await machine.diff()

        except GatewayError as err:
            machine.logger.warning("Could not list Discord channels, giving up this pass: %s", err)
            report.failed += 1
            return "idle"

        return "applying"


class ApplyingState(PassState):
    async def handle(self, machine: "ReconciliationController", report: PassReport):
        await machine.apply()
        return "repositioning"


class RepositioningState(PassState):
    async def handle(self, machine: "ReconciliationController", report: PassReport):
        try:
            directory = Directory(await machine.gateway.list_resources())

        except GatewayError as err:
            machine.logger.warning("Could not list Discord channels, not repositioning: %s", err)
            report.failed += 1
            return "idle"

        repositioned, failed = await machine.reposition(directory)
        report.repositioned += repositioned
        report.failed += failed

        return "idle"


class ReconciliationController(HandlerStateMachine):
    """
    Owns the mapping between IRC channels and their Discord mirrors,
    along with the set of starred channels. Other components read them
    through the snapshot accessors only.
    """

    def __init__(
        self,
        gateway: "GatewayDirectory",
        tracker: "ChannelSetTracker",
        capacity: int = DEFAULT_CAPACITY,
        overflow_name: str = "IRC",
        privileged_name: str = "IRC Starred",
        suffix: str = MIRROR_SUFFIX,
        list_timeout: float = 15.0,
        cooldown: float = 10.0,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Arguments:
            gateway {GatewayDirectory} -- The Discord side.
            tracker {ChannelSetTracker} -- Lists the channels on the IRC side.

        Keyword Arguments:
            capacity {int} -- How many channels an overflow category may hold. (default: 50)
            overflow_name {str} -- The base name of overflow categories. (default: 'IRC')
            privileged_name {str} -- The name of the starred category. (default: 'IRC Starred')
            suffix {str} -- The mirror-suffix tag. (default: '-irc')
            list_timeout {float} -- How long to wait for IRC's channel list, in seconds. (default: 15.0)
            cooldown {float} -- The minimum time between two passes, in seconds. (default: 10.0)
            logger {logging.Logger} -- Where to log to. (default: the 'tribridge.reconcile' logger)
        """

        super().__init__()

        self.gateway = gateway
        self.tracker = tracker
        self.capacity = capacity
        self.overflow_name = overflow_name
        self.privileged_name = privileged_name
        self.suffix = suffix
        self.list_timeout = list_timeout
        self.cooldown = cooldown
        self.logger = logger or logging.getLogger("tribridge.reconcile")

        for state in (
            IdleState("idle"),
            DiscoveringState("discovering"),
            DiffingState("diffing"),
            ApplyingState("applying"),
            RepositioningState("repositioning"),
        ):
            self.register_state(state)

        self.set_state_name("idle")

        self._mapping = {}  # type: Dict[str, str]
        self._names = {}  # type: Dict[str, str]
        self._starred = set()

        self.last_completed = None  # type: Optional[float]
        self.last_report = None  # type: Optional[PassReport]

        self._lock = trio.Lock()
        self._report = None  # type: Optional[PassReport]
        self._directory = None  # type: Optional[Directory]
        self._policy = None  # type: Optional[PlacementPolicy]
        self._plan = []  # type: List[PlannedAction]

    # === Snapshot accessors ===

    def mapping_snapshot(self) -> Dict[str, str]:
        """A copy of the mapping table, from channel key to Discord channel ID."""

        return dict(self._mapping)

    def starred_snapshot(self) -> FrozenSet[str]:
        return frozenset(self._starred)

    def mapped_channels(self) -> List[str]:
        """The names of every mapped IRC channel."""

        return sorted(self._names[key] for key in self._mapping)

    def resource_for_channel(self, channel: str) -> Optional[str]:
        return self._mapping.get(channel_key(channel))

    def channel_for_resource(self, resource_id: str) -> Optional[str]:
        for key, mapped_id in self._mapping.items():
            if mapped_id == resource_id:
                return self._names[key]

        return None

    def is_idle(self) -> bool:
        return self.state_name == "idle" and not self._lock.locked()

    def cooling_down(self) -> bool:
        return (
            self.last_completed is not None
            and trio.current_time() - self.last_completed < self.cooldown
        )

    # === Passes ===

    async def trigger(self, reason: str = "timer") -> bool:
        """Runs a reconciliation pass, unless one is already underway,
        the last one ended too recently, or either side is not connected.

        Keyword Arguments:
            reason {str} -- What triggered the pass, for logging. (default: 'timer')

        Returns:
            bool -- Whether a pass was run.
        """

        if not self.is_idle():
            self.logger.info("Reconciliation (%s) rejected: a pass is in progress", reason)
            return False

        if self.cooling_down():
            self.logger.info("Reconciliation (%s) rejected: cooling down", reason)
            return False

        if not self.tracker.backend.registered or not self.gateway.is_ready():
            self.logger.info("Reconciliation (%s) rejected: not connected", reason)
            return False

        self._lock.acquire_nowait()

        try:
            await self.run_pass(reason)

        finally:
            self._lock.release()

        return True

    async def run_pass(self, reason: str = "timer"):
        """Runs a whole pass through the state machine. Use trigger instead,
        which guards against overlapping passes."""

        self._report = PassReport(reason)
        self.logger.info("Starting reconciliation pass (%s)", reason)

        try:
            await self.next_state("discovering")

            while self.state_name != "idle":
                await self.handle_data(self._report)

        except BaseException:
            self.set_state_name("idle")
            raise

    def complete_pass(self):
        self.last_completed = trio.current_time()
        self.last_report = self._report

        self._directory = None
        self._policy = None
        self._plan = []

        if self._report is not None:
            self.logger.info("Reconciliation pass (%s) done: %s", self._report.reason, self._report)

    async def discover(self):
        channels = await self.tracker.discover(self.list_timeout)

        if self._report is not None:
            self._report.discovered = len(channels)

    def _new_policy(self, directory: Directory) -> PlacementPolicy:
        return PlacementPolicy(
            directory,
            self._starred,
            capacity=self.capacity,
            overflow_name=self.overflow_name,
            privileged_name=self.privileged_name,
            suffix=self.suffix,
            logger=self.logger,
        )

    async def diff(self):
        """Works out what needs doing to every known channel's mirror."""

        directory = Directory(await self.gateway.list_resources())

        for key, resource_id in list(self._mapping.items()):
            if directory.get(resource_id) is None:
                self.logger.info("Mirror of %s is gone, unmapping it", self._names[key])
                del self._mapping[key]
                del self._names[key]

        self._directory = directory
        self._policy = self._new_policy(directory)
        self._plan = []

        claimed = set()

        for channel in sorted(self.tracker.snapshot(), key=channel_key):
            name = mirror_name(channel, self.suffix)

            if name in claimed:
                self.logger.debug("%s collides with another channel's mirror, skipping", channel)
                continue

            claimed.add(name)

            resource = directory.find_text(name)
            target = self._policy.placement_for(channel, resource)

            if resource is None:
                action = CREATE

            else:
                self._map(channel, resource.id)
                action = NONE if self._policy.ref_of(resource) == target else MOVE

            self._plan.append(PlannedAction(channel, action, target, resource))

    def _map(self, channel: str, resource_id: str):
        key = channel_key(channel)

        self._mapping[key] = resource_id
        self._names[key] = channel

    async def apply(self):
        """Creates and moves mirrors, one at a time."""

        report = self._report

        for planned in self._plan:
            if planned.action == NONE:
                report.unchanged += 1
                continue

            try:
                parent_id = await self._ensure_grouping(planned.target, self._policy, self._directory)

                if planned.action == CREATE:
                    resource = await self.gateway.create_resource(
                        mirror_name(planned.channel, self.suffix), TEXT, parent_id
                    )
                    self._map(planned.channel, resource.id)
                    report.created += 1

                else:
                    resource = await self.gateway.move_resource(planned.resource.id, parent_id)
                    report.moved += 1

            except GatewayError as err:
                self.logger.warning("Could not %s mirror of %s: %s", planned.action, planned.channel, err)
                report.failed += 1
                continue

            self._directory.put(resource)
            self.logger.info("Mirror of %s: %s in %s category", planned.channel, planned.action, planned.target)

    async def _ensure_grouping(
        self, ref: GroupingRef, policy: PlacementPolicy, directory: Directory
    ) -> str:
        """Returns the ID of a category, creating it if it does not exist yet."""

        if ref.privileged:
            if policy.privileged_id is None:
                grouping = await self.gateway.create_resource(self.privileged_name, CATEGORY)
                directory.put(grouping)
                policy.privileged_id = grouping.id

            return policy.privileged_id

        if ref.index not in policy.grouping_ids:
            grouping = await self.gateway.create_resource(
                overflow_grouping_name(self.overflow_name, ref.index), CATEGORY
            )
            directory.put(grouping)
            policy.grouping_ids[ref.index] = grouping.id

        return policy.grouping_ids[ref.index]

    async def reposition(self, directory: Directory) -> typing.Tuple[int, int]:
        """Moves overflow categories after every other category, keeping them
        in index order. The starred category is never moved.

        Returns:
            Tuple[int, int] -- How many categories were moved, and how many could not be.
        """

        groupings = directory.groupings()
        overflow = []
        others = []

        for grouping in groupings:
            index = None

            if grouping.name.lower() != self.privileged_name.lower():
                index = overflow_grouping_index(self.overflow_name, grouping.name)

            if index is None:
                others.append(grouping)

            else:
                overflow.append((index, grouping))

        tail = [grouping for _, grouping in sorted(overflow, key=lambda pair: pair[0])]

        if [g.id for g in groupings] == [g.id for g in others + tail]:
            return 0, 0

        # moving each one to the end, in order, leaves them all at
        # the end in that same order
        last = len(groupings) - 1
        moved = failed = 0

        for grouping in tail:
            try:
                await self.gateway.set_grouping_position(grouping.id, last)

            except GatewayError as err:
                self.logger.warning("Could not reposition category %s: %s", grouping.name, err)
                failed += 1

            else:
                moved += 1

        return moved, failed

    async def run_periodically(
        self,
        interval: float,
        initial_delay: float = 0.0,
        on_pass: Optional[typing.Callable[[], typing.Awaitable[None]]] = None,
    ):
        """Triggers a pass every so often. Never returns.

        Arguments:
            interval {float} -- Time between passes, in seconds.

        Keyword Arguments:
            initial_delay {float} -- Time before the first pass, in seconds. (default: 0.0)
            on_pass {Callable} -- Awaited after every pass that ran. (default: None)
        """

        await trio.sleep(initial_delay)

        while True:
            if await self.trigger("timer") and on_pass is not None:
                await on_pass()

            await trio.sleep(interval)

    # === Out-of-band operations ===

    async def promote(self, resource_id: str) -> str:
        """Stars the IRC channel a Discord channel mirrors, moving the
        mirror to the starred category right away.

        Arguments:
            resource_id {str} -- The ID of the Discord channel.

        Raises:
            NotMappedError: The Discord channel does not mirror any IRC channel.

        Returns:
            str -- The name of the IRC channel.
        """

        async with self._lock:
            channel = self.channel_for_resource(resource_id)

            if channel is None:
                raise NotMappedError("This channel is not mapped to any IRC channel.")

            key = channel_key(channel)

            if key in self._starred:
                return channel

            directory = Directory(await self.gateway.list_resources())

            if directory.get(resource_id) is None:
                del self._mapping[key]
                del self._names[key]
                raise NotMappedError("This channel is not mapped to any IRC channel.")

            self._starred.add(key)

            policy = self._new_policy(directory)
            parent_id = await self._ensure_grouping(PRIVILEGED, policy, directory)
            directory.put(await self.gateway.move_resource(resource_id, parent_id))

            self.logger.info("Starred %s", channel)

            await self.reposition(directory)

            return channel

    async def purge(self) -> int:
        """Deletes every Discord channel carrying the mirror-suffix tag,
        mapped or not, and forgets every mapping, star and known channel.

        Returns:
            int -- How many channels were deleted.
        """

        async with self._lock:
            resources = await self.gateway.list_resources()
            removed = failed = 0

            for resource in resources:
                if resource.is_grouping or not has_mirror_suffix(resource.name, self.suffix):
                    continue

                try:
                    await self.gateway.delete_resource(resource.id)

                except GatewayError as err:
                    self.logger.warning("Could not delete %s: %s", resource.name, err)
                    failed += 1

                else:
                    removed += 1

            self._mapping.clear()
            self._names.clear()
            self._starred.clear()
            self.tracker.clear()

            self.logger.info("Purged %d mirrors (%d failures)", removed, failed)

            return removed
