import attr
import trio
import trio.testing

from tribridge.backend import Backend
from tribridge.backends.irc import IRCResponse
from tribridge.errors import GatewayError
from tribridge.gateway import CATEGORY, TEXT, GatewayResource
from tribridge.reconcile import ReconciliationController
from tribridge.tracker import ChannelSetTracker


class FakeGateway:
    """An in-memory Discord guild."""

    def __init__(self):
        self.resources = {}
        self.user_id = "1000"
        self.ready = True

        # (operation, resource name) pairs that fail
        self.fail = set()

        self.ops = []
        self.sent = []
        self._next_id = 5000

    def _new_id(self):
        self._next_id += 1
        return str(self._next_id)

    def _check(self, op, name):
        if (op, name) in self.fail or (op, "*") in self.fail:
            raise GatewayError("{} of {} failed".format(op, name))

    def _categories(self):
        return sorted(
            (r for r in self.resources.values() if r.kind == CATEGORY),
            key=lambda r: r.position,
        )

    # seeding and inspection helpers

    def add_category(self, name):
        resource = GatewayResource(self._new_id(), name, CATEGORY, None, len(self._categories()))
        self.resources[resource.id] = resource
        return resource

    def add_text(self, name, parent=None):
        parent_id = parent.id if parent is not None else None
        resource = GatewayResource(self._new_id(), name, TEXT, parent_id, len(self.children(parent_id)))
        self.resources[resource.id] = resource
        return resource

    def category(self, name):
        for resource in self._categories():
            if resource.name == name:
                return resource

        return None

    def text(self, name):
        for resource in self.resources.values():
            if resource.kind == TEXT and resource.name == name:
                return resource

        return None

    def children(self, parent_id):
        return [r for r in self.resources.values() if r.kind == TEXT and r.parent_id == parent_id]

    def children_of(self, category_name):
        category = self.category(category_name)
        return sorted(r.name for r in self.children(category.id)) if category else []

    def category_order(self):
        return [r.name for r in self._categories()]

    def ops_of(self, kind):
        return [op for op in self.ops if op[0] == kind]

    # GatewayDirectory

    def is_ready(self):
        return self.ready

    async def list_resources(self):
        await trio.sleep(0)
        self._check("list", "*")
        return list(self.resources.values())

    async def create_resource(self, name, kind, parent_id=None):
        await trio.sleep(0)
        self._check("create", name)

        if kind == CATEGORY:
            resource = self.add_category(name)

        else:
            resource = GatewayResource(
                self._new_id(), name, TEXT, parent_id, len(self.children(parent_id))
            )
            self.resources[resource.id] = resource

        self.ops.append(("create", name, kind, parent_id))
        return resource

    async def move_resource(self, resource_id, parent_id):
        await trio.sleep(0)
        resource = self.resources[resource_id]
        self._check("move", resource.name)

        resource = attr.evolve(resource, parent_id=parent_id, position=len(self.children(parent_id)))
        self.resources[resource_id] = resource

        self.ops.append(("move", resource.name, parent_id))
        return resource

    async def delete_resource(self, resource_id):
        await trio.sleep(0)
        resource = self.resources[resource_id]
        self._check("delete", resource.name)

        del self.resources[resource_id]
        self.ops.append(("delete", resource.name))

    async def set_grouping_position(self, resource_id, index):
        await trio.sleep(0)
        resource = self.resources[resource_id]
        self._check("position", resource.name)

        order = [r for r in self._categories() if r.id != resource_id]
        order.insert(index, resource)

        for position, category in enumerate(order):
            self.resources[category.id] = attr.evolve(category, position=position)

        self.ops.append(("position", resource.name, index))

    async def message(self, target, message):
        self.sent.append((target, message))
        return True


class FakeLine(Backend):
    """An IRC connection that answers LIST from a fixed channel list."""

    def __init__(self, channels=(), end_of_list=True):
        super().__init__()

        self.nickname = "DiscordRelay"
        self.registered = True
        self.listing = list(channels)
        self.end_of_list = end_of_list

        self.sent = []
        self.messages = []
        self.joined = []

    async def send(self, line):
        self.sent.append(line)

        if line == "LIST":
            for name in self.listing:
                await self.receive_message(
                    "IRC__NUMERIC",
                    IRCResponse.parse(":irc.test 322 relay {} 3 :some topic".format(name)),
                )

            if self.end_of_list:
                await self.receive_message(
                    "IRC__NUMERIC", IRCResponse.parse(":irc.test 323 relay :End of /LIST")
                )

        return True

    async def list_channels(self):
        return await self.send("LIST")

    async def message(self, target, message):
        self.messages.append((target, message))
        return True

    async def join(self, channel):
        self.joined.append(channel)
        return True


def run(async_fn, *args):
    """Runs a coroutine function under a clock that skips
    straight past every sleep and timeout."""

    return trio.run(async_fn, *args, clock=trio.testing.MockClock(autojump_threshold=0))


def make_controller(gateway, line, **kwargs):
    kwargs.setdefault("cooldown", 0)
    return ReconciliationController(gateway, ChannelSetTracker(line), **kwargs)
