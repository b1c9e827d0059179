import pytest

from conftest import FakeGateway, FakeLine, make_controller, run
from tribridge.bot import CommandBot, Message
from tribridge.commands import UNAUTHORIZED_REPLY, CommandHandler

OPERATOR = "777"


class ReplyMessage(Message):
    def __init__(self, line, author_addr, channel_addr):
        super().__init__(None, line, "someone", author_addr, "#somewhere", channel_addr)
        self.replies = []

    async def reply(self, reply_line):
        self.replies.append(reply_line)
        return True


@pytest.fixture
def setup():
    gateway = FakeGateway()
    line = FakeLine(["#lounge", "#games"])
    controller = make_controller(gateway, line, cooldown=10)
    synced = []

    async def on_sync():
        synced.append(True)

    bot = CommandBot("testbot")
    CommandHandler(controller, OPERATOR, on_sync=on_sync).register(bot)

    return gateway, controller, bot, synced


def command(bot, line, author=OPERATOR, channel="0"):
    message = ReplyMessage(line, author, channel)
    run(bot.on_message, None, message)
    return message.replies


def test_commands_are_registered(setup):
    bot = setup[2]

    assert set(bot.commands) == {"star", "purge", "sync"}


def test_strangers_are_rejected(setup):
    gateway, controller, bot, synced = setup

    for line in ("!star", "!purge", "!sync"):
        assert command(bot, line, author="123") == [UNAUTHORIZED_REPLY]

    assert gateway.ops == []
    assert not synced


def test_nobody_is_authorized_without_an_operator():
    gateway = FakeGateway()
    bot = CommandBot("testbot")
    CommandHandler(make_controller(gateway, FakeLine()), None).register(bot)

    assert command(bot, "!sync", author="None") == [UNAUTHORIZED_REPLY]


def test_sync_runs_a_pass(setup):
    gateway, controller, bot, synced = setup

    replies = command(bot, "!sync")

    assert len(replies) == 1 and replies[0].startswith("Done: 2 channels discovered, 2 created")
    assert synced == [True]
    assert gateway.children_of("IRC") == ["games-irc", "lounge-irc"]


def test_star(setup):
    gateway, controller, bot, synced = setup
    command(bot, "!sync")

    replies = command(bot, "!star", channel=controller.resource_for_channel("#games"))

    assert replies == ["#games is now starred."]
    assert gateway.children_of("IRC Starred") == ["games-irc"]


def test_star_outside_a_mirror_reports_an_error(setup):
    gateway, controller, bot, synced = setup

    replies = command(bot, "!star", channel="31337")

    assert replies == ["NotMappedError: This channel is not mapped to any IRC channel."]
    assert controller.starred_snapshot() == frozenset()


def test_purge(setup):
    gateway, controller, bot, synced = setup
    command(bot, "!sync")

    assert command(bot, "!purge") == ["Deleted 2 mirrored channels."]
    assert controller.mapping_snapshot() == {}
