import pytest
import trio

from conftest import FakeGateway, FakeLine, run
from tribridge.backend import Backend
from tribridge.bot import Message
from tribridge.bridge import BridgeBot
from tribridge.config import BridgeConfig
from tribridge.errors import TribridgeConfigError

OPERATOR = "777"


class FakeDiscord(FakeGateway, Backend):
    def __init__(self):
        FakeGateway.__init__(self)
        Backend.__init__(self)


class ReplyMessage(Message):
    def __init__(self, backend, line, author_addr, channel, channel_addr):
        super().__init__(backend, line, "Alice", author_addr, channel, channel_addr)
        self.replies = []

    async def reply(self, reply_line):
        self.replies.append(reply_line)
        return True


@pytest.fixture
def bot():
    config = BridgeConfig(
        discord_token="token", guild_id=1, operator_id=OPERATOR, reconcile_cooldown=0
    )
    bot = BridgeBot(config, irc=FakeLine(["#lounge", "#games"]), discord=FakeDiscord())
    bot.init()

    return bot


def test_both_backends_are_registered(bot):
    assert bot.backends == {bot.irc, bot.discord}
    assert set(bot.commands) == {"star", "purge", "sync"}


def test_bot_listens_once_per_backend(bot):
    assert len(bot.irc._global_listeners) == 1
    assert len(bot.discord._global_listeners) == 1


def test_sync_command_mirrors_and_joins(bot):
    message = ReplyMessage(bot.discord, "!sync", OPERATOR, "#general", "1")

    run(bot.discord.receive_message, "MESSAGE", message)

    assert message.replies[0].startswith("Done:")
    assert sorted(bot.irc.joined) == ["#games", "#lounge"]
    assert bot.irc.messages == []


def test_messages_are_relayed_both_ways(bot):
    run(bot.controller.trigger)
    lounge = bot.controller.resource_for_channel("#lounge")

    async def main():
        await bot.discord.receive_message(
            "MESSAGE", ReplyMessage(bot.discord, "hi from discord", "42", "#lounge-irc", lounge)
        )
        await bot.irc.receive_message(
            "MESSAGE", ReplyMessage(bot.irc, "hi from irc", "bob@host", "#lounge", "irc.test/#lounge")
        )
        await bot.irc.receive_message(
            "MESSAGE", ReplyMessage(bot.irc, "psst", "bob@host", "DiscordRelay", "irc.test/DiscordRelay")
        )

    run(main)

    assert bot.irc.messages == [("#lounge", "<Alice> hi from discord")]
    assert bot.discord.sent == [(lounge, "<Alice> hi from irc")]


def test_prefixed_chatter_is_relayed(bot):
    run(bot.controller.trigger)
    lounge = bot.controller.resource_for_channel("#lounge")

    async def main():
        for line in ("!!! wow", "!lol", "!sync"):
            await bot.discord.receive_message(
                "MESSAGE", ReplyMessage(bot.discord, line, "42", "#lounge-irc", lounge)
            )

    run(main)

    assert bot.irc.messages == [("#lounge", "<Alice> !!! wow"), ("#lounge", "<Alice> !lol")]


def test_joins_are_not_repeated(bot):
    run(bot.controller.trigger)

    run(bot.sync_joins)
    run(bot.sync_joins)
    assert sorted(bot.irc.joined) == ["#games", "#lounge"]

    run(bot.on__closed, bot.irc, bot.irc)
    run(bot.sync_joins)
    assert len(bot.irc.joined) == 4


def test_first_pass_waits_after_registration(bot):
    async def main():
        with trio.move_on_after(64):
            async with trio.open_nursery() as nursery:
                bot._nursery = nursery
                await bot.on_registered(bot.irc, bot.irc)

    run(main)

    assert bot.controller.last_report is None
    assert bot.irc.sent == []


def test_timer_pass_joins_channels(bot):
    async def main():
        with trio.move_on_after(70):
            async with trio.open_nursery() as nursery:
                bot._nursery = nursery
                await bot.on_registered(bot.irc, bot.irc)

    run(main)

    assert bot.controller.last_report.created == 2
    assert sorted(bot.irc.joined) == ["#games", "#lounge"]


class Flaky(Backend):
    def __init__(self):
        super().__init__()
        self.attempts = 0
        self.fatal_error = None

    async def start(self):
        self.attempts += 1

        if self.attempts < 3:
            raise OSError("connection refused")

        self.fatal_error = TribridgeConfigError("bad token")


def test_reconnects_until_a_fatal_error(bot):
    flaky = Flaky()

    async def main():
        start = trio.current_time()

        async with trio.open_nursery() as nursery:
            bot._nursery = nursery
            nursery.start_soon(bot._keep_connected, flaky, "Flaky")

        return trio.current_time() - start

    elapsed = run(main)

    assert flaky.attempts == 3
    assert elapsed == pytest.approx(10)
    assert bot.fatal_error is flaky.fatal_error
