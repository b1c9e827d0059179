import pytest
import trio

from conftest import FakeLine, run
from tribridge.tracker import ChannelSetTracker, is_channel_candidate


def test_service_and_numeric_entries_are_rejected():
    for name in ("#1234", "&42", "*", "#*", "#NickServ", "#chanserv", "#", "lounge", ""):
        assert not is_channel_candidate(name), name


def test_discovery_collects_listed_channels():
    line = FakeLine(["#lounge", "#Games", "#1234", "#ChanServ", "&local"])
    tracker = ChannelSetTracker(line)

    channels = run(tracker.discover)

    assert channels == {"#lounge", "#Games", "&local"}
    assert tracker.snapshot() == channels
    assert line.sent == ["LIST"]


def test_duplicate_entries_differing_in_case_are_merged():
    tracker = ChannelSetTracker(FakeLine(["#Lounge", "#lounge"]))

    assert run(tracker.discover) == {"#Lounge"}


def test_each_scan_replaces_the_previous_set():
    line = FakeLine(["#lounge", "#games"])
    tracker = ChannelSetTracker(line)

    async def main():
        await tracker.discover()
        line.listing = ["#games"]
        return await tracker.discover()

    assert run(main) == {"#games"}


def test_entries_outside_a_scan_are_ignored():
    tracker = ChannelSetTracker(FakeLine())

    assert not tracker.record_candidate("#lounge")
    assert tracker.finish_discovery() == frozenset()


def test_discovery_without_end_of_list_times_out():
    tracker = ChannelSetTracker(FakeLine(["#lounge"], end_of_list=False))

    async def main():
        start = trio.current_time()
        channels = await tracker.discover(timeout=3)
        return channels, trio.current_time() - start

    channels, elapsed = run(main)

    assert channels == {"#lounge"}
    assert elapsed == pytest.approx(3)
    assert not tracker.scanning


def test_clear():
    tracker = ChannelSetTracker(FakeLine(["#lounge"]))
    run(tracker.discover)

    tracker.clear()

    assert tracker.snapshot() == frozenset()
