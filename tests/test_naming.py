import re
import string

from hypothesis import given
from hypothesis import strategies as st

from tribridge.naming import (
    has_mirror_suffix,
    mirror_name,
    overflow_grouping_index,
    overflow_grouping_name,
)


def test_mirror_name_examples():
    assert mirror_name("#Lounge") == "lounge-irc"
    assert mirror_name("&local") == "local-irc"
    assert mirror_name("#hack club!") == "hack-club-irc"
    assert mirror_name("#--dashes--") == "dashes-irc"
    assert mirror_name("#ünïcode") == "n-code-irc"
    assert mirror_name("") == "unnamed-irc"
    assert mirror_name("#!!!") == "unnamed-irc"


def test_mirror_name_strips_a_single_prefix():
    assert mirror_name("##python") == "python-irc"
    assert mirror_name("#&x") == "x-irc"


def test_mirror_name_is_truncated():
    name = mirror_name("#" + "a" * 200)

    assert len(name) == 100
    assert name.endswith("-irc")


def test_truncation_does_not_leave_dashes_before_suffix():
    name = mirror_name("#" + "a" * 95 + "-bbbb")

    assert name == "a" * 95 + "-irc"


def test_custom_suffix():
    assert mirror_name("#lounge", "-bridged") == "lounge-bridged"
    assert has_mirror_suffix("lounge-bridged", "-bridged")


@given(st.text())
def test_mirror_name_is_total_and_well_formed(channel):
    name = mirror_name(channel)

    assert re.fullmatch(r"[a-z0-9_][a-z0-9\-_]*-irc", name)
    assert len(name) <= 100
    assert has_mirror_suffix(name)


@given(st.text(alphabet=string.printable))
def test_mirror_name_ignores_case(channel):
    assert mirror_name(channel) == mirror_name(channel.upper()) == mirror_name(channel.lower())


@given(st.integers(min_value=0, max_value=1000))
def test_overflow_grouping_names_round_trip(index):
    assert overflow_grouping_index("IRC", overflow_grouping_name("IRC", index)) == index


def test_other_categories_are_not_overflow():
    for name in ("General", "IRC Starred", "IRC 1", "IRC 0", "IRCx", "IRC 2b"):
        assert overflow_grouping_index("IRC", name) is None
