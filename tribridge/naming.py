"""
Derives Discord-side names from IRC-side ones.

Everything in here is pure: the same input always gives the
same output, and no input makes these functions fail.
"""

import re
from typing import Optional

CHANNEL_PREFIXES = "#&"
MIRROR_SUFFIX = "-irc"
PLACEHOLDER = "unnamed"

# Discord's limit on channel name length
MAX_NAME_LENGTH = 100

_UNSAFE = re.compile(r"[^a-z0-9\-_]")


def channel_key(channel: str) -> str:
    """IRC channel names are case-insensitive; this is the form
    used to index them.

        >>> channel_key('#GAMES')
        '#games'
    """

    return (channel or "").lower()


def mirror_name(
    channel: str, suffix: str = MIRROR_SUFFIX, max_length: int = MAX_NAME_LENGTH
) -> str:
    """Derives the name of the Discord channel that mirrors an IRC channel.

        >>> mirror_name('#lounge')
        'lounge-irc'
        >>> mirror_name('#GAMES!!')
        'games-irc'
        >>> mirror_name('##')
        'unnamed-irc'

    Distinct channels may collide on the same name; the first one
    to be mirrored wins it.

    Arguments:
        channel {str} -- The IRC channel name.

    Keyword Arguments:
        suffix {str} -- The mirror-suffix tag. (default: '-irc')
        max_length {int} -- The maximum length of the result. (default: 100)

    Returns:
        str -- The derived name; lowercase, ASCII, and suffix-tagged.
    """

    name = str(channel or "").lower()

    if name and name[0] in CHANNEL_PREFIXES:
        name = name[1:]

    name = _UNSAFE.sub("-", name).strip("-")
    name = name[: max(max_length - len(suffix), 1)].rstrip("-")

    return (name or PLACEHOLDER) + suffix


def has_mirror_suffix(name: str, suffix: str = MIRROR_SUFFIX) -> bool:
    """Whether a Discord channel name carries the mirror-suffix tag.

        >>> has_mirror_suffix('lounge-irc')
        True
        >>> has_mirror_suffix('general')
        False
    """

    return bool(name) and name.endswith(suffix)


def overflow_grouping_name(prefix: str, index: int) -> str:
    """Names the overflow category at a given index.

        >>> overflow_grouping_name('IRC', 0)
        'IRC'
        >>> overflow_grouping_name('IRC', 2)
        'IRC 3'
    """

    if index == 0:
        return prefix

    return "{} {}".format(prefix, index + 1)


def overflow_grouping_index(prefix: str, name: str) -> Optional[int]:
    """The inverse of overflow_grouping_name; None if the name
    does not belong to an overflow category.

        >>> overflow_grouping_index('IRC', 'irc')
        0
        >>> overflow_grouping_index('IRC', 'IRC 3')
        2
        >>> print(overflow_grouping_index('IRC', 'IRC Starred'))
        None
    """

    prefix = prefix.lower()
    name = (name or "").lower()

    if name == prefix:
        return 0

    match = re.fullmatch(re.escape(prefix) + r" (\d+)", name)

    if match and int(match.group(1)) >= 2:
        return int(match.group(1)) - 1

    return None
