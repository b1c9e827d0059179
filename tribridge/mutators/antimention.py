"""
A mutator preset that prevents relayed messages from
pinging anyone on Discord.
"""

from tribridge.mutator import Mutator

ZERO_WIDTH_SPACE = "\u200b"
MENTION_SIGILS = "@"


def neutralize_mentions(text: str, sigils: str = MENTION_SIGILS) -> str:
    """Inserts a zero-width space right after every mention sigil, so
    that e.g. '@everyone' no longer notifies anybody.

        >>> neutralize_mentions('hi @everyone') == 'hi @\\u200beveryone'
        True

    Arguments:
        text {str} -- The text to neutralize.

    Keyword Arguments:
        sigils {str} -- Every character that triggers a mention. (default: '@')

    Returns:
        str -- The neutralized text.
    """

    for sigil in sigils:
        text = text.replace(sigil, sigil + ZERO_WIDTH_SPACE)

    return text


class AntiMention(Mutator):
    """
    A mutator that neutralizes mention sigils in every message.
    """

    def __init__(self, sigils: str = MENTION_SIGILS):
        self.sigils = sigils

    def modify_message(self, backend, target, message: str) -> str:
        return neutralize_mentions(message, self.sigils)
