"""
A mutator preset that removes IRC formatting control codes,
which other platforms would otherwise show as garbage.
"""

import re

from tribridge.mutator import Mutator

# bold, italic, underline, reset and reverse are single bytes;
# colour takes up to two optional numeric arguments
IRC_FORMATTING = re.compile(r"\x03(?:\d{1,2}(?:,\d{1,2})?)?|[\x02\x1d\x1f\x0f\x16]")


def strip_formatting(text: str) -> str:
    """Strips IRC formatting codes (bold, colour, italic, underline,
    reset and reverse) from a line of text.

        >>> strip_formatting('\\x02bold\\x02 and \\x0304,12colour\\x03!')
        'bold and colour!'

        >>> strip_formatting('\\x1ditalic\\x1f \\x16reversed\\x0f')
        'italic reversed'

    Arguments:
        text {str} -- The text to strip.

    Returns:
        str -- The text, without any formatting codes.
    """

    return IRC_FORMATTING.sub("", text)


class StripFormatting(Mutator):
    """
    A mutator that strips IRC formatting codes from every message.
    """

    def modify_message(self, backend, target, message: str) -> str:
        return strip_formatting(message)
