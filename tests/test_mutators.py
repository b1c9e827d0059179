from tribridge.mutator import Mutator, mutate
from tribridge.mutators.antimention import AntiMention, neutralize_mentions
from tribridge.mutators.formatting import StripFormatting, strip_formatting


def test_strip_formatting():
    assert strip_formatting("\x02hi\x02 \x034there\x03") == "hi there"
    assert strip_formatting("\x0399,99x") == "x"
    assert strip_formatting("no codes, 3,4 commas") == "no codes, 3,4 commas"


def test_colour_code_only_eats_two_digits():
    assert strip_formatting("\x03123") == "3"


def test_neutralize_mentions():
    assert neutralize_mentions("hi @everyone") == "hi @\u200beveryone"
    assert neutralize_mentions("@here and @<123>") == "@\u200bhere and @\u200b<123>"
    assert neutralize_mentions("nobody") == "nobody"


def test_mutators_apply_in_order():
    mutators = [StripFormatting(), AntiMention()]

    assert mutate(mutators, None, "1", "\x02@everyone\x02") == "@\u200beveryone"


def test_a_mutator_can_cancel_a_message():
    class Drop(Mutator):
        def modify_message(self, backend, target, message):
            return None if "spam" in message else message

    seen = []

    class Record(Mutator):
        def modify_message(self, backend, target, message):
            seen.append(message)
            return message

    assert mutate([Drop(), Record()], None, "1", "spam spam") is None
    assert mutate([Drop(), Record()], None, "1", "eggs") == "eggs"
    assert seen == ["eggs"]
