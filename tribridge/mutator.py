"""
Mutators are extensions that modify the text of messages
before a backend sends them.
"""

import typing

if typing.TYPE_CHECKING:
    from tribridge.backend import Backend


class Mutator:
    """
    The base Mutator superclass. Supposed to be subclassed.

    Mutators are applied in order by whoever sends a message,
    each receiving the previous one's output.
    """

    def modify_message(
        self, backend: "Backend", target: any, message: str
    ) -> typing.Optional[str]:
        """
        Modifies any message sent to a backend target.
        Returns the modified version of this message, or None
        if the message should not be sent at all.

        Arguments:
            backend {tribridge.backend.Backend} -- The backend whose outgoing message to be modified.

            target {any} -- The target. This is actually any object that can be
                            accepted in backend.message, so always use repr()!

            message {str} -- The message.
        """
        return message


def mutate(
    mutators: typing.Iterable[Mutator], backend: "Backend", target: any, message: str
) -> typing.Optional[str]:
    """Runs a message through a sequence of mutators.

        >>> class Shout(Mutator):
        ...     def modify_message(self, backend, target, message):
        ...         return message.upper()
        ...
        >>> mutate([Shout()], None, '#lounge', 'hi')
        'HI'

    Returns:
        Optional[str] -- The final message, or None if any mutator cancelled it.
    """

    for mut in mutators:
        message = mut.modify_message(backend, target, message)

        if message is None:
            return None

    return message
