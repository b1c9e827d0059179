"""Asynchronous stateful handler abstract library."""

import typing

import attr


@attr.s(auto_attribs=True)
class HandlingState:
    """Class for a state of handling."""

    id: str

    async def enter(self, machine: "HandlerStateMachine"):
        """Called when entering this state."""
        pass

    async def exit(self, machine: "HandlerStateMachine"):
        """Called when exiting this state."""
        pass

    async def handle(
        self, machine: "HandlerStateMachine", data: typing.Any
    ) -> typing.Optional[str]:
        """Handle some data, and optionally return the next state's ID."""
        pass


class HandlerStateMachine:
    """Class for a state machine that can handle asynchronously, with states.

        >>> import trio
        >>> class Ping(HandlingState):
        ...     async def handle(self, machine, data):
        ...         print('ping', data)
        ...         return 'pong'
        ...
        >>> class Pong(HandlingState):
        ...     async def handle(self, machine, data):
        ...         print('pong', data)
        ...
        >>> machine = HandlerStateMachine()
        >>> machine.register_state(Ping('ping'))
        False
        >>> machine.register_state(Pong('pong'))
        False
        >>> async def play():
        ...     await machine.next_state('ping')
        ...     await machine.handle_data(1)
        ...     await machine.handle_data(2)
        ...
        >>> trio.run(play)
        ping 1
        pong 2
        >>> machine.state_name
        'pong'
    """

    def __init__(self):
        self.states = {}  # type: typing.Dict[str, HandlingState]
        self.state_name = None  # type: typing.Optional[str]

    def is_on_state(self) -> bool:
        """Returns True if and only if there is a non-null current state."""
        return self.state_name is not None

    def get_state(self) -> typing.Optional[HandlingState]:
        """Get the current state object."""
        return self.states.get(self.state_name)

    def set_state_name(self, state: str):
        """Set the current state by name."""
        self.state_name = state

    def has_state(self, name: str) -> bool:
        """Returns True if this state exists by name."""
        return name in self.states

    def add_state(self, name: str, state: HandlingState):
        """Add a state by name."""
        self.states[name] = state

    def register_state(self, handler: HandlingState) -> bool:
        """Register a handling state.

        Returns True if and only if handler.id was already a registered
        state.
        """
        if self.has_state(handler.id):
            return True

        self.add_state(handler.id, handler)
        return False

    async def next_state(self, state: str) -> bool:
        """Try to switch to the next state.

        Returns True if and only if the state exists and was switched to."""

        if not self.has_state(state):
            return False

        if self.is_on_state():
            await self.get_state().exit(self)

        self.set_state_name(state)

        if self.is_on_state():
            await self.get_state().enter(self)

        return True

    async def handle_data(self, data: typing.Any) -> typing.Optional[str]:
        """Lets the current state handle some data, switching to
        whichever state it asks for next."""

        state = self.get_state()

        if state is None:
            return None

        next_state = await state.handle(self, data)

        if next_state is not None:
            await self.next_state(next_state)

        return next_state
