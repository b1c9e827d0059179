"""
The Backend class.

The base class of all Tribridge backends is here defined.
"""

import logging
import queue
from typing import Callable, Set

import trio


class Backend:
    """
    Dummy backend implementation superclass.

    Actual Tribridge backends are supposed to subclass the Backend class, which
    nonetheless provides several utilities, including those which are expected
    (and thus required) by the Tribridge bot that will eventually use it.
    """

    def __init__(self):
        self._listeners = {}
        self._global_listeners = set()  # type: Set[Callable]

        self.stop_scopes = set()  # type: Set[trio.CancelScope]
        self.stop_scope_watcher = None  # type: trio.Nursery

    def listen(self, name: str = "_"):
        """Adds a listener for specific messages received in this backend.
        Use as a decorator generating method.

        Keyword Arguments:
            name {str} -- The name of the event to listen for (default: {'_'})

        Returns:
            function -- The decorator method.
        """

        def _decorator(func):
            self._listeners.setdefault(name, set()).add(func)
            return func

        return _decorator

    def listen_all(self):
        """Adds a listener for all messages received in this backend.
        Use as a decorator generating method.

        Returns:
            function -- The decorator method.
        """

        def _decorator(func):
            self._global_listeners.add(func)
            return func

        return _decorator

    async def receive_message(self, kind: str, data: any):
        """Call this function whenever a message is received in this backend.
        Used either by subclasses or to 'simulate' messages.

            >>> import trio
            >>> dummy_backend = Backend()
            >>> topic = 'games'
            ...
            >>> @dummy_backend.listen('PART')
            ... async def part(kind, data):
            ...     print("Bye!")
            ...
            >>> @dummy_backend.listen('JOIN')
            ... async def join(kind, data):
            ...     print("{} joined {}, which is about {}."
            ...         .format(kind, data, topic)
            ...     )
            ...
            >>> async def test_me():
            ...     await dummy_backend.receive_message('JOIN', '#lounge')
            ...
            ...     global topic
            ...     topic = 'chess'
            ...
            ...     await dummy_backend.receive_message('JOIN', '#chess')
            ...     await dummy_backend.receive_message('PART', '#chess')
            ...
            >>> trio.run(test_me)
            JOIN joined #lounge, which is about games.
            JOIN joined #chess, which is about chess.
            Bye!

        Arguments:
            kind {str} -- The kind of message (aka name argument in listen).
            data {any} -- The message's data.
        """

        lists = self._listeners.get(kind, set()) | self._global_listeners

        for listener in lists:
            await listener(kind, data)

    def running(self) -> bool:
        """Returns whether this backend is up and running."""

        return False

    async def start(self):
        """Starts the backend."""

        raise NotImplementedError("Please subclass and implement!")

    async def message(self, target: str, message: str) -> bool:
        """Standard backend method, which must be implemented by
        every backend. Sends a message to a target.

        Arguments:
            target {str} -- The target of the message (user, channel, etc).
            message {str} -- The message to be sent.

        Returns:
            bool -- Whether the message was queued for sending.
        """

        raise NotImplementedError("Please subclass and implement!")

    def post_bot_register(self, bot):
        """
        Called after a Bot registers this Backend.

        Used so that the backend can perform further
        useful operations on the bot.

        Arguments:
            bot {tribridge.bot.Bot}: The Bot that registers this Backend.
        """

    def pre_bot_register(self, bot):
        """
        Called when a Bot attempts to register this Backend; more
        precisely, before it actually does so.

        This backend may use this function to cancel the registering,
        simply by returning a value that has a boolean value of True
        (bool(x) is True).

        Arguments:
            bot {tribridge.bot.Bot}: The Bot that wants to register this Backend.
        """
        return False

    async def _watch_stop_scopes(self, on_loaded):
        async with trio.open_nursery() as nursery:
            self.stop_scope_watcher = nursery

            async def _run_until_stopped():
                while self.running():
                    await trio.sleep(0.05)

            nursery.start_soon(_run_until_stopped)
            nursery.start_soon(on_loaded)

        self.stop_scope_watcher = None

    def new_stop_scope(self):
        """Makes a new Trio cancel scope, which is automatically
        cancelled when the backend is stopped. The backend must
        be running.

        Raises:
            RuntimeError: Tried to make a stop scope whilst not running.

        Returns:
            trio.CancelScope -- The stop scope.
        """

        if not self.stop_scope_watcher:
            raise RuntimeError(
                "Tried to obtain a stop scope while the backend isn't running!"
            )

        scope = trio.CancelScope()
        self.stop_scopes.add(scope)

        async def watch_scope(scope):
            while not scope.cancel_called:
                await trio.sleep(0.2)

            self.stop_scopes.discard(scope)

        self.stop_scope_watcher.start_soon(watch_scope, scope)

        return scope

    def cancel_stop_scopes(self):
        """Cancels every stop scope handed out so far."""

        for scope in list(self.stop_scopes):
            scope.cancel()


class DuplexBackend(Backend):
    """
    A backend that supports both asynchronous sending
    and receiving of message information, and throttles
    what it sends.
    """

    def __init__(
        self,
        cooldown_hertz: float = 1.2,
        max_heat: int = 5,
        throttle: bool = True,
        logger: logging.Logger = None,
    ):
        super().__init__()

        self._out_queue = queue.Queue()
        self._heat = 0
        self._max_heat = max_heat
        self.cooldown_hertz = cooldown_hertz
        self.throttle = throttle
        self.logger = logger or logging.getLogger("tribridge.backend")

        self._running = False

        # set when the backend must not be restarted
        self.fatal_error = None

    def running(self) -> bool:
        """Returns whether this backend is still up and running.

            >>> DuplexBackend().running()
            False

        Returns:
            bool -- Self-explanatory.
        """

        return self._running

    def max_heat(self) -> int:
        """
        The maximum value self._heat can reach before
        throttling commences.

        Defaults to self._max_heat.
        """

        return self._max_heat

    async def _cooldown(self):
        """
        This async loop is responsible for 'cooling' the backend
        down, at a specified frequency. It's part of the
        throttling mechanism.
        """

        if self.throttle:
            with self.new_stop_scope():
                while self.running():
                    self._heat = max(self._heat - 1, 0)

                    await trio.sleep(1 / self.cooldown_hertz)
