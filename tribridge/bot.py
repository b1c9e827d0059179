"""Bots are the central concept of Tribridge: entities that
manage high-level responses, while leaving low-level handling
details to the backend(s).
"""

import datetime
import functools
import logging
from typing import Any, Optional, Set

import trio

from tribridge.backend import Backend
from tribridge.errors import TribridgeBotBackendRefusedError, TribridgeError


class Message:
    def __init__(
        self,
        backend: Backend,
        line: str,
        author_name: str,
        author_addr: str,
        channel: Any,
        channel_addr: str,
        when: Optional[datetime.datetime] = None,
    ):
        self.backend = backend
        self.line = line
        self.author_name = author_name
        self.author_addr = author_addr
        self.channel = channel
        self.channel_addr = channel_addr
        self.when = when or datetime.datetime.now()

    async def reply(self, reply_line: str) -> bool:
        """Replies back at the message anyhow."""
        return False

    def __repr__(self) -> str:
        return "{}({} in {}: {})".format(
            type(self).__name__, self.author_name, self.channel, repr(self.line)
        )


class Bot:
    """
    A bot superclass. It is supposed to be subclassed in order to be used, you know.
    """

    def __init__(self, name: str, backends: Set[Backend] = (), logger: Optional[logging.Logger] = None):
        """
        Arguments:
            name {str} -- A descriptive name for your Tribridge bot.

        Keyword Arguments:
            backends {Set[tribridge.backend.Backend]} -- A list of backends for the bot to harness. (default: none)
            logger {logging.Logger} -- Where to log to. (default: the 'tribridge.bot' logger)
        """

        self.name = name
        self.backends = set()  # type: Set[Backend]
        self.logger = logger or logging.getLogger("tribridge.bot")

        for backend in backends:
            self.register_backend(backend)

    def register_backend(self, backend: Backend, required: bool = False):
        """
        Registers an individual backend.

        Arguments:
            backend {tribridge.backend.Backend} -- A single backend to register to this bot.

        Keyword Arguments:
            required {bool} --  Whether the Backend refusing to be registered should raise
                                an exception; see tribridge.backend.Backend.pre_bot_register
                                for more info on that.
        """

        if not backend.pre_bot_register(self):
            self.backends.add(backend)

            backend.listen_all()(functools.partial(self._specific_on_relay, backend))

            backend.post_bot_register(self)

        elif required:
            raise TribridgeBotBackendRefusedError(
                "Backend", backend, "refused to be registered by bot", self
            )

    async def _specific_on_relay(self, which: Backend, kind, data):
        """
        >>> import trio
        ...
        >>> dummy_backend = Backend()
        ...
        >>> class MyBot(Bot):
        ...     async def on_hello(_, self, name):
        ...         print('Hello, {}!'.format(name))
        ...
        >>> bot = MyBot('mybot', [dummy_backend])
        ...
        >>> trio.run(dummy_backend.receive_message, 'hello', 'everyone')
        ...
        Hello, everyone!
        """

        func_name = "on_{}".format(kind.lower())

        if hasattr(self, func_name):
            await getattr(self, func_name)(which, data)

    def init(self):
        """Called before the backends are started."""

    async def start(self):
        """Starts this Bot by starting its backends."""

        self.init()

        async with trio.open_nursery() as nursery:
            for backend in self.backends:
                nursery.start_soon(backend.start)

    def __repr__(self):
        return "{}('{}': {} backends)".format(
            type(self).__name__, self.name, len(self.backends)
        )


class CommandBot(Bot):
    """
    A Bot subclass that responds to commands.

    CommandBot subclasses can use the init method to
    add commands, or load plugins that do so.
    """

    def __init__(self, name: str, backends: Set[Backend] = (), prefix: str = "!", **kwargs):
        """
        Arguments:
            name {str} -- A descriptive name for your Tribridge bot.

        Keyword Arguments:
            backends {Set[tribridge.backend.Backend]} -- This bot's backend(s). (default: none)
            prefix {str} -- The command prefix to use (default: {"!"})
        """

        super().__init__(name, backends, **kwargs)

        self.prefix = prefix
        self.commands = {}
        self.help = {}

    def is_command(self, line: str) -> bool:
        """Whether a line invokes one of this bot's commands.

            >>> bot = CommandBot('bot')
            >>> bot.commands['sync'] = None
            >>> bot.is_command('!sync now'), bot.is_command('!!! wow')
            (True, False)
        """

        if not line.startswith(self.prefix):
            return False

        return line[len(self.prefix) :].split(" ")[0] in self.commands

    async def on_message(self, which: Backend, message: Message):
        line = message.line.rstrip()

        if not self.is_command(line):
            return

        line = line[len(self.prefix) :]

        tokens = line.split(" ")
        cmd = tokens[0]
        args = tokens[1:]

        try:
            await self.commands[cmd](which, message, *args)

        except TribridgeError as err:
            self.logger.warning("Command %s failed: %s", cmd, err)
            await message.reply("{}: {}".format(type(err).__name__, str(err)))

        # (We are meant to catch exceptions broadly, in order to
        # report them to bot operators.)
        # pylint: disable=broad-except
        except Exception as err:
            self.logger.exception("Command %s raised", cmd)
            await message.reply("{}: {}".format(type(err).__name__, str(err)))

    def add_command(self, name: str, help_string: Optional[str] = None):
        """Adds a commannd to this bot, by supplying a 'define' function to the
        decorated function. Use it to actually define the command's callback,
        which is called with the backend, the message, and the command's arguments.

            >>> import trio
            >>> bot = CommandBot('echobot')
            >>> @bot.add_command('echo', 'Says it back.')
            ... def define_echo(define):
            ...     @define
            ...     async def echo(which, message, *args):
            ...         print(' '.join(args))
            ...
            >>> message = Message(None, '!echo hello there', 'someone', '1', '#lounge', '1')
            >>> trio.run(bot.on_message, None, message)
            hello there

        Arguments:
            name {str} -- The name of the command.

        Keyword Arguments:
            help_string {Optional[str]} -- What the command does. (default: {None})
        """

        def _decorator(func):
            def define(definition):  # definition is the function
                self.commands[name] = definition

                return definition

            if help_string:
                self.help["commands." + name] = help_string

            return func(define)

        return _decorator
