class TribridgeError(Exception):
    """
    A common superclass for all
    exceptions regarding Tribridge.
    """
    pass

# == Configuration errors ==

class TribridgeConfigError(TribridgeError):
    """
    Raised when the bridge's configuration is
    missing a required value, or has a value
    that cannot be parsed. Always fatal.
    """
    pass

# == Backend errors ==

class TribridgeBackendError(TribridgeError):
    """
    A common superclass for all exceptions
    involving tribridge.backend.Backend and
    subclasses thereof.
    """
    pass

class GatewayError(TribridgeBackendError):
    """
    Raised when a call to the gateway platform's
    API (creating, moving, deleting or repositioning
    a resource, or listing them) fails.
    """
    pass

# == Bot errors ==

class TribridgeBotError(TribridgeError):
    """
    A common superclass for all exceptions
    involving tribridge.bot.Bot and subclasses
    thereof.
    """
    pass

class TribridgeBotBackendRefusedError(TribridgeBotError):
    """
    Raised when a backend refuses to be registered
    by a Bot, when such register operation is
    called with `required=True`.
    """
    pass

# == Command errors ==

class TribridgeCommandError(TribridgeError):
    """
    A common superclass for errors raised by
    operator commands, which are reported back
    to whoever issued the command.
    """
    pass

class NotMappedError(TribridgeCommandError):
    """
    Raised when a command needs the chat context it
    was issued in to be mirrored from an IRC channel,
    and it is not.
    """
    pass
