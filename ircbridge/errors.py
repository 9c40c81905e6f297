class BridgeError(Exception):
    """
    A common superclass for all
    exceptions regarding the IRC bridge.
    """
    pass

# == Configuration errors ==

class ConfigError(BridgeError):
    """
    Raised when the bridge configuration is
    missing, malformed, or inconsistent
    (e.g. two servers share an identifier).
    """
    pass

# == Relay errors ==

class EndpointSetSealedError(BridgeError):
    """
    Raised when an Endpoint is added to an
    EndpointSet after startup has sealed it.
    """
    pass

# == Backend errors ==

class IRCError(BridgeError):
    """
    A common superclass for all exceptions
    involving ircbridge.backends.irc.IRCConnection.
    """
    pass

class IRCNotRegisteredError(IRCError):
    """
    Raised when a channel message or action is
    sent through a connection that has not yet
    completed registration with its server.
    """
    pass
