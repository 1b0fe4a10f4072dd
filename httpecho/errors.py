from typing import Optional


class HTTPEchoError(Exception):
    """Base class for every error raised by httpecho."""


class ArgumentError(HTTPEchoError, ValueError):
    """Command-line arguments could not be turned into a listen address."""

    def __init__(self, message: str, token: Optional[str] = None):
        super().__init__(message)
        self.token = token


class InsufficientArguments(ArgumentError):
    def __init__(self, message: str = "at least one port number is required"):
        super().__init__(message)


class InvalidAddress(ArgumentError):
    def __init__(self, token: str):
        super().__init__(f'ip address "{token}" is invalid', token)


class InvalidPort(ArgumentError):
    def __init__(self, token: str):
        super().__init__(f'port number "{token}" is invalid', token)


class BindError(HTTPEchoError):
    """A listener could not acquire its socket."""


class ServeError(HTTPEchoError):
    """A listener stopped with an error after it started serving."""


class SerializationError(HTTPEchoError):
    """The inbound request could not be rendered back to bytes."""
