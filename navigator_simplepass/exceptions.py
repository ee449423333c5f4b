"""SimplePass exceptions.

ConfigurationError is raised once, at startup, and is never recovered.
AuthenticationError subclasses carry the user-facing message rendered back
onto the authentication page.
"""


class SimplePassError(Exception):
    """Base class for every SimplePass error."""


class ConfigurationError(SimplePassError):
    """Invalid deployment configuration (weak or missing secrets)."""


class AuthenticationError(SimplePassError):
    """A login or logout attempt that must be reported to the user."""

    status: int = 401
    default_message: str = 'Not authorized.'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AlreadyAuthenticated(AuthenticationError):
    default_message = 'You are already authenticated.'


class MissingCredentials(AuthenticationError):
    default_message = 'Credentials are required.'


class InvalidCredentials(AuthenticationError):
    default_message = 'Invalid credentials.'


class Unauthorized(AuthenticationError):
    default_message = 'Not authorized.'
