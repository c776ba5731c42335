class UserError(Exception):
    """An error whose message is safe to hand back to the caller."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthorizationError(UserError):
    """Wrong secret, or a credential used for something it does not own."""

    status_code = 401


class EndpointNotFoundError(UserError):
    pass


class MessageFormatError(UserError):
    """A routed frame does not start with a well-formed header."""


class SenderMismatchError(AuthorizationError):
    """The header names a sender other than the connection that sent it."""
