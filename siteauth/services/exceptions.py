"""Provides exceptions occurring with external services."""


class Unavailable(RuntimeError):
    """The database is temporarily unavailable."""


class SessionCreationFailed(RuntimeError):
    """Failed to create a session in the session store."""


class SessionDeletionFailed(RuntimeError):
    """Failed to delete a session in the session store."""


class InvalidSession(RuntimeError):
    """No live session for a token, or its owner may not use it."""


class MailDeliveryFailed(RuntimeError):
    """The mail relay refused or could not accept a message."""


class SigningFailed(RuntimeError):
    """The object store could not produce a signed URL."""


class AuthenticationFailed(RuntimeError):
    """Failed to authenticate user with provided credentials."""


class PasswordAuthenticationFailed(AuthenticationFailed):
    """Password is not correct."""
