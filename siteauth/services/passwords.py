"""Password hashing with bcrypt."""

import bcrypt

from .exceptions import PasswordAuthenticationFailed

MAX_PASSWORD_BYTES = 72
"""bcrypt ignores (or refuses) anything beyond this many bytes."""


def hash_password(password: str, rounds: int = 10) -> str:
    """
    Generate a salted bcrypt hash of ``password``.

    Parameters
    ----------
    password : str
    rounds : int
        bcrypt cost factor.

    Returns
    -------
    str
        The hash, in modular crypt format.

    """
    encoded = password.encode('utf-8')
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValueError('Password is too long')
    return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds)).decode('ascii')


def check_password(password: str, password_hash: str) -> bool:
    """
    Check ``password`` against a stored bcrypt hash.

    Raises
    ------
    :class:`PasswordAuthenticationFailed`
        If the password does not match, or the hash is unusable.

    """
    encoded = password.encode('utf-8')
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise PasswordAuthenticationFailed('Invalid password')
    try:
        matches = bcrypt.checkpw(encoded, password_hash.encode('ascii'))
    except ValueError as e:
        raise PasswordAuthenticationFailed('Malformed password hash') from e
    if not matches:
        raise PasswordAuthenticationFailed('Invalid password')
    return True
