"""Encode and parse the session cookie."""

from typing import Dict, Optional

from werkzeug.http import dump_cookie, parse_cookie

SAMESITE = 'Lax'
PATH = '/'


def parse(header: Optional[str]) -> Dict[str, str]:
    """
    Parse a ``Cookie`` request header into a name-value mapping.

    Malformed segments are skipped. If a name appears more than once, the
    first value wins.
    """
    if not header:
        return {}
    return parse_cookie(header).to_dict()


def encode(name: str, value: str, max_age: int, secure: bool = True) -> str:
    """
    Build a ``Set-Cookie`` value for the session cookie.

    The cookie is always ``HttpOnly``, ``SameSite=Lax`` and scoped to ``/``.
    """
    return dump_cookie(name, value, max_age=max_age, path=PATH,
                       secure=secure, httponly=True, samesite=SAMESITE)


def clear(name: str, secure: bool = True) -> str:
    """Build a ``Set-Cookie`` value that removes the session cookie."""
    return encode(name, '', 0, secure=secure)
