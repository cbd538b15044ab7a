"""Helpers shared by the request controllers."""

from typing import Any, Mapping, Optional, Tuple
import re

from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import BadRequest
from wtforms import Form, ValidationError

ResponseData = Tuple[dict, int, dict]

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-'
    r'[0-9a-f]{12}$',
    re.IGNORECASE
)


def form_data(payload: Any) -> MultiDict:
    """
    Adapt a decoded JSON body for use with a WTForms :class:`Form`.

    ``null`` members are dropped. Anything other than an object with string
    (or ``null``) members is rejected.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise BadRequest('Malformed request body')
    data = MultiDict()
    for key, value in payload.items():
        if value is None:
            continue
        if not isinstance(value, str):
            raise BadRequest(f'Malformed value for {key}')
        data[key] = value
    return data


def first_error(form: Form) -> str:
    """Get a single human-readable message for an invalid form."""
    for name, errors in form.errors.items():
        if errors:
            return f'{form[name].label.text}: {errors[0]}'
    return 'Invalid input'


def strip(value: Optional[str]) -> Optional[str]:
    """WTForms filter: trim surrounding whitespace."""
    return value.strip() if isinstance(value, str) else value


class MaxBytes(object):
    """WTForms validator: limit the UTF-8 encoded length of a field."""

    def __init__(self, limit: int, message: Optional[str] = None) -> None:
        self.limit = limit
        self.message = message or f'Must be at most {limit} bytes'

    def __call__(self, form: Form, field: Any) -> None:
        if field.data and len(field.data.encode('utf-8')) > self.limit:
            raise ValidationError(self.message)


def base_url(settings: Mapping[str, Any], headers: Mapping[str, str]) -> str:
    """
    Get the public base URL of this service.

    Uses ``BASE_URL`` if configured, otherwise the ``X-Forwarded-Proto`` and
    ``Host`` headers of the current request.
    """
    configured = settings.get('BASE_URL')
    if configured:
        return str(configured).rstrip('/')
    proto = headers.get('X-Forwarded-Proto', 'http').split(',')[0].strip()
    host = headers.get('Host', 'localhost')
    return f'{proto}://{host}'


def verification_link(root: str, token: str) -> str:
    """Link that confirms an e-mail address when opened."""
    return f'{root}/verify?token={token}'


def valid_uuid(value: Optional[str]) -> bool:
    """Whether ``value`` is a textual UUID."""
    if not value:
        return False
    return UUID_PATTERN.match(value) is not None


def cooldown_remaining(elapsed: float, cooldown: int) -> int:
    """Whole seconds left before another e-mail may be sent; 0 if none."""
    remaining = cooldown - int(max(elapsed, 0))
    return max(remaining, 0)

