"""
Controllers for logging in and out.

A successful login creates a session row in the credential store and hands
its opaque token back to the route, which sets it as the session cookie.
Nothing about the user is carried in the cookie itself.
"""

from typing import Any, Dict, Optional
from http import HTTPStatus as status
import logging

from werkzeug.exceptions import BadRequest, Forbidden, InternalServerError, \
    Unauthorized
from wtforms import Form, PasswordField, StringField
from wtforms.validators import DataRequired, Length

from ..services import passwords, users
from ..services.datastore import Datastore
from ..services.exceptions import PasswordAuthenticationFailed, \
    SessionCreationFailed, SessionDeletionFailed
from ..services.sessions import SessionStore
from .util import ResponseData, first_error, form_data, strip

logger = logging.getLogger(__name__)

BAD_CREDENTIALS = 'Invalid e-mail address or password'


class LoginForm(Form):
    """Log in form."""

    email = StringField('E-mail', filters=[strip],
                        validators=[DataRequired(), Length(max=255)])
    password = PasswordField('Password', validators=[DataRequired()])


def login(payload: Any, datastore: Datastore,
          sessions: SessionStore) -> ResponseData:
    """
    Authenticate with e-mail and password, and start a session.

    Parameters
    ----------
    payload : dict
        Decoded JSON body with ``email`` and ``password``.
    datastore : :class:`.Datastore`
    sessions : :class:`.SessionStore`

    Returns
    -------
    dict
        Response data. ``cookies`` holds the session cookie for the route
        to set.
    int
        200 (OK) if all goes well.
    dict
        Headers to add to the response.

    Raises
    ------
    :class:`BadRequest`
        If either field is missing.
    :class:`Unauthorized`
        If there is no such user or the password is wrong. Both cases get
        the same message.
    :class:`Forbidden`
        If the account has not been verified yet.

    """
    form = LoginForm(form_data(payload))
    if not form.validate():
        logger.debug('Login form is not valid')
        raise BadRequest(first_error(form))

    with datastore.transaction() as dbsession:
        db_user = users.get_by_email(dbsession, form.email.data)
        if db_user is None:
            user, password_hash = None, None
        else:
            user, password_hash = users.to_domain(db_user), \
                db_user.password_hash

    if user is None or password_hash is None:
        logger.debug('Login failed: no such user')
        raise Unauthorized(BAD_CREDENTIALS)
    if not user.active:
        logger.debug('Login refused for unverified user %s', user.user_id)
        raise Forbidden('This account has not been verified yet')
    try:
        passwords.check_password(form.password.data, password_hash)
    except PasswordAuthenticationFailed as e:
        logger.debug('Login failed for %s: %s', user.user_id, e)
        raise Unauthorized(BAD_CREDENTIALS) from e

    try:
        token, expires = sessions.issue(user.user_id)
    except SessionCreationFailed as e:
        logger.error('Could not create session: %s', e)
        raise InternalServerError('Cannot log in') from e
    logger.info('User %s logged in', user.user_id)

    data: Dict[str, Any] = {
        'message': 'Logged in',
        'role': user.role,
        'cookies': {'session_cookie': (token, sessions.duration)},
    }
    return data, status.OK, {}


def logout(session_token: Optional[str],
           sessions: SessionStore) -> ResponseData:
    """
    Revoke the current session, if any, and clear the session cookie.

    The cookie is cleared even if the session could not be removed from the
    store; in that case the response status is 500.

    Returns
    -------
    dict
        Response data, with a cleared ``cookies`` entry.
    int
        200 (OK), or 500 if the store could not be reached.
    dict
        Headers to add to the response.

    """
    logger.debug('Request to log out')
    data: Dict[str, Any] = {
        'message': 'Logged out',
        'cookies': {'session_cookie': ('', 0)},
    }
    try:
        sessions.revoke(session_token)
    except SessionDeletionFailed as e:
        logger.error('Logout failed: %s', e)
        data['message'] = 'Logged out, but the session could not be removed'
        return data, status.INTERNAL_SERVER_ERROR, {}
    return data, status.OK, {}
