"""
Controllers for registration and e-mail verification.

A new account starts out ``pending``. It becomes ``active`` when the owner
opens the verification link sent to their e-mail address, and only then may
they log in. Verification e-mail can be re-requested, at most once per
cooldown window.
"""

from typing import Any, Dict, Mapping, Optional
from datetime import timedelta
from http import HTTPStatus as status
import logging

from werkzeug.exceptions import BadRequest, Conflict
from wtforms import Form, PasswordField, StringField
from wtforms.validators import DataRequired, Length, Regexp

from .. import domain
from ..services import passwords, tokens, users
from ..services.datastore import Datastore, util as db_util
from ..services.exceptions import MailDeliveryFailed, Unavailable
from ..services.mail import MailSession
from .util import ResponseData, MaxBytes, base_url, cooldown_remaining, \
    first_error, form_data, strip, verification_link

logger = logging.getLogger(__name__)

EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+$'

INVALID_LINK = 'This link is invalid or has expired'
TOKEN_MISSING = 'No verification link is pending for this account; ' \
    'please register again'
TOKEN_EXPIRED = 'The verification link has expired; please register again'


class RegistrationForm(Form):
    """Sign-up form."""

    name = StringField('Name', filters=[strip],
                       validators=[DataRequired(), Length(max=100)])
    email = StringField('E-mail', filters=[strip],
                        validators=[DataRequired(), Length(max=255),
                                    Regexp(EMAIL_PATTERN,
                                           message='Not a valid address')])
    phone = StringField('Phone', filters=[strip],
                        validators=[DataRequired(), Length(max=30)])
    password = PasswordField(
        'Password',
        validators=[DataRequired(), Length(min=8),
                    MaxBytes(passwords.MAX_PASSWORD_BYTES)]
    )


class ResendForm(Form):
    """Request for another verification e-mail."""

    email = StringField('E-mail', filters=[strip],
                        validators=[DataRequired(), Length(max=255)])


def register(payload: Any, datastore: Datastore, mailer: MailSession,
             settings: Mapping[str, Any],
             headers: Mapping[str, str]) -> ResponseData:
    """
    Create a pending account and send its verification link.

    The account row is committed before any e-mail is sent. A failure to send
    does not undo the registration; ``mailSent`` in the response tells the
    caller whether to suggest requesting another e-mail.

    Parameters
    ----------
    payload : dict
        Decoded JSON body with ``name``, ``email``, ``phone`` and
        ``password``.
    datastore : :class:`.Datastore`
    mailer : :class:`.MailSession`
    settings : mapping
        Application config.
    headers : mapping
        Request headers, used to build the verification link when no
        ``BASE_URL`` is configured.

    Returns
    -------
    dict
        Response data.
    int
        201 (Created) if all goes well.
    dict
        Headers to add to the response.

    Raises
    ------
    :class:`BadRequest`
        If a field is missing or out of bounds.
    :class:`Conflict`
        If the e-mail address is already registered.

    """
    form = RegistrationForm(form_data(payload))
    if not form.validate():
        logger.debug('Registration form is not valid')
        raise BadRequest(first_error(form))

    token_duration = int(settings.get('VERIFICATION_TOKEN_DURATION', 3600))
    email = users.normalize_email(form.email.data)
    password_hash = passwords.hash_password(
        form.password.data,
        rounds=int(settings.get('PASSWORD_HASH_ROUNDS', 10))
    )
    token = tokens.generate_token()
    token_expires = db_util.now() + timedelta(seconds=token_duration)

    with datastore.transaction() as dbsession:
        user_id = users.create_pending(
            dbsession, email=email, name=form.name.data,
            password_hash=password_hash, verification_token=token,
            token_expires=token_expires, phone=form.phone.data
        )
    if user_id is None:
        logger.debug('Registration rejected; address in use')
        raise Conflict('This e-mail address is already registered')
    logger.info('Registered pending user %s', user_id)

    link = verification_link(base_url(settings, headers), token)
    mail_sent = _send_verification(datastore, mailer, user_id, email,
                                   form.name.data, link, token_duration)

    data: Dict[str, Any] = {
        'message': 'Registration received; check your e-mail to confirm',
        'mailSent': mail_sent,
    }
    if settings.get('DEBUG_ERROR_DETAIL'):
        logger.info('Verification link for %s: %s', user_id, link)
        data['verifyUrl'] = link
    return data, status.CREATED, {}


def verify(token: Optional[str], datastore: Datastore,
           settings: Mapping[str, Any]) -> ResponseData:
    """
    Activate the pending account holding ``token``.

    Unknown, already-used and expired tokens get the same response. No
    session is issued; the user must log in afterwards.

    Returns
    -------
    dict
        Response data.
    int
        302 (Found), redirecting to the success page.
    dict
        Headers to add to the response.

    """
    if not token or len(token) > 128:
        raise BadRequest(INVALID_LINK)

    activated = False
    user_id: Optional[str] = None
    with datastore.transaction() as dbsession:
        db_user = users.get_pending_by_token(dbsession, token)
        if db_user is not None:
            expires = db_user.verification_token_expires_at
            if expires is not None and expires > db_util.now():
                activated = users.activate(dbsession, db_user.id, token)
                user_id = db_user.id

    if not activated:
        logger.debug('Verification link rejected')
        raise BadRequest(INVALID_LINK)
    logger.info('Activated user %s', user_id)
    location = settings.get('VERIFY_SUCCESS_URL', '/register-success.html')
    return {}, status.FOUND, {'Location': location}


def resend(payload: Any, datastore: Datastore, mailer: MailSession,
           settings: Mapping[str, Any],
           headers: Mapping[str, str]) -> ResponseData:
    """
    Re-send the verification e-mail for a pending account.

    The response is the same whether or not the address is registered.
    The account row stays locked from the throttle check until the send
    stamp is written, so concurrent requests send at most one e-mail per
    cooldown window.

    Returns
    -------
    dict
        Response data, always including ``reqId``.
    int
        200 (OK), 400 if the pending token is gone or expired, or 502 if the
        mail relay failed.
    dict
        Headers to add to the response.

    """
    req_id = tokens.request_id()
    form = ResendForm(form_data(payload))
    if not form.validate():
        return {'message': 'A valid e-mail address is required',
                'reqId': req_id}, status.BAD_REQUEST, {}

    email = users.normalize_email(form.email.data)
    cooldown = int(settings.get('VERIFICATION_RESEND_COOLDOWN', 60))
    token_duration = int(settings.get('VERIFICATION_TOKEN_DURATION', 3600))
    ok = {'message': 'OK', 'reqId': req_id}

    try:
        with datastore.transaction() as dbsession:
            db_user = users.lock_by_email(dbsession, email)
            if db_user is None or db_user.status != domain.UserStatus.PENDING:
                logger.debug('[%s] nothing to resend', req_id)
                return ok, status.OK, {}
            if not db_user.verification_token:
                return {'message': TOKEN_MISSING, 'reqId': req_id}, \
                    status.BAD_REQUEST, {}

            current = db_util.now()
            expires = db_user.verification_token_expires_at
            if expires is None or expires < current:
                return {'message': TOKEN_EXPIRED, 'reqId': req_id}, \
                    status.BAD_REQUEST, {}

            last_sent = db_user.last_verification_email_sent_at
            if last_sent is not None:
                remaining = cooldown_remaining(
                    (current - last_sent).total_seconds(), cooldown
                )
                if remaining > 0:
                    logger.debug('[%s] throttled for %is', req_id, remaining)
                    return dict(ok, cooldownRemainingSec=remaining), \
                        status.OK, {}

            link = verification_link(base_url(settings, headers),
                                     db_user.verification_token)
            mailer.send_verification(email, db_user.name, link,
                                     expires_in=token_duration)
            users.stamp_verification_sent(dbsession, db_user.id, current)
    except MailDeliveryFailed as e:
        logger.error('[%s] could not resend verification e-mail: %s',
                     req_id, e)
        return {'message': 'Could not send the verification e-mail',
                'reqId': req_id}, status.BAD_GATEWAY, {}

    logger.info('[%s] verification e-mail re-sent', req_id)
    return {'message': 'Verification e-mail sent',
            'cooldownRemainingSec': cooldown,
            'reqId': req_id}, status.OK, {}


def _send_verification(datastore: Datastore, mailer: MailSession,
                       user_id: str, email: str, name: str, link: str,
                       token_duration: int) -> bool:
    try:
        mailer.send_verification(email, name, link, expires_in=token_duration)
    except MailDeliveryFailed as e:
        logger.warning('Could not send verification e-mail to user %s: %s',
                       user_id, e)
        return False
    try:
        with datastore.transaction() as dbsession:
            users.stamp_verification_sent(dbsession, user_id, db_util.now())
    except Unavailable as e:
        logger.warning('Could not record send time for user %s: %s',
                       user_id, e)
    return True
