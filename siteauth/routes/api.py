"""Provides the JSON HTTP interface."""

from typing import Any, Callable, Optional
from functools import wraps
from http import HTTPStatus as status
import logging

from flask import Blueprint, Response, current_app, jsonify, make_response, \
    redirect, request

from ..controllers import attachments, authentication, profile, registration
from ..domain import Disposition
from ..services import cookies, mail, objectstore, sessions
from ..services.datastore import current_datastore
from ..services.exceptions import InvalidSession

logger = logging.getLogger(__name__)
blueprint = Blueprint('api', __name__, url_prefix='')


def _session_token() -> Optional[str]:
    name = current_app.config['AUTH_SESSION_COOKIE_NAME']
    return cookies.parse(request.headers.get('Cookie')).get(name) or None


def set_cookies(response: Response, cookie_data: Optional[dict]) -> None:
    """
    Update a :class:`.Response` with cookies from controller data.

    Keys are logical cookie names, mapped to configured names via
    ``AUTH_<KEY>_NAME``; values are (value, max_age) pairs.
    """
    if not cookie_data:
        return None
    secure = bool(current_app.config['AUTH_SESSION_COOKIE_SECURE'])
    for cookie_key, (cookie_value, max_age) in cookie_data.items():
        cookie_name = current_app.config[f'AUTH_{cookie_key.upper()}_NAME']
        logger.debug('Set cookie %s, max_age %s', cookie_name, max_age)
        response.headers.add('Set-Cookie', cookies.encode(
            cookie_name, cookie_value, max_age, secure=secure
        ))


def clear_session_cookie(response: Response) -> None:
    """Remove the session cookie from the client."""
    response.headers.add('Set-Cookie', cookies.clear(
        current_app.config['AUTH_SESSION_COOKIE_NAME'],
        secure=bool(current_app.config['AUTH_SESSION_COOKIE_SECURE'])
    ))


def session_required(func: Callable) -> Callable:
    """
    Require a live session to access the decorated view.

    The resolved :class:`.domain.Session` is attached to the request as
    ``request.auth``. Requests without a valid session get a 401 and have
    their session cookie cleared. Otherwise the cookie's max-age is renewed
    to track the rolling session expiry.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Response:
        try:
            request.auth = sessions.current_session().resolve(
                _session_token()
            )
        except InvalidSession as e:
            logger.debug('Rejected session: %s', e)
            response = make_response(jsonify(message='Unauthorized'),
                                     status.UNAUTHORIZED)
            clear_session_cookie(response)
            return response
        response = make_response(func(*args, **kwargs))
        set_cookies(response, {
            'session_cookie': (request.auth.token,
                               sessions.current_session().duration)
        })
        return response
    return wrapper


def respond(data: Any, code: int, headers: dict) -> Response:
    """
    Build a response from controller output.

    Controllers seeking to update cookies must include a 'cookies' key
    in their response data.
    """
    cookie_data = None
    if isinstance(data, dict):
        cookie_data = data.pop('cookies', None)
    if code in (status.FOUND, status.SEE_OTHER):
        headers = dict(headers)
        location = headers.pop('Location')
        response = make_response(redirect(location, code=code))
        response.headers.update(headers)
    else:
        response = make_response(jsonify(data), code, headers)
    set_cookies(response, cookie_data)
    return response


@blueprint.after_request
def apply_response_headers(response: Response) -> Response:
    """Prevent UI redress attacks."""
    response.headers['Content-Security-Policy'] = "frame-ancestors 'none'"
    response.headers['X-Frame-Options'] = 'DENY'
    return response


@blueprint.route('/register', methods=['POST'])
def register() -> Response:
    """Create a new, unverified account."""
    data, code, headers = registration.register(
        request.get_json(silent=True), current_datastore(),
        mail.current_mailer(), current_app.config, request.headers
    )
    return respond(data, code, headers)


@blueprint.route('/verify', methods=['GET'])
def verify() -> Response:
    """Confirm an e-mail address from the link sent by e-mail."""
    data, code, headers = registration.verify(
        request.args.get('token'), current_datastore(), current_app.config
    )
    return respond(data, code, headers)


@blueprint.route('/resend', methods=['POST'])
def resend() -> Response:
    """Send another verification e-mail."""
    data, code, headers = registration.resend(
        request.get_json(silent=True), current_datastore(),
        mail.current_mailer(), current_app.config, request.headers
    )
    return respond(data, code, headers)


@blueprint.route('/login', methods=['POST'])
def login() -> Response:
    """Log in with e-mail and password."""
    data, code, headers = authentication.login(
        request.get_json(silent=True), current_datastore(),
        sessions.current_session()
    )
    return respond(data, code, headers)


@blueprint.route('/logout', methods=['POST'])
def logout() -> Response:
    """Log out. Always clears the session cookie."""
    data, code, headers = authentication.logout(
        _session_token(), sessions.current_session()
    )
    return respond(data, code, headers)


@blueprint.route('/me', methods=['GET'])
@session_required
def view_profile() -> Response:
    """Profile of the logged-in user."""
    data, code, headers = profile.view_profile(request.auth)
    return respond(data, code, headers)


@blueprint.route('/me', methods=['PATCH'])
@session_required
def edit_profile() -> Response:
    """Update the profile of the logged-in user."""
    data, code, headers = profile.edit_profile(
        request.auth, request.get_json(silent=True), current_datastore()
    )
    return respond(data, code, headers)


@blueprint.route('/posts/<post_id>', methods=['GET'])
def get_post(post_id: str) -> Response:
    """A published post."""
    data, code, headers = attachments.get_post(post_id, current_datastore())
    return respond(data, code, headers)


@blueprint.route('/posts/<post_id>/attachments', methods=['GET'])
@session_required
def list_attachments(post_id: str) -> Response:
    """Attachments of a published post."""
    data, code, headers = attachments.list_attachments(post_id,
                                                       current_datastore())
    return respond(data, code, headers)


@blueprint.route('/attachments/<attachment_id>/download', methods=['GET'])
@session_required
def download_attachment(attachment_id: str) -> Response:
    """Redirect to a signed URL that downloads the attachment."""
    data, code, headers = attachments.authorize_download(
        attachment_id, current_datastore(),
        objectstore.current_objectstore(), current_app.config,
        disposition=Disposition.ATTACHMENT
    )
    return respond(data, code, headers)


@blueprint.route('/attachments/<attachment_id>/view', methods=['GET'])
@session_required
def view_attachment(attachment_id: str) -> Response:
    """Redirect to a signed URL that displays the attachment in-browser."""
    data, code, headers = attachments.authorize_download(
        attachment_id, current_datastore(),
        objectstore.current_objectstore(), current_app.config,
        disposition=Disposition.INLINE
    )
    return respond(data, code, headers)


@blueprint.route('/auth_status', methods=['GET'])
def auth_status() -> Response:
    """Get if the app is running."""
    return make_response("OK")
