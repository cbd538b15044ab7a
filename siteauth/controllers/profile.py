"""Controllers for viewing and editing the logged-in user's profile."""

from typing import Any
from http import HTTPStatus as status
import logging

from werkzeug.exceptions import BadRequest, Unauthorized
from wtforms import Form, StringField
from wtforms.validators import DataRequired, Length, Optional

from .. import domain
from ..services import users
from ..services.datastore import Datastore
from .util import ResponseData, first_error, form_data, strip

logger = logging.getLogger(__name__)


class ProfileForm(Form):
    """Editable profile fields. The e-mail address cannot be changed."""

    name = StringField('Name', filters=[strip],
                       validators=[DataRequired(), Length(max=100)])
    phone = StringField('Phone', filters=[strip],
                        validators=[Optional(), Length(max=30)])


def view_profile(session: domain.Session) -> ResponseData:
    """Get the profile of the user who owns ``session``."""
    return session.user.to_profile(), status.OK, {}


def edit_profile(session: domain.Session, payload: Any,
                 datastore: Datastore) -> ResponseData:
    """
    Update the name and phone number of the logged-in user.

    ``name`` is required. If ``phone`` is absent from the payload it is left
    unchanged; ``null`` or an empty string clears it.

    Returns
    -------
    dict
        The updated profile.
    int
        200 (OK) if all goes well.
    dict
        Headers to add to the response.

    """
    data = form_data(payload)
    form = ProfileForm(data)
    if not form.validate():
        raise BadRequest(first_error(form))

    phone = users.UNCHANGED
    if isinstance(payload, dict) and 'phone' in payload:
        phone = form.phone.data or None

    with datastore.transaction() as dbsession:
        db_user = users.update_profile(dbsession, session.user_id,
                                       name=form.name.data, phone=phone)
        user = users.to_domain(db_user) if db_user is not None else None
    if user is None:
        raise Unauthorized('No such user')
    logger.info('Updated profile of user %s', user.user_id)
    return user.to_profile(), status.OK, {}
