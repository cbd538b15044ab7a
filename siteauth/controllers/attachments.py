"""
Controllers for posts and their attachments.

Attachment bytes are never served by this application. A logged-in user who
may see an attachment is redirected to a short-lived signed URL on the
object store instead.
"""

from typing import Any, Mapping, Optional
from http import HTTPStatus as status
import logging

from werkzeug.exceptions import BadRequest, Forbidden, InternalServerError, \
    NotFound

from ..domain import Disposition
from ..services import attachments
from ..services.datastore import Datastore
from ..services.exceptions import SigningFailed
from ..services.objectstore import ObjectStore
from .util import ResponseData, valid_uuid

logger = logging.getLogger(__name__)

NO_STORE = {'Cache-Control': 'no-store'}


def get_post(post_id: Optional[str], datastore: Datastore) -> ResponseData:
    """Get a published post."""
    if not post_id or not post_id.strip():
        raise BadRequest('Missing post id')
    with datastore.transaction() as dbsession:
        post = attachments.get_published_post(dbsession, post_id.strip())
    if post is None:
        raise NotFound('Post not found')
    return post.to_dict(), status.OK, {}


def list_attachments(post_id: Optional[str],
                     datastore: Datastore) -> ResponseData:
    """
    List the attachments of a published post, oldest first.

    Unknown and unpublished posts both yield an empty list.
    """
    if not post_id or not post_id.strip():
        raise BadRequest('Missing post id')
    if not valid_uuid(post_id):
        raise BadRequest('Invalid post id')
    with datastore.transaction() as dbsession:
        found = attachments.list_for_post(dbsession, str(post_id).lower())
    data = [a.to_dict() for a in found]
    return data, status.OK, dict(NO_STORE)  # type: ignore


def authorize_download(attachment_id: Optional[str], datastore: Datastore,
                       objectstore: ObjectStore,
                       settings: Mapping[str, Any],
                       disposition: str = Disposition.ATTACHMENT) \
        -> ResponseData:
    """
    Redirect to a signed URL for an attachment.

    Parameters
    ----------
    attachment_id : str
    datastore : :class:`.Datastore`
    objectstore : :class:`.ObjectStore`
    settings : mapping
        Application config.
    disposition : str
        :attr:`.Disposition.ATTACHMENT` to force a download, or
        :attr:`.Disposition.INLINE` to let the browser render the file.

    Returns
    -------
    dict
        Response data.
    int
        302 (Found) if all goes well.
    dict
        Headers, including ``Location`` and ``Cache-Control: no-store``.

    Raises
    ------
    :class:`BadRequest`
        Malformed id, attachment not linked to a post, or stored with an
        unsupported provider.
    :class:`NotFound`
    :class:`Forbidden`
        The owning post is not published.
    :class:`InternalServerError`
        No URL could be signed.

    """
    if not attachment_id or not attachment_id.strip():
        raise BadRequest('Missing attachment id')
    if not valid_uuid(attachment_id):
        raise BadRequest('Invalid attachment id')

    with datastore.transaction() as dbsession:
        attachment = attachments.get_attachment(dbsession,
                                                attachment_id.lower())
    if attachment is None:
        raise NotFound('Attachment not found')
    if attachment.post_id is None:
        raise BadRequest('Attachment is not linked to a post')
    if not attachment.post_published:
        raise Forbidden('Post is not published')
    provider = settings.get('ATTACHMENT_STORAGE_PROVIDER', 's3')
    if attachment.storage_provider != provider:
        logger.warning('Attachment %s has unsupported provider %s',
                       attachment.attachment_id, attachment.storage_provider)
        raise BadRequest('Unsupported storage provider')

    content_type = attachment.content_type
    if disposition == Disposition.ATTACHMENT:
        content_type = None
    try:
        url = objectstore.signed_url(
            attachment.storage_key, attachment.filename,
            content_type=content_type, disposition=disposition,
            expires_in=int(settings.get('SIGNED_URL_DURATION', 300))
        )
    except SigningFailed as e:
        raise InternalServerError('Could not prepare the download') from e
    logger.debug('Signed %s URL for attachment %s', disposition,
                 attachment.attachment_id)
    return {}, status.FOUND, dict(NO_STORE, Location=url)
