"""Reads posts and attachment metadata from the credential store."""

from typing import List, Optional
from uuid import uuid4

from sqlalchemy.orm.session import Session

from .. import domain
from .datastore import util
from .datastore.models import DBAttachment, DBPost


def _to_attachment(db_attachment: DBAttachment,
                   db_post: Optional[DBPost]) -> domain.Attachment:
    return domain.Attachment(
        attachment_id=db_attachment.id,
        filename=db_attachment.filename,
        content_type=db_attachment.content_type,
        storage_provider=db_attachment.storage_provider,
        storage_key=db_attachment.storage_key,
        post_id=db_attachment.post_id,
        post_published=db_post.published if db_post is not None else None,
        created_at=db_attachment.created_at
    )


def get_attachment(dbsession: Session,
                   attachment_id: str) -> Optional[domain.Attachment]:
    """Load an attachment together with its post's publication flag."""
    row = dbsession.query(DBAttachment, DBPost) \
        .outerjoin(DBPost, DBPost.id == DBAttachment.post_id) \
        .filter(DBAttachment.id == attachment_id) \
        .first()
    if row is None:
        return None
    return _to_attachment(*row)


def list_for_post(dbsession: Session,
                  post_id: str) -> List[domain.Attachment]:
    """Attachments of a published post, oldest first."""
    rows = dbsession.query(DBAttachment, DBPost) \
        .join(DBPost, DBPost.id == DBAttachment.post_id) \
        .filter(DBPost.id == post_id) \
        .filter(DBPost.published.is_(True)) \
        .order_by(DBAttachment.created_at.asc()) \
        .all()
    return [_to_attachment(*row) for row in rows]


def get_published_post(dbsession: Session,
                       post_id: str) -> Optional[domain.Post]:
    """Load a post, if it exists and is published."""
    db_post = dbsession.query(DBPost) \
        .filter(DBPost.id == post_id) \
        .filter(DBPost.published.is_(True)) \
        .first()
    if db_post is None:
        return None
    return domain.Post(
        post_id=db_post.id,
        title=db_post.title,
        content=db_post.content,
        published=db_post.published,
        created_at=db_post.created_at
    )


def create_post(dbsession: Session, title: str, content: str = '',
                published: bool = False) -> str:
    """Add a post. Returns its ID."""
    post_id = str(uuid4())
    dbsession.add(DBPost(id=post_id, title=title, content=content,
                         published=published, created_at=util.now()))
    return post_id


def create_attachment(dbsession: Session, filename: str, storage_key: str,
                      content_type: Optional[str] = None,
                      post_id: Optional[str] = None,
                      storage_provider: str = 's3') -> str:
    """Record an object already held in the object store. Returns its ID."""
    attachment_id = str(uuid4())
    dbsession.add(DBAttachment(id=attachment_id, post_id=post_id,
                               filename=filename, content_type=content_type,
                               storage_provider=storage_provider,
                               storage_key=storage_key,
                               created_at=util.now()))
    return attachment_id
