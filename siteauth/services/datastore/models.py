"""Database models for users, sessions, posts and attachments."""

from typing import Optional
from datetime import datetime

from pytz import UTC
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, \
    String, Text, TypeDecorator
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class UTCDateTime(TypeDecorator):  # type: ignore
    """
    Timezone-aware datetime, stored as UTC.

    SQLite has no notion of time zones, so values are stored there as naive
    UTC and re-attached to UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime],
                           dialect: Dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        if dialect.name == 'sqlite':
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime],
                             dialect: Dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class DBUser(Base):  # type: ignore
    """
    Registered accounts.

    ``email`` is stored lowercased; the unique index on it is what makes
    concurrent registrations with the same address safe.
    """

    __tablename__ = 'users'

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default='user')
    status = Column(String(16), nullable=False, default='pending', index=True)

    verification_token = Column(String(64), nullable=True, index=True)
    verification_token_expires_at = Column(UTCDateTime, nullable=True)
    last_verification_email_sent_at = Column(UTCDateTime, nullable=True)
    email_verified_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=False)

    sessions = relationship('DBSession', back_populates='user',
                            cascade='all, delete-orphan')


class DBSession(Base):  # type: ignore
    """Authenticated sessions. One row per login."""

    __tablename__ = 'sessions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'),
                     nullable=False, index=True)
    session_token = Column(String(64), nullable=False, unique=True)
    expires_at = Column(UTCDateTime, nullable=False, index=True)
    created_at = Column(UTCDateTime, nullable=False)

    user = relationship('DBUser', back_populates='sessions')


class DBPost(Base):  # type: ignore
    """Site content. Only published posts are visible."""

    __tablename__ = 'posts'

    id = Column(String(36), primary_key=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default='')
    published = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, nullable=False)

    attachments = relationship('DBAttachment', back_populates='post')


class DBAttachment(Base):  # type: ignore
    """Metadata about files held in the object store."""

    __tablename__ = 'attachments'

    id = Column(String(36), primary_key=True)
    post_id = Column(ForeignKey('posts.id', ondelete='SET NULL'),
                     nullable=True, index=True)
    filename = Column(String(255), nullable=False)
    content_type = Column(String(255), nullable=True)
    storage_provider = Column(String(32), nullable=False)
    storage_key = Column(String(1024), nullable=False)
    created_at = Column(UTCDateTime, nullable=False)

    post = relationship('DBPost', back_populates='attachments')
