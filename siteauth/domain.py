"""Defines the core data structures for the site auth service."""

from typing import NamedTuple, Optional, Dict, Any
from datetime import datetime


class UserStatus:
    """Known account states."""

    PENDING = 'pending'
    """Registered, awaiting e-mail confirmation."""

    ACTIVE = 'active'
    """E-mail confirmed; may log in."""


class Disposition:
    """Content-disposition directives for signed attachment URLs."""

    ATTACHMENT = 'attachment'
    """Browser saves the file under its original name."""

    INLINE = 'inline'
    """Browser renders the file if it can."""


class User(NamedTuple):
    """A registered account, without credentials."""

    user_id: str
    email: str
    name: str
    phone: Optional[str] = None
    role: str = 'user'
    status: str = UserStatus.PENDING
    email_verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def active(self) -> bool:
        """Whether the account has been verified."""
        return self.status == UserStatus.ACTIVE

    def to_profile(self) -> Dict[str, Any]:
        """Public profile representation."""
        return {
            'id': self.user_id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'role': self.role,
        }


class Session(NamedTuple):
    """An authenticated session."""

    token: str
    """Opaque bearer value; the only thing carried by the session cookie."""

    user: User
    expires: datetime

    @property
    def user_id(self) -> str:
        """ID of the user who owns this session."""
        return self.user.user_id


class Post(NamedTuple):
    """A published piece of content."""

    post_id: str
    title: str
    content: str
    published: bool
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Public representation of the post."""
        return {
            'id': self.post_id,
            'title': self.title,
            'content': self.content,
            'created_at': _isoformat(self.created_at),
        }


class Attachment(NamedTuple):
    """Metadata about a stored file."""

    attachment_id: str
    filename: str
    content_type: Optional[str]
    storage_provider: str
    storage_key: str
    post_id: Optional[str] = None
    post_published: Optional[bool] = None
    """Publication flag of the owning post, if any."""

    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Listing representation; storage details stay private."""
        return {
            'id': self.attachment_id,
            'filename': self.filename,
            'content_type': self.content_type,
            'created_at': _isoformat(self.created_at),
        }


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None
