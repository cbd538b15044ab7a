"""
Reads and writes user accounts.

Functions here take an open :class:`Session` so that callers can compose
them inside a single :meth:`.Datastore.transaction`.
"""

from typing import Any, Dict, Optional
from datetime import datetime
from uuid import uuid4
import logging

from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.session import Session

from .. import domain
from .datastore import util
from .datastore.models import DBUser

logger = logging.getLogger(__name__)

UNCHANGED: Any = object()
"""Sentinel for profile fields that should be left as they are."""


def normalize_email(email: str) -> str:
    """Canonical form of an e-mail address, as used for lookups."""
    return email.strip().lower()


def to_domain(db_user: DBUser) -> domain.User:
    """Build a :class:`domain.User` from a database row."""
    return domain.User(
        user_id=db_user.id,
        email=db_user.email,
        name=db_user.name,
        phone=db_user.phone,
        role=db_user.role,
        status=db_user.status,
        email_verified_at=db_user.email_verified_at,
        created_at=db_user.created_at,
        updated_at=db_user.updated_at
    )


def create_pending(dbsession: Session, email: str, name: str,
                   password_hash: str, verification_token: str,
                   token_expires: datetime, phone: Optional[str] = None,
                   role: str = 'user') -> Optional[str]:
    """
    Insert a pending account, unless the e-mail address is already taken.

    The existence check and the insert are a single statement, so two
    concurrent registrations for one address yield exactly one row.

    Returns
    -------
    str or None
        ID of the new user, or ``None`` if the address is in use.

    """
    user_id = str(uuid4())
    created = util.now()
    values: Dict[str, Any] = {
        'id': user_id,
        'email': normalize_email(email),
        'name': name,
        'phone': phone,
        'password_hash': password_hash,
        'role': role,
        'status': domain.UserStatus.PENDING,
        'verification_token': verification_token,
        'verification_token_expires_at': token_expires,
        'created_at': created,
        'updated_at': created,
    }
    dialect = dbsession.get_bind().dialect.name
    if dialect in ('postgresql', 'sqlite'):
        if dialect == 'postgresql':
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        else:
            from sqlalchemy.dialects.sqlite import insert as dialect_insert
        stmt = dialect_insert(DBUser).values(**values) \
            .on_conflict_do_nothing(index_elements=['email'])
        result = dbsession.execute(stmt)
        return user_id if result.rowcount == 1 else None

    # Other backends: rely on the unique index and catch the violation.
    try:
        with dbsession.begin_nested():
            dbsession.execute(insert(DBUser).values(**values))
    except IntegrityError:
        return None
    return user_id


def get_by_email(dbsession: Session, email: str) -> Optional[DBUser]:
    """Load a user by e-mail address."""
    return dbsession.query(DBUser) \
        .filter(DBUser.email == normalize_email(email)) \
        .first()  # type: ignore


def lock_by_email(dbsession: Session, email: str) -> Optional[DBUser]:
    """
    Load a user by e-mail address, holding a write lock until commit.

    The row is touched with a no-op update before it is read. Backends that
    honour ``SELECT ... FOR UPDATE`` would lock on the read alone, but SQLite
    only serializes writers, so the write has to come first.
    """
    email = normalize_email(email)
    dbsession.execute(
        update(DBUser)
        .where(DBUser.email == email)
        .values(updated_at=DBUser.updated_at)
        .execution_options(synchronize_session=False)
    )
    return dbsession.query(DBUser) \
        .filter(DBUser.email == email) \
        .with_for_update() \
        .populate_existing() \
        .first()  # type: ignore


def get_by_id(dbsession: Session, user_id: str) -> Optional[DBUser]:
    """Load a user by ID."""
    return dbsession.get(DBUser, user_id)  # type: ignore


def get_pending_by_token(dbsession: Session,
                         token: str) -> Optional[DBUser]:
    """Load and lock the pending account holding ``token``."""
    return dbsession.query(DBUser) \
        .filter(DBUser.verification_token == token) \
        .filter(DBUser.status == domain.UserStatus.PENDING) \
        .with_for_update() \
        .first()  # type: ignore


def activate(dbsession: Session, user_id: str, token: str) -> bool:
    """
    Move a pending account to active, consuming its verification token.

    The update is conditional on the account still being pending with the
    same token, so of several concurrent calls exactly one succeeds.

    Returns
    -------
    bool
        Whether this call performed the transition.

    """
    verified = util.now()
    result = dbsession.execute(
        update(DBUser)
        .where(DBUser.id == user_id)
        .where(DBUser.status == domain.UserStatus.PENDING)
        .where(DBUser.verification_token == token)
        .values(status=domain.UserStatus.ACTIVE,
                email_verified_at=verified,
                verification_token=None,
                verification_token_expires_at=None,
                updated_at=verified)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1  # type: ignore


def stamp_verification_sent(dbsession: Session, user_id: str,
                            when: datetime) -> None:
    """Record that a verification e-mail was sent at ``when``."""
    dbsession.execute(
        update(DBUser)
        .where(DBUser.id == user_id)
        .values(last_verification_email_sent_at=when, updated_at=when)
        .execution_options(synchronize_session=False)
    )


def update_profile(dbsession: Session, user_id: str, name: str,
                   phone: Optional[str] = UNCHANGED) -> Optional[DBUser]:
    """
    Update the editable profile fields of a user.

    ``phone`` is left alone if :data:`UNCHANGED`; ``None`` clears it.
    """
    db_user = get_by_id(dbsession, user_id)
    if db_user is None:
        return None
    db_user.name = name
    if phone is not UNCHANGED:
        db_user.phone = phone
    db_user.updated_at = util.now()
    dbsession.add(db_user)
    return db_user
