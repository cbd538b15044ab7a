"""
Issues, resolves and revokes authenticated sessions.

Sessions live in the ``sessions`` table of the credential store. The cookie
carries only the opaque session token; every request re-reads the session
and its user, so a revoked session stops working immediately.
"""

from typing import Optional, Tuple
from datetime import datetime, timedelta
import logging

from flask import Flask, current_app
from sqlalchemy import delete

from .. import domain
from . import tokens, users
from .datastore import Datastore, util
from .datastore.models import DBSession, DBUser
from .exceptions import InvalidSession, SessionCreationFailed, \
    SessionDeletionFailed, Unavailable

logger = logging.getLogger(__name__)


class SessionStore(object):
    """Manages authenticated sessions in the credential store."""

    def __init__(self, datastore: Datastore, duration: int = 604800) -> None:
        """
        Bind the store to a datastore.

        Parameters
        ----------
        datastore : :class:`.Datastore`
        duration : int
            Session lifetime in seconds. Also the rolling extension applied
            on each successful :meth:`resolve`.

        """
        self._datastore = datastore
        self.duration = duration

    def issue(self, user_id: str) -> Tuple[str, datetime]:
        """
        Create a new session for a user.

        Other sessions held by the same user are unaffected.

        Returns
        -------
        str
            The session token, to be set as the cookie value.
        datetime
            When the session expires unless renewed.

        Raises
        ------
        :class:`SessionCreationFailed`

        """
        token = tokens.generate_token()
        issued = util.now()
        expires = issued + timedelta(seconds=self.duration)
        try:
            with self._datastore.transaction() as dbsession:
                dbsession.add(DBSession(user_id=user_id, session_token=token,
                                        expires_at=expires,
                                        created_at=issued))
        except Unavailable:
            raise
        except Exception as e:
            raise SessionCreationFailed(f'Failed to create session: {e}') \
                from e
        logger.debug('Issued session for user %s', user_id)
        return token, expires

    def resolve(self, token: Optional[str]) -> domain.Session:
        """
        Look up the live session for ``token`` and extend its expiry.

        Raises
        ------
        :class:`InvalidSession`
            If there is no such session, it has expired, or its user is not
            active. Callers should clear the session cookie.

        """
        if not token:
            raise InvalidSession('No session token')
        current = util.now()
        with self._datastore.transaction() as dbsession:
            row = dbsession.query(DBSession, DBUser) \
                .join(DBUser, DBUser.id == DBSession.user_id) \
                .filter(DBSession.session_token == token) \
                .filter(DBSession.expires_at > current) \
                .first()
            user: Optional[domain.User] = None
            expires: Optional[datetime] = None
            if row is not None:
                db_session, db_user = row
                user = users.to_domain(db_user)
                if user.active:
                    expires = current + timedelta(seconds=self.duration)
                    db_session.expires_at = expires
                    dbsession.add(db_session)
        if user is None:
            raise InvalidSession('No such session')
        if expires is None:
            raise InvalidSession('User is not active')
        return domain.Session(token=token, user=user, expires=expires)

    def revoke(self, token: Optional[str]) -> None:
        """
        Delete the session for ``token``, if there is one.

        Raises
        ------
        :class:`SessionDeletionFailed`
            If the store could not be reached.

        """
        if not token:
            return
        try:
            with self._datastore.transaction() as dbsession:
                dbsession.execute(
                    delete(DBSession)
                    .where(DBSession.session_token == token)
                    .execution_options(synchronize_session=False)
                )
        except Exception as e:
            raise SessionDeletionFailed(f'Failed to delete session: {e}') \
                from e

    def purge_expired(self) -> int:
        """Delete all sessions past their expiry. Returns the number removed."""
        with self._datastore.transaction() as dbsession:
            result = dbsession.execute(
                delete(DBSession)
                .where(DBSession.expires_at <= util.now())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount  # type: ignore


def init_app(app: Flask, datastore: Datastore) -> SessionStore:
    """Attach a :class:`.SessionStore` configured from ``app`` to ``app``."""
    store = SessionStore(datastore,
                         duration=int(app.config.get('SESSION_DURATION',
                                                     604800)))
    app.extensions['sessions'] = store
    return store


def current_session() -> SessionStore:
    """Get the :class:`.SessionStore` attached to the current application."""
    return current_app.extensions['sessions']  # type: ignore
