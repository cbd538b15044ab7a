"""Tests for :mod:`siteauth.services.datastore`."""

from unittest import TestCase, mock
from datetime import datetime

from pytz import UTC, timezone
from sqlalchemy.exc import OperationalError

from ... import users
from ...exceptions import Unavailable
from .. import Datastore, models
from .util import temporary_db


class TestTransaction(TestCase):
    """:meth:`.Datastore.transaction` commits or rolls back."""

    def test_commit(self):
        """Changes made in a clean block are persisted."""
        with temporary_db() as store:
            with store.transaction() as dbsession:
                dbsession.add(models.DBPost(id='p1', title='Hi', content='',
                                            published=True,
                                            created_at=datetime.now(UTC)))
            with store.transaction() as dbsession:
                self.assertIsNotNone(dbsession.get(models.DBPost, 'p1'))

    def test_rollback(self):
        """An exception in the block discards changes and propagates."""
        with temporary_db() as store:
            with self.assertRaises(ValueError):
                with store.transaction() as dbsession:
                    dbsession.add(models.DBPost(id='p1', title='Hi',
                                                content='', published=True,
                                                created_at=datetime.now(UTC)))
                    dbsession.flush()
                    raise ValueError('nope')
            with store.transaction() as dbsession:
                self.assertIsNone(dbsession.get(models.DBPost, 'p1'))

    def test_unavailable(self):
        """Connectivity problems are reported as :class:`.Unavailable`."""
        store = Datastore('sqlite://')
        with mock.patch.object(store, '_sessionmaker') as mock_maker:
            mock_maker.return_value.commit.side_effect = \
                OperationalError('COMMIT', {}, Exception('gone'))
            with self.assertRaises(Unavailable):
                with store.transaction():
                    pass
            mock_maker.return_value.rollback.assert_called_once()
            mock_maker.return_value.close.assert_called_once()

    def test_is_available(self):
        """An in-memory database is always reachable."""
        self.assertTrue(Datastore('sqlite://').is_available())


class TestUTCDateTime(TestCase):
    """Timestamps come back timezone-aware, in UTC."""

    def test_round_trip_from_other_zone(self):
        """A timestamp in another zone is stored as the same instant."""
        eastern = timezone('US/Eastern')
        moment = eastern.localize(datetime(2021, 3, 4, 5, 6, 7))
        with temporary_db() as store:
            with store.transaction() as dbsession:
                dbsession.add(models.DBPost(id='p1', title='Hi', content='',
                                            published=True,
                                            created_at=moment))
            with store.transaction() as dbsession:
                loaded = dbsession.get(models.DBPost, 'p1').created_at
        self.assertEqual(loaded.tzinfo, UTC)
        self.assertEqual(loaded, moment)


class TestUniqueEmail(TestCase):
    """The store refuses a second account with the same address."""

    def test_create_pending_twice(self):
        """The second insert reports that nothing was inserted."""
        with temporary_db() as store:
            kwargs = dict(name='A', password_hash='x',
                          verification_token='t' * 64,
                          token_expires=datetime.now(UTC))
            with store.transaction() as dbsession:
                first = users.create_pending(dbsession, email='a@x.com',
                                             **kwargs)
            with store.transaction() as dbsession:
                second = users.create_pending(dbsession, email=' A@X.com ',
                                              **kwargs)
            with store.transaction() as dbsession:
                count = dbsession.query(models.DBUser).count()
        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(count, 1)
