"""Tests for :mod:`siteauth.controllers.profile`."""

from unittest import TestCase
from http import HTTPStatus as status

from werkzeug.exceptions import BadRequest

from ...services import sessions, users
from ...services.datastore.tests.util import temporary_db
from ..profile import edit_profile, view_profile

TOKEN = 'd' * 64


class TestProfile(TestCase):
    """Tests for :func:`.view_profile` and :func:`.edit_profile`."""

    def setUp(self):
        self._db = temporary_db()
        self.store = self._db.__enter__()
        self.addCleanup(self._db.__exit__, None, None, None)
        with self.store.transaction() as dbsession:
            user_id = users.create_pending(
                dbsession, email='a@x.com', name='A', password_hash='x',
                verification_token=TOKEN, token_expires=users.util.now(),
                phone='000'
            )
            users.activate(dbsession, user_id, TOKEN)
        session_store = sessions.SessionStore(self.store)
        token, _ = session_store.issue(user_id)
        self.session = session_store.resolve(token)

    def test_view(self):
        """The profile carries exactly the public fields."""
        data, code, _ = view_profile(self.session)
        self.assertEqual(code, status.OK)
        self.assertEqual(data, {'id': self.session.user_id, 'name': 'A',
                                'email': 'a@x.com', 'phone': '000',
                                'role': 'user'})

    def test_edit(self):
        """Name and phone are updated; the name is trimmed."""
        data, code, _ = edit_profile(self.session,
                                     {'name': '  B  ', 'phone': '111'},
                                     self.store)
        self.assertEqual(code, status.OK)
        self.assertEqual(data['name'], 'B')
        self.assertEqual(data['phone'], '111')

    def test_phone_omitted(self):
        """Leaving out the phone keeps the stored one."""
        data, _, _ = edit_profile(self.session, {'name': 'B'}, self.store)
        self.assertEqual(data['phone'], '000')

    def test_phone_cleared(self):
        """A null or blank phone clears it."""
        data, _, _ = edit_profile(self.session, {'name': 'B', 'phone': None},
                                  self.store)
        self.assertIsNone(data['phone'])
        edit_profile(self.session, {'name': 'B', 'phone': '111'}, self.store)
        data, _, _ = edit_profile(self.session, {'name': 'B', 'phone': '  '},
                                  self.store)
        self.assertIsNone(data['phone'])

    def test_email_not_editable(self):
        """The e-mail address is ignored."""
        data, _, _ = edit_profile(self.session,
                                  {'name': 'B', 'email': 'z@x.com'},
                                  self.store)
        self.assertEqual(data['email'], 'a@x.com')

    def test_invalid(self):
        """A missing name or over-long phone is rejected."""
        for payload in ({}, {'name': ''}, {'name': '   '},
                        {'name': 'n' * 101},
                        {'name': 'B', 'phone': '1' * 31},
                        {'name': 'B', 'phone': 5}):
            with self.assertRaises(BadRequest, msg=repr(payload)):
                edit_profile(self.session, payload, self.store)
