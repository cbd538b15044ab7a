"""Exercise the service through its HTTP interface."""

from unittest import TestCase, mock
from http import HTTPStatus as status
from urllib.parse import parse_qs, urlparse
import os
import tempfile

from dateutil.parser import parse as parse_date
from mimesis import Person

from ..factory import create_web_app
from ..routes import api
from ..services import attachments
from ..services.datastore import current_datastore
from ..services.mail import MailSession
from ..services.objectstore import ObjectStore


def _parse_cookies(cookie_data):
    cookies = {}
    for cdata in cookie_data:
        parts = cdata.split('; ')
        data = parts[0]
        key, value = data[:data.index('=')], data[data.index('=') + 1:]
        extra = {
            part[:part.index('=')]: part[part.index('=') + 1:]
            for part in parts[1:] if '=' in part
        }
        cookies[key] = dict(value=value, **extra)
    return cookies


class EndToEndTestCase(TestCase):
    """Runs the app against a fresh SQLite database and fake relays."""

    def setUp(self):
        fd, self.db_path = tempfile.mkstemp(suffix='.db')
        os.close(fd)
        self.mailer = mock.MagicMock(spec=MailSession)
        self.s3 = mock.MagicMock()
        self.s3.generate_presigned_url.return_value = \
            'https://bucket.s3.example.com/report.pdf?X-Amz-Signature=abc'
        self.app = create_web_app(
            config={
                'SQLALCHEMY_DATABASE_URI': f'sqlite:///{self.db_path}',
                'CREATE_DB': True,
                'AUTH_SESSION_COOKIE_SECURE': False,
                'PASSWORD_HASH_ROUNDS': 4,
                'BASE_URL': 'https://site.example.com',
                'LOGLEVEL': 40,
                'LOG_JSON': False,
            },
            mailer=self.mailer,
            bucket=ObjectStore('bucket', client=self.s3)
        )
        self.addCleanup(os.remove, self.db_path)
        self.addCleanup(self.app.extensions['datastore'].dispose)
        self.client = self.app.test_client(use_cookies=False)
        self.cookie_name = self.app.config['AUTH_SESSION_COOKIE_NAME']

    def _register_and_verify(self, email, name, phone, password):
        response = self.client.post('/register', json={
            'name': name, 'email': email, 'phone': phone,
            'password': password
        })
        self.assertEqual(response.status_code, status.CREATED,
                         response.get_data(as_text=True))
        link = self.mailer.send_verification.call_args[0][2]
        token = parse_qs(urlparse(link).query)['token'][0]
        response = self.client.get('/verify', query_string={'token': token})
        self.assertEqual(response.status_code, status.FOUND)
        return token

    def _login(self, email, password):
        response = self.client.post('/login', json={'email': email,
                                                     'password': password})
        self.assertEqual(response.status_code, status.OK,
                         response.get_data(as_text=True))
        cookies = _parse_cookies(response.headers.getlist('Set-Cookie'))
        return cookies[self.cookie_name]['value']

    def _cookie(self, token):
        return {'Cookie': f'{self.cookie_name}={token}'}


class TestAccountLifecycle(EndToEndTestCase):
    """Register, verify, log in, use the profile, log out."""

    def test_lifecycle(self):
        """A new user can take their account through its whole life."""
        person = Person()
        email = person.email().lower()
        name = person.full_name()
        phone = person.telephone()[:30]
        password = person.password(length=12)

        token = self._register_and_verify(email, name, phone, password)
        response = self.client.get('/verify', query_string={'token': token})
        self.assertEqual(response.status_code, status.BAD_REQUEST,
                         'A verification link works only once')

        response = self.client.post('/login', json={'email': email,
                                                     'password': password})
        self.assertEqual(response.status_code, status.OK)
        cookies = _parse_cookies(response.headers.getlist('Set-Cookie'))
        cookie = cookies[self.cookie_name]
        self.assertIn('HttpOnly', response.headers['Set-Cookie'])
        self.assertEqual(cookie['SameSite'], 'Lax')
        self.assertEqual(cookie['Path'], '/')
        self.assertEqual(int(cookie['Max-Age']),
                         self.app.config['SESSION_DURATION'])
        session_token = cookie['value']

        response = self.client.get('/me', headers=self._cookie(session_token))
        self.assertEqual(response.status_code, status.OK)
        self.assertEqual(response.json['email'], email)
        self.assertEqual(response.json['name'], name)
        self.assertIn(self.cookie_name, _parse_cookies(
            response.headers.getlist('Set-Cookie')
        ), 'Session cookie is renewed')

        response = self.client.patch('/me', json={'name': 'Renamed'},
                                     headers=self._cookie(session_token))
        self.assertEqual(response.status_code, status.OK)
        self.assertEqual(response.json['name'], 'Renamed')
        self.assertEqual(response.json['phone'], phone)

        response = self.client.post('/logout',
                                    headers=self._cookie(session_token))
        self.assertEqual(response.status_code, status.OK)
        cookies = _parse_cookies(response.headers.getlist('Set-Cookie'))
        self.assertEqual(cookies[self.cookie_name]['value'], '')
        self.assertEqual(cookies[self.cookie_name]['Max-Age'], '0')

        response = self.client.get('/me', headers=self._cookie(session_token))
        self.assertEqual(response.status_code, status.UNAUTHORIZED)
        cookies = _parse_cookies(response.headers.getlist('Set-Cookie'))
        self.assertEqual(cookies[self.cookie_name]['value'], '')

    def test_login_before_verification(self):
        """An unverified account cannot log in."""
        response = self.client.post('/register', json={
            'name': 'A', 'email': 'a@x.com', 'phone': '000',
            'password': 'pw123456'
        })
        self.assertEqual(response.status_code, status.CREATED)
        response = self.client.post('/login', json={'email': 'a@x.com',
                                                    'password': 'pw123456'})
        self.assertEqual(response.status_code, status.FORBIDDEN)
        self.assertNotIn('Set-Cookie', response.headers)

    def test_duplicate_registration(self):
        """The same address cannot register twice."""
        payload = {'name': 'A', 'email': 'a@x.com', 'phone': '000',
                   'password': 'pw123456'}
        self.client.post('/register', json=payload)
        response = self.client.post('/register', json=payload)
        self.assertEqual(response.status_code, status.CONFLICT)
        self.assertIn('message', response.json)

    def test_resend(self):
        """A pending user can ask for another verification e-mail."""
        self.client.post('/register', json={
            'name': 'A', 'email': 'a@x.com', 'phone': '000',
            'password': 'pw123456'
        })
        response = self.client.post('/resend', json={'email': 'a@x.com'})
        self.assertEqual(response.status_code, status.OK)
        self.assertIn('reqId', response.json)
        self.assertGreater(response.json['cooldownRemainingSec'], 0)

    def test_no_session(self):
        """Protected endpoints need a session."""
        for path in ('/me', '/attachments/%s/download' % ('0' * 32)):
            response = self.client.get(path)
            self.assertEqual(response.status_code, status.UNAUTHORIZED)
        response = self.client.get('/me', headers=self._cookie('bogus'))
        self.assertEqual(response.status_code, status.UNAUTHORIZED)


class TestAttachments(EndToEndTestCase):
    """Logged-in users get signed URLs for published attachments."""

    def setUp(self):
        super(TestAttachments, self).setUp()
        self._register_and_verify('a@x.com', 'A', '000', 'pw123456')
        self.session_token = self._login('a@x.com', 'pw123456')
        with self.app.app_context():
            with current_datastore().transaction() as dbsession:
                self.post_id = attachments.create_post(dbsession, 'Post',
                                                       published=True)
                draft_id = attachments.create_post(dbsession, 'Draft')
                self.attachment_id = attachments.create_attachment(
                    dbsession, 'report.pdf', 'posts/report.pdf',
                    content_type='application/pdf', post_id=self.post_id
                )
                self.draft_attachment_id = attachments.create_attachment(
                    dbsession, 'draft.pdf', 'posts/draft.pdf',
                    post_id=draft_id
                )

    def test_download(self):
        """The user is redirected to the signed URL."""
        response = self.client.get(
            f'/attachments/{self.attachment_id}/download',
            headers=self._cookie(self.session_token)
        )
        self.assertEqual(response.status_code, status.FOUND)
        self.assertEqual(response.headers['Location'],
                         self.s3.generate_presigned_url.return_value)
        self.assertEqual(response.headers['Cache-Control'], 'no-store')
        params = self.s3.generate_presigned_url.call_args[1]['Params']
        self.assertEqual(params['Key'], 'posts/report.pdf')

    def test_view(self):
        """Inline views are signed with the content type."""
        response = self.client.get(
            f'/attachments/{self.attachment_id}/view',
            headers=self._cookie(self.session_token)
        )
        self.assertEqual(response.status_code, status.FOUND)
        params = self.s3.generate_presigned_url.call_args[1]['Params']
        self.assertEqual(params['ResponseContentType'], 'application/pdf')

    def test_unpublished(self):
        """Attachments of unpublished posts are forbidden."""
        response = self.client.get(
            f'/attachments/{self.draft_attachment_id}/download',
            headers=self._cookie(self.session_token)
        )
        self.assertEqual(response.status_code, status.FORBIDDEN)
        self.assertIn('message', response.json)
        self.s3.generate_presigned_url.assert_not_called()

    def test_list(self):
        """The attachments of a post can be listed."""
        response = self.client.get(
            f'/posts/{self.post_id}/attachments',
            headers=self._cookie(self.session_token)
        )
        self.assertEqual(response.status_code, status.OK)
        self.assertEqual([a['id'] for a in response.json],
                         [self.attachment_id])
        created = parse_date(response.json[0]['created_at'])
        self.assertIsNotNone(created.tzinfo, 'Timestamps are in UTC')

    def test_post(self):
        """Published posts are public."""
        response = self.client.get(f'/posts/{self.post_id}')
        self.assertEqual(response.status_code, status.OK)
        self.assertEqual(response.json['title'], 'Post')


class TestServiceRoutes(EndToEndTestCase):
    """Status, headers, and error bodies."""

    def test_auth_status(self):
        """The status endpoint says the app is up."""
        response = self.client.get('/auth_status')
        self.assertEqual(response.status_code, status.OK)
        self.assertEqual(response.get_data(as_text=True), 'OK')
        self.assertEqual(response.headers['X-Frame-Options'], 'DENY')

    def test_method_not_allowed(self):
        """Errors are rendered as JSON."""
        response = self.client.get('/login')
        self.assertEqual(response.status_code, status.METHOD_NOT_ALLOWED)
        self.assertIn('message', response.json)
        self.assertIn('POST', response.headers['Allow'])

    def test_internal_error(self):
        """Unexpected errors carry a request ID and no internals."""
        with mock.patch.object(api.authentication, 'login') as mock_login:
            mock_login.side_effect = RuntimeError('secret detail')
            response = self.client.post('/login', json={
                'email': 'a@x.com', 'password': 'pw123456'
            })
        self.assertEqual(response.status_code, status.INTERNAL_SERVER_ERROR)
        self.assertIn('requestId', response.json)
        self.assertNotIn('secret detail', response.get_data(as_text=True))
