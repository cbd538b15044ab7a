"""Tests for logging setup and maintenance commands."""

from unittest import TestCase, mock
from datetime import timedelta
import io
import json
import logging
import os
import tempfile

from ..app_logging import setup_logger
from ..factory import create_web_app
from ..services import sessions, users
from ..services.datastore import util as db_util
from ..services.mail import MailSession
from ..services.objectstore import ObjectStore


class TestLogging(TestCase):
    """Tests for :func:`.setup_logger`."""

    def setUp(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level

        def restore():
            root.handlers = handlers
            root.setLevel(level)
        self.addCleanup(restore)

    def _capture(self):
        handler = [h for h in logging.getLogger().handlers
                   if getattr(h, '_siteauth', False)][-1]
        stream = io.StringIO()
        handler.setStream(stream)
        return stream

    def test_json(self):
        """Records come out as JSON objects."""
        setup_logger(level=logging.INFO, json=True)
        stream = self._capture()
        logging.getLogger('siteauth.test').info('hello %s', 'there')
        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        self.assertEqual(record['message'], 'hello there')
        self.assertEqual(record['level'], 'INFO')
        self.assertEqual(record['name'], 'siteauth.test')
        self.assertIn('timestamp', record)

    def test_plain(self):
        """Without JSON the records are plain text."""
        setup_logger(level=logging.WARNING, json=False)
        stream = self._capture()
        logging.getLogger('siteauth.test').info('quiet')
        logging.getLogger('siteauth.test').warning('loud')
        self.assertNotIn('quiet', stream.getvalue())
        self.assertIn('WARNING siteauth.test loud', stream.getvalue())

    def test_repeated_setup(self):
        """Setting up twice does not duplicate output."""
        setup_logger()
        setup_logger()
        ours = [h for h in logging.getLogger().handlers
                if getattr(h, '_siteauth', False)]
        self.assertEqual(len(ours), 1)


class TestCommands(TestCase):
    """Tests for the ``flask`` CLI commands."""

    def setUp(self):
        fd, self.db_path = tempfile.mkstemp(suffix='.db')
        os.close(fd)
        self.app = create_web_app(
            config={'SQLALCHEMY_DATABASE_URI': f'sqlite:///{self.db_path}',
                    'LOGLEVEL': 40},
            mailer=mock.MagicMock(spec=MailSession),
            bucket=ObjectStore('bucket', client=mock.MagicMock())
        )
        self.addCleanup(os.remove, self.db_path)
        self.addCleanup(self.app.extensions['datastore'].dispose)
        self.runner = self.app.test_cli_runner()
        result = self.runner.invoke(args=['create-db'])
        self.assertEqual(result.exit_code, 0, result.output)

    def test_add_post_and_attachment(self):
        """Posts and attachments can be seeded from the command line."""
        result = self.runner.invoke(args=['add-post', '--title', 'Hello'])
        self.assertEqual(result.exit_code, 0, result.output)
        post_id = result.output.strip()

        result = self.runner.invoke(args=[
            'add-attachment', '--post-id', post_id, '--filename', 'a.pdf',
            '--key', 'posts/a.pdf', '--content-type', 'application/pdf'
        ])
        self.assertEqual(result.exit_code, 0, result.output)

        client = self.app.test_client()
        response = client.get(f'/posts/{post_id}')
        self.assertEqual(response.json['title'], 'Hello')

    def test_purge_sessions(self):
        """Expired sessions are removed."""
        token = 'e' * 64
        store = self.app.extensions['datastore']
        with store.transaction() as dbsession:
            user_id = users.create_pending(
                dbsession, email='a@x.com', name='A', password_hash='x',
                verification_token=token, token_expires=db_util.now()
            )
            users.activate(dbsession, user_id, token)
        session_store = self.app.extensions['sessions']
        past = db_util.now() - timedelta(seconds=session_store.duration + 1)
        with mock.patch.object(sessions.util, 'now', return_value=past):
            session_store.issue(user_id)

        result = self.runner.invoke(args=['purge-sessions'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('Removed 1 expired sessions', result.output)
