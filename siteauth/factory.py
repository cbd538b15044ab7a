"""Application factory for the site auth service."""

from typing import Any, Dict, Optional
import logging

import click
from flask import Flask, Response, current_app, jsonify
from werkzeug.exceptions import HTTPException, Forbidden, Unauthorized, \
    BadRequest, MethodNotAllowed, InternalServerError, NotFound, Conflict, \
    BadGateway

from .app_logging import setup_logger
from .routes import api
from .services import attachments, datastore, mail, objectstore, sessions, \
    tokens
from .services.datastore import Datastore
from .services.mail import MailSession
from .services.objectstore import ObjectStore

logger = logging.getLogger(__name__)


def create_web_app(config: Optional[Dict[str, Any]] = None,
                   store: Optional[Datastore] = None,
                   mailer: Optional[MailSession] = None,
                   bucket: Optional[ObjectStore] = None) -> Flask:
    """
    Initialize and configure the site auth application.

    Parameters
    ----------
    config : dict
        Overrides for values in :mod:`siteauth.config`.
    store : :class:`.Datastore`
        Credential store to use instead of one built from config.
    mailer : :class:`.MailSession`
        Mail relay to use instead of one built from config.
    bucket : :class:`.ObjectStore`
        Object store to use instead of one built from config.

    """
    app = Flask('siteauth')
    app.config.from_pyfile('config.py')
    if config:
        app.config.update(config)

    setup_logger(level=app.config['LOGLEVEL'], json=app.config['LOG_JSON'])

    store = datastore.init_app(app, store)
    sessions.init_app(app, store)
    mail.init_app(app, mailer)
    objectstore.init_app(app, bucket)

    app.register_blueprint(api.blueprint)
    register_error_handlers(app)
    register_commands(app)
    return app


def register_error_handlers(app: Flask) -> None:
    """Register error handlers for the Flask app."""
    app.errorhandler(Forbidden)(jsonify_exception)
    app.errorhandler(Unauthorized)(jsonify_exception)
    app.errorhandler(BadRequest)(jsonify_exception)
    app.errorhandler(NotFound)(jsonify_exception)
    app.errorhandler(Conflict)(jsonify_exception)
    app.errorhandler(MethodNotAllowed)(jsonify_exception)
    app.errorhandler(BadGateway)(jsonify_exception)
    app.errorhandler(InternalServerError)(jsonify_internal_error)


def jsonify_exception(error: HTTPException) -> Response:
    """Render exceptions as JSON."""
    exc_resp = error.get_response()
    response: Response = jsonify(message=error.description)
    response.status_code = exc_resp.status_code
    if 'Allow' in exc_resp.headers:
        response.headers['Allow'] = exc_resp.headers['Allow']
    return response


def jsonify_internal_error(error: InternalServerError) -> Response:
    """
    Render a server error as JSON, with an ID for finding it in the logs.

    Internal error text is only included when ``DEBUG_ERROR_DETAIL`` is set.
    """
    request_id = tokens.request_id()
    cause = error.original_exception or error.__cause__
    logger.error('[%s] Internal server error: %s', request_id, cause or error,
                 exc_info=cause if cause is not None else None)

    message = 'Internal server error'
    if error.original_exception is None and error.__cause__ is not None:
        message = error.description or message
    body: Dict[str, Any] = {'message': message, 'requestId': request_id}
    if current_app.config.get('DEBUG_ERROR_DETAIL') and cause is not None:
        body['detail'] = str(cause)
    response: Response = jsonify(body)
    response.status_code = 500
    return response


def register_commands(app: Flask) -> None:
    """Add maintenance commands to the ``flask`` CLI."""

    @app.cli.command('create-db')
    def create_db() -> None:
        """Create all tables in the database."""
        datastore.current_datastore().create_all()
        click.echo('Created tables')

    @app.cli.command('purge-sessions')
    def purge_sessions() -> None:
        """Delete expired sessions."""
        count = sessions.current_session().purge_expired()
        click.echo(f'Removed {count} expired sessions')

    @app.cli.command('add-post')
    @click.option('--title', prompt='Post title')
    @click.option('--content', default='')
    @click.option('--published/--draft', default=True)
    def add_post(title: str, content: str, published: bool) -> None:
        """Create a post. For dev/test purposes only."""
        with datastore.current_datastore().transaction() as dbsession:
            post_id = attachments.create_post(dbsession, title, content,
                                              published=published)
        click.echo(post_id)

    @app.cli.command('add-attachment')
    @click.option('--post-id', default=None)
    @click.option('--filename', prompt='File name')
    @click.option('--key', prompt='Object key')
    @click.option('--content-type', default='application/octet-stream')
    def add_attachment(post_id: Optional[str], filename: str, key: str,
                       content_type: str) -> None:
        """Register an object already in the bucket as an attachment."""
        provider = app.config['ATTACHMENT_STORAGE_PROVIDER']
        with datastore.current_datastore().transaction() as dbsession:
            attachment_id = attachments.create_attachment(
                dbsession, filename, key, content_type=content_type,
                post_id=post_id, storage_provider=provider
            )
        click.echo(attachment_id)
