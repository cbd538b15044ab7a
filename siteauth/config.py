"""Flask configuration."""
import os

#################### General config for app ####################
BASE_URL = os.environ.get('APP_BASE_URL', '').rstrip('/')
"""Base URL used to build links in outgoing e-mail.

If not set, the base URL is derived from the ``Host`` and
``X-Forwarded-Proto`` headers of the request being handled.
"""

VERIFY_SUCCESS_URL = os.environ.get('VERIFY_SUCCESS_URL',
                                    '/register-success.html')
"""Where the user is redirected after a successful e-mail verification."""

DEBUG_ERROR_DETAIL = bool(int(os.environ.get('DEBUG_ERROR_DETAIL', '0')))
"""Include internal error text in 500 responses.

Must stay off in production. When on, registration responses also include the
verification link, which is handy during development.
"""


#################### Database ####################
SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL',
                                         'sqlite:///siteauth.db')
"""Connection string for the users/sessions/attachments database."""

SQLALCHEMY_POOL_PRE_PING = bool(int(os.environ.get('SQLALCHEMY_POOL_PRE_PING',
                                                   '1')))

CREATE_DB = bool(int(os.environ.get('CREATE_DB', '0')))
"""Create all tables when the application starts."""


#################### Sessions ####################
AUTH_SESSION_COOKIE_NAME = os.environ.get('COOKIE_NAME', 'session')
AUTH_SESSION_COOKIE_SECURE = bool(int(os.environ.get(
    'AUTH_SESSION_COOKIE_SECURE', '1'
)))
"""Set the ``Secure`` attribute. Turn off only when not served over TLS."""

SESSION_DURATION = int(os.environ.get('SESSION_DURATION', '604800'))
"""Lifetime of a session in seconds; renewed on every authenticated request."""


#################### Registration ####################
PASSWORD_HASH_ROUNDS = int(os.environ.get('PASSWORD_HASH_ROUNDS', '10'))
"""bcrypt cost factor."""

VERIFICATION_TOKEN_DURATION = int(os.environ.get(
    'VERIFICATION_TOKEN_DURATION', '3600'
))
"""Lifetime of an e-mail verification token in seconds."""

VERIFICATION_RESEND_COOLDOWN = int(os.environ.get(
    'VERIFICATION_RESEND_COOLDOWN', '60'
))
"""Minimum seconds between two verification e-mails to one account."""


#################### Mail ####################
SMTP_HOST = os.environ.get('SMTP_HOST', 'localhost')
SMTP_PORT = int(os.environ.get('SMTP_PORT', '25'))
SMTP_USERNAME = os.environ.get('SMTP_USERNAME')
SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD')
"""API key or password for the mail relay."""
SMTP_STARTTLS = bool(int(os.environ.get('SMTP_STARTTLS', '0')))
SMTP_TIMEOUT = int(os.environ.get('SMTP_TIMEOUT', '10'))

MAIL_FROM = os.environ.get('MAIL_FROM', 'noreply@localhost')
"""Sender address for verification e-mail."""


#################### Attachments ####################
AWS_ACCESS_KEY_ID = os.environ.get('AWS_ACCESS_KEY_ID')
AWS_SECRET_ACCESS_KEY = os.environ.get('AWS_SECRET_ACCESS_KEY')
AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')
S3_ENDPOINT_URL = os.environ.get('S3_ENDPOINT_URL')
"""Alternate endpoint for S3-compatible stores. Leave unset for AWS."""

ATTACHMENT_BUCKET = os.environ.get('ATTACHMENT_BUCKET', 'attachments')
ATTACHMENT_STORAGE_PROVIDER = os.environ.get('ATTACHMENT_STORAGE_PROVIDER',
                                             's3')
"""The only ``storage_provider`` value for which download URLs are minted."""

SIGNED_URL_DURATION = int(os.environ.get('SIGNED_URL_DURATION', '300'))
"""Lifetime of a signed attachment URL in seconds."""


#################### Logging ####################
LOGLEVEL = int(os.environ.get('LOGLEVEL', '20'))
LOG_JSON = bool(int(os.environ.get('LOG_JSON', '0')))
"""Emit structured JSON log lines instead of plain text."""
