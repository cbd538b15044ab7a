"""Sends verification e-mail over SMTP."""

from typing import Optional
from email.message import EmailMessage
import logging
import smtplib

from flask import Flask, current_app

from .exceptions import MailDeliveryFailed

logger = logging.getLogger(__name__)

SUBJECT = 'Confirm your e-mail address'

BODY = """Hello {name},

Thanks for registering. Please confirm your e-mail address by opening the
link below:

{link}

The link expires in {minutes} minutes. If you did not register, you can
ignore this message.
"""


class MailSession(object):
    """An SMTP relay. A new connection is opened for each message."""

    def __init__(self, host: str = 'localhost', port: int = 25,
                 username: Optional[str] = None,
                 password: Optional[str] = None,
                 starttls: bool = False, timeout: int = 10,
                 sender: str = 'noreply@localhost') -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._starttls = starttls
        self._timeout = timeout
        self.sender = sender

    def _new_connection(self) -> smtplib.SMTP:
        return smtplib.SMTP(host=self._host, port=self._port,
                            timeout=self._timeout)

    def send_message(self, message: EmailMessage) -> None:
        """
        Deliver ``message`` to the relay.

        Raises
        ------
        :class:`MailDeliveryFailed`
            If the relay could not be reached or rejected the message.

        """
        if message['From'] is None:
            message['From'] = self.sender
        try:
            with self._new_connection() as conn:
                if self._starttls:
                    conn.starttls()
                if self._username:
                    conn.login(self._username, self._password or '')
                conn.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryFailed(f'Could not send mail: {e}') from e

    def send_verification(self, to: str, name: str, link: str,
                          expires_in: int = 3600) -> None:
        """Send the e-mail verification link to a new registrant."""
        message = EmailMessage()
        message['To'] = to
        message['From'] = self.sender
        message['Subject'] = SUBJECT
        message.set_content(BODY.format(name=name, link=link,
                                        minutes=max(expires_in // 60, 1)))
        self.send_message(message)
        logger.info('Sent verification e-mail')


def init_app(app: Flask, mailer: Optional[MailSession] = None) -> MailSession:
    """Attach a :class:`.MailSession` configured from ``app`` to ``app``."""
    if mailer is None:
        mailer = MailSession(
            host=app.config.get('SMTP_HOST', 'localhost'),
            port=int(app.config.get('SMTP_PORT', 25)),
            username=app.config.get('SMTP_USERNAME'),
            password=app.config.get('SMTP_PASSWORD'),
            starttls=bool(app.config.get('SMTP_STARTTLS', False)),
            timeout=int(app.config.get('SMTP_TIMEOUT', 10)),
            sender=app.config.get('MAIL_FROM', 'noreply@localhost')
        )
    app.extensions['mailer'] = mailer
    return mailer


def current_mailer() -> MailSession:
    """Get the :class:`.MailSession` attached to the current application."""
    return current_app.extensions['mailer']  # type: ignore
