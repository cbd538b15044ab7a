"""Mints short-lived signed download URLs for stored attachments."""

from typing import Any, Optional
from urllib.parse import quote
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import Flask, current_app

from ..domain import Disposition
from .exceptions import SigningFailed

logger = logging.getLogger(__name__)


def content_disposition(disposition: str, filename: str) -> str:
    """
    Build a ``Content-Disposition`` value carrying ``filename``.

    The plain ``filename`` parameter is percent-encoded so that quotes and
    non-ASCII characters cannot break the header; ``filename*`` carries the
    same value for clients that understand RFC 5987.
    """
    encoded = quote(filename, safe='')
    return f"{disposition}; filename=\"{encoded}\"; filename*=UTF-8''{encoded}"


class ObjectStore(object):
    """An S3-compatible bucket holding attachment content."""

    def __init__(self, bucket: str, client: Optional[Any] = None,
                 region: Optional[str] = None,
                 endpoint_url: Optional[str] = None,
                 access_key: Optional[str] = None,
                 secret_key: Optional[str] = None) -> None:
        self.bucket = bucket
        self._client = client
        self._params = {
            'region_name': region,
            'endpoint_url': endpoint_url,
            'aws_access_key_id': access_key,
            'aws_secret_access_key': secret_key,
        }

    @property
    def client(self) -> Any:
        """The boto3 S3 client, built on first use."""
        if self._client is None:
            self._client = boto3.client(
                's3', **{k: v for k, v in self._params.items() if v}
            )
        return self._client

    def signed_url(self, key: str, filename: str,
                   content_type: Optional[str] = None,
                   disposition: str = Disposition.ATTACHMENT,
                   expires_in: int = 300) -> str:
        """
        Generate a signed GET URL for the object at ``key``.

        Parameters
        ----------
        key : str
            Object key within the bucket.
        filename : str
            Name presented to the browser.
        content_type : str or None
            Overrides the stored content type, if given.
        disposition : str
            One of :class:`.Disposition`.
        expires_in : int
            Validity of the URL in seconds.

        Raises
        ------
        :class:`SigningFailed`

        """
        params = {
            'Bucket': self.bucket,
            'Key': key,
            'ResponseContentDisposition':
                content_disposition(disposition, filename),
        }
        if content_type:
            params['ResponseContentType'] = content_type
        try:
            return self.client.generate_presigned_url(  # type: ignore
                'get_object', Params=params, ExpiresIn=expires_in
            )
        except (BotoCoreError, ClientError) as e:
            logger.error('Could not sign URL for %s: %s', key, e)
            raise SigningFailed(f'Could not sign URL: {e}') from e


def init_app(app: Flask, store: Optional[ObjectStore] = None) -> ObjectStore:
    """Attach an :class:`.ObjectStore` configured from ``app`` to ``app``."""
    if store is None:
        store = ObjectStore(
            app.config.get('ATTACHMENT_BUCKET', 'attachments'),
            region=app.config.get('AWS_REGION'),
            endpoint_url=app.config.get('S3_ENDPOINT_URL'),
            access_key=app.config.get('AWS_ACCESS_KEY_ID'),
            secret_key=app.config.get('AWS_SECRET_ACCESS_KEY')
        )
    app.extensions['objectstore'] = store
    return store


def current_objectstore() -> ObjectStore:
    """Get the :class:`.ObjectStore` attached to the current application."""
    return current_app.extensions['objectstore']  # type: ignore
