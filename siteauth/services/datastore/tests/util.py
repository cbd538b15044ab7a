"""Testing helpers."""

from typing import Generator
from contextlib import contextmanager
import os
import tempfile

from .. import Datastore


@contextmanager
def temporary_db(database_url: str = '',
                 create: bool = True) -> Generator[Datastore, None, None]:
    """
    Provide a throwaway sqlite database for testing purposes.

    A file is used rather than ``:memory:`` so that separate connections,
    e.g. from several threads, see the same data.
    """
    path = None
    if not database_url:
        fd, path = tempfile.mkstemp(suffix='.sqlite')
        os.close(fd)
        database_url = f'sqlite:///{path}'
    store = Datastore(database_url)
    if create:
        store.create_all()
    try:
        yield store
    finally:
        store.drop_all()
        store.dispose()
        if path is not None:
            os.remove(path)
