"""Root logger configuration."""

import logging

from pythonjsonlogger import jsonlogger

FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def setup_logger(level: int = logging.INFO, json: bool = False) -> None:
    """
    Send log records from all modules to stderr.

    With ``json`` set, each record is one JSON object with ``timestamp``,
    ``level``, ``name`` and ``message`` keys. Safe to call more than once.
    """
    logger = logging.getLogger()
    for handler in list(logger.handlers):
        if getattr(handler, '_siteauth', False):
            logger.removeHandler(handler)

    log_handler = logging.StreamHandler()
    if json:
        formatter: logging.Formatter = jsonlogger.JsonFormatter(
            FORMAT, rename_fields={'levelname': 'level',
                                   'asctime': 'timestamp'}
        )
    else:
        formatter = logging.Formatter(FORMAT)
    log_handler.setFormatter(formatter)
    log_handler._siteauth = True  # type: ignore
    logger.addHandler(log_handler)
    logger.setLevel(level)
