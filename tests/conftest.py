"""Shared pytest fixtures."""

import logging

import pytest

from shared_contacts.utils import logging as logging_utils
from shared_contacts.utils.logging import AUDIT_LOGGER_NAME, ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_loggers():
    """Undo handler and propagation changes made by setup_logging()."""
    yield
    for name in (ROOT_LOGGER_NAME, AUDIT_LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
    logging_utils._configured_log_dir = None
