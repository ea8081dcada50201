"""
Shared test fixtures for pytest
"""
import logging

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() so handlers bound to closed CliRunner streams don't leak between tests"""
    yield
    logger = logging.getLogger("jupyter_hpc")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
