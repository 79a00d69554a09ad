import logging

import pytest
from aerodao import set_client


@pytest.fixture(autouse=True)
def reset_shared_client():
    """Clear the shared client before and after each test to ensure test isolation."""
    set_client(None)
    yield
    set_client(None)


@pytest.fixture(autouse=True)
def debug_logging(caplog):
    caplog.set_level(logging.DEBUG, logger='aerodao')


pytest_plugins = [
    'tests.fixtures.mocks',
]
