"""Unit tests for SDK logging setup."""

import logging

import pytest

from aizu import Aizu
from aizu.logger import LOGGER_NAME, configure_logging

from conftest import API_KEY, API_URL


@pytest.fixture
def sdk_logger():
    """The aizu stdlib logger, restored after the test."""
    sdk_logger = logging.getLogger(LOGGER_NAME)
    level, handlers = sdk_logger.level, list(sdk_logger.handlers)
    sdk_logger.setLevel(logging.NOTSET)
    sdk_logger.handlers = []
    yield sdk_logger
    sdk_logger.setLevel(level)
    sdk_logger.handlers = handlers


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_debug_enables_sdk_logger(self, sdk_logger):
        configure_logging(debug=True)

        assert sdk_logger.level == logging.DEBUG
        assert sdk_logger.handlers

    def test_default_is_quiet(self, sdk_logger):
        """Test only warnings and above are emitted without debug."""
        configure_logging(debug=False)

        assert sdk_logger.level == logging.WARNING
        assert not logging.getLogger("aizu.delivery").isEnabledFor(logging.INFO)

    def test_quiet_client_keeps_debug_of_earlier_client(self, sdk_logger):
        """Test a later non-debug client does not lower the level."""
        Aizu(api_key=API_KEY, api_url=API_URL, debug=True)
        Aizu(api_key=API_KEY, api_url=API_URL, debug=False)

        assert sdk_logger.level == logging.DEBUG
        assert logging.getLogger("aizu.delivery").isEnabledFor(logging.DEBUG)

    def test_host_level_respected(self, sdk_logger):
        """Test a level set by the host application is left alone."""
        sdk_logger.setLevel(logging.INFO)

        configure_logging(debug=False)

        assert sdk_logger.level == logging.INFO
