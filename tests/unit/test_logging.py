"""Unit tests for structured logging."""
# ruff: noqa: ARG002  # Fixtures used for setup side effects

import logging
from unittest.mock import MagicMock, patch

import pytest
import structlog

from riskledger.config.settings import Environment
from riskledger.core.exceptions import NotFoundError
from riskledger.core.logging import (
    LogContext,
    add_environment_info,
    drop_color_message_key,
    get_logger,
    log_domain_failure,
    setup_logging,
)


class TestAddEnvironmentInfo:
    """Tests for add_environment_info processor."""

    def test_adds_environment(self):
        """Test environment is added to event dict."""
        mock_settings = MagicMock()
        mock_settings.environment = Environment.PRODUCTION

        with patch("riskledger.core.logging.get_settings", return_value=mock_settings):
            result = add_environment_info(None, "info", {})

        assert result["environment"] == "production"


class TestDropColorMessageKey:
    """Tests for drop_color_message_key processor."""

    def test_drops_color_message(self):
        """Test color_message key is removed."""
        event_dict = {"message": "test", "color_message": "colored test"}
        result = drop_color_message_key(None, "info", event_dict)

        assert "color_message" not in result
        assert result["message"] == "test"

    def test_no_color_message(self):
        """Test no error when color_message not present."""
        result = drop_color_message_key(None, "info", {"message": "test"})
        assert result == {"message": "test"}


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_default(self, test_settings):
        """Test logging setup with default settings."""
        setup_logging(settings=test_settings)

        assert get_logger("test") is not None

    def test_setup_logging_json_format(self, test_settings):
        """Test logging setup with JSON format."""
        setup_logging(json_format=True, settings=test_settings)

        assert get_logger("test") is not None

    def test_setup_logging_custom_level(self, test_settings):
        """Test logging setup with custom log level."""
        setup_logging(log_level="WARNING", settings=test_settings)

        assert logging.getLogger().level == logging.WARNING

    def test_sqlalchemy_quiet_by_default(self, test_settings):
        """Test SQLAlchemy logs are raised to WARNING unless echo is on."""
        setup_logging(settings=test_settings)
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

        echo_settings = test_settings.model_copy(update={"database_echo": True})
        setup_logging(settings=echo_settings)
        assert logging.getLogger("sqlalchemy.engine").level == logging.INFO

        setup_logging(settings=test_settings)


class TestLogContext:
    """Tests for LogContext context manager."""

    def test_log_context_binds_values(self, test_settings):
        """Test that LogContext binds values during block."""
        setup_logging(settings=test_settings)
        structlog.contextvars.clear_contextvars()

        with LogContext(operation="close_risk", risk_id="r-1"):
            ctx = structlog.contextvars.get_contextvars()
            assert ctx.get("operation") == "close_risk"
            assert ctx.get("risk_id") == "r-1"

        ctx = structlog.contextvars.get_contextvars()
        assert "operation" not in ctx
        assert "risk_id" not in ctx

    def test_log_context_unbinds_on_error(self, test_settings):
        """Test that values are unbound when the block raises."""
        setup_logging(settings=test_settings)
        structlog.contextvars.clear_contextvars()

        with pytest.raises(NotFoundError), LogContext(operation="get_risk"):
            raise NotFoundError("Risk", "r-404")

        assert structlog.contextvars.get_contextvars() == {}


class TestLogHelpers:
    """Tests for logging helper functions."""

    @pytest.fixture
    def mock_logger(self):
        return MagicMock()

    def test_log_domain_failure(self, mock_logger):
        """Test rejected operations are logged as warnings."""
        log_domain_failure(
            mock_logger, "get_risk", NotFoundError("Risk", "r-1"), risk_id="r-1"
        )

        mock_logger.warning.assert_called_once()
        args, kwargs = mock_logger.warning.call_args
        assert args[0] == "operation_rejected"
        assert kwargs["operation"] == "get_risk"
        assert kwargs["error_type"] == "NotFoundError"
        assert kwargs["error_message"] == "Risk with ID r-1 not found"
        assert kwargs["risk_id"] == "r-1"
