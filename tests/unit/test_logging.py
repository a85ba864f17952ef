"""Tests for structured logging and correlation context."""

from __future__ import annotations

import json
import logging
from unittest.mock import MagicMock, patch

from otc_network_operator.logging import log_resource_event, setup_structured_logging
from otc_network_operator.utils.context import get_context_dict, get_correlation_id, with_correlation_id


def logged_record(logger: MagicMock) -> dict:
    level, payload = logger.log.call_args.args
    return json.loads(payload)


class TestCorrelationId:
    """Test cases for correlation ID context."""

    def test_fresh_id_per_block(self):
        """Test that a block gets a new ID which is cleared afterwards."""
        assert get_correlation_id() is None
        with with_correlation_id() as first:
            assert get_correlation_id() == first
            assert len(first) == 16
        with with_correlation_id() as second:
            assert second != first
        assert get_correlation_id() is None

    def test_explicit_id(self):
        """Test that an explicit ID is used as-is."""
        with with_correlation_id("abc"):
            assert get_context_dict() == {"correlation_id": "abc"}

    def test_additional_fields(self):
        """Test that extra fields are merged."""
        assert get_context_dict({"kind": "Network"}) == {"kind": "Network"}


class TestLogResourceEvent:
    """Test cases for log_resource_event function."""

    def test_record_fields(self):
        """Test that the record carries identity, event and context."""
        logger = MagicMock()

        with with_correlation_id("corr-1"):
            log_resource_event(
                logger,
                controller="otc-network-operator",
                resource_kind="Network",
                resource_name="vpc",
                namespace="default",
                uid="uid-1",
                event="create",
                reason="Created",
                message="Created network",
                external_id="vpc-1",
            )

        assert logger.log.call_args.args[0] == logging.INFO
        record = logged_record(logger)
        assert record["kind"] == "Network"
        assert record["name"] == "vpc"
        assert record["reason"] == "Created"
        assert record["external_id"] == "vpc-1"
        assert record["correlation_id"] == "corr-1"

    def test_extra_fields_are_redacted(self):
        """Test that credentials in extra fields never reach the log."""
        logger = MagicMock()

        log_resource_event(
            logger,
            controller="otc-network-operator",
            resource_kind="ProviderConfig",
            resource_name="otc",
            namespace="default",
            uid="uid-1",
            event="error",
            reason="Error",
            message="failed",
            level=logging.ERROR,
            error="auth failed: password=hunter2",
            token="abc",
        )

        record = logged_record(logger)
        assert "hunter2" not in record["error"]
        assert record["token"] == "[REDACTED]"


class TestSetupStructuredLogging:
    """Test cases for setup_structured_logging function."""

    @patch("otc_network_operator.logging.logging.basicConfig")
    def test_quiets_http_libraries(self, mock_basic_config, monkeypatch):
        """Test that HTTP client loggers are raised to WARNING."""
        monkeypatch.setenv("LOG_LEVEL", "info")

        setup_structured_logging()

        assert mock_basic_config.call_args.kwargs["level"] == "INFO"
        assert logging.getLogger("keystoneauth").level == logging.WARNING
