"""Tests for log levels, secret redaction and the reconciliation log."""

import logging

import pytest
import structlog
from shared.logging import (
    REDACTED,
    ReconciliationFilter,
    bind_request_context,
    clear_request_context,
    get_log_level,
    redact_secrets,
    setup_stdlib_logging,
)


def _record(message, level=logging.ERROR):
    return logging.LogRecord("ordering", level, __file__, 1, message, None, None)


class TestLogLevel:
    def test_test_environment_is_quiet(self, monkeypatch):
        monkeypatch.delenv("ENV", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "test")
        assert get_log_level() == "WARNING"

    def test_production_logs_info(self, monkeypatch):
        monkeypatch.delenv("ENV", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "production")
        assert get_log_level() == "INFO"

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert get_log_level() == "ERROR"


class TestRedactSecrets:
    def test_masks_credentials(self):
        event = redact_secrets(None, "info", {"event": "Checkout", "token": "tok-1", "api_key": "sk_live_1"})
        assert event == {"event": "Checkout", "token": REDACTED, "api_key": REDACTED}

    def test_leaves_other_keys_and_empty_values(self):
        event = redact_secrets(None, "info", {"event": "Checkout", "order_id": "ord-1", "token": None})
        assert event == {"event": "Checkout", "order_id": "ord-1", "token": None}


class TestReconciliationFilter:
    def test_passes_reconciliation_alerts(self):
        message = "Payment recorded but follow-up step failed; reconciliation required"
        assert ReconciliationFilter().filter(_record(message))

    def test_drops_other_errors_and_lower_levels(self):
        assert not ReconciliationFilter().filter(_record("Stripe session lookup failed"))
        assert not ReconciliationFilter().filter(_record("reconciliation required", logging.WARNING))


class TestStdlibLogging:
    @pytest.fixture()
    def root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield root
        for handler in root.handlers:
            handler.close()
        root.handlers = handlers
        root.setLevel(level)

    def test_reconciliation_alerts_get_their_own_file(self, root_logger, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        setup_stdlib_logging(tmp_path)

        logging.getLogger("ordering").info("Order cancelled")
        logging.getLogger("ordering").error("Payment recorded; reconciliation required")
        for handler in root_logger.handlers:
            handler.flush()

        assert "Order cancelled" in (tmp_path / "orderflow.log").read_text()
        assert (tmp_path / "orderflow_reconciliation.log").read_text().strip() == (
            "Payment recorded; reconciliation required"
        )


class TestRequestContext:
    def test_binds_and_clears(self):
        request_id = bind_request_context("POST", "/orders/checkout", "req-1")
        assert request_id == "req-1"
        assert structlog.contextvars.get_contextvars() == {
            "request_id": "req-1",
            "method": "POST",
            "path": "/orders/checkout",
        }

        clear_request_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_generates_an_id(self):
        assert bind_request_context("GET", "/health")
        clear_request_context()
