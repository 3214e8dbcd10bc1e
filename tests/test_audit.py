"""Tests for keybroker/logging/audit.py: JSON audit logging."""

import json
import logging

from keybroker.logging.audit import (
    JSONFormatter,
    RequestTimer,
    generate_request_id,
    get_audit_logger,
    request_id_var,
    setup_logging,
)


def _record(msg="test"):
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="",
        lineno=0, msg=msg, args=(), exc_info=None,
    )


class TestJSONFormatter:

    def test_output_is_valid_json(self):
        parsed = json.loads(JSONFormatter().format(_record("hello")))
        assert parsed["message"] == "hello"
        assert parsed["level"] == "INFO"
        assert "timestamp" in parsed

    def test_includes_request_id(self):
        token = request_id_var.set("req-abc123")
        try:
            parsed = json.loads(JSONFormatter().format(_record()))
            assert parsed["request_id"] == "req-abc123"
        finally:
            request_id_var.reset(token)

    def test_includes_audit_data(self):
        record = _record()
        record.audit_data = {"role": "deployer", "key_name": "k1"}
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["role"] == "deployer"
        assert parsed["key_name"] == "k1"

    def test_strips_sensitive_fields(self):
        record = _record()
        record.audit_data = {"role": "deployer", "token": "secret-value", "master_credential": "m"}
        output = JSONFormatter().format(record)
        assert "secret-value" not in output
        parsed = json.loads(output)
        assert "token" not in parsed
        assert "master_credential" not in parsed
        assert parsed["role"] == "deployer"


class TestGenerateRequestId:

    def test_length(self):
        assert len(generate_request_id()) == 12

    def test_uniqueness(self):
        ids = {generate_request_id() for _ in range(100)}
        assert len(ids) == 100


class TestRequestTimer:

    def test_measures_elapsed(self):
        with RequestTimer() as timer:
            _ = sum(range(1000))
        assert timer.elapsed_ms >= 0
        assert isinstance(timer.elapsed_ms, float)


class TestSetupLogging:

    def test_creates_stdout_handler(self, override_settings):
        override_settings(AUDIT_LOG_FILE="")
        setup_logging()
        logger = get_audit_logger()
        assert any(isinstance(h, logging.StreamHandler) for h in logger.handlers)
        assert logger.propagate is False

    def test_file_handler(self, override_settings, tmp_path):
        path = tmp_path / "audit.log"
        override_settings(AUDIT_LOG_FILE=str(path))
        setup_logging()
        logger = get_audit_logger()
        try:
            assert any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        finally:
            for h in logger.handlers:
                h.close()
            logger.handlers.clear()
