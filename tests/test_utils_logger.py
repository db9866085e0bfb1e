"""Tests for logging utilities."""
import logging
from unittest.mock import MagicMock, patch

import pytest

from app.utils.logger import REDACTED, configure_logging, get_logger, mask_phi


@pytest.mark.unit
class TestMaskPhi:
    def test_masks_patient_identifiers(self):
        event = mask_phi(
            None,
            "info",
            {"event": "Remittance detail", "patient_name": "DOE JOHN", "subscriber_id": "SUB123", "claim_id": 4},
        )

        assert event["patient_name"] == REDACTED
        assert event["subscriber_id"] == REDACTED
        assert event["claim_id"] == 4

    def test_leaves_empty_values(self):
        event = mask_phi(None, "info", {"event": "x", "patient_name": None})

        assert event["patient_name"] is None


@pytest.mark.unit
class TestConfigureLogging:
    def test_configure_logging_default(self):
        with patch("app.utils.logger.structlog") as mock_structlog, \
             patch("app.utils.logger.logging.getLogger") as mock_get_logger:
            mock_root_logger = MagicMock()
            mock_get_logger.return_value = mock_root_logger

            configure_logging()

            mock_structlog.configure.assert_called_once()
            mock_root_logger.setLevel.assert_called_once_with(logging.INFO)
            processors = mock_structlog.configure.call_args.kwargs["processors"]
            assert mask_phi in processors

    def test_console_format(self):
        with patch("app.utils.logger.structlog") as mock_structlog, \
             patch("app.utils.logger.logging.getLogger"):
            configure_logging(log_format="console")

            mock_structlog.dev.ConsoleRenderer.assert_called_once()

    def test_repeated_calls_do_not_stack_handlers(self):
        root = logging.getLogger()
        saved = root.handlers[:]
        try:
            configure_logging(log_level="WARNING")
            configure_logging(log_level="WARNING")
            assert len(root.handlers) == 1
        finally:
            root.handlers = saved

    def test_file_handler(self, tmp_path):
        root = logging.getLogger()
        saved = root.handlers[:]
        try:
            with patch.dict("os.environ", {"ENVIRONMENT": "production"}):
                configure_logging(log_file="rcm.log", log_dir=str(tmp_path))
            assert (tmp_path / "rcm.log").exists()
            assert len(root.handlers) == 1
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = saved

    def test_get_logger(self):
        assert get_logger("app.tests") is not None
