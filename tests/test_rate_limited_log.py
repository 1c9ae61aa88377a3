"""
Tests for the rate-limited logging helper.
"""
from unittest.mock import MagicMock, patch

from mxw_sdk.utils import _rate_limited_log
from mxw_sdk.utils._rate_limited_log import rate_limited_log, reset


class TestRateLimitedLog:
    """Tests for rate_limited_log."""

    def test_suppresses_repeats(self):
        mock_logger = MagicMock()

        assert rate_limited_log("Test message", logger_instance=mock_logger) is True
        mock_logger.warning.assert_called_once_with("Test message")
        assert "warning:Test message" in _rate_limited_log._log_cache

        mock_logger.reset_mock()
        assert rate_limited_log("Test message", logger_instance=mock_logger) is False
        mock_logger.warning.assert_not_called()

    def test_level_and_message_are_keyed(self):
        mock_logger = MagicMock()
        rate_limited_log("Test message", logger_instance=mock_logger)

        rate_limited_log("Test message", level="error", logger_instance=mock_logger)
        mock_logger.error.assert_called_once_with("Test message")

        rate_limited_log("Different message", logger_instance=mock_logger)
        mock_logger.warning.assert_called_with("Different message")
        assert mock_logger.warning.call_count == 2

    def test_logs_again_after_interval(self):
        mock_logger = MagicMock()

        with patch("mxw_sdk.utils._rate_limited_log.time.monotonic", side_effect=[100.0, 130.0, 161.0]):
            assert rate_limited_log("Node down", interval=60, logger_instance=mock_logger) is True
            assert rate_limited_log("Node down", interval=60, logger_instance=mock_logger) is False
            assert rate_limited_log("Node down", interval=60, logger_instance=mock_logger) is True

        assert mock_logger.warning.call_count == 2

    def test_reset(self):
        mock_logger = MagicMock()
        rate_limited_log("Test message", logger_instance=mock_logger)

        reset()

        assert rate_limited_log("Test message", logger_instance=mock_logger) is True
        assert mock_logger.warning.call_count == 2

    def test_unknown_level_falls_back_to_warning(self):
        mock_logger = MagicMock(spec=["warning"])
        rate_limited_log("Test message", level="verbose", logger_instance=mock_logger)
        mock_logger.warning.assert_called_once_with("Test message")

    def test_module_logger_by_default(self):
        with patch("mxw_sdk.utils._rate_limited_log.logger") as mock_logger:
            rate_limited_log("Test message", level="info")
        mock_logger.info.assert_called_once_with("Test message")
