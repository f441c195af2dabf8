"""Testes para observability/timing.py."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from stayfinder.observability.timing import timed


class TestTimed:
    """Testes para timed()."""

    def test_logs_operation_fields_and_duration(self):
        with patch("stayfinder.observability.timing.logger") as mock_logger:
            with timed("query_fetch", resource="hostBookings"):
                pass

        assert mock_logger.info.call_args.args[0] == "operation_latency"
        extra = mock_logger.info.call_args.kwargs["extra"]
        assert extra["operation"] == "query_fetch"
        assert extra["resource"] == "hostBookings"
        assert extra["outcome"] == "ok"
        assert extra["duration_ms"] >= 0

    def test_failure_logged_as_error_outcome(self):
        """Exceção propaga e a duração é logada com outcome=error."""
        with patch("stayfinder.observability.timing.logger") as mock_logger:
            with pytest.raises(ValueError):
                with timed("query_fetch", resource="booking"):
                    raise ValueError("boom")

        mock_logger.info.assert_called_once()
        assert mock_logger.info.call_args.kwargs["extra"]["outcome"] == "error"
