"""Tests for the bounded retry helper."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest

from otc_network_operator.exceptions import ProviderError
from otc_network_operator.utils.retry import MaxRetriesExceeded, RetryCancelled, retry


@patch("otc_network_operator.utils.retry.time.sleep")
class TestRetry:
    """Test cases for retry function."""

    def test_returns_when_done(self, mock_sleep):
        """Test that retry stops on the first success."""
        fn = MagicMock(return_value=True)

        retry(fn, max_attempts=3, delay=1)

        fn.assert_called_once()
        mock_sleep.assert_not_called()

    def test_polls_until_done(self, mock_sleep):
        """Test that retry calls again after a delay."""
        fn = MagicMock(side_effect=[False, False, True])

        retry(fn, max_attempts=5, delay=2)

        assert fn.call_count == 3
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(2)

    def test_max_attempts(self, mock_sleep):
        """Test that the attempt budget is enforced."""
        fn = MagicMock(return_value=False)

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            retry(fn, max_attempts=3, delay=0)

        assert fn.call_count == 3
        assert exc_info.value.attempts == 3
        assert str(exc_info.value) == "maximum retries reached after 3 attempts"

    def test_retryable_errors_are_remembered(self, mock_sleep):
        """Test that listed errors are retried and reported."""
        fn = MagicMock(side_effect=ProviderError("503"))

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            retry(fn, max_attempts=2, delay=0, retry_on=(ProviderError,))

        assert isinstance(exc_info.value.last_error, ProviderError)
        assert str(exc_info.value).endswith(": 503")

    def test_other_errors_propagate(self, mock_sleep):
        """Test that unlisted errors abort immediately."""
        fn = MagicMock(side_effect=KeyError("id"))

        with pytest.raises(KeyError):
            retry(fn, max_attempts=5, delay=0, retry_on=(ProviderError,))

        fn.assert_called_once()

    def test_cancelled_before_first_attempt(self, mock_sleep):
        """Test that a set cancel event stops retrying."""
        cancel = threading.Event()
        cancel.set()
        fn = MagicMock(return_value=True)

        with pytest.raises(RetryCancelled):
            retry(fn, max_attempts=5, delay=0, cancel=cancel)

        fn.assert_not_called()

    def test_cancelled_while_waiting(self, mock_sleep):
        """Test that cancellation interrupts the wait between attempts."""
        cancel = MagicMock()
        cancel.is_set.return_value = False
        cancel.wait.return_value = True
        fn = MagicMock(return_value=False)

        with pytest.raises(RetryCancelled):
            retry(fn, max_attempts=5, delay=10, cancel=cancel)

        fn.assert_called_once()
        cancel.wait.assert_called_once_with(10)
        mock_sleep.assert_not_called()
