"""
Unit tests for error types, cancellation tokens and retry.
"""

import asyncio
import threading
from unittest.mock import Mock, patch

import pytest

from resilience_patterns import (
    CancellationToken, CancelledError, DecodeError, NonRetryableError, ProcessingError,
    RetryConfig, SizeLimitError, ValidationError, WorkerError, error_from_name, with_retry
)


class TestErrorTaxonomy:
    """Test the error hierarchy and envelope reconstruction"""

    def test_hierarchy(self):
        for cls in (ValidationError, DecodeError, WorkerError, SizeLimitError, CancelledError):
            assert issubclass(cls, ProcessingError)
        assert issubclass(ProcessingError, NonRetryableError)
        assert not issubclass(CancelledError, asyncio.CancelledError)

    def test_size_limit_error_details(self):
        error = SizeLimitError("too large", file_name="big.bin", size=10, limit=5)
        assert str(error) == "[size_limit] too large"
        assert error.details == {'file_name': 'big.bin', 'size': 10, 'limit': 5}

    def test_log_context(self):
        cause = ValueError("root")
        context = DecodeError("bad", cause=cause).log_context()
        assert context['error_type'] == 'DecodeError'
        assert context['cause'] == 'root'

    @pytest.mark.parametrize("name,cls", [
        ('ValidationError', ValidationError),
        ('DecodeError', DecodeError),
        ('WorkerError', WorkerError),
        ('SizeLimitError', SizeLimitError),
        ('CancelledError', CancelledError),
        ('KeyError', ProcessingError),
        (None, ProcessingError),
    ])
    def test_error_from_name(self, name, cls):
        error = error_from_name(name, "message")
        assert type(error) is cls
        assert error.message == "message"


class TestCancellationToken:
    """Test cooperative cancellation"""

    def test_initial_state(self):
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel_raises(self):
        token = CancellationToken()
        token.cancel()
        assert token.cancelled
        with pytest.raises(CancelledError):
            token.raise_if_cancelled()

    def test_callbacks_run_once(self):
        token = CancellationToken()
        callback = Mock()
        token.add_callback(callback)
        token.cancel()
        token.cancel()
        callback.assert_called_once()

    def test_callback_added_after_cancel_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        callback = Mock()
        token.add_callback(callback)
        callback.assert_called_once()

    def test_removed_callback_not_called(self):
        token = CancellationToken()
        callback = Mock()
        token.add_callback(callback)
        token.remove_callback(callback)
        token.cancel()
        callback.assert_not_called()

    def test_failing_callback_does_not_block_others(self):
        token = CancellationToken()
        second = Mock()
        token.add_callback(Mock(side_effect=RuntimeError("boom")))
        token.add_callback(second)
        token.cancel()
        second.assert_called_once()

    def test_cancel_from_other_thread(self):
        token = CancellationToken()
        thread = threading.Thread(target=token.cancel)
        thread.start()
        thread.join()
        assert token.cancelled


class TestWithRetry:
    """Test the retry decorator"""

    def test_sync_retries_transient_errors(self):
        calls = Mock(side_effect=[BlockingIOError(), InterruptedError(), 'ok'])

        @with_retry(RetryConfig(max_attempts=3, initial_delay=0, jitter=False))
        def flaky():
            return calls()

        with patch('resilience_patterns.time.sleep'):
            assert flaky() == 'ok'
        assert calls.call_count == 3

    def test_sync_gives_up(self):
        @with_retry(RetryConfig(max_attempts=2, initial_delay=0, jitter=False))
        def always_fails():
            raise TimeoutError("slow disk")

        with patch('resilience_patterns.time.sleep'):
            with pytest.raises(TimeoutError):
                always_fails()

    def test_non_retryable_propagates_immediately(self):
        calls = Mock(side_effect=DecodeError("bad"))

        @with_retry(RetryConfig(max_attempts=5))
        def decode():
            return calls()

        with pytest.raises(DecodeError):
            decode()
        assert calls.call_count == 1

    def test_other_errors_not_retried(self):
        calls = Mock(side_effect=FileNotFoundError("missing"))

        @with_retry(RetryConfig(max_attempts=5))
        def read():
            return calls()

        with pytest.raises(FileNotFoundError):
            read()
        assert calls.call_count == 1

    @pytest.mark.asyncio
    async def test_async_retries(self):
        attempts = []

        @with_retry(RetryConfig(max_attempts=3, initial_delay=0.001, jitter=False))
        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise BlockingIOError()
            return b'data'

        assert await flaky() == b'data'
        assert len(attempts) == 3

    def test_calculate_delay(self):
        config = RetryConfig(initial_delay=0.1, max_delay=0.3, exponential_base=2.0, jitter=False)
        assert config.calculate_delay(1) == pytest.approx(0.1)
        assert config.calculate_delay(2) == pytest.approx(0.2)
        assert config.calculate_delay(5) == pytest.approx(0.3)
