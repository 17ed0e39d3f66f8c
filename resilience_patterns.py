"""
Resilience Patterns for the Alphabet Codec Pipeline
===================================================

Error taxonomy shared by the codec, the worker protocol and the batch
queue, cooperative cancellation tokens, and the retry helper used for
transient file I/O.
"""

import asyncio
import inspect
import logging
import random
import threading
import time
import traceback
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class RetryConfig:
    """Configuration for retry behavior"""
    max_attempts: int = 3
    initial_delay: float = 0.1
    max_delay: float = 2.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: tuple = (BlockingIOError, InterruptedError, TimeoutError)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay with exponential backoff and optional jitter"""
        delay = min(self.initial_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay *= (0.5 + random.random())
        return delay


class NonRetryableError(Exception):
    """Base class for non-retryable errors"""

    def __init__(self, message: str, cause: Optional[Exception] = None,
                 error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        """
        Initialize a non-retryable error.

        Args:
            message: Error description
            cause: Original exception that caused this error
            error_code: Specific error code for categorization
            details: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.error_code = error_code
        self.details = details or {}
        self.timestamp = time.time()
        self.traceback = traceback.format_exc() if cause else None

    def __str__(self) -> str:
        base_msg = self.message
        if self.error_code:
            base_msg = f"[{self.error_code}] {base_msg}"
        return base_msg

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(message={self.message!r}, "
                f"cause={self.cause!r}, error_code={self.error_code!r})")

    def log_context(self) -> Dict[str, Any]:
        """Get error context for structured logging"""
        return {
            'error_type': type(self).__name__,
            'error_code': self.error_code,
            'message': str(self),
            'timestamp': self.timestamp,
            'details': self.details,
            'cause': str(self.cause) if self.cause else None
        }


class ProcessingError(NonRetryableError):
    """Base class for every codec, worker and queue failure"""


class ValidationError(ProcessingError):
    """Malformed alphabet or options: wrong length, duplicates, whitespace"""


class DecodeError(ProcessingError):
    """Input cannot be parsed under the given alphabet"""


class WorkerError(ProcessingError):
    """The worker channel itself failed"""


class SizeLimitError(ProcessingError):
    """File exceeds the configured size ceiling"""

    def __init__(self, message: str, file_name: str = "", size: int = 0, limit: int = 0):
        super().__init__(message, error_code="size_limit",
                         details={'file_name': file_name, 'size': size, 'limit': limit})
        self.file_name = file_name
        self.size = size
        self.limit = limit


class CancelledError(ProcessingError):
    """Operation aborted through its cancellation token.

    Not to be confused with ``asyncio.CancelledError``, which still
    propagates untouched when a task itself is cancelled.
    """


_ERROR_TYPES: Dict[str, Type[ProcessingError]] = {
    cls.__name__: cls
    for cls in (ProcessingError, ValidationError, DecodeError,
                WorkerError, SizeLimitError, CancelledError)
}


def error_from_name(name: Optional[str], message: str) -> ProcessingError:
    """Rebuild a typed error from the class name carried in an error envelope."""
    cls = _ERROR_TYPES.get(name or "", ProcessingError)
    if cls is SizeLimitError:
        return SizeLimitError(message)
    return cls(message)


class CancellationToken:
    """Cooperative cancellation flag checked at every yield point.

    Callbacks registered with :meth:`add_callback` run synchronously in the
    thread that calls :meth:`cancel`; a callback added after cancellation
    runs immediately.
    """

    def __init__(self):
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Cancellation callback failed: {e}", exc_info=True)

    def add_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise CancelledError("Operation cancelled")


def with_retry(config: Optional[RetryConfig] = None):
    """Decorator for adding retry logic to functions"""
    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def sync_wrapper(*args, **kwargs) -> T:
            for attempt in range(1, config.max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except NonRetryableError:
                    raise
                except config.retryable_exceptions as e:
                    if attempt == config.max_attempts:
                        logger.error(f"Failed after {config.max_attempts} attempts: {func.__name__}")
                        raise
                    delay = config.calculate_delay(attempt)
                    logger.warning(f"Attempt {attempt} failed: {e}. Retrying in {delay:.2f}s...")
                    time.sleep(delay)
            raise RuntimeError(f"{func.__name__} ran zero attempts")

        @wraps(func)
        async def async_wrapper(*args, **kwargs) -> T:
            for attempt in range(1, config.max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except NonRetryableError:
                    raise
                except config.retryable_exceptions as e:
                    if attempt == config.max_attempts:
                        logger.error(f"Failed after {config.max_attempts} attempts: {func.__name__}")
                        raise
                    delay = config.calculate_delay(attempt)
                    logger.warning(f"Attempt {attempt} failed: {e}. Retrying in {delay:.2f}s...")
                    await asyncio.sleep(delay)
            raise RuntimeError(f"{func.__name__} ran zero attempts")

        return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper
    return decorator
