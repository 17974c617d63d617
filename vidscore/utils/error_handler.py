import asyncio
import functools
from enum import Enum
from typing import TypeVar, Callable, Any, Awaitable, Optional
from loguru import logger
from ..exceptions import VidScoreException, ProviderException, ResponseShapeException, ValidationException

T = TypeVar('T')


class ErrorClass(str, Enum):
    """Retry classification of a failed remote call."""
    RATE_LIMIT = "rate_limit"
    TRANSIENT = "transient"
    NON_RETRYABLE = "non_retryable"


def extract_status_code(error: BaseException) -> Optional[int]:
    """Find an HTTP-like status on an exception, SDK response included."""
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    response = getattr(error, "response", None)
    if response is not None:
        value = getattr(response, "status_code", None) or getattr(response, "status", None)
        if isinstance(value, int):
            return value
    return None


def classify_error(error: BaseException) -> ErrorClass:
    """
    Classify an error for retry purposes.

    Errors without a status field are treated as transient. Malformed input
    and unknown response shapes never succeed on retry.
    """
    if isinstance(error, (ValidationException, ResponseShapeException)):
        return ErrorClass.NON_RETRYABLE
    status = extract_status_code(error)
    if status is None:
        return ErrorClass.TRANSIENT
    if status == 429:
        return ErrorClass.RATE_LIMIT
    if status in (408, 409) or status >= 500:
        return ErrorClass.TRANSIENT
    if 400 <= status < 500:
        return ErrorClass.NON_RETRYABLE
    return ErrorClass.TRANSIENT


class RetryExecutor:
    """
    Runs a zero-argument coroutine factory with bounded exponential backoff.

    On failure with attempts left, the error is classified, the executor sleeps
    for the current delay, doubles it and tries again. Non-retryable errors and
    the final failure propagate unchanged.

    Args:
        attempts: Total attempt budget (first call included).
        initial_delay: Delay in seconds before the first retry.
        sleep: Awaitable sleep function, injectable for tests.
    """

    def __init__(
        self,
        attempts: int = 3,
        initial_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.initial_delay = initial_delay
        self._sleep = sleep

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "remote call") -> T:
        delay = self.initial_delay
        for attempt in range(1, self.attempts + 1):
            try:
                return await operation()
            except Exception as e:
                error_class = classify_error(e)
                if error_class is ErrorClass.NON_RETRYABLE:
                    logger.error(f"{description} failed with non-retryable error: {e}")
                    raise
                if attempt >= self.attempts:
                    logger.error(f"{description}: all {self.attempts} attempts failed: {e}")
                    raise
                logger.warning(
                    f"{description}: attempt {attempt} failed ({error_class.value}): {e}. "
                    f"Retrying in {delay}s..."
                )
                await self._sleep(delay)
                delay *= 2


def convert_exceptions(exception_map: dict):
    """
    Decorator to convert exceptions to VidScore exceptions.

    VidScore exceptions pass through untouched. The HTTP status of the source
    error is carried over so retry classification still works.

    Args:
        exception_map: Dictionary mapping exception types to VidScore exception types
    """
    def _convert(e: Exception):
        if isinstance(e, VidScoreException):
            return None
        for source_exc, target_exc in exception_map.items():
            if isinstance(e, source_exc):
                details = {"original_exception": type(e).__name__}
                if issubclass(target_exc, ProviderException):
                    return target_exc(str(e), details=details, status_code=extract_status_code(e))
                return target_exc(str(e), details=details)
        return None

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                converted = _convert(e)
                if converted is not None:
                    raise converted from e
                raise

        return async_wrapper

    return decorator


class ErrorHandler:
    """Centralized error handling utilities."""

    @staticmethod
    def handle_provider_error(e: Exception, provider_name: str) -> ProviderException:
        """Convert provider-specific exceptions to ProviderException."""
        status_code = extract_status_code(e)
        error_details = {
            "provider": provider_name,
            "original_exception": type(e).__name__,
            "message": str(e),
            "status_code": status_code,
        }

        logger.error(f"Provider {provider_name} error: {e}")
        return ProviderException(
            f"Provider {provider_name} failed: {e}",
            error_code="PROVIDER_ERROR",
            details=error_details,
            status_code=status_code,
        )

    @staticmethod
    def public_message(e: BaseException) -> str:
        """Short caller-facing message; internals stay in the log."""
        if isinstance(e, VidScoreException):
            return str(e)
        return "Internal Server Error"


async def gather_settled(*aws: Awaitable[Any]) -> list:
    """
    Await every awaitable, then re-raise the first failure in argument order.

    Unlike a plain ``asyncio.gather``, no sibling is left running when one of
    them fails, so callers can release shared resources right after.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results
