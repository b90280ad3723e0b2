"""
Retry logic for the remote table service.

Transient service errors are retried with bounded exponential backoff;
everything else propagates on the first failure.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from tablekit.core.config_manager import RetryConfig
from tablekit.core.logging_config import log_with_context

from ..exceptions import is_transient_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff settings."""
    max_attempts: int = 4
    initial_backoff: float = 1.0  # seconds
    max_backoff: float = 5.0  # seconds
    backoff_multiplier: float = 2.0

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            initial_backoff=config.initial_backoff,
            max_backoff=config.max_backoff,
            backoff_multiplier=config.backoff_multiplier,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before the retry that follows ``attempt`` (1-based)."""
        return min(self.initial_backoff * (self.backoff_multiplier ** (attempt - 1)), self.max_backoff)


def call_with_retry(
    policy: RetryPolicy,
    operation_name: str,
    func: Callable[..., T],
    *args: Any,
    retry_on: Optional[Callable[[Exception], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any
) -> T:
    """
    Call ``func`` and retry transient failures.

    Args:
        policy: Attempt count and backoff settings
        operation_name: Name used in log messages
        func: Callable to invoke
        retry_on: Custom function to determine if an error is retryable
        sleep: Delay function

    Raises:
        The last error once it is not retryable or attempts are exhausted
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            should_retry = retry_on(e) if retry_on else is_transient_error(e)
            if not should_retry or attempt >= policy.max_attempts:
                if should_retry:
                    log_with_context(
                        logger, logging.ERROR,
                        f"Operation failed after {attempt} attempts: {operation_name}",
                        operation_name=operation_name,
                        attempt=attempt,
                        error_type=type(e).__name__,
                    )
                raise

            delay = policy.delay_for(attempt)
            log_with_context(
                logger, logging.WARNING,
                f"Operation failed, retrying: {operation_name}",
                operation_name=operation_name,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                error_type=type(e).__name__,
                error_message=str(e),
                retry_delay_seconds=delay,
            )
            sleep(delay)
            continue

        if attempt > 1:
            logger.info(f"Operation succeeded after {attempt} attempts: {operation_name}")
        return result
