"""Async retry strategies built on tenacity.

The catalog fetcher awaits its HTTP call through an :class:`IRetryStrategy`
so tests can swap in a zero-wait policy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

T = TypeVar("T")


class IRetryStrategy(ABC):
    """Policy deciding how often, and how patiently, a coroutine is re-awaited."""

    @abstractmethod
    async def execute(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Await ``func(*args, **kwargs)`` under this policy.

        Returns:
            Whatever the first successful attempt returned.

        Raises:
            Exception: The error of the final attempt, unchanged.
        """
        raise NotImplementedError("Subclasses must implement this method.")


class ExponentialBackoffStrategy(IRetryStrategy):
    """Randomized exponential backoff between attempts.

    Only errors matching ``retry_on`` trigger another attempt; anything else
    propagates from the attempt that raised it.

    Attributes:
        min_wait (float): Lower bound, in seconds, of each pause.
        max_wait (float): Upper bound, in seconds, of each pause.
        max_attempts (int): Attempts in total, including the first.
        retry_on (Tuple[Type[BaseException], ...]): Error types that are retried.
    """

    def __init__(
        self,
        min_wait: float = 1,
        max_wait: float = 60,
        max_attempts: int = 3,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.max_attempts = max_attempts
        self.retry_on = retry_on

    async def execute(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        retrying = AsyncRetrying(
            wait=wait_random_exponential(min=self.min_wait, max=self.max_wait),
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception_type(self.retry_on),
            reraise=True,
        )
        return await retrying(func, *args, **kwargs)


async def run_with_backoff(
    func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
) -> T:
    """Await ``func`` with the default backoff policy.

    Example:
        payload = await run_with_backoff(client.get, "https://models.dev/api.json")
    """
    return await ExponentialBackoffStrategy().execute(func, *args, **kwargs)


__all__ = ["IRetryStrategy", "ExponentialBackoffStrategy", "run_with_backoff"]
