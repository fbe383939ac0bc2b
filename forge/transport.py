"""Retry-wrapped transport for single generation requests."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
)

from .errors import BackendError, FailureKind, GenerationExhaustedError
from .schemas import GenerationRequest
from .utils import configure_logging, env_float, env_int

configure_logging()
logger = logging.getLogger(__name__)

MAX_ATTEMPTS = env_int("GENERATION_MAX_ATTEMPTS", 3)
BASE_DELAY = env_float("GENERATION_RETRY_BASE_DELAY", 1.0)

SleepFn = Callable[[float], Awaitable[None]]


class GenerationBackend(Protocol):
    async def generate(self, request: GenerationRequest) -> str:
        ...


def backoff_delay(attempt: int, base_delay: float = BASE_DELAY) -> float:
    """Delay after the failed 0-based `attempt`: base, 2*base, 4*base, ..."""
    return base_delay * (2**attempt)


def next_delay(
    attempt: int,
    kind: Optional[FailureKind],
    max_attempts: int = MAX_ATTEMPTS,
    base_delay: float = BASE_DELAY,
) -> Optional[float]:
    """Decide whether a failed attempt is retried and after how long.

    `attempt` is the 0-based index of the attempt that just failed. Returns None
    when the failure is not transient or the attempt budget is spent.
    """
    if kind is None or not kind.retryable:
        return None
    if attempt + 1 >= max_attempts:
        return None
    return backoff_delay(attempt, base_delay)


def failure_kind(exc: Optional[BaseException]) -> Optional[FailureKind]:
    if isinstance(exc, BackendError):
        return exc.kind
    return None


def _is_transient(exc: BaseException) -> bool:
    kind = failure_kind(exc)
    return kind is not None and kind.retryable


async def generate_with_retry(
    backend: GenerationBackend,
    request: GenerationRequest,
    *,
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    sleep: SleepFn = asyncio.sleep,
) -> str:
    """Run one generation call, retrying transient failures with exponential backoff."""
    attempts = MAX_ATTEMPTS if max_attempts is None else max_attempts
    delay_base = BASE_DELAY if base_delay is None else base_delay
    if attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def _wait(retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = next_delay(retry_state.attempt_number - 1, failure_kind(exc), attempts, delay_base)
        return delay or 0.0

    retrying = AsyncRetrying(
        sleep=sleep,
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(attempts),
        wait=_wait,
        before_sleep=before_sleep_log(logger, logging.WARNING),
    )
    try:
        async for attempt in retrying:
            with attempt:
                return await backend.generate(request)
    except RetryError as exc:
        last_error = exc.last_attempt.exception()
        logger.error(
            "Generation with %s exhausted %d attempts: %s", request.model, attempts, last_error
        )
        raise GenerationExhaustedError(attempts) from last_error
    raise RuntimeError("retry loop finished without a result")  # pragma: no cover
