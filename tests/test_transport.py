"""Retry and backoff behaviour of the generation transport."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from conftest import ScriptedBackend  # noqa: E402
from forge.errors import (  # noqa: E402
    FailureKind,
    GenerationExhaustedError,
    NonRetryableBackendError,
    TransientBackendError,
)
from forge.schemas import GenerationParameters, GenerationRequest, TextPart  # noqa: E402
from forge.transport import backoff_delay, generate_with_retry, next_delay  # noqa: E402


def _request() -> GenerationRequest:
    return GenerationRequest(
        model="models/test",
        system_instruction="Be brief.",
        generation=GenerationParameters(),
        parts=[TextPart(text="hello")],
    )


@pytest.mark.asyncio
async def test_success_on_first_attempt_does_not_sleep(sleep_recorder) -> None:
    backend = ScriptedBackend(["done"])
    text = await generate_with_retry(backend, _request(), max_attempts=3, base_delay=1.0, sleep=sleep_recorder)
    assert text == "done"
    assert backend.calls == 1
    assert sleep_recorder.delays == []


@pytest.mark.asyncio
async def test_rate_limited_twice_then_success(sleep_recorder) -> None:
    backend = ScriptedBackend([TransientBackendError(), TransientBackendError(), "# PRD"])
    text = await generate_with_retry(backend, _request(), max_attempts=3, base_delay=1.0, sleep=sleep_recorder)
    assert text == "# PRD"
    assert backend.calls == 3
    assert sleep_recorder.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_unavailable_is_retried_like_rate_limiting(sleep_recorder) -> None:
    backend = ScriptedBackend([TransientBackendError(FailureKind.UNAVAILABLE), "ok"])
    assert await generate_with_retry(backend, _request(), max_attempts=3, base_delay=0.5, sleep=sleep_recorder) == "ok"
    assert sleep_recorder.delays == [0.5]


@pytest.mark.asyncio
async def test_exhausted_budget_raises_with_last_error(sleep_recorder) -> None:
    last = TransientBackendError(message="quota")
    backend = ScriptedBackend([TransientBackendError(), TransientBackendError(), last])
    with pytest.raises(GenerationExhaustedError) as excinfo:
        await generate_with_retry(backend, _request(), max_attempts=3, base_delay=1.0, sleep=sleep_recorder)
    assert excinfo.value.attempts == 3
    assert excinfo.value.__cause__ is last
    assert backend.calls == 3
    assert sleep_recorder.delays == [1.0, 2.0]


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", [FailureKind.AUTH, FailureKind.POLICY, FailureKind.MALFORMED])
async def test_non_retryable_fails_immediately(kind, sleep_recorder) -> None:
    error = NonRetryableBackendError(kind)
    backend = ScriptedBackend([error, "never reached"])
    with pytest.raises(NonRetryableBackendError) as excinfo:
        await generate_with_retry(backend, _request(), max_attempts=3, base_delay=1.0, sleep=sleep_recorder)
    assert excinfo.value is error
    assert backend.calls == 1
    assert sleep_recorder.delays == []


@pytest.mark.asyncio
async def test_unknown_exceptions_are_not_retried(sleep_recorder) -> None:
    backend = ScriptedBackend([RuntimeError("boom")])
    with pytest.raises(RuntimeError):
        await generate_with_retry(backend, _request(), max_attempts=3, sleep=sleep_recorder)
    assert backend.calls == 1


@pytest.mark.asyncio
async def test_single_attempt_budget_reports_exhaustion(sleep_recorder) -> None:
    backend = ScriptedBackend([TransientBackendError()])
    with pytest.raises(GenerationExhaustedError):
        await generate_with_retry(backend, _request(), max_attempts=1, sleep=sleep_recorder)
    assert sleep_recorder.delays == []


@pytest.mark.asyncio
async def test_zero_attempts_is_rejected(sleep_recorder) -> None:
    with pytest.raises(ValueError):
        await generate_with_retry(ScriptedBackend(), _request(), max_attempts=0, sleep=sleep_recorder)


def test_backoff_doubles_from_base() -> None:
    assert [backoff_delay(n, 1.0) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]
    assert backoff_delay(2, 0.25) == 1.0


@pytest.mark.parametrize(
    ("attempt", "kind", "expected"),
    [
        (0, FailureKind.RATE_LIMITED, 1.0),
        (1, FailureKind.UNAVAILABLE, 2.0),
        (2, FailureKind.RATE_LIMITED, None),
        (0, FailureKind.AUTH, None),
        (0, FailureKind.POLICY, None),
        (0, None, None),
    ],
)
def test_next_delay(attempt, kind, expected) -> None:
    assert next_delay(attempt, kind, max_attempts=3, base_delay=1.0) == expected


def test_transient_error_rejects_permanent_kind() -> None:
    with pytest.raises(ValueError):
        TransientBackendError(FailureKind.AUTH)
    with pytest.raises(ValueError):
        NonRetryableBackendError(FailureKind.RATE_LIMITED)
