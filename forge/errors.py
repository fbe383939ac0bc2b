"""Error taxonomy for ingestion, generation, and persistence."""

from __future__ import annotations

from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .schemas import Stage


class FailureKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    AUTH = "auth"
    POLICY = "policy"
    MALFORMED = "malformed"

    @property
    def retryable(self) -> bool:
        return self in (FailureKind.RATE_LIMITED, FailureKind.UNAVAILABLE)


class ForgeError(Exception):
    """Base class for every error raised by the pipeline."""


class IngestError(ForgeError):
    """An uploaded file could not be read into a research document."""


class PrerequisiteMissingError(ForgeError):
    """A stage was requested before the output it depends on exists."""

    def __init__(self, stage: "Stage", prerequisite: Optional["Stage"], message: str = "") -> None:
        self.stage = stage
        self.prerequisite = prerequisite
        if not message:
            if prerequisite is None:
                message = f"Stage '{stage.value}' needs a non-empty idea input."
            else:
                message = (
                    f"Stage '{stage.value}' requires output from stage '{prerequisite.value}'."
                )
        super().__init__(message)


class GenerationInProgressError(ForgeError):
    """A generation is already running for this project."""


class BackendError(ForgeError):
    """A typed failure reported by the generative backend."""

    def __init__(self, kind: FailureKind, message: str = "") -> None:
        self.kind = kind
        super().__init__(message or kind.value)


class TransientBackendError(BackendError):
    """Rate limiting or temporary unavailability; safe to retry."""

    def __init__(self, kind: FailureKind = FailureKind.RATE_LIMITED, message: str = "") -> None:
        if not kind.retryable:
            raise ValueError(f"{kind.value} is not a transient failure kind")
        super().__init__(kind, message)


class NonRetryableBackendError(BackendError):
    """Authentication, policy, or malformed-request failures."""

    def __init__(self, kind: FailureKind = FailureKind.MALFORMED, message: str = "") -> None:
        if kind.retryable:
            raise ValueError(f"{kind.value} is a transient failure kind")
        super().__init__(kind, message)


class GenerationExhaustedError(ForgeError):
    """Every attempt in the retry budget failed with a transient error."""

    def __init__(self, attempts: int, message: str = "") -> None:
        self.attempts = attempts
        super().__init__(message or f"Generation failed after {attempts} attempts.")


class PersistenceError(ForgeError):
    """The document store could not be read or written."""


class NoActiveProjectError(ForgeError):
    """A project operation was requested before any project was loaded."""


class GenerationDiscardedError(ForgeError):
    """The project was reset while a stage was generating; the output was dropped."""
