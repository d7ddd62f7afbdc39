"""Outcomes and error taxonomy for the processing pipeline."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Generic, TypeVar

from photo_worker.domain.photos import ProcessedFields

T = TypeVar("T")


class ErrorKind(StrEnum):
    """Classification of everything that can go wrong for a delivery."""

    STRUCTURAL = "structural"
    DATA_INTEGRITY = "data_integrity"
    TRANSIENT_DEPENDENCY = "transient_dependency"
    ALREADY_RESOLVED = "already_resolved"
    CAPABILITY_DEGRADED = "capability_degraded"


class ProcessOutcome(StrEnum):
    """What the transport should do with a delivery."""

    PROCESSED = "processed"
    RETRY = "retry"
    ACK_NOOP = "ack_noop"

    @property
    def should_redeliver(self) -> bool:
        return self is ProcessOutcome.RETRY


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """Result of a single capability call."""

    step: str
    value: T | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error_kind is None


@dataclass(frozen=True)
class ProcessResult:
    """Final result of processing one job."""

    outcome: ProcessOutcome
    photo_id: int
    attempt: int
    reason: str | None = None
    error_kind: ErrorKind | None = None
    failed_step: str | None = None
    processed: ProcessedFields | None = None
    processing_ms: int | None = None
    timings_ms: dict[str, int] = field(default_factory=dict)
