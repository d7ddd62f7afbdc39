"""Decoded units of work delivered by the push transport."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Job:
    """A photo to process plus the delivery attempt that carried it."""

    photo_id: int
    attempt: int
    delivery_id: str | None = None
    correlation_id: str | None = None


@dataclass(frozen=True)
class DecodeFailure:
    """A delivery that can never become a valid job."""

    reason: str
    detail: str
    attempt: int
    delivery_id: str | None = None
    correlation_id: str | None = None
