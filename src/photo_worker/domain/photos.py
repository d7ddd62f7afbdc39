"""Domain models for photo records."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class PhotoStatus(StrEnum):
    """Lifecycle states of a photo record."""

    PENDING = "PENDING"
    UPLOADED = "UPLOADED"
    PROCESSED = "PROCESSED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        """Return true when the processing pipeline must not touch the record."""
        return self in {PhotoStatus.PROCESSED, PhotoStatus.ERROR}


@dataclass(frozen=True)
class PhotoRecord:
    """Represents a persisted photo row."""

    id: int
    status: PhotoStatus
    bucket: str | None = None
    object_path: str | None = None
    thumb_bucket: str | None = None
    thumb_object_path: str | None = None
    content_type: str | None = None
    size_bytes: int | None = None
    width: int | None = None
    height: int | None = None
    taken_at: datetime | None = None
    metadata: dict[str, object] | None = None
    created_at: datetime | None = None
    uploaded_at: datetime | None = None
    processed_at: datetime | None = None
    processing_ms: int | None = None
    error_at: datetime | None = None
    error_reason: str | None = None
    processed_attempt: int | None = None


@dataclass(frozen=True)
class ProcessedFields:
    """Values written to a record by a successful processing run."""

    width: int | None
    height: int | None
    taken_at: datetime | None
    metadata: dict[str, object] | None
    thumb_bucket: str
    thumb_object_path: str


@dataclass(frozen=True)
class CommitReceipt:
    """Row state returned by a successful processing commit."""

    processing_ms: int | None = None
