"""Processing pipeline that advances an uploaded photo to PROCESSED or ERROR."""

import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, TypeVar

from photo_worker.domain.jobs import Job
from photo_worker.domain.media import ImageMetadata, TranscodedImage
from photo_worker.domain.photos import (
    CommitReceipt,
    PhotoRecord,
    PhotoStatus,
    ProcessedFields,
)
from photo_worker.domain.processing import (
    ErrorKind,
    ProcessOutcome,
    ProcessResult,
    StepResult,
)

_logger = logging.getLogger(__name__)

T = TypeVar("T")

_REASON_LIMIT = 300
_ERROR_DETAIL_LIMIT = 600


class PhotoRepository(Protocol):
    """Persistence interface for photo records."""

    def get_photo(self, photo_id: int) -> PhotoRecord | None:
        """Return a photo record by id, if present."""

    def commit_processed(
        self, photo_id: int, fields: ProcessedFields, attempt: int
    ) -> CommitReceipt | None:
        """Mark an UPLOADED record PROCESSED; return None when nothing changed."""

    def mark_error(self, photo_id: int, reason: str, attempt: int) -> int:
        """Mark a non-terminal record ERROR and return the affected row count."""

    def check_health(self) -> bool:
        """Return true when the store answers a trivial query."""


class BlobStore(Protocol):
    """Interface for object storage keyed by bucket and path."""

    def exists(self, bucket: str, path: str) -> bool:
        """Return true when the object exists."""

    def download(self, bucket: str, path: str) -> bytes:
        """Return the object's bytes."""

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        """Store bytes at the given location."""


class MetadataExtractor(Protocol):
    """Interface for best-effort image metadata extraction."""

    def extract(self, data: bytes) -> ImageMetadata:
        """Return structured metadata and an optional capture timestamp."""


class ImageTranscoder(Protocol):
    """Interface for dimension probing and thumbnail rendering."""

    def transcode(self, data: bytes) -> TranscodedImage:
        """Return native dimensions and a bounded thumbnail."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def build_thumbnail_path(prefix: str, photo_id: int, now: datetime) -> str:
    """Return a fresh date-partitioned, random-suffixed thumbnail path."""
    return f"{prefix}/{now.date().isoformat()}/{photo_id}_{secrets.token_hex(8)}.jpg"


@dataclass
class PhotoProcessingService:
    """Runs one delivery of a photo job through the processing pipeline.

    The service is stateless between calls; all coordination happens through
    the conditional updates of the repository. Every mutation it performs is
    one of: the success commit, the ERROR for a record without a source
    location, or the ERROR written when retries are exhausted.
    """

    repository: PhotoRepository
    blob_store: BlobStore
    metadata_extractor: MetadataExtractor
    transcoder: ImageTranscoder
    max_attempts: int = 5
    thumbnail_prefix: str = "thumbnails"
    thumbnail_bucket: str | None = None
    default_bucket: str | None = None
    clock: Callable[[], datetime] = _utcnow

    def process(self, job: Job) -> ProcessResult:
        """Process a job and return what the transport should do with it."""
        _logger.info(
            "Photo processing started",
            extra={"context": _job_context(job, event="photo_process_start")},
        )
        try:
            return self._process(job)
        except Exception as exc:
            _logger.exception(
                "Unhandled error while processing photo",
                extra={"context": _job_context(job, event="photo_process_unhandled")},
            )
            return self._retry_or_fail(job, "unhandled_exception", str(exc))

    def _process(self, job: Job) -> ProcessResult:  # noqa: PLR0911
        started = time.perf_counter()

        loaded = self._run_step("load", self.repository.get_photo, job.photo_id)
        if not loaded.ok:
            return self._retry_step(job, "record_load_failed", loaded)
        record = loaded.value
        if record is None:
            _logger.warning(
                "Photo record not found",
                extra={"context": _job_context(job, event="photo_process_missing_row")},
            )
            return _ack(job, "missing_row", ErrorKind.STRUCTURAL)

        if record.status.is_terminal:
            _logger.info(
                "Photo already resolved, skipping",
                extra={
                    "context": _job_context(
                        job, event="photo_process_skip", status=record.status.value
                    )
                },
            )
            return _ack(job, "already_terminal", ErrorKind.ALREADY_RESOLVED)

        if record.status is not PhotoStatus.UPLOADED or record.uploaded_at is None:
            return self._retry_or_fail(
                job,
                "row_not_uploaded",
                f"status={record.status.value} uploaded_at={record.uploaded_at}",
            )

        bucket = record.bucket or self.default_bucket
        object_path = record.object_path
        if not bucket or not object_path:
            self.repository.mark_error(
                job.photo_id, "missing_object_location", job.attempt
            )
            _logger.warning(
                "Photo record has no source location",
                extra={
                    "context": _job_context(
                        job, event="photo_process_missing_location"
                    )
                },
            )
            return _ack(job, "missing_object_location", ErrorKind.DATA_INTEGRITY)

        timings: dict[str, int] = {}

        found = self._run_step("exists", self.blob_store.exists, bucket, object_path)
        timings["exists_ms"] = found.elapsed_ms
        if not found.ok:
            return self._retry_step(job, "object_exists_check_failed", found)
        if not found.value:
            return self._retry_or_fail(
                job,
                "object_missing",
                f"bucket={bucket} object={object_path} exists=false",
            )

        downloaded = self._run_step(
            "download", self.blob_store.download, bucket, object_path
        )
        timings["download_ms"] = downloaded.elapsed_ms
        if not downloaded.ok or downloaded.value is None:
            return self._retry_step(job, "download_failed", downloaded)
        original = downloaded.value

        extracted = self._run_step(
            "metadata",
            self.metadata_extractor.extract,
            original,
            error_kind=ErrorKind.CAPABILITY_DEGRADED,
        )
        timings["metadata_ms"] = extracted.elapsed_ms
        metadata = extracted.value if extracted.ok else None
        if metadata is None:
            _logger.warning(
                "Metadata extraction failed, continuing without metadata",
                extra={
                    "context": _job_context(
                        job,
                        event="photo_process_metadata_warning",
                        error=extracted.error,
                    )
                },
            )
            metadata = ImageMetadata()

        transcoded = self._run_step("transcode", self.transcoder.transcode, original)
        timings["transcode_ms"] = transcoded.elapsed_ms
        if not transcoded.ok or transcoded.value is None:
            return self._retry_step(job, "transcode_failed", transcoded)
        rendition = transcoded.value

        thumb_bucket = self.thumbnail_bucket or bucket
        thumb_path = build_thumbnail_path(
            self.thumbnail_prefix, job.photo_id, self.clock()
        )
        uploaded = self._run_step(
            "upload_thumbnail",
            self.blob_store.upload,
            thumb_bucket,
            thumb_path,
            rendition.thumbnail_bytes,
            rendition.content_type,
        )
        timings["upload_thumb_ms"] = uploaded.elapsed_ms
        if not uploaded.ok:
            return self._retry_step(job, "thumbnail_upload_failed", uploaded)

        fields = ProcessedFields(
            width=rendition.width,
            height=rendition.height,
            taken_at=metadata.captured_at,
            metadata=metadata.fields,
            thumb_bucket=thumb_bucket,
            thumb_object_path=thumb_path,
        )
        committed = self._run_step(
            "commit",
            self.repository.commit_processed,
            job.photo_id,
            fields,
            job.attempt,
        )
        timings["db_ms"] = committed.elapsed_ms
        if not committed.ok:
            return self._retry_step(job, "commit_failed", committed)
        receipt = committed.value
        if receipt is None:
            _logger.info(
                "Photo was resolved by another delivery",
                extra={
                    "context": _job_context(
                        job,
                        event="photo_process_noop",
                        reason="not_uploaded_or_already_processed",
                        thumb_object=thumb_path,
                    )
                },
            )
            return _ack(
                job, "not_uploaded_or_already_processed", ErrorKind.ALREADY_RESOLVED
            )

        worker_ms = _elapsed_ms(started)
        _logger.info(
            "Photo processed",
            extra={
                "context": _job_context(
                    job,
                    event="photo_processed",
                    worker_ms=worker_ms,
                    processing_ms=receipt.processing_ms,
                    timings_ms=timings,
                    width=fields.width,
                    height=fields.height,
                    taken_at=fields.taken_at.isoformat() if fields.taken_at else None,
                    bucket=bucket,
                    object=object_path,
                    thumb_bucket=thumb_bucket,
                    thumb_object=thumb_path,
                )
            },
        )
        return ProcessResult(
            outcome=ProcessOutcome.PROCESSED,
            photo_id=job.photo_id,
            attempt=job.attempt,
            processed=fields,
            processing_ms=receipt.processing_ms,
            timings_ms={**timings, "worker_ms": worker_ms},
        )

    def _run_step(
        self,
        step: str,
        call: Callable[..., T],
        *args: object,
        error_kind: ErrorKind = ErrorKind.TRANSIENT_DEPENDENCY,
    ) -> StepResult[T]:
        """Invoke a capability, converting any failure into a tagged result."""
        started = time.perf_counter()
        try:
            value = call(*args)
        except Exception as exc:
            return StepResult(
                step=step,
                error_kind=error_kind,
                error=f"{type(exc).__name__}: {exc}",
                elapsed_ms=_elapsed_ms(started),
            )
        return StepResult(step=step, value=value, elapsed_ms=_elapsed_ms(started))

    def _retry_step(
        self, job: Job, reason: str, result: StepResult[T]
    ) -> ProcessResult:
        return self._retry_or_fail(job, reason, result.error, step=result.step)

    def _retry_or_fail(
        self, job: Job, reason: str, error: str | None, step: str | None = None
    ) -> ProcessResult:
        """Request redelivery, or give up once the attempt cap is reached."""
        _logger.warning(
            "Retryable processing error",
            extra={
                "context": _job_context(
                    job,
                    event="photo_process_retryable_error",
                    reason=reason,
                    step=step,
                    error=_truncate(error or "", _ERROR_DETAIL_LIMIT),
                )
            },
        )
        if job.attempt < self.max_attempts:
            return ProcessResult(
                outcome=ProcessOutcome.RETRY,
                photo_id=job.photo_id,
                attempt=job.attempt,
                reason=reason,
                failed_step=step,
                error_kind=ErrorKind.TRANSIENT_DEPENDENCY,
            )

        stored_reason = _truncate(f"{reason}: {error}" if error else reason)
        try:
            self.repository.mark_error(job.photo_id, stored_reason, job.attempt)
        except Exception:
            _logger.exception(
                "Failed to record give-up, requesting redelivery",
                extra={
                    "context": _job_context(
                        job, event="photo_process_give_up_failed", reason=reason
                    )
                },
            )
            return ProcessResult(
                outcome=ProcessOutcome.RETRY,
                photo_id=job.photo_id,
                attempt=job.attempt,
                reason=reason,
                failed_step=step,
                error_kind=ErrorKind.TRANSIENT_DEPENDENCY,
            )
        _logger.error(
            "Giving up on photo after maximum attempts",
            extra={
                "context": _job_context(
                    job,
                    event="photo_process_give_up",
                    reason=reason,
                    max_attempts=self.max_attempts,
                )
            },
        )
        return ProcessResult(
            outcome=ProcessOutcome.ACK_NOOP,
            photo_id=job.photo_id,
            attempt=job.attempt,
            reason=reason,
            error_kind=ErrorKind.TRANSIENT_DEPENDENCY,
            failed_step=step,
        )


def _ack(job: Job, reason: str, error_kind: ErrorKind) -> ProcessResult:
    return ProcessResult(
        outcome=ProcessOutcome.ACK_NOOP,
        photo_id=job.photo_id,
        attempt=job.attempt,
        reason=reason,
        error_kind=error_kind,
    )


def _job_context(job: Job, event: str, **extra: object) -> dict[str, object]:
    return {
        "type": event,
        "photo_id": job.photo_id,
        "attempt": job.attempt,
        "delivery_id": job.delivery_id,
        "request_id": job.correlation_id,
        **extra,
    }


def _elapsed_ms(started: float) -> int:
    return round((time.perf_counter() - started) * 1000)


def _truncate(text: str, limit: int = _REASON_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"
