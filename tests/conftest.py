"""Shared test fixtures."""

import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

import pytest

from photo_worker.config import Settings
from photo_worker.containers import AppContainer
from photo_worker.domain.media import ImageMetadata, TranscodedImage
from photo_worker.domain.photos import (
    CommitReceipt,
    PhotoRecord,
    PhotoStatus,
    ProcessedFields,
)
from photo_worker.services.processing import (
    BlobStore,
    ImageTranscoder,
    MetadataExtractor,
    PhotoProcessingService,
    PhotoRepository,
)

UPLOADED_AT = datetime(2024, 5, 6, 12, 0, tzinfo=UTC)
NOW = datetime(2024, 5, 6, 12, 0, 3, tzinfo=UTC)


def uploaded_record(photo_id: int = 42, **overrides: object) -> PhotoRecord:
    """Return an UPLOADED record whose original lives at b/uploads/x.jpg."""
    values: dict[str, object] = {
        "id": photo_id,
        "status": PhotoStatus.UPLOADED,
        "bucket": "b",
        "object_path": "uploads/x.jpg",
        "content_type": "image/jpeg",
        "size_bytes": 1024,
        "uploaded_at": UPLOADED_AT,
    }
    values.update(overrides)
    return PhotoRecord(**values)  # type: ignore[arg-type]


@dataclass
class InMemoryPhotoRepository(PhotoRepository):
    """In-memory photo repository with the same conditional updates as Postgres."""

    records: dict[int, PhotoRecord] = field(default_factory=dict)
    pinned_reads: dict[int, PhotoRecord] = field(default_factory=dict)
    commits: list[tuple[int, ProcessedFields, int]] = field(default_factory=list)
    errors: list[tuple[int, str, int]] = field(default_factory=list)
    reads: int = 0
    get_error: Exception | None = None
    commit_error: Exception | None = None
    mark_error_error: Exception | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def add(self, record: PhotoRecord) -> None:
        self.records[record.id] = record

    def get_photo(self, photo_id: int) -> PhotoRecord | None:
        self.reads += 1
        if self.get_error:
            raise self.get_error
        if photo_id in self.pinned_reads:
            return self.pinned_reads[photo_id]
        return self.records.get(photo_id)

    def commit_processed(
        self, photo_id: int, fields: ProcessedFields, attempt: int
    ) -> CommitReceipt | None:
        if self.commit_error:
            raise self.commit_error
        with self._lock:
            current = self.records.get(photo_id)
            if (
                current is None
                or current.status is not PhotoStatus.UPLOADED
                or current.uploaded_at is None
            ):
                return None
            processing_ms = round((NOW - current.uploaded_at).total_seconds() * 1000)
            self.records[photo_id] = replace(
                current,
                status=PhotoStatus.PROCESSED,
                width=fields.width,
                height=fields.height,
                taken_at=fields.taken_at,
                metadata=fields.metadata,
                thumb_bucket=fields.thumb_bucket,
                thumb_object_path=fields.thumb_object_path,
                processed_at=NOW,
                processing_ms=processing_ms,
                processed_attempt=max(current.processed_attempt or 0, attempt),
                error_reason=None,
                error_at=None,
            )
            self.commits.append((photo_id, fields, attempt))
            return CommitReceipt(processing_ms=processing_ms)

    def mark_error(self, photo_id: int, reason: str, attempt: int) -> int:
        if self.mark_error_error:
            raise self.mark_error_error
        with self._lock:
            current = self.records.get(photo_id)
            if current is None or current.status.is_terminal:
                return 0
            self.records[photo_id] = replace(
                current,
                status=PhotoStatus.ERROR,
                error_reason=reason[:300],
                error_at=NOW,
                processed_attempt=max(current.processed_attempt or 0, attempt),
            )
            self.errors.append((photo_id, reason, attempt))
            return 1

    def check_health(self) -> bool:
        if self.get_error:
            raise self.get_error
        return True


@dataclass
class FakeBlobStore(BlobStore):
    """Dict-backed blob store that records every call."""

    objects: dict[tuple[str, str], bytes] = field(default_factory=dict)
    uploads: list[tuple[str, str, bytes, str]] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    exists_error: Exception | None = None
    download_error: Exception | None = None
    upload_error: Exception | None = None

    def exists(self, bucket: str, path: str) -> bool:
        self.calls.append("exists")
        if self.exists_error:
            raise self.exists_error
        return (bucket, path) in self.objects

    def download(self, bucket: str, path: str) -> bytes:
        self.calls.append("download")
        if self.download_error:
            raise self.download_error
        return self.objects[(bucket, path)]

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        self.calls.append("upload")
        if self.upload_error:
            raise self.upload_error
        self.objects[(bucket, path)] = data
        self.uploads.append((bucket, path, data, content_type))


@dataclass
class FakeMetadataExtractor(MetadataExtractor):
    """Metadata extractor returning a fixed capture time."""

    metadata: ImageMetadata = field(
        default_factory=lambda: ImageMetadata(
            fields={"DateTimeOriginal": "2024:01:01 00:00:00", "Make": "Canon"},
            captured_at=datetime(2024, 1, 1, tzinfo=UTC),
        )
    )
    error: Exception | None = None

    def extract(self, data: bytes) -> ImageMetadata:
        if self.error:
            raise self.error
        return self.metadata


@dataclass
class FakeTranscoder(ImageTranscoder):
    """Transcoder reporting fixed dimensions."""

    width: int = 800
    height: int = 600
    thumbnail: bytes = b"thumbnail-bytes"
    error: Exception | None = None
    barrier: threading.Barrier | None = None

    def transcode(self, data: bytes) -> TranscodedImage:
        if self.barrier:
            self.barrier.wait(timeout=5)
        if self.error:
            raise self.error
        return TranscodedImage(
            width=self.width, height=self.height, thumbnail_bytes=self.thumbnail
        )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        max_attempts=3,
    )


@pytest.fixture
def photo_repository() -> InMemoryPhotoRepository:
    repository = InMemoryPhotoRepository()
    repository.add(uploaded_record())
    return repository


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore(objects={("b", "uploads/x.jpg"): b"original-bytes"})


@pytest.fixture
def metadata_extractor() -> FakeMetadataExtractor:
    return FakeMetadataExtractor()


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def processing_service(
    photo_repository: InMemoryPhotoRepository,
    blob_store: FakeBlobStore,
    metadata_extractor: FakeMetadataExtractor,
    transcoder: FakeTranscoder,
) -> PhotoProcessingService:
    return PhotoProcessingService(
        repository=photo_repository,
        blob_store=blob_store,
        metadata_extractor=metadata_extractor,
        transcoder=transcoder,
        max_attempts=3,
        clock=lambda: NOW,
    )


@pytest.fixture
def container(
    settings: Settings,
    photo_repository: InMemoryPhotoRepository,
    blob_store: FakeBlobStore,
    processing_service: PhotoProcessingService,
) -> AppContainer:
    return AppContainer(
        settings=settings,
        photo_repository=photo_repository,
        blob_store=blob_store,
        processing_service=processing_service,
    )
