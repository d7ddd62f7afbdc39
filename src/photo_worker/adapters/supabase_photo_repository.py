"""Supabase-backed photo repository."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from photo_worker.domain.photos import (
    CommitReceipt,
    PhotoRecord,
    PhotoStatus,
    ProcessedFields,
)
from photo_worker.services.processing import PhotoRepository

_PHOTO_COLUMNS = (
    "id, status, gcs_bucket, gcs_object, thumb_bucket, thumb_object, content_type, "
    "size_bytes, width, height, taken_at, exif_json, created_at, uploaded_at, "
    "processed_at, processing_ms, error_at, error_reason, processed_attempt"
)


@dataclass
class SupabasePhotoRepository(PhotoRepository):
    """Supabase implementation for photo record persistence.

    Both writes go through Postgres functions (see ``supabase/migrations``) so
    the status guard and ``greatest(processed_attempt, attempt)`` are evaluated
    atomically with the update.
    """

    client: Client

    def get_photo(self, photo_id: int) -> PhotoRecord | None:
        """Return a photo row by id, if present."""
        response = (
            self.client.table("photos")
            .select(_PHOTO_COLUMNS)
            .eq("id", photo_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def commit_processed(
        self, photo_id: int, fields: ProcessedFields, attempt: int
    ) -> CommitReceipt | None:
        """Commit processing results if the row is still UPLOADED."""
        response = self.client.rpc(
            "commit_photo_processing",
            {
                "p_photo_id": photo_id,
                "p_exif_json": fields.metadata,
                "p_taken_at": fields.taken_at.isoformat() if fields.taken_at else None,
                "p_width": fields.width,
                "p_height": fields.height,
                "p_thumb_bucket": fields.thumb_bucket,
                "p_thumb_object": fields.thumb_object_path,
                "p_attempt": attempt,
            },
        ).execute()
        if not response.data:
            return None
        return CommitReceipt(
            processing_ms=_optional_int(response.data[0].get("processing_ms"))
        )

    def mark_error(self, photo_id: int, reason: str, attempt: int) -> int:
        """Mark a non-terminal row as ERROR."""
        response = self.client.rpc(
            "mark_photo_error",
            {"p_photo_id": photo_id, "p_reason": reason, "p_attempt": attempt},
        ).execute()
        return len(response.data or [])

    def check_health(self) -> bool:
        """Run a trivial query against the photos table."""
        self.client.table("photos").select("id").limit(1).execute()
        return True


def _parse_row(row: dict[str, object]) -> PhotoRecord:
    exif_json = row.get("exif_json")
    return PhotoRecord(
        id=int(row["id"]),
        status=PhotoStatus(row["status"]),
        bucket=_optional_str(row.get("gcs_bucket")),
        object_path=_optional_str(row.get("gcs_object")),
        thumb_bucket=_optional_str(row.get("thumb_bucket")),
        thumb_object_path=_optional_str(row.get("thumb_object")),
        content_type=_optional_str(row.get("content_type")),
        size_bytes=_optional_int(row.get("size_bytes")),
        width=_optional_int(row.get("width")),
        height=_optional_int(row.get("height")),
        taken_at=_parse_timestamp(row.get("taken_at")),
        metadata=exif_json if isinstance(exif_json, dict) else None,
        created_at=_parse_timestamp(row.get("created_at")),
        uploaded_at=_parse_timestamp(row.get("uploaded_at")),
        processed_at=_parse_timestamp(row.get("processed_at")),
        processing_ms=_optional_int(row.get("processing_ms")),
        error_at=_parse_timestamp(row.get("error_at")),
        error_reason=_optional_str(row.get("error_reason")),
        processed_attempt=_optional_int(row.get("processed_attempt")),
    )


def _parse_timestamp(raw: object) -> datetime | None:
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return None


def _optional_str(raw: object) -> str | None:
    return str(raw) if raw else None


def _optional_int(raw: object) -> int | None:
    return int(raw) if raw is not None else None
