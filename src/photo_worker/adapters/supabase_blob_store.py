"""Supabase Storage blob store."""

from dataclasses import dataclass

from supabase import Client

from photo_worker.services.processing import BlobStore

_THUMBNAIL_CACHE_CONTROL = "31536000"


@dataclass
class SupabaseBlobStore(BlobStore):
    """Blob store backed by Supabase Storage buckets."""

    client: Client

    def exists(self, bucket: str, path: str) -> bool:
        """Return true when the object exists in the bucket."""
        return bool(self.client.storage.from_(bucket).exists(path))

    def download(self, bucket: str, path: str) -> bytes:
        """Download an object's bytes."""
        return self.client.storage.from_(bucket).download(path)

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        """Upload bytes to a new object; existing objects are never overwritten."""
        self.client.storage.from_(bucket).upload(
            path,
            data,
            file_options={
                "content-type": content_type,
                "cache-control": _THUMBNAIL_CACHE_CONTROL,
                "upsert": "false",
            },
        )
