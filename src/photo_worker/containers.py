"""Dependency container wiring for the application."""

from dataclasses import dataclass

from supabase import ClientOptions, create_client

from photo_worker.adapters.pillow_metadata_extractor import PillowMetadataExtractor
from photo_worker.adapters.pillow_transcoder import PillowImageTranscoder
from photo_worker.adapters.supabase_blob_store import SupabaseBlobStore
from photo_worker.adapters.supabase_photo_repository import SupabasePhotoRepository
from photo_worker.config import Settings
from photo_worker.services.processing import (
    BlobStore,
    PhotoProcessingService,
    PhotoRepository,
)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    photo_repository: PhotoRepository
    blob_store: BlobStore
    processing_service: PhotoProcessingService


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url,
        resolved_settings.supabase_service_key,
        options=ClientOptions(
            postgrest_client_timeout=resolved_settings.database_timeout_seconds,
            storage_client_timeout=resolved_settings.storage_timeout_seconds,
        ),
    )
    photo_repository = SupabasePhotoRepository(supabase_client)
    blob_store = SupabaseBlobStore(supabase_client)
    processing_service = PhotoProcessingService(
        repository=photo_repository,
        blob_store=blob_store,
        metadata_extractor=PillowMetadataExtractor(),
        transcoder=PillowImageTranscoder(
            max_size=resolved_settings.thumbnail_max_size,
            quality=resolved_settings.thumbnail_quality,
        ),
        max_attempts=resolved_settings.max_attempts,
        thumbnail_prefix=resolved_settings.thumbnail_prefix,
        thumbnail_bucket=resolved_settings.thumbnail_bucket,
        default_bucket=resolved_settings.default_bucket,
    )
    return AppContainer(
        settings=resolved_settings,
        photo_repository=photo_repository,
        blob_store=blob_store,
        processing_service=processing_service,
    )
