"""Results returned by the image capabilities."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ImageMetadata:
    """Best-effort metadata extracted from original image bytes."""

    fields: dict[str, object] | None = None
    captured_at: datetime | None = None


@dataclass(frozen=True)
class TranscodedImage:
    """Native dimensions plus a bounded thumbnail rendition."""

    width: int | None
    height: int | None
    thumbnail_bytes: bytes
    content_type: str = "image/jpeg"
