"""EXIF metadata extraction with Pillow."""

import logging
import math
import struct
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from io import BytesIO

from PIL import ExifTags, Image
from PIL.TiffImagePlugin import IFDRational

from photo_worker.domain.media import ImageMetadata
from photo_worker.services.processing import MetadataExtractor

_logger = logging.getLogger(__name__)

# Capture time candidates in priority order, each with its offset tag.
_CAPTURE_TAGS = (
    ("DateTimeOriginal", "OffsetTimeOriginal"),
    ("DateTimeDigitized", "OffsetTimeDigitized"),
    ("DateTime", "OffsetTime"),
)
_EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"
_SKIPPED_TAGS = {"MakerNote", "PrintImageMatching"}
# Errors Pillow raises on corrupt or hostile EXIF payloads.
_UNREADABLE_ERRORS = (
    OSError,
    ValueError,
    SyntaxError,
    KeyError,
    TypeError,
    IndexError,
    struct.error,
    Image.DecompressionBombError,
)


@dataclass
class PillowMetadataExtractor(MetadataExtractor):
    """Reads the base, Exif and GPS IFDs of an image.

    Images that cannot be decoded yield empty metadata; a missing capture
    timestamp is not an error.
    """

    def extract(self, data: bytes) -> ImageMetadata:
        """Return EXIF tags as a JSON-safe dict plus the capture timestamp."""
        try:
            with Image.open(BytesIO(data)) as image:
                exif = image.getexif()
                tags = _named_tags(exif.items(), ExifTags.TAGS)
                exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
                tags.update(_named_tags(exif_ifd.items(), ExifTags.TAGS))
                gps = exif.get_ifd(ExifTags.IFD.GPSInfo)
                if gps:
                    tags["GPSInfo"] = _named_tags(gps.items(), ExifTags.GPSTAGS)
        except _UNREADABLE_ERRORS as exc:
            _logger.warning(
                "Unreadable image metadata", extra={"context": {"error": str(exc)}}
            )
            return ImageMetadata()
        if not tags:
            return ImageMetadata()
        return ImageMetadata(fields=tags, captured_at=_captured_at(tags))


def _named_tags(
    items: Iterable[tuple[int, object]], names: dict[int, str]
) -> dict[str, object]:
    tags: dict[str, object] = {}
    for tag_id, value in items:
        name = names.get(tag_id, str(tag_id))
        if name in _SKIPPED_TAGS:
            continue
        tags[name] = _json_safe(value)
    return tags


def _json_safe(value: object) -> object:  # noqa: PLR0911
    """Convert EXIF values into something jsonb can store."""
    if isinstance(value, IFDRational):
        if value.denominator == 0:
            return None
        return float(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore").replace("\x00", "").strip()
    if isinstance(value, str):
        return value.replace("\x00", "").strip()
    if isinstance(value, bool | int | None):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, tuple | list):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _json_safe(item) for key, item in value.items()}
    return str(value)


def _captured_at(tags: dict[str, object]) -> datetime | None:
    for datetime_tag, offset_tag in _CAPTURE_TAGS:
        raw = tags.get(datetime_tag)
        if not isinstance(raw, str) or not raw:
            continue
        try:
            parsed = datetime.strptime(raw, _EXIF_DATETIME_FORMAT)
        except ValueError:
            continue
        return parsed.replace(tzinfo=_parse_offset(tags.get(offset_tag)))
    return None


def _parse_offset(raw: object) -> tzinfo:
    if isinstance(raw, str) and raw:
        try:
            parsed = datetime.strptime(raw, "%z").tzinfo
        except ValueError:
            return UTC
        if parsed is not None:
            return parsed
    return UTC
