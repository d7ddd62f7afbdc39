"""Thumbnail rendering with Pillow."""

from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageOps

from photo_worker.domain.media import TranscodedImage
from photo_worker.services.processing import ImageTranscoder


@dataclass
class PillowImageTranscoder(ImageTranscoder):
    """Reports native dimensions and renders an orientation-corrected JPEG."""

    max_size: int = 512
    quality: int = 80

    def transcode(self, data: bytes) -> TranscodedImage:
        """Return native dimensions and a thumbnail fitting inside max_size."""
        with Image.open(BytesIO(data)) as image:
            width, height = image.size
            rendition = ImageOps.exif_transpose(image)
            if rendition.mode != "RGB":
                rendition = rendition.convert("RGB")
            rendition.thumbnail(
                (self.max_size, self.max_size), Image.Resampling.LANCZOS
            )
            buffer = BytesIO()
            rendition.save(buffer, format="JPEG", quality=self.quality, optimize=True)
        return TranscodedImage(
            width=width,
            height=height,
            thumbnail_bytes=buffer.getvalue(),
            content_type="image/jpeg",
        )
