"""
Image decoding helpers built on Pillow.

Legacy bitmaps ("BM" signature) go through a dedicated raw decode and are
re-encoded as JPEG before tiling; every other format is opened directly.
"""

import io
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from PIL import Image, UnidentifiedImageError

from sat_ingest.core.exceptions import InvalidImageError, ValidationError

BITMAP_SIGNATURE = b"BM"
BITMAP_REENCODE_FORMAT = "JPEG"


@dataclass(frozen=True)
class ImageInfo:
    width: int
    height: int
    format: Optional[str]
    byte_size: int

    @property
    def pixel_area(self) -> int:
        return self.width * self.height


def is_bitmap(data: bytes) -> bool:
    return data[:2] == BITMAP_SIGNATURE


def decode_bitmap(data: bytes) -> Image.Image:
    """Decode a BMP to raw RGBA pixels and re-encode them as JPEG."""
    with Image.open(io.BytesIO(data), formats=["BMP"]) as bitmap:
        width, height = bitmap.size
        raw = bitmap.convert("RGBA").tobytes("raw", "RGBA")

    pixels = Image.frombytes("RGBA", (width, height), raw)
    buffer = io.BytesIO()
    pixels.convert("RGB").save(buffer, format=BITMAP_REENCODE_FORMAT)
    pixels.close()

    buffer.seek(0)
    return Image.open(buffer)


@contextmanager
def open_source_image(data: bytes, load: bool = False) -> Iterator[Image.Image]:
    """
    Decode an image for tiling. The image is closed when the block exits,
    whether normally or through an exception.

    With load=True the pixel data is decoded up front, so a truncated or
    corrupt body fails here as InvalidImageError.
    """
    try:
        image = decode_bitmap(data) if is_bitmap(data) else Image.open(io.BytesIO(data))
    except Image.DecompressionBombError as e:
        raise ValidationError(f"Image exceeds the decoder pixel limit: {e}") from e
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise InvalidImageError(f"Cannot decode image: {e}") from e

    try:
        if load:
            load_pixels(image)
        yield image
    finally:
        image.close()


def load_pixels(image: Image.Image) -> None:
    try:
        image.load()
    except (OSError, ValueError, SyntaxError) as e:
        # Pillow plugins report broken chunks as SyntaxError
        raise InvalidImageError(f"Cannot decode image: {e}") from e


def read_image_info(data: bytes) -> ImageInfo:
    """Read dimensions and format without decoding pixel data."""
    with open_source_image(data) as image:
        width, height = image.size
        return ImageInfo(
            width=width or 0,
            height=height or 0,
            format=image.format,
            byte_size=len(data),
        )
