"""Downscale outfit photos to bounded JPEG payloads."""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from models.errors import DecodeError

LOGGER = logging.getLogger(__name__)

JPEG_MIME_TYPE = "image/jpeg"
DEFAULT_MAX_WIDTH = 1024
DEFAULT_QUALITY = 0.85
THUMBNAIL_MAX_WIDTH = 400
THUMBNAIL_QUALITY = 0.75

ImageSource = Union[bytes, bytearray, str, Path, BinaryIO]


@dataclass(frozen=True)
class NormalizedImage:
    """JPEG payload encoded as raw base64 (no ``data:`` prefix)."""

    base64: str
    mime_type: str
    width: int
    height: int

    @property
    def byte_size(self) -> int:
        return len(base64.b64decode(self.base64))

    def as_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


def target_size(width: int, height: int, max_width: int) -> tuple[int, int]:
    """Width-bounded size keeping aspect ratio; never upscales."""

    scale = min(1.0, max_width / width)
    return max(1, round(width * scale)), max(1, round(height * scale))


def _pillow_quality(quality: float) -> int:
    if not 0 < quality <= 1:
        raise ValueError("quality must be within (0, 1]")
    return max(1, min(95, round(quality * 100)))


def _open(source: ImageSource) -> Image.Image:
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    try:
        image = Image.open(source)
        image.load()
    except Image.DecompressionBombError as exc:
        raise DecodeError(f"image has too many pixels to process: {exc}") from exc
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise DecodeError(f"could not decode image: {exc}") from exc
    return ImageOps.exif_transpose(image)


def _to_rgb(image: Image.Image) -> Image.Image:
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def normalize_image(
    source: ImageSource,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: float = DEFAULT_QUALITY,
) -> NormalizedImage:
    """Downscale ``source`` to at most ``max_width`` pixels wide and encode as JPEG.

    Raises:
        DecodeError: if ``source`` is not a decodable image.
    """

    if max_width < 1:
        raise ValueError("max_width must be positive")
    image = _open(source)
    width, height = image.size
    size = target_size(width, height, max_width)
    rgb = _to_rgb(image)
    if size != (width, height):
        rgb = rgb.resize(size, Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    rgb.save(buffer, format="JPEG", quality=_pillow_quality(quality), optimize=True)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    LOGGER.debug(
        "Normalized image",
        extra={"source_size": [width, height], "output_size": list(size), "bytes": buffer.tell()},
    )
    return NormalizedImage(base64=encoded, mime_type=JPEG_MIME_TYPE, width=size[0], height=size[1])


def make_thumbnail(
    source: ImageSource,
    max_width: int = THUMBNAIL_MAX_WIDTH,
    quality: float = THUMBNAIL_QUALITY,
) -> str:
    """Small inline ``data:`` URL stored with the rating row."""

    return normalize_image(source, max_width=max_width, quality=quality).as_data_url()


__all__ = [
    "NormalizedImage",
    "normalize_image",
    "make_thumbnail",
    "target_size",
    "JPEG_MIME_TYPE",
]
