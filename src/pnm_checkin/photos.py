"""Headshot normalization before upload."""

from __future__ import annotations

import base64
import io

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import PhotoNormalizationError

MAX_DIMENSION = 800
MAX_BYTES = 512 * 1024
START_QUALITY = 85
MIN_QUALITY = 40
QUALITY_STEP = 10


def normalize_photo(
    content: bytes,
    *,
    max_dimension: int = MAX_DIMENSION,
    max_bytes: int = MAX_BYTES,
) -> bytes:
    """Return a JPEG no larger than ``max_dimension`` on either side.

    Quality is stepped down until the encoded size fits ``max_bytes``; if the
    floor quality still does not fit, the smallest encoding is returned.
    """
    try:
        with Image.open(io.BytesIO(content)) as source:
            image = ImageOps.exif_transpose(source)
            if image.mode != "RGB":
                image = image.convert("RGB")
            image.thumbnail((max_dimension, max_dimension))
            quality = START_QUALITY
            while True:
                buffer = io.BytesIO()
                image.save(buffer, format="JPEG", quality=quality, optimize=True)
                encoded = buffer.getvalue()
                if len(encoded) <= max_bytes or quality <= MIN_QUALITY:
                    return encoded
                quality = max(MIN_QUALITY, quality - QUALITY_STEP)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise PhotoNormalizationError(f"Unable to process photo: {exc}") from exc


def encode_photo(content: bytes) -> str:
    """Base64 text without a data-URL prefix."""
    return base64.b64encode(content).decode("ascii")


def prepare_photo(content: bytes) -> str:
    return encode_photo(normalize_photo(content))
