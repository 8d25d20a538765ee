"""Image codec utilities.

JPEG is the only raster format the engine writes. Decoding accepts anything
Pillow can read, always normalised to RGB.
"""

import base64
import binascii
import io
from pathlib import Path
from typing import Union

from PIL import Image

# Exceptions Pillow raises for unreadable, truncated or oversized image data
IMAGE_DECODE_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)

DATA_URI_PREFIX = b"data:"
JPEG_SIGNATURE = b"\xff\xd8\xff"


def _to_rgb(image: Image.Image) -> Image.Image:
    """Flatten any mode to RGB, compositing alpha onto white."""
    if image.mode == "RGB":
        return image
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        image = image.convert("RGBA")
        background = Image.new("RGB", image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[3])
        return background
    return image.convert("RGB")


def load_image(path: Union[str, Path]) -> Image.Image:
    """Load an image from file as RGB."""
    with Image.open(path) as image:
        image.load()
        return _to_rgb(image)


def decode_image(data: bytes) -> Image.Image:
    """Decode encoded image bytes into an RGB image.

    Raises one of IMAGE_DECODE_ERRORS when the bytes are not a readable image.
    """
    with Image.open(io.BytesIO(data)) as image:
        image.load()
        return _to_rgb(image)


def encode_jpeg(image: Image.Image, quality: int = 90) -> bytes:
    """Encode an image as JPEG bytes."""
    buffer = io.BytesIO()
    _to_rgb(image).save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def crop_region(image: Image.Image, box: tuple[int, int, int, int]) -> Image.Image:
    """Copy a (left, top, right, bottom) region out of an image.

    Pixels of the box that fall outside the image come back black.
    """
    return image.crop(box)


def is_data_uri(payload: bytes) -> bool:
    return payload.lstrip()[: len(DATA_URI_PREFIX)].lower() == DATA_URI_PREFIX


def is_jpeg(data: bytes) -> bool:
    """Check for the JPEG start-of-image marker."""
    return data[: len(JPEG_SIGNATURE)] == JPEG_SIGNATURE


def decode_base64_payload(payload: bytes) -> bytes:
    """Decode a base64 body, with or without a ``data:<mime>;base64,`` header.

    Raises:
        ValueError: If the header is not a base64 data URI or the body is not
            valid base64.
    """
    payload = payload.strip()
    if is_data_uri(payload):
        header, sep, body = payload.partition(b",")
        if not sep or not header.lower().endswith(b";base64"):
            raise ValueError("Data URI is not base64 encoded")
        payload = body
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e
