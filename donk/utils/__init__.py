"""Utility functions for the tiling engine."""

from .image_utils import (
    IMAGE_DECODE_ERRORS,
    crop_region,
    decode_base64_payload,
    decode_image,
    encode_jpeg,
    is_data_uri,
    is_jpeg,
    load_image,
)

__all__ = [
    "IMAGE_DECODE_ERRORS",
    "crop_region",
    "decode_base64_payload",
    "decode_image",
    "encode_jpeg",
    "is_data_uri",
    "is_jpeg",
    "load_image",
]
