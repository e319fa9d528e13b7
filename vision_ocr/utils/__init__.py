"""Utility helpers shared across the application."""

from .images import decode_image_payload, encode_image_file, strip_data_url
from .text import format_bytes, format_output

__all__ = [
    "decode_image_payload",
    "encode_image_file",
    "format_bytes",
    "format_output",
    "strip_data_url",
]
