"""Helpers for turning image inputs into base64 payloads for the inference server."""

from __future__ import annotations

import base64
import binascii
import io
from pathlib import Path

from PIL import Image

from ..models.base import ImageValidationError

# Formats Ollama accepts as-is; anything else is re-encoded to PNG.
_PASSTHROUGH_FORMATS = frozenset({"JPEG", "PNG"})


def strip_data_url(payload: str) -> str:
    """Drop a ``data:image/...;base64,`` prefix if present."""
    cleaned = payload.strip()
    if cleaned.startswith("data:") and "," in cleaned:
        return cleaned.split(",", 1)[1]
    return cleaned


def decode_image_payload(payload: str) -> bytes:
    """Decode a base64 (or data URL) image payload, rejecting malformed input."""
    cleaned = "".join(strip_data_url(payload).split())
    if not cleaned:
        raise ImageValidationError("No image data was provided.")
    try:
        data = base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageValidationError("Image data is not valid base64.") from exc
    if not data:
        raise ImageValidationError("No image data was provided.")
    return data


def encode_image_bytes(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def encode_image_file(path: Path) -> str:
    """Read an image file and return a base64 payload suitable for the HTTP API."""
    data = path.read_bytes()
    try:
        with Image.open(io.BytesIO(data)) as image:
            if image.format in _PASSTHROUGH_FORMATS:
                return encode_image_bytes(data)
            buffer = io.BytesIO()
            converted = image.convert("RGBA" if "A" in image.getbands() else "RGB")
            converted.save(buffer, format="PNG", optimize=True)
    except (OSError, Image.DecompressionBombError) as exc:
        raise ImageValidationError(f"{path} is not a readable image: {exc}") from exc
    return encode_image_bytes(buffer.getvalue())
