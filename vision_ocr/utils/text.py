"""Text rendering helpers for extraction output and model listings."""

from __future__ import annotations

import json

from ..models.base import OutputFormat

MARKDOWN_HEADING = "# Extracted Text"

_BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_output(text: str, output_format: OutputFormat) -> str:
    """Render extracted text in the requested output format."""
    if output_format == OutputFormat.JSON:
        return json.dumps(
            {
                "text": text,
                "lines": [line.strip() for line in text.split("\n") if line.strip()],
                "wordCount": len(text.split()),
            },
            indent=2,
            ensure_ascii=False,
        )
    if output_format == OutputFormat.MARKDOWN:
        return f"{MARKDOWN_HEADING}\n\n{text}"
    return text


def format_bytes(size: int | None, *, unknown: str = "Unknown") -> str:
    """Return a compact decimal size such as ``3.3GB``."""
    if size is None or size < 0:
        return unknown
    value = float(size)
    for unit in _BYTE_UNITS:
        if value < 1000 or unit == _BYTE_UNITS[-1]:
            if unit == "B":
                return f"{int(value)}B"
            return f"{value:.1f}{unit}"
        value /= 1000
    return unknown  # pragma: no cover - loop always returns
