"""Command line entry point for the Vision OCR project."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from . import ExtractionPipeline, ModelListingService, OutputFormat, SettingsStore, StatusChecker
from .config import AppConfig, set_config
from .logging_setup import setup_logging
from .models.base import ExtractionRequest, ImageValidationError
from .models.ollama_client import OllamaClient
from .models.registry import ClassifierRegistry
from .utils.images import encode_image_file


def _dump(payload: object) -> None:
    json.dump(payload, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def _echo_chunk(text: str) -> None:
    sys.stderr.write(text)
    sys.stderr.flush()


def _load_config(path: Path | None) -> AppConfig:
    if path is not None:
        return AppConfig.load(path).with_environment()
    return SettingsStore().load()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Extract text from images with local vision models")
    parser.add_argument(
        "--input",
        "-i",
        type=Path,
        help="Image file to extract text from.",
    )
    parser.add_argument(
        "--model",
        help="Model identifier to use (defaults to the first recommended model).",
    )
    parser.add_argument(
        "--prompt",
        help="Override the extraction instruction.",
    )
    parser.add_argument(
        "--output-format",
        choices=[fmt.value for fmt in OutputFormat],
        default=OutputFormat.TEXT.value,
        help="How the extracted text is rendered.",
    )
    parser.add_argument(
        "--stream",
        action="store_true",
        help="Print progress and text fragments to stderr as they arrive.",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Print the inference server status and exit.",
    )
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="Print available vision models and exit.",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the HTTP API.",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address for --serve.")
    parser.add_argument("--port", type=int, default=8000, help="Port for --serve.")
    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration file to use instead of the user settings file.",
    )

    args = parser.parse_args(argv)

    config = _load_config(args.config)
    setup_logging(config.log_level)

    if args.serve:
        import uvicorn

        set_config(config)
        uvicorn.run("vision_ocr.api:app", host=args.host, port=args.port, log_level="info")
        return 0

    client = OllamaClient(config)
    checker = StatusChecker(client, ClassifierRegistry.for_config(config))

    if args.status:
        status = checker.check()
        _dump(status.as_dict())
        return 0 if status.is_running else 1

    if args.list_models:
        listing = ModelListingService(checker, preferred_family=config.preferred_family).list()
        _dump(listing.as_dict())
        return 0 if listing.status.is_running else 1

    if args.input is None:
        parser.error("--input is required unless --status, --list-models or --serve is given.")

    model = args.model
    if not model:
        listing = ModelListingService(checker, preferred_family=config.preferred_family).list()
        if not listing.models:
            reason = listing.status.error or "No vision models are installed."
            parser.exit(1, f"error: cannot pick a model: {reason}\n")
        model = listing.models[0].id

    try:
        image_base64 = encode_image_file(args.input)
    except (OSError, ImageValidationError) as exc:
        parser.exit(1, f"error: {exc}\n")

    request = ExtractionRequest(
        image_base64=image_base64,
        model=model,
        prompt=args.prompt or "",
        output_format=OutputFormat(args.output_format),
    )
    on_chunk = _echo_chunk if args.stream else None
    result = ExtractionPipeline(client, config).extract(request, on_chunk=on_chunk)
    if args.stream:
        sys.stderr.write("\n")
    _dump(result.as_dict())
    return 0 if result.succeeded else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
