"""Core service orchestrating text extraction from a single image."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass
from typing import Union

from ..config import AppConfig
from ..models.base import (
    CancellationToken,
    ErrorKind,
    ExtractionCancelled,
    ExtractionFailure,
    ExtractionRequest,
    ExtractionResult,
    ExtractionSuccess,
    ImageValidationError,
    InferenceClient,
    InferenceError,
    InferenceTimeoutError,
    ModelNotFoundError,
    ServerUnreachableError,
)
from ..utils.images import decode_image_payload, encode_image_bytes
from ..utils.text import format_output

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], None]

START_MESSAGE = "Starting text extraction...\n"


@dataclass(slots=True, frozen=True)
class ChunkEvent:
    """Progress notification or a fragment of generated text."""

    text: str


@dataclass(slots=True, frozen=True)
class ResultEvent:
    """Terminal event carrying the authoritative extraction result."""

    result: ExtractionResult


ExtractionEvent = Union[ChunkEvent, ResultEvent]


class ExtractionPipeline:
    """Validates a request, runs it against the inference server and shapes the result.

    Each call moves through validation, dispatch, streaming and finalizing.
    Failures at any stage are returned as :class:`ExtractionFailure` values;
    partial text already forwarded to listeners is never merged into a failed
    result.
    """

    def __init__(self, client: InferenceClient, config: AppConfig | None = None) -> None:
        self._client = client
        self._config = config or AppConfig()

    def validate(self, request: ExtractionRequest) -> bytes:
        """Return the decoded image or raise :class:`ImageValidationError`."""
        if not request.model.strip():
            raise ImageValidationError("A model identifier is required.")
        data = decode_image_payload(request.image_base64)
        limit = self._config.max_image_bytes
        if len(data) > limit:
            raise ImageValidationError(
                f"Image size exceeds {limit / (1024 * 1024):g}MB limit "
                f"({len(data)} bytes received).",
                too_large=True,
            )
        return data

    def extract(
        self,
        request: ExtractionRequest,
        *,
        on_chunk: ChunkCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ExtractionResult:
        """Run the extraction to completion, forwarding progress to ``on_chunk``.

        A listener that raises is treated like any other failure inside the
        run: the error is raised at the point the fragment was produced and
        comes back as an :class:`ExtractionFailure`.
        """
        events = self.stream(request, cancel_token=cancel_token)
        for event in events:
            if isinstance(event, ResultEvent):
                return event.result
            if on_chunk is None:
                continue
            try:
                on_chunk(event.text)
            except Exception as exc:
                final = events.throw(exc)
                events.close()
                if isinstance(final, ResultEvent):
                    return final.result
                raise
        raise RuntimeError("Extraction finished without a result.")  # pragma: no cover

    def stream(
        self,
        request: ExtractionRequest,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> Generator[ExtractionEvent, None, None]:
        """Yield progress and text fragments, then exactly one :class:`ResultEvent`."""
        started = time.perf_counter()
        model = request.model.strip()
        image_size = 0
        try:
            data = self.validate(request)
            image_size = len(data)
            logger.info("Processing image (%.2fKB) with model: %s", image_size / 1024, model)

            yield ChunkEvent(START_MESSAGE)
            prompt = request.prompt.strip() or self._config.default_prompt
            text = yield from self._generate(
                model, prompt, encode_image_bytes(data), cancel_token
            )

            formatted = format_output(text, request.output_format)
            elapsed = _elapsed_ms(started)
            yield ChunkEvent(f"\nExtraction complete! Processing time: {elapsed}ms")
            result: ExtractionResult = ExtractionSuccess(
                extracted_text=formatted,
                model=model,
                processing_time_ms=elapsed,
                image_size_bytes=image_size,
            )
        except ImageValidationError as exc:
            logger.warning("Rejected extraction request for %s: %s", model or "<none>", exc)
            result = self._failure(ErrorKind.VALIDATION, exc, model, started, image_size)
        except ModelNotFoundError as exc:
            logger.warning("%s", exc)
            result = self._failure(ErrorKind.MODEL_NOT_FOUND, exc, model, started, image_size)
        except ServerUnreachableError as exc:
            logger.warning("Inference server unreachable: %s", exc)
            result = self._failure(ErrorKind.UNREACHABLE, exc, model, started, image_size)
        except InferenceTimeoutError as exc:
            logger.warning("Extraction with %s timed out: %s", model, exc)
            result = self._failure(ErrorKind.TIMEOUT, exc, model, started, image_size)
        except ExtractionCancelled as exc:
            logger.info("Extraction with %s cancelled after %dms", model, _elapsed_ms(started))
            result = self._failure(ErrorKind.CANCELLED, exc, model, started, image_size)
        except InferenceError as exc:
            logger.warning("Extraction with %s failed: %s", model, exc)
            result = self._failure(ErrorKind.UNEXPECTED, exc, model, started, image_size)
        except Exception as exc:
            logger.exception("Error processing image with model %s", model)
            result = self._failure(ErrorKind.UNEXPECTED, exc, model, started, image_size)
        yield ResultEvent(result)

    def _generate(
        self,
        model: str,
        prompt: str,
        image: str,
        cancel_token: CancellationToken | None,
    ) -> Generator[ChunkEvent, None, str]:
        if not self._client.supports_streaming:
            return self._client.generate(model, prompt, [image], cancel_token=cancel_token)

        parts: list[str] = []
        for fragment in self._client.stream_generate(
            model, prompt, [image], cancel_token=cancel_token
        ):
            parts.append(fragment)
            yield ChunkEvent(fragment)
        return "".join(parts)

    @staticmethod
    def _failure(
        kind: ErrorKind,
        exc: BaseException,
        model: str,
        started: float,
        image_size: int,
    ) -> ExtractionFailure:
        message = str(exc) or "Failed to extract text from image"
        return ExtractionFailure(
            error_kind=kind,
            message=message,
            model=model,
            processing_time_ms=_elapsed_ms(started),
            image_size_bytes=image_size,
            too_large=getattr(exc, "too_large", False),
        )


def _elapsed_ms(started: float) -> int:
    return max(0, int(round((time.perf_counter() - started) * 1000)))
