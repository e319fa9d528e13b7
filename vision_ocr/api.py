"""HTTP API: text extraction, server status and model listings."""

from __future__ import annotations

import itertools
import json
from collections.abc import Generator, Iterator
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from .config import get_config
from .models.base import (
    CancellationToken,
    ErrorKind,
    ExtractionFailure,
    ExtractionRequest,
    ExtractionResult,
    OutputFormat,
)
from .models.ollama_client import OllamaClient
from .models.registry import ClassifierRegistry
from .services.extractor import ChunkEvent, ExtractionEvent, ExtractionPipeline, ResultEvent
from .services.listing import ModelListingService
from .services.status import StatusChecker

EVENT_STREAM = "text/event-stream"

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.MODEL_NOT_FOUND: 404,
    ErrorKind.UNREACHABLE: 424,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.CANCELLED: 500,
    ErrorKind.UNEXPECTED: 500,
}


@lru_cache(maxsize=1)
def _get_client() -> OllamaClient:
    return OllamaClient(get_config())


@lru_cache(maxsize=1)
def _get_pipeline() -> ExtractionPipeline:
    return ExtractionPipeline(_get_client(), get_config())


@lru_cache(maxsize=1)
def _get_status_checker() -> StatusChecker:
    return StatusChecker(_get_client(), ClassifierRegistry.for_config(get_config()))


@lru_cache(maxsize=1)
def _get_listing_service() -> ModelListingService:
    return ModelListingService(
        _get_status_checker(),
        preferred_family=get_config().preferred_family,
    )


app = FastAPI(title="Vision OCR")


class ExtractTextIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    model: str
    image_base64: str = Field(alias="imageBase64")
    prompt: str | None = None
    output_format: OutputFormat = Field(default=OutputFormat.TEXT, alias="outputFormat")

    def to_request(self) -> ExtractionRequest:
        return ExtractionRequest(
            image_base64=self.image_base64,
            model=self.model,
            prompt=self.prompt or "",
            output_format=self.output_format,
        )


def _sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def _event_stream(
    first: ExtractionEvent,
    events: Generator[ExtractionEvent, None, None],
    token: CancellationToken,
) -> Iterator[str]:
    try:
        for event in itertools.chain([first], events):
            if isinstance(event, ChunkEvent):
                yield _sse("chunk", {"text": event.text})
            else:
                yield _sse("result", event.result.as_dict())
    finally:
        # Closing the generator early means the client went away.
        token.cancel()
        events.close()


def _result_response(result: ExtractionResult):
    if isinstance(result, ExtractionFailure):
        status_code = 413 if result.too_large else _STATUS_BY_KIND[result.error_kind]
        return JSONResponse(result.as_dict(), status_code=status_code)
    return result.as_dict()


@app.post("/api/extract-text")
def extract_text(
    body: ExtractTextIn,
    request: Request,
    stream: bool = Query(False, description="Return a server-sent event stream."),
    pipeline: ExtractionPipeline = Depends(_get_pipeline),
):
    """Extract text from a base64 image with the selected model."""
    extraction = body.to_request()
    if not (stream or EVENT_STREAM in request.headers.get("accept", "")):
        return _result_response(pipeline.extract(extraction))

    token = CancellationToken()
    events = pipeline.stream(extraction, cancel_token=token)
    # Validation runs before the first event, so a rejected image is answered
    # with a plain status code instead of an event stream.
    first = next(events)
    if isinstance(first, ResultEvent):
        events.close()
        return _result_response(first.result)
    return StreamingResponse(
        _event_stream(first, events, token),
        media_type=EVENT_STREAM,
        headers={"Cache-Control": "no-cache"},
    )


@app.api_route("/api/check-ollama", methods=["GET", "POST"])
def check_ollama(checker: StatusChecker = Depends(_get_status_checker)) -> dict[str, Any]:
    """Report whether the inference server is running and its vision models."""
    return checker.check().as_dict()


@app.get("/api/models")
def list_models(service: ModelListingService = Depends(_get_listing_service)) -> dict[str, Any]:
    """Ranked vision models plus the status they were derived from."""
    return service.list().as_dict()
