"""Value types, error hierarchy and interfaces shared by the extraction stack."""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Union

SUCCESS_CONFIDENCE = "High"


class OutputFormat(str, Enum):
    """Supported renderings of the extracted text."""

    TEXT = "text"
    JSON = "json"
    MARKDOWN = "markdown"


class ErrorKind(str, Enum):
    """Categories of extraction failure reported back to callers."""

    VALIDATION = "validation"
    UNREACHABLE = "unreachable"
    MODEL_NOT_FOUND = "model_not_found"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected"


# ----- Errors ---------------------------------------------------------------


class InferenceError(RuntimeError):
    """Raised when the inference server cannot produce output for a request."""


class ServerUnreachableError(InferenceError):
    """The inference server could not be contacted or answered with an error status."""


class ModelNotFoundError(InferenceError):
    """The server is up but does not have the requested model installed."""

    def __init__(self, model: str, detail: str | None = None) -> None:
        self.model = model
        self.hint = f"ollama pull {model}"
        message = f"Model '{model}' is not installed on the inference server."
        if detail:
            message = f"{message} ({detail})"
        super().__init__(f"{message} Install it with `{self.hint}`.")


class InferenceTimeoutError(InferenceError):
    """Generation took longer than the configured bound."""


class ExtractionCancelled(InferenceError):
    """The caller cancelled an in-flight generation."""


class ImageValidationError(ValueError):
    """The extraction request was rejected before any network call."""

    def __init__(self, message: str, *, too_large: bool = False) -> None:
        super().__init__(message)
        self.too_large = too_large


# ----- Cancellation ----------------------------------------------------------


class CancellationToken:
    """Thread-safe flag a caller sets to abort an in-flight generation."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ExtractionCancelled("Extraction was cancelled.")


# ----- Model metadata --------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ModelDisplayInfo:
    """User-facing description of a model identifier."""

    name: str
    description: str
    speed: str | None = None
    accuracy: str | None = None


@dataclass(slots=True)
class InstalledModel:
    """One entry of the inference server's installed model list."""

    identifier: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def size_bytes(self) -> int | None:
        size = self.metadata.get("size")
        if isinstance(size, (int, float)) and not isinstance(size, bool) and size >= 0:
            return int(size)
        return None


@dataclass(slots=True)
class ServerStatus:
    """Snapshot of inference server reachability and its vision models."""

    is_running: bool
    models: list[str] = field(default_factory=list)
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"isRunning": self.is_running, "models": list(self.models)}
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class ModelListEntry:
    """Display-ready row for a model selector."""

    id: str
    name: str
    description: str
    size: str
    disk_size: str = "Unknown"
    speed: str | None = None
    accuracy: str | None = None
    available: bool = True
    recommended: bool = False

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "size": self.size,
            "diskSize": self.disk_size,
            "available": self.available,
            "recommended": self.recommended,
        }
        if self.speed is not None:
            payload["speed"] = self.speed
        if self.accuracy is not None:
            payload["accuracy"] = self.accuracy
        return payload


@dataclass(slots=True)
class ModelListing:
    """Ranked model list together with the status it was derived from."""

    models: list[ModelListEntry]
    status: ServerStatus

    def as_dict(self) -> dict[str, Any]:
        return {
            "models": [entry.as_dict() for entry in self.models],
            "ollamaStatus": self.status.as_dict(),
        }


# ----- Extraction ------------------------------------------------------------


@dataclass(slots=True)
class ExtractionRequest:
    """Normalized extraction inputs.

    ``image_base64`` may carry a ``data:`` URL prefix. An empty ``prompt`` is
    replaced by the configured default instruction when the request runs.
    """

    image_base64: str
    model: str
    prompt: str = ""
    output_format: OutputFormat = OutputFormat.TEXT


@dataclass(slots=True)
class ExtractionSuccess:
    """Text produced by a completed extraction, already in the requested format."""

    extracted_text: str
    model: str
    processing_time_ms: int
    image_size_bytes: int
    confidence: str = SUCCESS_CONFIDENCE

    @property
    def succeeded(self) -> bool:
        return True

    def as_dict(self) -> dict[str, Any]:
        return {
            "status": "succeeded",
            "extractedText": self.extracted_text,
            "metadata": {
                "model": self.model,
                "processingTime": self.processing_time_ms,
                "imageSize": self.image_size_bytes,
                "confidence": self.confidence,
            },
        }


@dataclass(slots=True)
class ExtractionFailure:
    """Why an extraction failed, with the time spent and image size seen so far.

    ``too_large`` marks validation failures caused by the image size limit.
    """

    error_kind: ErrorKind
    message: str
    model: str
    processing_time_ms: int
    image_size_bytes: int = 0
    too_large: bool = False

    @property
    def succeeded(self) -> bool:
        return False

    def as_dict(self) -> dict[str, Any]:
        return {
            "status": "failed",
            "extractedText": "",
            "metadata": {
                "model": self.model,
                "processingTime": self.processing_time_ms,
                "imageSize": self.image_size_bytes,
                "confidence": f"Error: {self.message}",
            },
            "error": {"kind": self.error_kind.value, "message": self.message},
        }


ExtractionResult = Union[ExtractionSuccess, ExtractionFailure]


# ----- Interfaces ------------------------------------------------------------


class VisionClassifier(Protocol):
    """Decides whether an installed model accepts image input."""

    def is_vision_capable(
        self, identifier: str, metadata: Mapping[str, Any] | None = None
    ) -> bool:
        """Return True when ``identifier`` should be offered for extraction."""


class InferenceClient(Protocol):
    """Interface the services expect from an inference server client."""

    supports_streaming: bool

    def list_installed_models(self) -> list[InstalledModel]:
        """Return the models installed on the server, in server order."""

    def generate(
        self,
        model: str,
        prompt: str,
        images: Sequence[str],
        *,
        options: Mapping[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> str:
        """Run a single non-streaming generation and return the full text."""

    def stream_generate(
        self,
        model: str,
        prompt: str,
        images: Sequence[str],
        *,
        options: Mapping[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[str]:
        """Yield text fragments in arrival order."""
