"""Model catalog, classifier strategies and the inference server client."""

from .base import (
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
    InstalledModel,
    ModelDisplayInfo,
    ModelNotFoundError,
    OutputFormat,
    ServerStatus,
    ServerUnreachableError,
    VisionClassifier,
)
from .catalog import (
    CapabilityVisionClassifier,
    PatternVisionClassifier,
    classify_vision,
    display_info,
    size_hint,
)
from .ollama_client import OllamaClient
from .registry import ClassifierRegistry

__all__ = [
    "CancellationToken",
    "CapabilityVisionClassifier",
    "ClassifierRegistry",
    "ErrorKind",
    "ExtractionCancelled",
    "ExtractionFailure",
    "ExtractionRequest",
    "ExtractionResult",
    "ExtractionSuccess",
    "ImageValidationError",
    "InferenceClient",
    "InferenceError",
    "InferenceTimeoutError",
    "InstalledModel",
    "ModelDisplayInfo",
    "ModelNotFoundError",
    "OllamaClient",
    "OutputFormat",
    "PatternVisionClassifier",
    "ServerStatus",
    "ServerUnreachableError",
    "VisionClassifier",
    "classify_vision",
    "display_info",
    "size_hint",
]
