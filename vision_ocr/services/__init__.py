"""Service layer for status checks, model listings and text extraction."""

from .extractor import ChunkEvent, ExtractionEvent, ExtractionPipeline, ResultEvent
from .listing import ModelListingService
from .status import StatusChecker

__all__ = [
    "ChunkEvent",
    "ExtractionEvent",
    "ExtractionPipeline",
    "ModelListingService",
    "ResultEvent",
    "StatusChecker",
]
