"""Top-level package for the Vision OCR library."""

from .config import AppConfig
from .models.base import ExtractionRequest, OutputFormat
from .services.extractor import ExtractionPipeline
from .services.listing import ModelListingService
from .services.status import StatusChecker
from .settings_store import SettingsStore

__all__ = [
    "AppConfig",
    "ExtractionPipeline",
    "ExtractionRequest",
    "ModelListingService",
    "OutputFormat",
    "SettingsStore",
    "StatusChecker",
]
