"""Inference server reachability checks."""

from __future__ import annotations

import logging

from ..models.base import (
    InferenceClient,
    InferenceError,
    InstalledModel,
    ServerStatus,
    VisionClassifier,
)
from ..models.catalog import PatternVisionClassifier
from ..models.ollama_client import UNREACHABLE_MESSAGE

logger = logging.getLogger(__name__)


class StatusChecker:
    """Reports whether the server is up and which installed models accept images.

    Neither ``check`` nor ``survey`` raises: every failure is returned as a
    non-running status with an empty model list.
    """

    def __init__(
        self,
        client: InferenceClient,
        classifier: VisionClassifier | None = None,
    ) -> None:
        self._client = client
        self._classifier = classifier or PatternVisionClassifier()

    def check(self) -> ServerStatus:
        status, _ = self.survey()
        return status

    def survey(self) -> tuple[ServerStatus, list[InstalledModel]]:
        """Return the status together with the vision-capable installed models."""
        try:
            installed = self._client.list_installed_models()
        except InferenceError as exc:
            logger.info("Inference server is not available: %s", exc)
            status = ServerStatus(is_running=False, error=str(exc) or UNREACHABLE_MESSAGE)
            return status, []
        except Exception as exc:  # pragma: no cover - surfaced through the status value
            logger.exception("Unexpected failure while checking the inference server")
            status = ServerStatus(is_running=False, error=f"{UNREACHABLE_MESSAGE} ({exc})")
            return status, []

        vision_models = [
            model
            for model in installed
            if self._classifier.is_vision_capable(model.identifier, model.metadata)
        ]
        logger.debug(
            "%d of %d installed model(s) accept images.", len(vision_models), len(installed)
        )
        status = ServerStatus(
            is_running=True,
            models=[model.identifier for model in vision_models],
        )
        return status, vision_models
