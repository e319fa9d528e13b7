"""Registry of strategies that decide which installed models accept images."""

from __future__ import annotations

import logging
from typing import Callable, Dict

from ..config import AppConfig
from .base import VisionClassifier
from .catalog import CapabilityVisionClassifier, PatternVisionClassifier

Factory = Callable[..., VisionClassifier]
logger = logging.getLogger(__name__)


class ClassifierRegistry:
    """Tracks available classifier factories and builds them on demand."""

    _factories: Dict[str, Factory] = {}
    _bootstrap_complete: bool = False

    @classmethod
    def register(cls, name: str, factory: Factory) -> None:
        """Register a classifier factory under the provided name."""
        cls._factories[name.lower()] = factory

    @classmethod
    def unregister(cls, name: str) -> None:
        cls._factories.pop(name.lower(), None)

    @classmethod
    def ensure_bootstrapped(cls) -> None:
        if cls._bootstrap_complete:
            return
        cls._factories.setdefault("patterns", PatternVisionClassifier)
        cls._factories.setdefault("capabilities", CapabilityVisionClassifier)
        cls._bootstrap_complete = True

    @classmethod
    def names(cls) -> list[str]:
        cls.ensure_bootstrapped()
        return sorted(cls._factories)

    @classmethod
    def get(cls, name: str) -> VisionClassifier:
        cls.ensure_bootstrapped()
        try:
            factory = cls._factories[name.lower()]
        except KeyError as exc:
            available = ", ".join(sorted(cls._factories))
            raise KeyError(f"Unknown classifier '{name}'. Available: {available}") from exc
        return factory()

    @classmethod
    def for_config(cls, config: AppConfig) -> VisionClassifier:
        """Return the classifier selected by ``config``, defaulting to name patterns."""
        try:
            return cls.get(config.classifier)
        except KeyError:
            logger.warning(
                "Classifier '%s' is not registered; falling back to name patterns.",
                config.classifier,
            )
            return cls.get("patterns")
