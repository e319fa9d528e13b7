"""Tests for the classifier registry."""

from __future__ import annotations

import pytest

from vision_ocr.config import AppConfig
from vision_ocr.models.catalog import CapabilityVisionClassifier, PatternVisionClassifier
from vision_ocr.models.registry import ClassifierRegistry


class DummyClassifier:
    def is_vision_capable(self, identifier, metadata=None):
        return identifier == "dummy"


@pytest.fixture(autouse=True)
def reset_registry():
    original = ClassifierRegistry._factories.copy()
    original_bootstrapped = ClassifierRegistry._bootstrap_complete
    yield
    ClassifierRegistry._factories = original
    ClassifierRegistry._bootstrap_complete = original_bootstrapped


def test_builtin_strategies_are_registered():
    ClassifierRegistry._factories.clear()
    ClassifierRegistry._bootstrap_complete = False

    assert ClassifierRegistry.names() == ["capabilities", "patterns"]
    assert isinstance(ClassifierRegistry.get("patterns"), PatternVisionClassifier)
    assert isinstance(ClassifierRegistry.get("Capabilities"), CapabilityVisionClassifier)


def test_register_and_get_custom_strategy():
    ClassifierRegistry.register("dummy", DummyClassifier)

    classifier = ClassifierRegistry.get("dummy")

    assert classifier.is_vision_capable("dummy")
    assert not classifier.is_vision_capable("llava:7b")


def test_get_unknown_strategy_raises():
    with pytest.raises(KeyError):
        ClassifierRegistry.get("missing")


def test_unregister_removes_strategy():
    ClassifierRegistry.register("dummy", DummyClassifier)
    ClassifierRegistry.unregister("dummy")
    assert "dummy" not in ClassifierRegistry.names()


def test_for_config_selects_configured_strategy():
    classifier = ClassifierRegistry.for_config(AppConfig(classifier="capabilities"))
    assert isinstance(classifier, CapabilityVisionClassifier)


def test_for_config_falls_back_to_patterns():
    classifier = ClassifierRegistry.for_config(AppConfig(classifier="nonexistent"))
    assert isinstance(classifier, PatternVisionClassifier)
