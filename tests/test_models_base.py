"""Tests for the shared value types."""

from __future__ import annotations

import pytest

from vision_ocr.models.base import (
    CancellationToken,
    ErrorKind,
    ExtractionCancelled,
    ExtractionFailure,
    ExtractionSuccess,
    InstalledModel,
    ModelNotFoundError,
    ServerStatus,
)


def test_server_status_omits_missing_error():
    assert ServerStatus(is_running=True, models=["llava:7b"]).as_dict() == {
        "isRunning": True,
        "models": ["llava:7b"],
    }
    assert ServerStatus(is_running=False, error="down").as_dict()["error"] == "down"


def test_success_and_failure_share_the_legacy_shape():
    success = ExtractionSuccess("text", "gemma3:4b", 12, 34).as_dict()
    failure = ExtractionFailure(ErrorKind.TIMEOUT, "too slow", "gemma3:4b", 56).as_dict()

    assert set(success["metadata"]) == set(failure["metadata"])
    assert success["metadata"]["confidence"] == "High"
    assert failure["metadata"]["confidence"] == "Error: too slow"
    assert failure["metadata"]["processingTime"] == 56
    assert failure["error"] == {"kind": "timeout", "message": "too slow"}
    assert "error" not in success


def test_model_not_found_error_carries_hint():
    error = ModelNotFoundError("gemma3:12b")
    assert error.model == "gemma3:12b"
    assert error.hint == "ollama pull gemma3:12b"


def test_cancellation_token():
    token = CancellationToken()
    token.raise_if_cancelled()
    token.cancel()
    assert token.cancelled
    with pytest.raises(ExtractionCancelled):
        token.raise_if_cancelled()


@pytest.mark.parametrize(("size", "expected"), [(10, 10), (None, None), (-1, None), (True, None), ("5", None)])
def test_installed_model_size_bytes(size, expected):
    assert InstalledModel("llava:7b", {"size": size}).size_bytes == expected
