"""HTTP API: extraction in JSON and event-stream modes, status and listings."""

from __future__ import annotations

import base64
import json

import pytest
from fastapi.testclient import TestClient

from vision_ocr.api import (
    _get_listing_service,
    _get_pipeline,
    _get_status_checker,
    app,
)
from vision_ocr.config import AppConfig
from vision_ocr.models.base import (
    InstalledModel,
    ModelNotFoundError,
    ServerUnreachableError,
)
from vision_ocr.services.extractor import ExtractionPipeline
from vision_ocr.services.listing import ModelListingService
from vision_ocr.services.status import StatusChecker

IMAGE = base64.b64encode(b"\xff\xd8\xff\xe0fake-jpeg").decode("ascii")


class FakeClient:
    def __init__(self, *, text="", fragments=None, error=None, streaming=False, models=None):
        self.text = text
        self.fragments = fragments or []
        self.error = error
        self.supports_streaming = streaming
        self.models = models or []
        self.generate_calls = 0

    def list_installed_models(self):
        if self.error is not None:
            raise self.error
        return list(self.models)

    def generate(self, model, prompt, images, *, options=None, cancel_token=None):
        self.generate_calls += 1
        if self.error is not None:
            raise self.error
        return self.text

    def stream_generate(self, model, prompt, images, *, options=None, cancel_token=None):
        self.generate_calls += 1
        yield from self.fragments
        if self.error is not None:
            raise self.error


@pytest.fixture
def install():
    def _install(client: FakeClient, config: AppConfig | None = None) -> TestClient:
        config = config or AppConfig()
        checker = StatusChecker(client)
        app.dependency_overrides[_get_pipeline] = lambda: ExtractionPipeline(client, config)
        app.dependency_overrides[_get_status_checker] = lambda: checker
        app.dependency_overrides[_get_listing_service] = lambda: ModelListingService(checker)
        return TestClient(app)

    yield _install
    app.dependency_overrides.clear()


def _parse_events(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


def test_extract_text_json_mode(install):
    http = install(FakeClient(text="INVOICE #123"))

    response = http.post(
        "/api/extract-text",
        json={"model": "gemma3:4b", "imageBase64": IMAGE, "prompt": "Extract all text"},
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["extractedText"] == "INVOICE #123"
    assert payload["metadata"]["model"] == "gemma3:4b"
    assert payload["metadata"]["confidence"] == "High"
    assert payload["metadata"]["imageSize"] == len(base64.b64decode(IMAGE))


def test_extract_text_applies_output_format(install):
    http = install(FakeClient(text="Hello"))

    response = http.post(
        "/api/extract-text",
        json={"model": "gemma3:4b", "imageBase64": IMAGE, "outputFormat": "markdown"},
    )

    assert response.json()["extractedText"] == "# Extracted Text\n\nHello"


def test_extract_text_oversized_image_is_413(install):
    client = FakeClient(text="never")
    http = install(client, AppConfig(max_image_bytes=4))

    response = http.post("/api/extract-text", json={"model": "gemma3:4b", "imageBase64": IMAGE})

    assert response.status_code == 413
    assert response.json()["error"]["kind"] == "validation"
    assert client.generate_calls == 0


def test_extract_text_malformed_image_is_400(install):
    http = install(FakeClient(text="never"))
    response = http.post("/api/extract-text", json={"model": "gemma3:4b", "imageBase64": "%%%"})
    assert response.status_code == 400


def test_extract_text_rejects_unknown_output_format(install):
    http = install(FakeClient(text="never"))
    response = http.post(
        "/api/extract-text",
        json={"model": "gemma3:4b", "imageBase64": IMAGE, "outputFormat": "pdf"},
    )
    assert response.status_code == 422


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (ModelNotFoundError("llava:34b"), 404),
        (ServerUnreachableError("Cannot connect to Ollama."), 424),
        (RuntimeError("boom"), 500),
    ],
)
def test_extract_text_failures_map_to_status_codes(install, error, status_code):
    http = install(FakeClient(error=error))

    response = http.post("/api/extract-text", json={"model": "llava:34b", "imageBase64": IMAGE})

    assert response.status_code == status_code
    payload = response.json()
    assert payload["extractedText"] == ""
    assert payload["metadata"]["confidence"].startswith("Error: ")


def test_extract_text_event_stream(install):
    http = install(FakeClient(fragments=["INVOICE", " #123"], streaming=True))

    response = http.post(
        "/api/extract-text?stream=true",
        json={"model": "gemma3:4b", "imageBase64": IMAGE},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _parse_events(response.text)
    kinds = [kind for kind, _ in events]
    assert kinds[-1] == "result"
    assert kinds.count("result") == 1
    chunks = [data["text"] for kind, data in events if kind == "chunk"]
    assert chunks[:3] == ["Starting text extraction...\n", "INVOICE", " #123"]
    assert events[-1][1]["extractedText"] == "INVOICE #123"


def test_extract_text_event_stream_via_accept_header(install):
    http = install(FakeClient(text="ok"))

    response = http.post(
        "/api/extract-text",
        json={"model": "gemma3:4b", "imageBase64": IMAGE},
        headers={"Accept": "text/event-stream"},
    )

    assert response.headers["content-type"].startswith("text/event-stream")
    assert _parse_events(response.text)[-1][1]["status"] == "succeeded"


def test_extract_text_event_stream_reports_mid_stream_failure(install):
    client = FakeClient(
        fragments=["partial"],
        error=ServerUnreachableError("Connection to Ollama was lost mid-stream"),
        streaming=True,
    )
    http = install(client)

    response = http.post(
        "/api/extract-text?stream=true",
        json={"model": "gemma3:4b", "imageBase64": IMAGE},
    )

    assert response.status_code == 200
    kind, result = _parse_events(response.text)[-1]
    assert kind == "result"
    assert result["status"] == "failed"
    assert result["extractedText"] == ""
    assert result["error"]["kind"] == "unreachable"


def test_extract_text_event_stream_validates_before_streaming(install):
    http = install(FakeClient(text="never"), AppConfig(max_image_bytes=4))

    response = http.post(
        "/api/extract-text?stream=true",
        json={"model": "gemma3:4b", "imageBase64": IMAGE},
    )

    assert response.status_code == 413
    assert response.headers["content-type"].startswith("application/json")


@pytest.mark.parametrize("method", ["get", "post"])
def test_check_ollama(install, method):
    http = install(FakeClient(models=[InstalledModel("llava:7b"), InstalledModel("mistral:7b")]))

    response = getattr(http, method)("/api/check-ollama")

    assert response.status_code == 200
    assert response.json() == {"isRunning": True, "models": ["llava:7b"]}


def test_check_ollama_unreachable(install):
    http = install(FakeClient(error=ServerUnreachableError("Cannot connect to Ollama.")))

    payload = http.get("/api/check-ollama").json()

    assert payload["isRunning"] is False
    assert payload["models"] == []
    assert payload["error"] == "Cannot connect to Ollama."


def test_list_models(install):
    http = install(FakeClient(models=[InstalledModel("llava:7b"), InstalledModel("gemma3:4b")]))

    payload = http.get("/api/models").json()

    assert [model["id"] for model in payload["models"]] == ["gemma3:4b", "llava:7b"]
    assert payload["models"][0]["recommended"] is True
    assert payload["ollamaStatus"]["isRunning"] is True


def test_list_models_unreachable(install):
    http = install(FakeClient(error=ServerUnreachableError("Cannot connect to Ollama.")))

    payload = http.get("/api/models").json()

    assert payload["models"] == []
    assert payload["ollamaStatus"]["isRunning"] is False


@pytest.mark.parametrize("path", ["/api/extract-text", "/api/extract-text?stream=true"])
def test_extract_text_decodes_image_once(install, monkeypatch, path):
    import vision_ocr.services.extractor as extractor

    calls = []
    decode = extractor.decode_image_payload

    def counting_decode(payload):
        calls.append(payload)
        return decode(payload)

    monkeypatch.setattr(extractor, "decode_image_payload", counting_decode)
    http = install(FakeClient(text="ok", fragments=["ok"], streaming="stream" in path))

    response = http.post(path, json={"model": "gemma3:4b", "imageBase64": IMAGE})

    assert response.status_code == 200
    assert len(calls) == 1


def test_extract_text_rejection_reports_elapsed_time_and_kind(install):
    http = install(FakeClient(text="never"), AppConfig(max_image_bytes=4))

    response = http.post("/api/extract-text", json={"model": "gemma3:4b", "imageBase64": IMAGE})

    payload = response.json()
    assert response.status_code == 413
    assert isinstance(payload["metadata"]["processingTime"], int)
    assert payload["metadata"]["processingTime"] >= 0
    assert payload["metadata"]["confidence"].startswith("Error: Image size exceeds")


def test_extract_text_missing_model_is_400(install):
    http = install(FakeClient(text="never"))
    response = http.post("/api/extract-text", json={"model": " ", "imageBase64": IMAGE})
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "validation"
