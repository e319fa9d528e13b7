"""HTTP client for the Ollama inference server."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import closing
from typing import Any

import requests
from requests import Response, Session

from ..config import AppConfig
from .base import (
    CancellationToken,
    ExtractionCancelled,
    InferenceError,
    InferenceTimeoutError,
    InstalledModel,
    ModelNotFoundError,
    ServerUnreachableError,
)

logger = logging.getLogger(__name__)

UNREACHABLE_MESSAGE = "Cannot connect to Ollama. Make sure it is running."


class OllamaClient:
    """Thin wrapper over the ``/api/tags`` and ``/api/generate`` endpoints.

    No retries happen at this layer. ``supports_streaming`` mirrors the
    configured transport so callers can stay agnostic of it.
    """

    def __init__(self, config: AppConfig | None = None, *, session: Session | None = None) -> None:
        self._config = config or AppConfig()
        self._session = session
        self.supports_streaming = self._config.stream

    @property
    def base_url(self) -> str:
        return self._config.server_address

    @property
    def session(self) -> Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    # ----- Discovery -------------------------------------------------------

    def list_installed_models(self) -> list[InstalledModel]:
        endpoint = f"{self.base_url}/api/tags"
        timeout = self._config.status_timeout
        try:
            response = self.session.get(endpoint, timeout=timeout)
        except requests.exceptions.Timeout as exc:
            raise ServerUnreachableError(
                f"Ollama did not respond within {timeout:g}s. {UNREACHABLE_MESSAGE}"
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise ServerUnreachableError(
                f"{UNREACHABLE_MESSAGE} ({self.base_url}: {exc})"
            ) from exc

        if response.status_code >= 400:
            raise ServerUnreachableError(
                f"Ollama returned HTTP {response.status_code} when listing models. "
                f"{UNREACHABLE_MESSAGE}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ServerUnreachableError("Ollama returned a non-JSON model list.") from exc

        models = payload.get("models") if isinstance(payload, dict) else None
        if not isinstance(models, list):
            return []
        results: list[InstalledModel] = []
        for item in models:
            if not isinstance(item, dict):
                continue
            name = item.get("name") or item.get("model")
            if not isinstance(name, str) or not name:
                continue
            results.append(InstalledModel(identifier=name, metadata=dict(item)))
        logger.debug("Ollama reports %d installed model(s).", len(results))
        return results

    # ----- Generation ------------------------------------------------------

    def generate(
        self,
        model: str,
        prompt: str,
        images: Sequence[str],
        *,
        options: Mapping[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> str:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        payload = self._build_payload(model, prompt, images, options, stream=False)
        response = self._post_generate(model, payload, stream=False)
        try:
            data = response.json()
        except ValueError as exc:
            raise InferenceError("Ollama returned a non-JSON generation payload.") from exc
        if not isinstance(data, dict):
            raise InferenceError("Ollama backend returned an unexpected payload.")
        if "error" in data:
            raise _error_from_message(model, str(data["error"]))
        text = data.get("response")
        if not isinstance(text, str):
            raise InferenceError("Ollama backend returned an unexpected payload.")
        # A blocking call cannot be interrupted; a late cancellation discards the text.
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        return text

    def stream_generate(
        self,
        model: str,
        prompt: str,
        images: Sequence[str],
        *,
        options: Mapping[str, Any] | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Iterator[str]:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        payload = self._build_payload(model, prompt, images, options, stream=True)
        response = self._post_generate(model, payload, stream=True)
        with closing(response):
            try:
                for line in response.iter_lines(decode_unicode=True):
                    if cancel_token is not None and cancel_token.cancelled:
                        raise ExtractionCancelled("Extraction was cancelled.")
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError as exc:
                        raise InferenceError(
                            f"Ollama sent a malformed stream line: {line!r}"
                        ) from exc
                    if "error" in data:
                        raise _error_from_message(model, str(data["error"]))
                    fragment = data.get("response")
                    if isinstance(fragment, str) and fragment:
                        yield fragment
                    if data.get("done"):
                        return
            except requests.exceptions.RequestException as exc:
                # requests reports read timeouts during iteration as ConnectionError.
                if isinstance(exc, requests.exceptions.Timeout) or "timed out" in str(exc).lower():
                    raise InferenceTimeoutError(
                        f"Ollama stopped sending output for {self._config.generation_timeout:g}s."
                    ) from exc
                raise ServerUnreachableError(
                    f"Connection to Ollama was lost mid-stream: {exc}"
                ) from exc

    # ----- HTTP helpers ----------------------------------------------------

    def _build_payload(
        self,
        model: str,
        prompt: str,
        images: Sequence[str],
        options: Mapping[str, Any] | None,
        *,
        stream: bool,
    ) -> dict[str, Any]:
        merged: dict[str, Any] = {"temperature": self._config.temperature}
        if self._config.max_tokens is not None:
            merged["num_predict"] = self._config.max_tokens
        if options:
            merged.update(options)
        return {
            "model": model,
            "prompt": prompt,
            "images": list(images),
            "stream": stream,
            "options": merged,
        }

    def _post_generate(self, model: str, payload: dict[str, Any], *, stream: bool) -> Response:
        endpoint = f"{self.base_url}/api/generate"
        timeout = self._config.generation_timeout
        try:
            response = self.session.post(endpoint, json=payload, timeout=timeout, stream=stream)
        except requests.exceptions.Timeout as exc:
            raise InferenceTimeoutError(
                f"Ollama request timed out after {timeout:g}s. "
                "Try a smaller model or ensure the model is loaded."
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise ServerUnreachableError(
                f"{UNREACHABLE_MESSAGE} ({self.base_url}: {exc})"
            ) from exc

        if response.status_code >= 400:
            detail = _error_detail(response)
            response.close()
            if response.status_code == 404 or "not found" in detail.lower():
                raise ModelNotFoundError(model, detail or None)
            raise InferenceError(f"Ollama returned HTTP {response.status_code}: {detail}")
        return response


def _error_detail(response: Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return (response.text or "").strip()
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return (response.text or "").strip()


def _error_from_message(model: str, message: str) -> InferenceError:
    if "not found" in message.lower():
        return ModelNotFoundError(model, message)
    return InferenceError(f"Ollama backend error: {message}")
