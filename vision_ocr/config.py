"""Application-wide configuration models and persistence helpers."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

SERVER_ADDRESS_ENV_VAR = "OLLAMA_SERVER_ADDRESS"
DEFAULT_SERVER_ADDRESS = "http://127.0.0.1:11434"
MAX_IMAGE_BYTES = 10 * 1024 * 1024
DEFAULT_PROMPT = (
    "Extract all text from this image. Include any handwritten text, printed text, "
    "or text in UI elements. Format the output clearly."
)


class AppConfig(BaseModel):
    """Validates and stores runtime settings for the application."""

    server_address: str = Field(
        default=DEFAULT_SERVER_ADDRESS,
        description="Base URL of the local Ollama inference server.",
    )
    status_timeout: float = Field(
        default=5.0,
        ge=0.5,
        le=60.0,
        description="Timeout (seconds) for status and model listing calls.",
    )
    generation_timeout: float = Field(
        default=120.0,
        ge=1.0,
        le=1800.0,
        description="Timeout (seconds) for generation calls to the inference server.",
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature passed to the inference server.",
    )
    max_tokens: int | None = Field(
        default=None,
        ge=16,
        le=32768,
        description="Optional cap on generated tokens (sent as num_predict).",
    )
    stream: bool = Field(
        default=True,
        description="Request incremental output from the inference server.",
    )
    preferred_family: str = Field(
        default="gemma3",
        description="Model family flagged as recommended in model listings.",
    )
    classifier: str = Field(
        default="patterns",
        description="Name of the strategy used to decide which models accept images.",
    )
    max_image_bytes: int = Field(
        default=MAX_IMAGE_BYTES,
        ge=1,
        description="Largest decoded image payload accepted for extraction.",
    )
    default_prompt: str = Field(
        default=DEFAULT_PROMPT,
        description="Instruction used when a request does not carry its own prompt.",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level for the application loggers.",
    )

    @model_validator(mode="after")
    def _normalise_server_address(self) -> AppConfig:
        base = self.server_address.strip()
        if not base:
            raise ValueError("Server address must not be empty.")
        if "://" not in base:
            raise ValueError(
                "Server address must include a scheme such as http://127.0.0.1:11434."
            )
        self.server_address = base.rstrip("/")
        return self

    @model_validator(mode="after")
    def _normalise_names(self) -> AppConfig:
        family = self.preferred_family.strip().lower()
        if not family:
            raise ValueError("A preferred model family must be configured.")
        self.preferred_family = family
        self.classifier = self.classifier.strip().lower()
        self.log_level = self.log_level.strip().upper()
        if not self.default_prompt.strip():
            self.default_prompt = DEFAULT_PROMPT
        return self

    def as_dict(self) -> dict[str, Any]:
        """Serialize the configuration to primitive Python types."""
        return self.model_dump(mode="json")

    def with_environment(self, env: Mapping[str, str] | None = None) -> AppConfig:
        """Return a copy with environment overrides applied."""
        env = os.environ if env is None else env
        address = env.get(SERVER_ADDRESS_ENV_VAR)
        if not address:
            return self
        data = self.as_dict()
        data["server_address"] = address
        return type(self).model_validate(data)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> AppConfig:
        """Build the default configuration with environment overrides applied."""
        return cls().with_environment(env)

    @classmethod
    def load(cls, path: Path) -> AppConfig:
        """Load configuration from a YAML or JSON file."""
        data = _read_config_file(path)
        try:
            return cls.model_validate(data)
        except ValidationError as exc:  # pragma: no cover - pass through details
            raise ValueError(f"Invalid configuration file at {path}: {exc}") from exc

    def save(self, path: Path) -> None:
        """Persist configuration to a YAML file."""
        _write_config_file(path, self.as_dict())


_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Return the process configuration, loading it on first use."""
    global _config
    if _config is None:
        from .settings_store import SettingsStore

        _config = SettingsStore().load()
    return _config


def set_config(config: AppConfig) -> None:
    """Install ``config`` as the process configuration."""
    global _config
    _config = config


def reset_config() -> None:
    """Clear cached config (for tests)."""
    global _config
    _config = None


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        return yaml.safe_load(text) or {}
    return json.loads(text)


def _write_config_file(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() in {".yaml", ".yml"}:
        yaml_text = yaml.safe_dump(
            data,
            allow_unicode=False,
            sort_keys=False,
        )
        path.write_text(yaml_text, encoding="utf-8")
    else:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
