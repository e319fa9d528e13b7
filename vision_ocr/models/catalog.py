"""Known vision model families and identifier classification rules."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from .base import ModelDisplayInfo

GENERIC_DESCRIPTION = "Vision model served by the local inference server."
UNKNOWN_SIZE = "Unknown"

_SIZE_TOKEN = re.compile(r"(\d+(?:\.\d+)?[bm])(?![a-z])")
_SEGMENT_SPLIT = re.compile(r"[:\-_/]+")


@dataclass(slots=True, frozen=True)
class VisionPattern:
    """A single classification rule applied to a lowercased model family."""

    kind: str  # prefix|contains
    value: str

    def matches(self, family: str) -> bool:
        if self.kind == "prefix":
            return family.startswith(self.value)
        return self.value in family


DEFAULT_VISION_PATTERNS: tuple[VisionPattern, ...] = (
    VisionPattern("prefix", "llava"),
    VisionPattern("prefix", "bakllava"),
    VisionPattern("prefix", "gemma3"),
    VisionPattern("prefix", "llama3.2-vision"),
    VisionPattern("prefix", "llama4"),
    VisionPattern("prefix", "minicpm-v"),
    VisionPattern("prefix", "moondream"),
    VisionPattern("prefix", "qwen2.5vl"),
    VisionPattern("prefix", "qwen2-vl"),
    VisionPattern("prefix", "qwen3-vl"),
    VisionPattern("prefix", "granite3.2-vision"),
    VisionPattern("prefix", "mistral-small3.1"),
    VisionPattern("contains", "vision"),
    VisionPattern("contains", "multimodal"),
)

# Families whose presence in ``details.families`` means a vision projector is bundled.
_PROJECTOR_FAMILIES = frozenset({"clip", "mllama"})


_KNOWN_MODELS: dict[str, ModelDisplayInfo] = {
    "gemma3:4b": ModelDisplayInfo(
        name="Gemma 3 4B",
        description="Latest Google model with 128K context window",
        speed="Fast",
        accuracy="Very Good",
    ),
    "gemma3:12b": ModelDisplayInfo(
        name="Gemma 3 12B",
        description="Better accuracy for complex documents",
        speed="Medium",
        accuracy="Excellent",
    ),
    "gemma3:27b": ModelDisplayInfo(
        name="Gemma 3 27B",
        description="Highest accuracy for challenging layouts",
        speed="Slow",
        accuracy="Outstanding",
    ),
    "llava:7b": ModelDisplayInfo(
        name="LLaVA 7B",
        description="Alternative vision model",
        speed="Fast",
        accuracy="Good",
    ),
    "llava:13b": ModelDisplayInfo(
        name="LLaVA 13B",
        description="LLaVA with improved accuracy",
        speed="Medium",
        accuracy="Better",
    ),
    "llava:34b": ModelDisplayInfo(
        name="LLaVA 34B",
        description="Largest LLaVA model",
        speed="Slow",
        accuracy="Best",
    ),
}

_KNOWN_FAMILIES: tuple[tuple[str, str, str], ...] = (
    ("gemma3", "Gemma 3", "Google multimodal model with a 128K context window"),
    ("llava", "LLaVA", "Open vision-language assistant built on Vicuna"),
    ("llava-llama3", "LLaVA Llama 3", "LLaVA fine-tuned on Llama 3"),
    ("llava-phi3", "LLaVA Phi-3", "Compact LLaVA variant built on Phi-3 Mini"),
    ("bakllava", "BakLLaVA", "Mistral-based model with the LLaVA architecture"),
    ("llama3.2-vision", "Llama 3.2 Vision", "Meta's instruction-tuned image reasoning model"),
    ("llama4", "Llama 4", "Meta's natively multimodal mixture-of-experts model"),
    ("minicpm-v", "MiniCPM-V", "Efficient multimodal model strong at OCR"),
    ("moondream", "Moondream", "Tiny vision model designed for edge devices"),
    ("qwen2.5vl", "Qwen 2.5 VL", "Alibaba vision-language model with document parsing"),
    ("qwen3-vl", "Qwen 3 VL", "Alibaba's latest vision-language model"),
    ("granite3.2-vision", "Granite 3.2 Vision", "IBM model tuned for visual document understanding"),
    ("mistral-small3.1", "Mistral Small 3.1", "Mistral model with vision understanding"),
)
# Longest prefix wins, so "llava-phi3" is not reported as plain "llava".
_FAMILIES_BY_PREFIX = tuple(sorted(_KNOWN_FAMILIES, key=lambda item: len(item[0]), reverse=True))


def split_identifier(identifier: str) -> tuple[str, str | None]:
    """Split ``family[:variant]`` into its parts, dropping any namespace path."""
    name, _, variant = identifier.strip().partition(":")
    family = name.rsplit("/", 1)[-1]
    return family, (variant or None)


def family_of(identifier: str) -> str:
    """Return the lowercased family segment of ``identifier``."""
    return split_identifier(identifier)[0].lower()


def classify_vision(
    identifier: str, patterns: Sequence[VisionPattern] = DEFAULT_VISION_PATTERNS
) -> bool:
    """Return True when any rule in ``patterns`` matches the identifier's family."""
    family = family_of(identifier)
    if not family:
        return False
    return any(pattern.matches(family) for pattern in patterns)


def display_info(identifier: str) -> ModelDisplayInfo:
    """Return a user-facing name and description for any identifier."""
    known = _KNOWN_MODELS.get(identifier.strip().lower())
    if known is not None:
        return known

    family, variant = split_identifier(identifier)
    lowered = family.lower()
    for prefix, name, description in _FAMILIES_BY_PREFIX:
        if lowered.startswith(prefix):
            if variant and variant.lower() != "latest":
                name = f"{name} {variant.upper()}"
            return ModelDisplayInfo(name=name, description=description)

    return ModelDisplayInfo(name=_title_case(identifier), description=GENERIC_DESCRIPTION)


def size_hint(identifier: str) -> str:
    """Return the parameter-count token in the variant segment, e.g. ``4B``."""
    _, variant = split_identifier(identifier)
    if not variant:
        return UNKNOWN_SIZE
    match = _SIZE_TOKEN.search(variant.lower())
    if match is None:
        return UNKNOWN_SIZE
    return match.group(1).upper()


def _title_case(identifier: str) -> str:
    segments = [segment for segment in _SEGMENT_SPLIT.split(identifier.strip()) if segment]
    rendered: list[str] = []
    for segment in segments:
        if segment.lower() == "latest":
            continue
        if _SIZE_TOKEN.fullmatch(segment.lower()):
            rendered.append(segment.upper())
        else:
            rendered.append(segment[:1].upper() + segment[1:])
    return " ".join(rendered) or identifier.strip() or "Unknown model"


class PatternVisionClassifier:
    """Classifies models by matching their family name against known patterns."""

    def __init__(self, patterns: Iterable[VisionPattern] | None = None) -> None:
        self._patterns = tuple(patterns) if patterns is not None else DEFAULT_VISION_PATTERNS

    @property
    def patterns(self) -> tuple[VisionPattern, ...]:
        return self._patterns

    def is_vision_capable(
        self, identifier: str, metadata: Mapping[str, Any] | None = None
    ) -> bool:
        return classify_vision(identifier, self._patterns)


class CapabilityVisionClassifier:
    """Trusts capabilities reported by the server, falling back to name patterns."""

    def __init__(self, fallback: PatternVisionClassifier | None = None) -> None:
        self._fallback = fallback or PatternVisionClassifier()

    def is_vision_capable(
        self, identifier: str, metadata: Mapping[str, Any] | None = None
    ) -> bool:
        metadata = metadata or {}

        capabilities = metadata.get("capabilities")
        if isinstance(capabilities, (list, tuple)):
            return "vision" in {str(item).lower() for item in capabilities}

        details = metadata.get("details")
        if isinstance(details, Mapping):
            families = details.get("families")
            if isinstance(families, (list, tuple)):
                lowered = {str(item).lower() for item in families}
                if lowered & _PROJECTOR_FAMILIES:
                    return True

        return self._fallback.is_vision_capable(identifier, metadata)
