"""Display-ready model listings for selectors."""

from __future__ import annotations

from ..models.base import ModelListEntry, ModelListing
from ..models.catalog import display_info, family_of, size_hint
from ..utils.text import format_bytes
from .status import StatusChecker


class ModelListingService:
    """Ranks the installed vision models, recommended family first."""

    def __init__(self, status_checker: StatusChecker, *, preferred_family: str = "gemma3") -> None:
        self._status_checker = status_checker
        self._preferred_family = preferred_family.strip().lower()

    def list(self) -> ModelListing:
        status, installed = self._status_checker.survey()
        if not status.is_running:
            return ModelListing(models=[], status=status)

        entries: list[ModelListEntry] = []
        for model in installed:
            info = display_info(model.identifier)
            entries.append(
                ModelListEntry(
                    id=model.identifier,
                    name=info.name,
                    description=info.description,
                    size=size_hint(model.identifier),
                    disk_size=format_bytes(model.size_bytes),
                    speed=info.speed,
                    accuracy=info.accuracy,
                    available=True,
                    recommended=family_of(model.identifier) == self._preferred_family,
                )
            )
        # sorted() is stable, so equal names keep the server's order.
        entries = sorted(entries, key=lambda entry: (not entry.recommended, entry.name))
        return ModelListing(models=entries, status=status)
