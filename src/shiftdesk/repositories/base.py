"""Payload parsing shared by the HTTP repositories."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from shiftdesk.models import unwrap_items
from shiftdesk.repositories.errors import InvalidPayloadError

M = TypeVar("M", bound=BaseModel)


def parse_list(payload: Any, model: type[M], *, what: str) -> list[M]:
    """Validate a bare-list or ``{"data": [...]}`` payload into *model* instances."""
    try:
        return [model.model_validate(item) for item in unwrap_items(payload)]
    except (ValueError, ValidationError) as exc:
        raise InvalidPayloadError(f"Invalid {what} list payload: {exc}") from exc


def parse_one(payload: Any, model: type[M], *, what: str) -> M:
    """Validate a single entity, accepting an optional ``{"data": {...}}`` wrapper."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        payload = payload["data"]
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise InvalidPayloadError(f"Invalid {what} payload: {exc}") from exc
