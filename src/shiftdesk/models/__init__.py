"""Pydantic models for cached domain entities and API envelopes.

The backend answers list endpoints in two shapes: a bare JSON array, or an
envelope ``{"data": [...], "total": N, ...}`` (Laravel-style pagination or
``{"success": true, "data": [...]}``).  ``unwrap_items`` and ``unwrap_total``
normalise both so repositories never branch on the shape themselves.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from shiftdesk.models.activity import ActivityLog, ActivityStatistics, ActivityUser
from shiftdesk.models.notification import (
    Notification,
    NotificationCategory,
    NotificationSender,
    SendNotificationRequest,
)
from shiftdesk.models.roster import RosterDay, RosterPeriod, Shift, ShiftAssignment
from shiftdesk.models.user import (
    CreateUserRequest,
    Employee,
    UpdateUserRequest,
    User,
)

EntityId = int | str

TEMP_ID_PREFIX = "temp_"

_last_temp_stamp = 0


# ---------------------------------------------------------------------------
# Temporary ids for optimistic creation
# ---------------------------------------------------------------------------


def new_temp_id() -> str:
    """Return a process-unique placeholder id of the form ``temp_<epoch-ms>``.

    Two calls within the same millisecond get strictly increasing stamps so
    placeholders created back-to-back never collide.
    """
    global _last_temp_stamp

    stamp = int(time.time() * 1000)
    if stamp <= _last_temp_stamp:
        stamp = _last_temp_stamp + 1
    _last_temp_stamp = stamp
    return f"{TEMP_ID_PREFIX}{stamp}"


def is_temp_id(entity_id: Any) -> bool:
    """True when *entity_id* is a placeholder awaiting a server-assigned id."""
    return isinstance(entity_id, str) and entity_id.startswith(TEMP_ID_PREFIX)


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ApiMeta(BaseModel):
    """Extensible metadata bag attached to list responses."""

    model_config = ConfigDict(extra="allow")


class ListEnvelope(BaseModel):
    """``{"data": [...], "total": N}`` list response."""

    model_config = ConfigDict(extra="allow")

    data: list[dict[str, Any]] = Field(default_factory=list)
    total: int | None = None
    meta: ApiMeta | None = None


def unwrap_items(payload: Any) -> list[dict[str, Any]]:
    """Return the list of raw items from a bare-list or enveloped payload.

    Raises
    ------
    ValueError
        If *payload* is neither a list nor an object with a ``data`` list.
    """
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        envelope = ListEnvelope.model_validate(
            {**payload, "data": [i for i in payload["data"] if isinstance(i, dict)]}
        )
        return envelope.data
    raise ValueError(
        f"Expected a list or a {{'data': [...]}} envelope, got {type(payload).__name__}"
    )


def unwrap_total(payload: Any, default: int) -> int:
    """Return the server-reported total, falling back to *default*.

    The total is looked up at the top level first and then under ``meta``
    (activity-log responses nest pagination there).
    """
    if isinstance(payload, dict):
        total = payload.get("total")
        if total is None and isinstance(payload.get("meta"), dict):
            total = payload["meta"].get("total")
        if isinstance(total, int) and not isinstance(total, bool) and total >= 0:
            return total
    return default


__all__ = [
    "TEMP_ID_PREFIX",
    "ActivityLog",
    "ActivityStatistics",
    "ActivityUser",
    "ApiMeta",
    "CreateUserRequest",
    "Employee",
    "EntityId",
    "ListEnvelope",
    "Notification",
    "NotificationCategory",
    "NotificationSender",
    "RosterDay",
    "RosterPeriod",
    "SendNotificationRequest",
    "Shift",
    "ShiftAssignment",
    "UpdateUserRequest",
    "User",
    "is_temp_id",
    "new_temp_id",
    "unwrap_items",
    "unwrap_total",
]
