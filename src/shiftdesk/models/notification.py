"""Notification models and the four notification buckets."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class NotificationCategory(enum.StrEnum):
    """The logical notification views.

    ``inbox``, ``starred`` and ``sent`` may overlap; ``trash`` is exclusive.
    """

    INBOX = "inbox"
    STARRED = "starred"
    SENT = "sent"
    TRASH = "trash"


LIVE_CATEGORIES: tuple[NotificationCategory, ...] = (
    NotificationCategory.INBOX,
    NotificationCategory.STARRED,
    NotificationCategory.SENT,
)

# Lookup order used when the same id is held by more than one bucket.
SEARCH_ORDER: tuple[NotificationCategory, ...] = (*LIVE_CATEGORIES, NotificationCategory.TRASH)


class NotificationSender(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str
    name: str
    email: str


class Notification(BaseModel):
    """A single notification; flags drive bucket membership."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    user_id: int | str
    sender_id: int | str | None = None
    type: Literal["inbox", "sent"] = "inbox"
    title: str
    message: str
    data: Any = None
    is_read: bool = False
    is_starred: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    sender: NotificationSender | None = None

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None


class SendNotificationRequest(BaseModel):
    """Compose payload for ``POST /notifications/send``."""

    model_config = ConfigDict(extra="forbid")

    recipient_ids: list[int] = Field(min_length=1)
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    data: dict[str, Any] | None = None
