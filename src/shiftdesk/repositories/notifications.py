"""Notification repository: per-category listing and flag/bucket mutations."""

from __future__ import annotations

import abc

from pydantic import BaseModel, Field

from shiftdesk.models import (
    EntityId,
    Notification,
    NotificationCategory,
    SendNotificationRequest,
    unwrap_total,
)
from shiftdesk.repositories.base import parse_list, parse_one
from shiftdesk.repositories.client import ApiClient

DEFAULT_NOTIFICATION_PAGE_SIZE = 50


class NotificationPage(BaseModel):
    """One fetched category page plus the server-side total for that category.

    ``total`` may exceed ``len(items)`` when the server paginates.
    """

    items: list[Notification] = Field(default_factory=list)
    total: int = 0


class NotificationRepository(abc.ABC):
    """Contract consumed by the cache for the Notifications domain."""

    @abc.abstractmethod
    async def list_by_category(self, category: NotificationCategory) -> NotificationPage: ...

    @abc.abstractmethod
    async def mark_read(self, notification_id: EntityId) -> None: ...

    @abc.abstractmethod
    async def toggle_star(self, notification_id: EntityId) -> Notification | None: ...

    @abc.abstractmethod
    async def soft_delete(self, notification_id: EntityId) -> None: ...

    @abc.abstractmethod
    async def restore(self, notification_id: EntityId) -> Notification | None: ...

    @abc.abstractmethod
    async def permanent_delete(self, notification_id: EntityId) -> None: ...

    @abc.abstractmethod
    async def send(self, payload: SendNotificationRequest) -> Notification: ...


class HttpNotificationRepository(NotificationRepository):
    """``/notifications`` endpoints."""

    def __init__(
        self,
        client: ApiClient,
        *,
        page_size: int = DEFAULT_NOTIFICATION_PAGE_SIZE,
    ) -> None:
        self._client = client
        self._page_size = max(1, int(page_size))

    async def list_by_category(self, category: NotificationCategory) -> NotificationPage:
        payload = await self._client.get(
            "/notifications",
            params={"category": str(category), "per_page": self._page_size},
        )
        items = parse_list(payload, Notification, what=f"{category} notification")
        return NotificationPage(items=items, total=unwrap_total(payload, default=len(items)))

    async def mark_read(self, notification_id: EntityId) -> None:
        await self._client.post(f"/notifications/{notification_id}/read")

    async def toggle_star(self, notification_id: EntityId) -> Notification | None:
        body = await self._client.post(f"/notifications/{notification_id}/star")
        return _optional_notification(body)

    async def soft_delete(self, notification_id: EntityId) -> None:
        await self._client.delete(f"/notifications/{notification_id}")

    async def restore(self, notification_id: EntityId) -> Notification | None:
        body = await self._client.post(f"/notifications/{notification_id}/restore")
        return _optional_notification(body)

    async def permanent_delete(self, notification_id: EntityId) -> None:
        await self._client.delete(f"/notifications/{notification_id}/permanent")

    async def send(self, payload: SendNotificationRequest) -> Notification:
        body = await self._client.post("/notifications/send", json=payload.model_dump())
        return parse_one(body, Notification, what="sent notification")


def _optional_notification(body: object) -> Notification | None:
    """Parse a notification if the endpoint returned one; bare acks yield None."""
    if isinstance(body, dict):
        candidate = body.get("data") if isinstance(body.get("data"), dict) else body
        if "id" in candidate:
            return parse_one(candidate, Notification, what="notification")
    return None
