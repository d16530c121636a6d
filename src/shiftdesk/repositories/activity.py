"""Activity log repository: recent entries and aggregate statistics."""

from __future__ import annotations

import abc

from shiftdesk.models import ActivityLog, ActivityStatistics
from shiftdesk.repositories.base import parse_list, parse_one
from shiftdesk.repositories.client import ApiClient


class ActivityRepository(abc.ABC):
    @abc.abstractmethod
    async def list_recent(self) -> list[ActivityLog]: ...

    @abc.abstractmethod
    async def get_statistics(self) -> ActivityStatistics: ...


class HttpActivityRepository(ActivityRepository):
    """``/activity-logs`` endpoints (``{"success": true, "data": ...}`` envelopes)."""

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def list_recent(self) -> list[ActivityLog]:
        payload = await self._client.get("/activity-logs/recent")
        return parse_list(payload, ActivityLog, what="activity log")

    async def get_statistics(self) -> ActivityStatistics:
        payload = await self._client.get("/activity-logs/statistics")
        return parse_one(payload, ActivityStatistics, what="activity statistics")
