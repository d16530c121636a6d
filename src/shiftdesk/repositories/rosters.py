"""Roster repository (read-only from the cache's point of view)."""

from __future__ import annotations

import abc

from shiftdesk.models import RosterPeriod
from shiftdesk.repositories.base import parse_list
from shiftdesk.repositories.client import ApiClient


class RosterRepository(abc.ABC):
    @abc.abstractmethod
    async def list_rosters(self) -> list[RosterPeriod]: ...


class HttpRosterRepository(RosterRepository):
    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def list_rosters(self) -> list[RosterPeriod]:
        payload = await self._client.get("/rosters")
        return parse_list(payload, RosterPeriod, what="roster")
