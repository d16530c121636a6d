"""User repository: listing, creation, update, soft delete and restore."""

from __future__ import annotations

import abc

from shiftdesk.models import CreateUserRequest, EntityId, UpdateUserRequest, User
from shiftdesk.repositories.base import parse_list, parse_one
from shiftdesk.repositories.client import ApiClient


class UserRepository(abc.ABC):
    """Contract consumed by the cache for the Users domain."""

    @abc.abstractmethod
    async def list_users(self) -> list[User]: ...

    @abc.abstractmethod
    async def create_user(self, payload: CreateUserRequest) -> User: ...

    @abc.abstractmethod
    async def update_user(self, user_id: EntityId, payload: UpdateUserRequest) -> User: ...

    @abc.abstractmethod
    async def soft_delete_user(self, user_id: EntityId) -> None: ...

    @abc.abstractmethod
    async def restore_user(self, user_id: EntityId) -> User: ...


class HttpUserRepository(UserRepository):
    """``/admin/users`` endpoints."""

    def __init__(self, client: ApiClient, *, page_size: int | None = None) -> None:
        self._client = client
        self._page_size = page_size

    async def list_users(self) -> list[User]:
        payload = await self._client.get("/admin/users", params={"per_page": self._page_size})
        return parse_list(payload, User, what="user")

    async def create_user(self, payload: CreateUserRequest) -> User:
        body = await self._client.post("/admin/users", json=payload.model_dump(exclude_none=True))
        return parse_one(body, User, what="user")

    async def update_user(self, user_id: EntityId, payload: UpdateUserRequest) -> User:
        body = await self._client.put(
            f"/admin/users/{user_id}", json=payload.model_dump(exclude_unset=True)
        )
        return parse_one(body, User, what="user")

    async def soft_delete_user(self, user_id: EntityId) -> None:
        await self._client.delete(f"/admin/users/{user_id}")

    async def restore_user(self, user_id: EntityId) -> User:
        body = await self._client.post(f"/admin/users/{user_id}/restore")
        return parse_one(body, User, what="user")
