"""Shared fixtures for the shiftdesk test suite.

Repository doubles keep everything in memory.  Each double records its calls,
can be told to fail a given operation with a ``RepositoryError``, and can be
held on an ``asyncio.Event`` gate so tests can observe the optimistic state
while a request is still in flight.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from shiftdesk.cache import DataCache
from shiftdesk.core.logging import _client_context, _session_context
from shiftdesk.models import (
    ActivityLog,
    ActivityStatistics,
    CreateUserRequest,
    Employee,
    EntityId,
    Notification,
    NotificationCategory,
    RosterPeriod,
    SendNotificationRequest,
    UpdateUserRequest,
    User,
)
from shiftdesk.repositories import (
    ActivityRepository,
    NotificationRepository,
    RosterRepository,
    UserRepository,
)
from shiftdesk.repositories.errors import RepositoryError
from shiftdesk.repositories.notifications import NotificationPage

STAMP = datetime(2025, 3, 1, 8, 0, tzinfo=UTC)


def build_user(user_id: EntityId, **overrides: Any) -> User:
    fields: dict[str, Any] = {
        "id": user_id,
        "name": f"User {user_id}",
        "email": f"user{user_id}@example.com",
        "role": "Cns",
        "grade": 3,
        "employee": Employee(id=f"e{user_id}", user_id=user_id, employee_type="CNS"),
        "created_at": STAMP,
        "updated_at": STAMP,
    }
    fields.update(overrides)
    return User(**fields)


def build_notification(notification_id: EntityId, **overrides: Any) -> Notification:
    fields: dict[str, Any] = {
        "id": notification_id,
        "user_id": 1,
        "sender_id": 2,
        "type": "inbox",
        "title": f"Notice {notification_id}",
        "message": "Shift swap approved",
        "created_at": STAMP,
        "updated_at": STAMP,
    }
    fields.update(overrides)
    return Notification(**fields)


def build_roster(roster_id: int, **overrides: Any) -> RosterPeriod:
    fields: dict[str, Any] = {"id": roster_id, "month": 3, "year": 2025}
    fields.update(overrides)
    return RosterPeriod(**fields)


def build_activity(activity_id: int, **overrides: Any) -> ActivityLog:
    fields: dict[str, Any] = {
        "id": activity_id,
        "user_id": 1,
        "action": "update",
        "module": "roster",
        "description": f"Activity {activity_id}",
        "created_at": STAMP,
    }
    fields.update(overrides)
    return ActivityLog(**fields)


class _Recorder:
    """Call log, per-operation failures and an optional gate."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, RepositoryError] = {}
        self.gate: asyncio.Event | None = None

    async def _enter(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, *args))
        if self.gate is not None:
            await self.gate.wait()
        error = self.failures.get(operation)
        if error is not None:
            raise error

    def called(self, operation: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == operation]


class InMemoryUserRepository(_Recorder, UserRepository):
    def __init__(self, users: list[User] | None = None) -> None:
        super().__init__()
        self.users = list(users or [])
        self.next_id = 100

    async def list_users(self) -> list[User]:
        await self._enter("list_users")
        return list(self.users)

    async def create_user(self, payload: CreateUserRequest) -> User:
        await self._enter("create_user", payload)
        self.next_id += 1
        user = build_user(
            self.next_id,
            name=payload.name,
            email=payload.email,
            role=payload.role,
            grade=payload.grade,
            employee=Employee(
                id=f"e{self.next_id}", user_id=self.next_id, employee_type=payload.employee_type
            ),
        )
        self.users.insert(0, user)
        return user

    async def update_user(self, user_id: EntityId, payload: UpdateUserRequest) -> User:
        await self._enter("update_user", user_id, payload)
        current = next(u for u in self.users if u.id == user_id)
        fields = payload.model_dump(exclude_unset=True)
        fields.pop("employee_type", None)
        updated = current.model_copy(update={**fields, "updated_at": datetime.now(UTC)})
        self.users = [updated if u.id == user_id else u for u in self.users]
        return updated

    async def soft_delete_user(self, user_id: EntityId) -> None:
        await self._enter("soft_delete_user", user_id)

    async def restore_user(self, user_id: EntityId) -> User:
        await self._enter("restore_user", user_id)
        current = next(u for u in self.users if u.id == user_id)
        return current.model_copy(update={"deleted_at": None})


class InMemoryNotificationRepository(_Recorder, NotificationRepository):
    def __init__(self) -> None:
        super().__init__()
        self.pages: dict[NotificationCategory, list[Notification]] = {
            category: [] for category in NotificationCategory
        }
        self.totals: dict[NotificationCategory, int] = {}
        self.category_failures: dict[NotificationCategory, RepositoryError] = {}
        self.star_answer: Callable[[EntityId], Notification | None] | None = None
        self.next_id = 500

    async def list_by_category(self, category: NotificationCategory) -> NotificationPage:
        await self._enter("list_by_category", category)
        if category in self.category_failures:
            raise self.category_failures[category]
        items = list(self.pages[category])
        return NotificationPage(items=items, total=self.totals.get(category, len(items)))

    async def mark_read(self, notification_id: EntityId) -> None:
        await self._enter("mark_read", notification_id)
        error = self.failures.get(f"mark_read:{notification_id}")
        if error is not None:
            raise error

    async def toggle_star(self, notification_id: EntityId) -> Notification | None:
        await self._enter("toggle_star", notification_id)
        if self.star_answer is not None:
            return self.star_answer(notification_id)
        return None

    async def soft_delete(self, notification_id: EntityId) -> None:
        await self._enter("soft_delete", notification_id)

    async def restore(self, notification_id: EntityId) -> Notification | None:
        await self._enter("restore", notification_id)
        return build_notification(notification_id, is_read=True, read_at=STAMP)

    async def permanent_delete(self, notification_id: EntityId) -> None:
        await self._enter("permanent_delete", notification_id)

    async def send(self, payload: SendNotificationRequest) -> Notification:
        await self._enter("send", payload)
        self.next_id += 1
        return build_notification(
            self.next_id,
            type="sent",
            user_id=payload.recipient_ids[0],
            title=payload.title,
            message=payload.message,
            is_read=True,
        )


class InMemoryRosterRepository(_Recorder, RosterRepository):
    def __init__(self, rosters: list[RosterPeriod] | None = None) -> None:
        super().__init__()
        self.rosters = list(rosters or [])

    async def list_rosters(self) -> list[RosterPeriod]:
        await self._enter("list_rosters")
        return list(self.rosters)


class InMemoryActivityRepository(_Recorder, ActivityRepository):
    def __init__(self, activities: list[ActivityLog] | None = None) -> None:
        super().__init__()
        self.activities = list(activities or [])
        self.statistics = ActivityStatistics(
            total_activities=len(self.activities),
            today_activities=1,
            by_module={"roster": len(self.activities)},
        )

    async def list_recent(self) -> list[ActivityLog]:
        await self._enter("list_recent")
        return list(self.activities)

    async def get_statistics(self) -> ActivityStatistics:
        await self._enter("get_statistics")
        return self.statistics


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_log_context():
    client_token = _client_context.set(None)
    session_token = _session_context.set(None)
    yield
    _client_context.reset(client_token)
    _session_context.reset(session_token)


@pytest.fixture
def make_user() -> Callable[..., User]:
    return build_user


@pytest.fixture
def make_notification() -> Callable[..., Notification]:
    return build_notification


@pytest.fixture
def make_roster() -> Callable[..., RosterPeriod]:
    return build_roster


@pytest.fixture
def make_activity() -> Callable[..., ActivityLog]:
    return build_activity


@pytest.fixture
def user_repository() -> InMemoryUserRepository:
    return InMemoryUserRepository([build_user(1), build_user(2), build_user(3)])


@pytest.fixture
def notification_repository() -> InMemoryNotificationRepository:
    repository = InMemoryNotificationRepository()
    repository.pages[NotificationCategory.INBOX] = [
        build_notification(1),
        build_notification(2, is_read=True, read_at=STAMP),
        build_notification(3, is_starred=True),
    ]
    repository.pages[NotificationCategory.STARRED] = [build_notification(3, is_starred=True)]
    repository.pages[NotificationCategory.SENT] = [
        build_notification(10, type="sent", user_id=5, sender_id=1, is_read=True)
    ]
    repository.pages[NotificationCategory.TRASH] = [
        build_notification(20, deleted_at=STAMP)
    ]
    return repository


@pytest.fixture
def roster_repository() -> InMemoryRosterRepository:
    return InMemoryRosterRepository([build_roster(1), build_roster(2, month=4)])


@pytest.fixture
def activity_repository() -> InMemoryActivityRepository:
    return InMemoryActivityRepository([build_activity(1), build_activity(2)])


@pytest.fixture
def cache(
    user_repository: InMemoryUserRepository,
    notification_repository: InMemoryNotificationRepository,
    roster_repository: InMemoryRosterRepository,
    activity_repository: InMemoryActivityRepository,
) -> DataCache:
    return DataCache(
        user_repository=user_repository,
        notification_repository=notification_repository,
        roster_repository=roster_repository,
        activity_repository=activity_repository,
    )
