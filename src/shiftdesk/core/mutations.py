"""Optimistic mutations: apply locally, then commit or roll back.

Every user-triggered write is a :class:`Mutation` with three phases:

1. ``apply()``: synchronous; puts the cache in the state the UI should show
   immediately.  Runs to completion before the request starts.
2. ``commit(result)``: reconciles with the server answer (e.g. swaps a
   temp id for the real entity).  A no-op when the answer carries nothing
   richer than what was applied.
3. ``rollback()``: restores what ``apply()`` changed after the request
   failed with a :class:`RepositoryError`.

:class:`MutationRunner` is the single executor: it gives every mutation the
same guarantees, tracks what is in flight, and drops results that arrive after
the session generation advanced (logout or re-login) so a stale response
never writes into a newer session's cache.

No mutual exclusion is enforced: two mutations on the same id that overlap
resolve in response order.
"""

from __future__ import annotations

import abc
import asyncio
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from shiftdesk.core.notifications import NotificationBucketIndex, Placement
from shiftdesk.core.store import CacheStore
from shiftdesk.core.telemetry import mutation_span
from shiftdesk.models import (
    CreateUserRequest,
    EntityId,
    Notification,
    NotificationCategory,
    SendNotificationRequest,
    UpdateUserRequest,
    User,
    new_temp_id,
)
from shiftdesk.repositories.errors import RepositoryError
from shiftdesk.repositories.notifications import NotificationRepository
from shiftdesk.repositories.users import UserRepository

logger = logging.getLogger(__name__)


class MutationStatus(enum.StrEnum):
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    DISCARDED = "discarded"


@dataclass
class MutationOutcome:
    """How one submitted mutation settled."""

    name: str
    status: MutationStatus
    result: Any = None
    error: RepositoryError | None = None

    @property
    def ok(self) -> bool:
        return self.status is MutationStatus.COMMITTED


class Mutation(abc.ABC):
    """Command object run by :class:`MutationRunner`."""

    name: str = "mutation"

    @abc.abstractmethod
    def apply(self) -> None: ...

    @abc.abstractmethod
    async def execute(self) -> Any: ...

    def commit(self, result: Any) -> None:  # noqa: ARG002
        return None

    @abc.abstractmethod
    def rollback(self) -> None: ...


class MutationRunner:
    """Applies mutations synchronously and settles them as background tasks.

    Parameters
    ----------
    generation:
        Returns the current session generation.  Captured at submit time and
        compared again when the response arrives.
    """

    def __init__(self, generation: Callable[[], int]) -> None:
        self._generation = generation
        self._tasks: set[asyncio.Task[MutationOutcome]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def settled(self) -> bool:
        return not self._tasks

    def submit(self, mutation: Mutation) -> asyncio.Task[MutationOutcome]:
        """Apply *mutation* now and start its request.

        Awaiting the returned task is optional; the cache already reflects
        the optimistic state when this returns.
        """
        loop = asyncio.get_running_loop()
        generation = self._generation()
        mutation.apply()
        task = loop.create_task(self._run(mutation, generation), name=f"mutation:{mutation.name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> list[MutationOutcome]:
        """Wait until every in-flight mutation has settled."""
        outcomes: list[MutationOutcome] = []
        while self._tasks:
            done = await asyncio.gather(*list(self._tasks), return_exceptions=True)
            outcomes.extend(o for o in done if isinstance(o, MutationOutcome))
        return outcomes

    def cancel_all(self) -> int:
        """Cancel every in-flight mutation; their results will never be applied."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        return len(tasks)

    async def _run(self, mutation: Mutation, generation: int) -> MutationOutcome:
        with mutation_span(mutation.name, generation=generation) as span:
            try:
                result = await mutation.execute()
            except RepositoryError as exc:
                if self._generation() != generation:
                    return self._discarded(mutation, span, generation)
                mutation.rollback()
                span.set_attribute("mutation.outcome", str(MutationStatus.ROLLED_BACK))
                logger.warning("Mutation %s failed, rolled back: %s", mutation.name, exc)
                return MutationOutcome(mutation.name, MutationStatus.ROLLED_BACK, error=exc)

            if self._generation() != generation:
                return self._discarded(mutation, span, generation)
            mutation.commit(result)
            span.set_attribute("mutation.outcome", str(MutationStatus.COMMITTED))
            logger.debug("Mutation %s committed", mutation.name)
            return MutationOutcome(mutation.name, MutationStatus.COMMITTED, result=result)

    def _discarded(self, mutation: Mutation, span: Any, generation: int) -> MutationOutcome:
        span.set_attribute("mutation.outcome", str(MutationStatus.DISCARDED))
        logger.info(
            "Dropping %s response from session generation %d (now %d)",
            mutation.name,
            generation,
            self._generation(),
        )
        return MutationOutcome(mutation.name, MutationStatus.DISCARDED)


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# User mutations
# ---------------------------------------------------------------------------


class CreateUser(Mutation):
    """Insert a placeholder user under a temp id, then swap in the real one."""

    name = "create_user"

    def __init__(
        self, users: CacheStore[User], repository: UserRepository, payload: CreateUserRequest
    ) -> None:
        self._users = users
        self._repository = repository
        self._payload = payload
        self.temp_id = new_temp_id()

    def apply(self) -> None:
        stamp = _now()
        self._users.add(
            User(
                id=self.temp_id,
                name=self._payload.name,
                email=self._payload.email,
                role=self._payload.role,
                grade=self._payload.grade,
                is_active=self._payload.is_active,
                created_at=stamp,
                updated_at=stamp,
            )
        )

    async def execute(self) -> User:
        return await self._repository.create_user(self._payload)

    def commit(self, result: User) -> None:
        self._users.replace(self.temp_id, result)

    def rollback(self) -> None:
        self._users.replace(self.temp_id, None)


class _RestorableUserMutation(Mutation):
    """User mutation whose rollback puts the pre-apply record back."""

    def __init__(
        self, users: CacheStore[User], repository: UserRepository, user_id: EntityId
    ) -> None:
        self._users = users
        self._repository = repository
        self.user_id = user_id
        self._previous: User | None = None

    def apply(self) -> None:
        self._previous = self._users.patch(self.user_id, **self._optimistic_fields())

    def _optimistic_fields(self) -> dict[str, Any]:
        return {}

    def commit(self, result: User | None) -> None:
        if result is not None:
            self._users.update(self.user_id, result)

    def rollback(self) -> None:
        if self._previous is not None:
            self._users.update(self.user_id, self._previous)


class UpdateUser(_RestorableUserMutation):
    name = "update_user"

    def __init__(
        self,
        users: CacheStore[User],
        repository: UserRepository,
        user_id: EntityId,
        payload: UpdateUserRequest,
    ) -> None:
        super().__init__(users, repository, user_id)
        self._payload = payload

    def _optimistic_fields(self) -> dict[str, Any]:
        fields = self._payload.model_dump(exclude_unset=True)
        employee_type = fields.pop("employee_type", None)
        current = self._users.get(self.user_id)
        if employee_type is not None and current is not None and current.employee is not None:
            fields["employee"] = current.employee.model_copy(
                update={"employee_type": employee_type}
            )
        fields["updated_at"] = _now()
        return fields

    async def execute(self) -> User:
        return await self._repository.update_user(self.user_id, self._payload)


class DeleteUser(_RestorableUserMutation):
    """Soft delete: the user stays cached with ``deleted_at`` stamped."""

    name = "delete_user"

    def _optimistic_fields(self) -> dict[str, Any]:
        return {"deleted_at": _now()}

    async def execute(self) -> None:
        await self._repository.soft_delete_user(self.user_id)


class RestoreUser(_RestorableUserMutation):
    name = "restore_user"

    def _optimistic_fields(self) -> dict[str, Any]:
        return {"deleted_at": None}

    async def execute(self) -> User:
        return await self._repository.restore_user(self.user_id)


# ---------------------------------------------------------------------------
# Notification mutations
# ---------------------------------------------------------------------------


class _PlacedNotificationMutation(Mutation):
    """Notification mutation rolled back by reinstating one captured placement.

    When the local transition changed nothing, rollback leaves the index
    alone so data loaded while the request was in flight survives.
    """

    def __init__(
        self,
        index: NotificationBucketIndex,
        repository: NotificationRepository,
        notification_id: EntityId,
    ) -> None:
        self._index = index
        self._repository = repository
        self.notification_id = notification_id
        self._placement: Placement | None = None
        self.applied = False

    def apply(self) -> None:
        self._placement = self._index.capture(self.notification_id)
        self.applied = self._transition()

    @abc.abstractmethod
    def _transition(self) -> bool: ...

    def rollback(self) -> None:
        if self.applied and self._placement is not None:
            self._index.reinstate(self._placement)


class ToggleStar(_PlacedNotificationMutation):
    name = "toggle_star"

    def _transition(self) -> bool:
        return self._index.toggle_star(self.notification_id) is not None

    async def execute(self) -> Notification | None:
        return await self._repository.toggle_star(self.notification_id)

    def commit(self, result: Notification | None) -> None:
        local = self._index.get(self.notification_id)
        if result is not None and local is not None and local.is_starred != result.is_starred:
            logger.info(
                "Server star state for %r differs from local; taking server state",
                self.notification_id,
            )
            self._index.toggle_star(self.notification_id)

    def rollback(self) -> None:
        if self.applied and self._placement is not None:
            self._index.undo_toggle_star(self._placement)


class MoveToTrash(_PlacedNotificationMutation):
    name = "move_to_trash"

    def __init__(
        self,
        index: NotificationBucketIndex,
        repository: NotificationRepository,
        notification_id: EntityId,
        from_category: NotificationCategory | str,
    ) -> None:
        super().__init__(index, repository, notification_id)
        self.from_category = NotificationCategory(from_category)

    def _transition(self) -> bool:
        return self._index.move_to_trash(self.notification_id, self.from_category)

    async def execute(self) -> None:
        if not self.applied:
            logger.info(
                "Not sending move_to_trash for %r: not in %s locally",
                self.notification_id,
                self.from_category,
            )
            return
        await self._repository.soft_delete(self.notification_id)


class RestoreFromTrash(_PlacedNotificationMutation):
    name = "restore_from_trash"

    def _transition(self) -> bool:
        return self._index.restore_from_trash(self.notification_id)

    async def execute(self) -> Notification | None:
        return await self._repository.restore(self.notification_id)

    def commit(self, result: Notification | None) -> None:
        if result is not None and result.id == self.notification_id:
            self._index.update_fields(
                self.notification_id,
                is_read=result.is_read,
                is_starred=result.is_starred,
                read_at=result.read_at,
                updated_at=result.updated_at,
            )


class DeleteNotificationPermanently(_PlacedNotificationMutation):
    name = "delete_notification_permanently"

    def _transition(self) -> bool:
        return self._index.remove_from_category(self.notification_id, NotificationCategory.TRASH)

    async def execute(self) -> None:
        await self._repository.permanent_delete(self.notification_id)


class MarkNotificationRead(Mutation):
    name = "mark_notification_read"

    def __init__(
        self,
        index: NotificationBucketIndex,
        repository: NotificationRepository,
        notification_id: EntityId,
    ) -> None:
        self._index = index
        self._repository = repository
        self.notification_id = notification_id
        self._previous: Notification | None = None

    def apply(self) -> None:
        self._previous = self._index.update_fields(
            self.notification_id, is_read=True, read_at=_now()
        )

    async def execute(self) -> None:
        await self._repository.mark_read(self.notification_id)

    def rollback(self) -> None:
        if self._previous is not None:
            self._index.update_fields(
                self.notification_id,
                is_read=self._previous.is_read,
                read_at=self._previous.read_at,
            )


class MarkAllNotificationsRead(Mutation):
    """Mark every unread inbox notification read; one request per id.

    Ids whose request failed are reverted on commit.  Only when every
    request failed is the whole mutation rolled back.
    """

    name = "mark_all_notifications_read"

    def __init__(self, index: NotificationBucketIndex, repository: NotificationRepository) -> None:
        self._index = index
        self._repository = repository
        self._previous: dict[EntityId, Notification] = {}

    def apply(self) -> None:
        stamp = _now()
        for notification in self._index.bucket(NotificationCategory.INBOX):
            if notification.is_read:
                continue
            previous = self._index.update_fields(notification.id, is_read=True, read_at=stamp)
            if previous is not None:
                self._previous[notification.id] = previous

    async def execute(self) -> list[EntityId]:
        ids = list(self._previous)
        results = await asyncio.gather(
            *(self._repository.mark_read(nid) for nid in ids), return_exceptions=True
        )
        failed: list[EntityId] = []
        first_error: RepositoryError | None = None
        for nid, result in zip(ids, results, strict=True):
            if isinstance(result, RepositoryError):
                failed.append(nid)
                first_error = first_error or result
            elif isinstance(result, BaseException):
                raise result
        if ids and len(failed) == len(ids) and first_error is not None:
            raise first_error
        return failed

    def commit(self, result: list[EntityId]) -> None:
        for nid in result:
            self._revert(nid)
        if result:
            logger.warning(
                "mark-all-read: %d of %d requests failed", len(result), len(self._previous)
            )

    def rollback(self) -> None:
        for nid in self._previous:
            self._revert(nid)

    def _revert(self, nid: EntityId) -> None:
        previous = self._previous[nid]
        self._index.update_fields(nid, is_read=previous.is_read, read_at=previous.read_at)


class SendNotification(Mutation):
    """Show a composed notification in ``sent`` under a temp id until the server answers."""

    name = "send_notification"

    def __init__(
        self,
        index: NotificationBucketIndex,
        repository: NotificationRepository,
        payload: SendNotificationRequest,
        *,
        sender_id: EntityId | None = None,
    ) -> None:
        self._index = index
        self._repository = repository
        self._payload = payload
        self._sender_id = sender_id
        self.temp_id = new_temp_id()

    def apply(self) -> None:
        stamp = _now()
        self._index.add_to_sent(
            Notification(
                id=self.temp_id,
                user_id=self._payload.recipient_ids[0],
                sender_id=self._sender_id,
                type="sent",
                title=self._payload.title,
                message=self._payload.message,
                data=self._payload.data,
                is_read=True,
                created_at=stamp,
                updated_at=stamp,
            )
        )

    async def execute(self) -> Notification:
        return await self._repository.send(self._payload)

    def commit(self, result: Notification) -> None:
        self._index.replace_id(self.temp_id, result)

    def rollback(self) -> None:
        self._index.replace_id(self.temp_id, None)
