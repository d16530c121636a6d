"""The domain cache facade consumed by the console UI.

``DataCache`` wires the collections, the notification buckets, the mutation
runner and the fetch orchestrator together.  Reads return snapshots; every
write goes through a mutation trigger, which updates the cache before it
returns and settles the request in the background.  Awaiting the returned
task is optional.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from shiftdesk.config import ClientConfig
from shiftdesk.core.mutations import (
    CreateUser,
    DeleteNotificationPermanently,
    DeleteUser,
    MarkAllNotificationsRead,
    MarkNotificationRead,
    MoveToTrash,
    Mutation,
    MutationOutcome,
    MutationRunner,
    RestoreFromTrash,
    RestoreUser,
    SendNotification,
    ToggleStar,
    UpdateUser,
)
from shiftdesk.core.notifications import NotificationBucketIndex
from shiftdesk.core.orchestrator import FetchOrchestrator, SessionState
from shiftdesk.core.store import CacheStore
from shiftdesk.models import (
    ActivityLog,
    ActivityStatistics,
    CreateUserRequest,
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
    ApiClient,
    HttpActivityRepository,
    HttpNotificationRepository,
    HttpRosterRepository,
    HttpUserRepository,
    NotificationRepository,
    RosterRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)


class DataCache:
    """One authenticated session's view of users, notifications, rosters and activity."""

    def __init__(
        self,
        *,
        user_repository: UserRepository,
        notification_repository: NotificationRepository,
        roster_repository: RosterRepository,
        activity_repository: ActivityRepository,
        api_client: ApiClient | None = None,
    ) -> None:
        self._user_repository = user_repository
        self._notification_repository = notification_repository
        self._api_client = api_client

        self._users: CacheStore[User] = CacheStore("users")
        self._rosters: CacheStore[RosterPeriod] = CacheStore("rosters")
        self._activities: CacheStore[ActivityLog] = CacheStore("activities")
        self._notifications = NotificationBucketIndex()

        self._runner = MutationRunner(lambda: self._orchestrator.generation)
        self._orchestrator = FetchOrchestrator(
            users=self._users,
            rosters=self._rosters,
            activities=self._activities,
            notifications=self._notifications,
            user_repository=user_repository,
            notification_repository=notification_repository,
            roster_repository=roster_repository,
            activity_repository=activity_repository,
            on_reset=self._runner.cancel_all,
        )
        self.current_user_id: EntityId | None = None

        if api_client is not None:
            api_client.on_unauthorized = self._handle_unauthorized

    @classmethod
    def from_config(
        cls, config: ClientConfig, *, http_client: httpx.AsyncClient | None = None
    ) -> DataCache:
        """Build a cache backed by the HTTP repositories described by *config*."""
        client = ApiClient(
            config.base_url,
            timeout_s=config.timeout_s,
            connect_timeout_s=config.connect_timeout_s,
            http_client=http_client,
        )
        return cls(
            user_repository=HttpUserRepository(client, page_size=config.cache.user_page_size),
            notification_repository=HttpNotificationRepository(
                client, page_size=config.cache.notification_page_size
            ),
            roster_repository=HttpRosterRepository(client),
            activity_repository=HttpActivityRepository(client),
            api_client=client,
        )

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def login(
        self, token: str | None = None, *, user_id: EntityId | None = None
    ) -> SessionState:
        """Authenticate and load every domain; returns once loading settled."""
        if token is not None and self._api_client is not None:
            self._api_client.set_token(token)
        self.current_user_id = user_id
        return await self._orchestrator.authenticate()

    def logout(self) -> None:
        """Wipe the cache synchronously and forget the token."""
        self._orchestrator.logout()
        if self._api_client is not None:
            self._api_client.set_token(None)
        self.current_user_id = None

    async def aclose(self) -> None:
        self.logout()
        if self._api_client is not None:
            await self._api_client.aclose()

    def _handle_unauthorized(self) -> None:
        if self._orchestrator.is_authenticated:
            logger.warning("API rejected the session token; logging out")
            self.logout()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._orchestrator.state

    @property
    def is_authenticated(self) -> bool:
        return self._orchestrator.is_authenticated

    @property
    def is_initialized(self) -> bool:
        return self._orchestrator.is_initialized

    @property
    def is_loading(self) -> bool:
        return self._orchestrator.is_loading

    @property
    def loading(self) -> dict[str, bool]:
        return self._orchestrator.loading

    @property
    def generation(self) -> int:
        return self._orchestrator.generation

    @property
    def users(self) -> list[User]:
        return self._users.items

    def get_user(self, user_id: EntityId) -> User | None:
        return self._users.get(user_id)

    @property
    def rosters(self) -> list[RosterPeriod]:
        return self._rosters.items

    @property
    def activities(self) -> list[ActivityLog]:
        return self._activities.items

    @property
    def activity_statistics(self) -> ActivityStatistics | None:
        return self._orchestrator.activity_statistics

    def notifications(self, category: NotificationCategory | str) -> list[Notification]:
        return self._notifications.bucket(category)

    @property
    def notification_stats(self) -> dict[str, int]:
        return self._notifications.stats

    @property
    def unread_notification_count(self) -> int:
        return self._notifications.unread_count

    @property
    def pending_mutations(self) -> int:
        return self._runner.pending

    @property
    def is_settled(self) -> bool:
        return self._runner.settled

    # ------------------------------------------------------------------
    # Refreshes
    # ------------------------------------------------------------------

    async def refresh_users(self) -> None:
        await self._orchestrator.refresh_users()

    async def refresh_notifications(
        self, category: NotificationCategory | str | None = None
    ) -> None:
        await self._orchestrator.refresh_notifications(category)

    async def refresh_rosters(self) -> None:
        await self._orchestrator.refresh_rosters()

    async def refresh_activities(self) -> None:
        await self._orchestrator.refresh_activities()

    async def settle(self) -> list[MutationOutcome]:
        """Wait for every in-flight mutation to commit, roll back or be discarded."""
        return await self._runner.drain()

    # ------------------------------------------------------------------
    # Mutation triggers
    # ------------------------------------------------------------------

    def create_user(self, payload: CreateUserRequest) -> asyncio.Task[MutationOutcome]:
        return self._submit(CreateUser(self._users, self._user_repository, payload))

    def update_user(
        self, user_id: EntityId, payload: UpdateUserRequest
    ) -> asyncio.Task[MutationOutcome]:
        return self._submit(UpdateUser(self._users, self._user_repository, user_id, payload))

    def delete_user(self, user_id: EntityId) -> asyncio.Task[MutationOutcome]:
        return self._submit(DeleteUser(self._users, self._user_repository, user_id))

    def restore_user(self, user_id: EntityId) -> asyncio.Task[MutationOutcome]:
        return self._submit(RestoreUser(self._users, self._user_repository, user_id))

    def toggle_star(self, notification_id: EntityId) -> asyncio.Task[MutationOutcome]:
        return self._submit(
            ToggleStar(self._notifications, self._notification_repository, notification_id)
        )

    def mark_notification_read(self, notification_id: EntityId) -> asyncio.Task[MutationOutcome]:
        return self._submit(
            MarkNotificationRead(
                self._notifications, self._notification_repository, notification_id
            )
        )

    def mark_all_notifications_read(self) -> asyncio.Task[MutationOutcome]:
        return self._submit(
            MarkAllNotificationsRead(self._notifications, self._notification_repository)
        )

    def move_to_trash(
        self, notification_id: EntityId, from_category: NotificationCategory | str
    ) -> asyncio.Task[MutationOutcome]:
        return self._submit(
            MoveToTrash(
                self._notifications, self._notification_repository, notification_id, from_category
            )
        )

    def restore_from_trash(self, notification_id: EntityId) -> asyncio.Task[MutationOutcome]:
        return self._submit(
            RestoreFromTrash(self._notifications, self._notification_repository, notification_id)
        )

    def delete_notification_permanently(
        self, notification_id: EntityId
    ) -> asyncio.Task[MutationOutcome]:
        return self._submit(
            DeleteNotificationPermanently(
                self._notifications, self._notification_repository, notification_id
            )
        )

    def send_notification(self, payload: SendNotificationRequest) -> asyncio.Task[MutationOutcome]:
        return self._submit(
            SendNotification(
                self._notifications,
                self._notification_repository,
                payload,
                sender_id=self.current_user_id,
            )
        )

    def _submit(self, mutation: Mutation) -> asyncio.Task[MutationOutcome]:
        if not self._orchestrator.is_authenticated:
            raise RuntimeError(f"{mutation.name} requires an authenticated session")
        return self._runner.submit(mutation)
