"""Session-driven loading of every cached domain.

State machine over ``is_authenticated`` / ``is_initialized``::

    UNAUTHENTICATED --authenticate()--> LOADING --all fetches settled--> READY
    READY / LOADING --logout()--> UNAUTHENTICATED

Entering LOADING fans out independent fetches (users, notifications per
category, rosters, recent activities, activity statistics).  READY is reached
once every fetch has settled, successfully or not; a failed fetch leaves its
slice as it was (empty on first load) instead of blocking the others.

Each session carries a monotonically increasing *generation*.  Every fetch
captures the generation when it starts and drops its result if the
generation has advanced by the time it resolves, so a response from before a
logout can never repopulate the cleared cache.  ``logout()`` additionally
cancels the fetch tasks still in flight.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections.abc import Callable, Coroutine, Iterator, Sequence
from typing import Any

from shiftdesk.core.logging import set_session_context
from shiftdesk.core.notifications import NotificationBucketIndex
from shiftdesk.core.store import CacheStore
from shiftdesk.models import (
    ActivityLog,
    ActivityStatistics,
    NotificationCategory,
    RosterPeriod,
    User,
)
from shiftdesk.repositories.activity import ActivityRepository
from shiftdesk.repositories.errors import RepositoryError
from shiftdesk.repositories.notifications import NotificationPage, NotificationRepository
from shiftdesk.repositories.rosters import RosterRepository
from shiftdesk.repositories.users import UserRepository

logger = logging.getLogger(__name__)

DOMAIN_USERS = "users"
DOMAIN_NOTIFICATIONS = "notifications"
DOMAIN_ROSTERS = "rosters"
DOMAIN_ACTIVITIES = "activities"
DOMAIN_STATISTICS = "statistics"

DOMAINS: tuple[str, ...] = (
    DOMAIN_USERS,
    DOMAIN_NOTIFICATIONS,
    DOMAIN_ROSTERS,
    DOMAIN_ACTIVITIES,
    DOMAIN_STATISTICS,
)


class SessionState(enum.StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    LOADING = "loading"
    READY = "ready"


class FetchOrchestrator:
    """Drives initial and refresh loads and wipes the cache on logout."""

    def __init__(
        self,
        *,
        users: CacheStore[User],
        rosters: CacheStore[RosterPeriod],
        activities: CacheStore[ActivityLog],
        notifications: NotificationBucketIndex,
        user_repository: UserRepository,
        notification_repository: NotificationRepository,
        roster_repository: RosterRepository,
        activity_repository: ActivityRepository,
        on_reset: Callable[[], Any] | None = None,
    ) -> None:
        self._users = users
        self._rosters = rosters
        self._activities = activities
        self._notifications = notifications
        self._user_repository = user_repository
        self._notification_repository = notification_repository
        self._roster_repository = roster_repository
        self._activity_repository = activity_repository
        self._on_reset = on_reset

        self.generation = 0
        self.is_authenticated = False
        self.is_initialized = False
        self.activity_statistics: ActivityStatistics | None = None
        self._loading: dict[str, int] = dict.fromkeys(DOMAINS, 0)
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        if not self.is_authenticated:
            return SessionState.UNAUTHENTICATED
        if not self.is_initialized:
            return SessionState.LOADING
        return SessionState.READY

    @property
    def loading(self) -> dict[str, bool]:
        return {domain: count > 0 for domain, count in self._loading.items()}

    @property
    def is_loading(self) -> bool:
        return any(count > 0 for count in self._loading.values())

    def is_current(self, generation: int) -> bool:
        return generation == self.generation and self.is_authenticated

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def authenticate(self) -> SessionState:
        """Start a session and load every domain concurrently.

        Returns the state once the fan-out settled: READY normally, or
        UNAUTHENTICATED when a logout happened while loading.  Calling this
        on an already authenticated session does not refetch.
        """
        if self.is_authenticated:
            logger.debug("authenticate() while %s; nothing to do", self.state)
            return self.state

        self.generation += 1
        generation = self.generation
        self.is_authenticated = True
        self.is_initialized = False
        set_session_context(generation)
        logger.info("Session generation %d authenticated; loading cache", generation)

        await self._fan_out(
            generation,
            [
                self._load_users(generation),
                self._load_notifications(generation, tuple(NotificationCategory)),
                self._load_rosters(generation),
                self._load_activities(generation),
                self._load_statistics(generation),
            ],
        )

        if not self.is_current(generation):
            logger.info("Session generation %d ended before loading settled", generation)
            return self.state
        self.is_initialized = True
        logger.info(
            "Cache ready: %d users, %d rosters, %d activities, notifications=%s",
            len(self._users),
            len(self._rosters),
            len(self._activities),
            self._notifications.stats,
        )
        return self.state

    def logout(self) -> None:
        """Synchronously end the session and wipe every cached collection.

        In-flight fetches are cancelled; any that still resolve see a newer
        generation and discard their results.
        """
        self.generation += 1
        self.is_authenticated = False
        self.is_initialized = False

        cancelled = 0
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
                cancelled += 1

        self._users.clear()
        self._rosters.clear()
        self._activities.clear()
        self._notifications.clear()
        self.activity_statistics = None
        self._loading = dict.fromkeys(DOMAINS, 0)
        if self._on_reset is not None:
            self._on_reset()

        set_session_context(None)
        logger.info(
            "Logged out; cache cleared (generation now %d, %d fetches cancelled)",
            self.generation,
            cancelled,
        )

    # ------------------------------------------------------------------
    # Refreshes
    # ------------------------------------------------------------------

    async def refresh_users(self) -> None:
        if self.is_authenticated:
            await self._fan_out(self.generation, [self._load_users(self.generation)])

    async def refresh_notifications(
        self, category: NotificationCategory | str | None = None
    ) -> None:
        """Reload one category, or all four in parallel when *category* is None."""
        if not self.is_authenticated:
            return
        categories = (
            tuple(NotificationCategory)
            if category is None
            else (NotificationCategory(category),)
        )
        await self._fan_out(
            self.generation, [self._load_notifications(self.generation, categories)]
        )

    async def refresh_rosters(self) -> None:
        if self.is_authenticated:
            await self._fan_out(self.generation, [self._load_rosters(self.generation)])

    async def refresh_activities(self) -> None:
        """Reload recent activities and the statistics aggregate together."""
        if self.is_authenticated:
            await self._fan_out(
                self.generation,
                [self._load_activities(self.generation), self._load_statistics(self.generation)],
            )

    # ------------------------------------------------------------------
    # Loaders
    # ------------------------------------------------------------------

    async def _load_users(self, generation: int) -> None:
        with self._loading_flag(DOMAIN_USERS, generation):
            try:
                users = await self._user_repository.list_users()
            except RepositoryError as exc:
                logger.error("Failed to load users cache: %s", exc)
                return
            if self._accept(DOMAIN_USERS, generation):
                self._users.load(users)

    async def _load_notifications(
        self, generation: int, categories: Sequence[NotificationCategory]
    ) -> None:
        with self._loading_flag(DOMAIN_NOTIFICATIONS, generation):
            results = await asyncio.gather(
                *(self._notification_repository.list_by_category(c) for c in categories),
                return_exceptions=True,
            )
            pages: dict[NotificationCategory, tuple[list[Any], int]] = {}
            for category, result in zip(categories, results, strict=True):
                if isinstance(result, NotificationPage):
                    pages[category] = (result.items, result.total)
                elif isinstance(result, RepositoryError):
                    logger.error("Failed to load %s notifications: %s", category, result)
                else:
                    raise result
            if pages and self._accept(DOMAIN_NOTIFICATIONS, generation):
                self._notifications.load_all(pages)

    async def _load_rosters(self, generation: int) -> None:
        with self._loading_flag(DOMAIN_ROSTERS, generation):
            try:
                rosters = await self._roster_repository.list_rosters()
            except RepositoryError as exc:
                logger.error("Failed to load rosters cache: %s", exc)
                return
            if self._accept(DOMAIN_ROSTERS, generation):
                self._rosters.load(rosters)

    async def _load_activities(self, generation: int) -> None:
        with self._loading_flag(DOMAIN_ACTIVITIES, generation):
            try:
                activities = await self._activity_repository.list_recent()
            except RepositoryError as exc:
                logger.error("Failed to load recent activities: %s", exc)
                return
            if self._accept(DOMAIN_ACTIVITIES, generation):
                self._activities.load(activities)

    async def _load_statistics(self, generation: int) -> None:
        with self._loading_flag(DOMAIN_STATISTICS, generation):
            try:
                statistics = await self._activity_repository.get_statistics()
            except RepositoryError as exc:
                logger.error("Failed to load activity statistics: %s", exc)
                return
            if self._accept(DOMAIN_STATISTICS, generation):
                self.activity_statistics = statistics

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fan_out(
        self, generation: int, loaders: list[Coroutine[Any, Any, None]]
    ) -> None:
        """Run *loaders* as tracked tasks and wait for all of them to settle.

        Loaders swallow expected repository failures themselves; anything
        else they raise is re-raised here once every sibling has settled.
        """
        tasks = [
            asyncio.get_running_loop().create_task(loader, name=f"fetch:gen{generation}")
            for loader in loaders
        ]
        for task in tasks:
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                raise result

    def _accept(self, domain: str, generation: int) -> bool:
        if self.is_current(generation):
            return True
        logger.info(
            "Discarding %s result from session generation %d (now %d)",
            domain,
            generation,
            self.generation,
        )
        return False

    @contextlib.contextmanager
    def _loading_flag(self, domain: str, generation: int) -> Iterator[None]:
        self._loading[domain] += 1
        try:
            yield
        finally:
            # A newer session owns the flag after logout/re-login.
            if generation == self.generation:
                self._loading[domain] -= 1
