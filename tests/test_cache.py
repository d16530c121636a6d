"""Tests for shiftdesk.cache.DataCache: the facade used by the console UI."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from shiftdesk.cache import DataCache
from shiftdesk.config import CacheConfig, ClientConfig
from shiftdesk.core.mutations import MutationStatus
from shiftdesk.core.orchestrator import SessionState
from shiftdesk.models import (
    CreateUserRequest,
    NotificationCategory,
    SendNotificationRequest,
    UpdateUserRequest,
    is_temp_id,
)
from shiftdesk.repositories.errors import TransportError

pytestmark = pytest.mark.unit


class TestSession:
    async def test_login_loads_and_exposes_reads(self, cache):
        state = await cache.login(user_id=1)

        assert state is SessionState.READY
        assert cache.is_authenticated
        assert cache.is_initialized
        assert [u.id for u in cache.users] == [1, 2, 3]
        assert cache.get_user(2).name == "User 2"
        assert len(cache.rosters) == 2
        assert len(cache.activities) == 2
        assert cache.activity_statistics is not None
        assert [n.id for n in cache.notifications("inbox")] == [1, 2, 3]
        assert cache.notification_stats["trash"] == 1
        assert cache.unread_notification_count == 2
        assert cache.loading == {
            "users": False,
            "notifications": False,
            "rosters": False,
            "activities": False,
            "statistics": False,
        }

    async def test_logout_clears_everything(self, cache):
        await cache.login(user_id=1)
        cache.logout()

        assert cache.state is SessionState.UNAUTHENTICATED
        assert cache.users == []
        assert cache.rosters == []
        assert cache.activities == []
        assert cache.activity_statistics is None
        assert all(cache.notifications(c) == [] for c in NotificationCategory)
        assert cache.current_user_id is None

    async def test_mutations_require_a_session(self, cache):
        with pytest.raises(RuntimeError, match="authenticated session"):
            cache.toggle_star(1)


class TestMutationTriggers:
    async def test_triggers_apply_synchronously(self, cache, notification_repository):
        await cache.login(user_id=1)
        notification_repository.gate = asyncio.Event()

        task = cache.move_to_trash(3, NotificationCategory.INBOX)

        assert [n.id for n in cache.notifications("trash")] == [3, 20]
        assert cache.notifications("starred") == []
        assert cache.pending_mutations == 1
        assert not cache.is_settled

        notification_repository.gate.set()
        outcome = await task
        assert outcome.status is MutationStatus.COMMITTED
        assert cache.is_settled

    async def test_settled_stats_match_bucket_lengths(self, cache):
        await cache.login(user_id=1)

        cache.toggle_star(1)
        cache.move_to_trash(3, "inbox")
        cache.restore_from_trash(20)
        cache.mark_all_notifications_read()
        cache.send_notification(
            SendNotificationRequest(recipient_ids=[4], title="Hello", message="Shift change")
        )
        await cache.settle()

        for category in NotificationCategory:
            assert cache.notification_stats[category] == len(cache.notifications(category))

    async def test_send_uses_current_user_as_sender(self, cache, notification_repository):
        await cache.login(user_id=42)
        notification_repository.gate = asyncio.Event()

        cache.send_notification(
            SendNotificationRequest(recipient_ids=[4], title="Hello", message="Shift change")
        )
        placeholder = cache.notifications("sent")[0]
        assert is_temp_id(placeholder.id)
        assert placeholder.sender_id == 42

        notification_repository.gate.set()
        await cache.settle()
        assert not is_temp_id(cache.notifications("sent")[0].id)

    async def test_user_triggers(self, cache, user_repository):
        await cache.login()

        cache.create_user(
            CreateUserRequest(
                name="New", email="new@example.com", role="Support", employee_type="Support"
            )
        )
        cache.update_user(1, UpdateUserRequest(name="Renamed"))
        cache.delete_user(2)
        outcomes = await cache.settle()

        assert all(o.ok for o in outcomes)
        assert cache.users[0].name == "New"
        assert cache.get_user(1).name == "Renamed"
        assert cache.get_user(2).is_deleted

        cache.restore_user(2)
        await cache.settle()
        assert not cache.get_user(2).is_deleted

    async def test_logout_cancels_in_flight_mutations(self, cache, notification_repository):
        await cache.login()
        notification_repository.gate = asyncio.Event()
        task = cache.toggle_star(1)

        cache.logout()
        notification_repository.gate.set()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert cache.notifications("starred") == []
        assert cache.is_settled

    async def test_failed_mutation_rolls_back_through_facade(
        self, cache, notification_repository
    ):
        await cache.login()
        notification_repository.failures["mark_read"] = TransportError("offline")

        outcome = await cache.mark_notification_read(1)

        assert outcome.status is MutationStatus.ROLLED_BACK
        assert cache.unread_notification_count == 2

    async def test_refresh_delegates(self, cache, roster_repository, make_roster):
        await cache.login()
        roster_repository.rosters = [make_roster(5)]
        await cache.refresh_rosters()
        assert [r.id for r in cache.rosters] == [5]


class TestHttpBackedCache:
    def _config(self) -> ClientConfig:
        return ClientConfig(
            name="desk",
            base_url="http://api.test/api",
            cache=CacheConfig(notification_page_size=10),
        )

    async def test_from_config_loads_over_http(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            path = request.url.path
            if path == "/api/admin/users":
                return httpx.Response(
                    200,
                    json={
                        "data": [
                            {"id": 1, "name": "Ana", "email": "ana@example.com", "role": "Admin"}
                        ]
                    },
                )
            if path == "/api/notifications":
                return httpx.Response(200, json={"data": [], "total": 0})
            if path == "/api/rosters":
                return httpx.Response(200, json=[{"id": 1, "month": 3, "year": 2025}])
            if path == "/api/activity-logs/recent":
                return httpx.Response(200, json={"success": True, "data": []})
            if path == "/api/activity-logs/statistics":
                return httpx.Response(200, json={"success": True, "data": {"total_activities": 4}})
            return httpx.Response(404)

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        cache = DataCache.from_config(self._config(), http_client=http_client)

        state = await cache.login("tok-123")

        assert state is SessionState.READY
        assert [u.name for u in cache.users] == ["Ana"]
        assert len(cache.rosters) == 1
        assert cache.activity_statistics.total_activities == 4
        assert all(r.headers["Authorization"] == "Bearer tok-123" for r in seen)
        notification_requests = [r for r in seen if r.url.path == "/api/notifications"]
        assert {r.url.params["per_page"] for r in notification_requests} == {"10"}

        await cache.aclose()
        await http_client.aclose()

    async def test_401_logs_the_session_out(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/rosters":
                return httpx.Response(401, json={"message": "Unauthenticated."})
            if request.url.path == "/api/activity-logs/statistics":
                return httpx.Response(200, json={"data": {}})
            if request.url.path == "/api/notifications":
                return httpx.Response(200, json={"data": [], "total": 0})
            return httpx.Response(200, json=[])

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        cache = DataCache.from_config(self._config(), http_client=http_client)

        state = await cache.login("expired")

        assert state is SessionState.UNAUTHENTICATED
        assert not cache.is_authenticated
        assert cache.users == []
        await http_client.aclose()
