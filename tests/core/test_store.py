"""Tests for shiftdesk.core.store: ordered entity collections."""

from __future__ import annotations

import pytest

from shiftdesk.core.store import CacheStore
from shiftdesk.models import User, new_temp_id

pytestmark = pytest.mark.unit


@pytest.fixture
def users(make_user) -> CacheStore[User]:
    store: CacheStore[User] = CacheStore("users")
    store.load([make_user(1), make_user(2), make_user(3)])
    return store


class TestReads:
    def test_items_is_a_snapshot(self, users):
        snapshot = users.items
        snapshot.clear()
        assert len(users) == 3

    def test_contains_and_get(self, users):
        assert 2 in users
        assert 9 not in users
        assert users.get(2).name == "User 2"
        assert users.get(9) is None

    def test_iterates_in_display_order(self, users):
        assert [u.id for u in users] == [1, 2, 3]


class TestWrites:
    def test_load_replaces_everything(self, users, make_user):
        users.load([make_user(7)])
        assert [u.id for u in users.items] == [7]

    def test_load_stores_copies(self, make_user):
        original = make_user(1)
        store: CacheStore[User] = CacheStore("users")
        store.load([original])
        assert store.get(1) is not original
        assert store.get(1) == original

    def test_add_prepends(self, users, make_user):
        users.add(make_user(4))
        assert [u.id for u in users.items] == [4, 1, 2, 3]

    def test_update_replaces_in_place(self, users, make_user):
        assert users.update(2, make_user(2, name="Renamed")) is True
        assert [u.id for u in users.items] == [1, 2, 3]
        assert users.get(2).name == "Renamed"

    def test_patch_returns_previous(self, users):
        previous = users.patch(1, is_active=False)
        assert previous is not None and previous.is_active is True
        assert users.get(1).is_active is False

    def test_remove(self, users):
        assert users.remove(2) is True
        assert [u.id for u in users.items] == [1, 3]

    def test_clear(self, users):
        users.clear()
        assert len(users) == 0


class TestMissingIds:
    def test_update_missing_is_noop(self, users, make_user):
        before = users.items
        assert users.update(99, make_user(99)) is False
        assert users.items == before

    def test_remove_missing_is_noop(self, users):
        before = users.items
        assert users.remove(99) is False
        assert users.items == before

    def test_patch_missing_returns_none(self, users):
        assert users.patch(99, name="x") is None
        assert len(users) == 3


class TestTempIdResolution:
    def test_replace_swaps_placeholder_in_place(self, users, make_user):
        temp_id = new_temp_id()
        users.add(make_user(temp_id))
        users.replace(temp_id, make_user(50))

        ids = [u.id for u in users.items]
        assert ids == [50, 1, 2, 3]
        assert temp_id not in users

    def test_replace_with_none_removes_placeholder(self, users, make_user):
        temp_id = new_temp_id()
        users.add(make_user(temp_id))
        users.replace(temp_id, None)

        assert temp_id not in users
        assert [u.id for u in users.items] == [1, 2, 3]

    def test_replace_keeps_a_single_copy_of_the_real_id(self, users, make_user):
        temp_id = new_temp_id()
        users.add(make_user(temp_id))
        # A refresh raced the create and already holds the real entity.
        users.add(make_user(50))
        users.replace(temp_id, make_user(50, name="Server copy"))

        ids = [u.id for u in users.items]
        assert ids.count(50) == 1
        assert temp_id not in ids
        assert users.get(50).name == "Server copy"

    def test_replace_unknown_temp_id_prepends_real(self, users, make_user):
        users.replace("temp_0", make_user(50))
        assert [u.id for u in users.items] == [50, 1, 2, 3]
