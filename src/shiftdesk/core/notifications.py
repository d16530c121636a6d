"""Notification buckets over a single normalized entity table.

Each notification is stored once, keyed by id, and each bucket (``inbox``,
``starred``, ``sent``, ``trash``) is an ordered list of ids, most recent
first.  A flag flip is therefore one write regardless of how many buckets
reference the notification.

Membership rules:

- ``starred`` is orthogonal to ``inbox``/``sent``; an id may sit in several
  live buckets at once.
- ``trash`` is exclusive: an id in ``trash`` is in no other bucket.

Per-bucket counters live next to the buckets and are only ever changed by
the method that changes membership, by the exact number of memberships
added or removed, floored at zero.  Category loads overwrite the counter
with the server-reported total instead, because the server may hold more
items than the page cached locally.  Starring or unstarring a live
notification moves the ``starred`` counter by one even when the id lies
outside the cached page.

Every method is synchronous and leaves the index valid; ids that are not
present make mutations silent no-ops.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from shiftdesk.models import EntityId, Notification, NotificationCategory
from shiftdesk.models.notification import LIVE_CATEGORIES, SEARCH_ORDER

logger = logging.getLogger(__name__)

INBOX = NotificationCategory.INBOX
STARRED = NotificationCategory.STARRED
SENT = NotificationCategory.SENT
TRASH = NotificationCategory.TRASH


@dataclass(frozen=True)
class Placement:
    """Where one notification sat, and what it looked like, at capture time.

    ``positions`` maps each bucket that held the id to its index in that
    bucket.  An empty mapping means the id was not indexed at all.
    """

    notification_id: EntityId
    entity: Notification | None
    positions: dict[NotificationCategory, int] = field(default_factory=dict)


class NotificationBucketIndex:
    """The four notification views plus their counters."""

    def __init__(self) -> None:
        self._entities: dict[EntityId, Notification] = {}
        self._buckets: dict[NotificationCategory, list[EntityId]] = {
            category: [] for category in NotificationCategory
        }
        self._stats: dict[NotificationCategory, int] = {
            category: 0 for category in NotificationCategory
        }

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def bucket(self, category: NotificationCategory | str) -> list[Notification]:
        """Notifications in *category*, in display order."""
        category = NotificationCategory(category)
        return [self._entities[nid] for nid in self._buckets[category]]

    def ids(self, category: NotificationCategory | str) -> list[EntityId]:
        return list(self._buckets[NotificationCategory(category)])

    @property
    def stats(self) -> dict[str, int]:
        """Counter snapshot keyed by category name."""
        return {str(category): count for category, count in self._stats.items()}

    @property
    def unread_count(self) -> int:
        """Unread notifications currently in the inbox."""
        return sum(1 for nid in self._buckets[INBOX] if not self._entities[nid].is_read)

    def get(self, notification_id: EntityId) -> Notification | None:
        return self._entities.get(notification_id)

    def find(
        self, notification_id: EntityId
    ) -> tuple[NotificationCategory, Notification] | None:
        """First bucket holding the id, scanning inbox, starred, sent, then trash."""
        for category in SEARCH_ORDER:
            if notification_id in self._buckets[category]:
                return category, self._entities[notification_id]
        return None

    def memberships(self, notification_id: EntityId) -> tuple[NotificationCategory, ...]:
        return tuple(c for c in SEARCH_ORDER if notification_id in self._buckets[c])

    def contains(self, category: NotificationCategory | str, notification_id: EntityId) -> bool:
        return notification_id in self._buckets[NotificationCategory(category)]

    def stats_drift(self) -> dict[str, tuple[int, int]]:
        """Buckets whose counter differs from their length: ``{cat: (counter, length)}``.

        Empty in a settled state where the counters came from local deltas;
        after a paginated load the server total may legitimately exceed the
        cached length.
        """
        return {
            str(c): (self._stats[c], len(self._buckets[c]))
            for c in NotificationCategory
            if self._stats[c] != len(self._buckets[c])
        }

    # ------------------------------------------------------------------
    # Loads (server ground truth)
    # ------------------------------------------------------------------

    def load_category(
        self,
        category: NotificationCategory | str,
        items: Iterable[Notification],
        total: int | None = None,
    ) -> None:
        """Replace one bucket with a fetched page and overwrite its counter.

        Ids in the page are evicted from the other side of the trash
        boundary so exclusivity holds even when buckets are refreshed one at
        a time.
        """
        category = NotificationCategory(category)
        previous = self._buckets[category]

        ordered: list[EntityId] = []
        for item in items:
            if item.id in ordered:
                continue
            ordered.append(item.id)
            self._entities[item.id] = item.model_copy()

        evict_from = LIVE_CATEGORIES if category is TRASH else (TRASH,)
        for nid in ordered:
            for other in evict_from:
                self._discard(other, nid)

        self._buckets[category] = ordered
        self._stats[category] = len(ordered) if total is None else max(0, int(total))

        for nid in previous:
            self._prune(nid)
        logger.debug(
            "Loaded %d %s notifications (total=%d)", len(ordered), category, self._stats[category]
        )

    def load_all(
        self,
        pages: Mapping[NotificationCategory | str, tuple[Iterable[Notification], int | None]],
    ) -> None:
        """Load several categories at once; live buckets first, trash last."""
        normalized = {NotificationCategory(c): page for c, page in pages.items()}
        for category in SEARCH_ORDER:
            if category in normalized:
                items, total = normalized[category]
                self.load_category(category, items, total)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def toggle_star(self, notification_id: EntityId) -> bool | None:
        """Flip the starred flag and starred-bucket membership.

        The current state is read from the first bucket holding the id
        (inbox, starred, sent, trash).  Returns the new starred state, or
        None when the id is not indexed.  A trashed notification has its flag
        flipped but never enters ``starred`` and leaves its counter alone.

        For a live notification the ``starred`` counter moves by exactly one
        even when the cached page does not hold the id, since the counter
        may be a server total covering items beyond that page.
        """
        found = self.find(notification_id)
        if found is None:
            logger.debug("toggle_star(%r): not indexed, ignoring", notification_id)
            return None

        _, current = found
        starred = not current.is_starred
        self._entities[notification_id] = current.model_copy(update={"is_starred": starred})

        if self.contains(TRASH, notification_id):
            return starred
        if starred:
            if not self._insert(STARRED, notification_id):
                self._shift(STARRED, 1)
        else:
            if not self._discard(STARRED, notification_id):
                self._shift(STARRED, -1)
            self._prune(notification_id)
        return starred

    def move_to_trash(
        self,
        notification_id: EntityId,
        from_category: NotificationCategory | str,
        *,
        deleted_at: datetime | None = None,
    ) -> bool:
        """Move a notification found in *from_category* into trash.

        The id leaves every live bucket at once (a starred inbox item
        disappears from both) and each bucket that actually held it is
        decremented.  Returns False, changing nothing, when the id is not in
        *from_category*.
        """
        from_category = NotificationCategory(from_category)
        if from_category is TRASH or not self.contains(from_category, notification_id):
            logger.debug(
                "move_to_trash(%r, %s): not in bucket, ignoring", notification_id, from_category
            )
            return False

        stamp = deleted_at or datetime.now(UTC)
        entity = self._entities[notification_id]
        self._entities[notification_id] = entity.model_copy(update={"deleted_at": stamp})
        for category in LIVE_CATEGORIES:
            self._discard(category, notification_id)
        self._insert(TRASH, notification_id)
        return True

    def restore_from_trash(self, notification: Notification | EntityId) -> bool:
        """Move a trashed notification back to the top of the inbox.

        Returns False when the id is not in trash.
        """
        notification_id = (
            notification.id if isinstance(notification, Notification) else notification
        )
        if not self._discard(TRASH, notification_id):
            logger.debug("restore_from_trash(%r): not in trash, ignoring", notification_id)
            return False

        entity = self._entities[notification_id]
        self._entities[notification_id] = entity.model_copy(update={"deleted_at": None})
        self._insert(INBOX, notification_id)
        return True

    def add_to_sent(self, notification: Notification) -> None:
        """Prepend a just-sent notification to ``sent`` only."""
        self._entities[notification.id] = notification.model_copy()
        self._insert(SENT, notification.id)

    def remove_from_category(
        self, notification_id: EntityId, category: NotificationCategory | str
    ) -> bool:
        """Drop the id from exactly one bucket (permanent deletion from trash)."""
        removed = self._discard(NotificationCategory(category), notification_id)
        self._prune(notification_id)
        return removed

    def update_fields(self, notification_id: EntityId, **patch: Any) -> Notification | None:
        """Patch the stored notification; buckets and counters are untouched.

        Returns the notification as it was before the patch, or None when the
        id is not indexed.
        """
        previous = self._entities.get(notification_id)
        if previous is None:
            return None
        self._entities[notification_id] = previous.model_copy(update=patch)
        return previous

    def replace_id(self, temp_id: EntityId, real: Notification | None) -> None:
        """Swap a placeholder id for the server-assigned one in place.

        ``real is None`` removes the placeholder from every bucket.
        """
        if real is None:
            for category in NotificationCategory:
                self._discard(category, temp_id)
            self._entities.pop(temp_id, None)
            return

        for category in NotificationCategory:
            ids = self._buckets[category]
            if temp_id not in ids:
                continue
            if real.id in ids:
                self._discard(category, temp_id)
            else:
                ids[ids.index(temp_id)] = real.id
        self._entities.pop(temp_id, None)
        if self.memberships(real.id):
            self._entities[real.id] = real.model_copy()

    # ------------------------------------------------------------------
    # Rollback support
    # ------------------------------------------------------------------

    def capture(self, notification_id: EntityId) -> Placement:
        entity = self._entities.get(notification_id)
        positions = {
            category: self._buckets[category].index(notification_id)
            for category in NotificationCategory
            if notification_id in self._buckets[category]
        }
        return Placement(
            notification_id=notification_id,
            entity=entity.model_copy() if entity is not None else None,
            positions=positions,
        )

    def reinstate(self, placement: Placement) -> None:
        """Put one notification back exactly where *placement* recorded it.

        Only this id is touched; other notifications mutated in the meantime
        keep their state.  Counters move by the memberships actually
        added or removed.
        """
        nid = placement.notification_id
        for category in NotificationCategory:
            if category not in placement.positions:
                self._discard(category, nid)

        if placement.entity is not None:
            self._entities[nid] = placement.entity.model_copy()
        for category, position in placement.positions.items():
            ids = self._buckets[category]
            if nid in ids:
                ids.remove(nid)
                ids.insert(min(position, len(ids)), nid)
            else:
                self._insert(category, nid, position)
        self._prune(nid)

    def undo_toggle_star(self, placement: Placement) -> None:
        """Reverse a ``toggle_star`` made after *placement* was captured.

        The flag and the ``starred`` counter flip back through
        :meth:`toggle_star`; ``starred`` membership and order are then put
        back as captured without moving the counter again.
        """
        nid = placement.notification_id
        if placement.entity is None:
            return
        current = self._entities.get(nid)
        if current is None:
            self.reinstate(placement)
            return
        if current.is_starred != placement.entity.is_starred:
            self.toggle_star(nid)

        starred = self._buckets[STARRED]
        if nid in starred:
            starred.remove(nid)
        if STARRED in placement.positions and not self.contains(TRASH, nid):
            starred.insert(min(placement.positions[STARRED], len(starred)), nid)
        self._prune(nid)

    def clear(self) -> None:
        self._entities.clear()
        for category in NotificationCategory:
            self._buckets[category] = []
            self._stats[category] = 0

    # ------------------------------------------------------------------
    # Internal membership primitives (the only counter writers)
    # ------------------------------------------------------------------

    def _insert(self, category: NotificationCategory, nid: EntityId, position: int = 0) -> bool:
        ids = self._buckets[category]
        if nid in ids:
            return False
        ids.insert(min(position, len(ids)), nid)
        self._shift(category, 1)
        return True

    def _discard(self, category: NotificationCategory, nid: EntityId) -> bool:
        ids = self._buckets[category]
        if nid not in ids:
            return False
        ids.remove(nid)
        self._shift(category, -1)
        return True

    def _shift(self, category: NotificationCategory, delta: int) -> None:
        self._stats[category] = max(0, self._stats[category] + delta)

    def _prune(self, nid: EntityId) -> None:
        if nid in self._entities and not self.memberships(nid):
            del self._entities[nid]
