"""Repositories: the only path from the cache to the network."""

from shiftdesk.repositories.activity import ActivityRepository, HttpActivityRepository
from shiftdesk.repositories.client import ApiClient
from shiftdesk.repositories.errors import (
    InvalidPayloadError,
    RepositoryError,
    RequestError,
    TransportError,
    UnauthorizedError,
)
from shiftdesk.repositories.notifications import (
    HttpNotificationRepository,
    NotificationPage,
    NotificationRepository,
)
from shiftdesk.repositories.rosters import HttpRosterRepository, RosterRepository
from shiftdesk.repositories.users import HttpUserRepository, UserRepository

__all__ = [
    "ActivityRepository",
    "ApiClient",
    "HttpActivityRepository",
    "HttpNotificationRepository",
    "HttpRosterRepository",
    "HttpUserRepository",
    "InvalidPayloadError",
    "NotificationPage",
    "NotificationRepository",
    "RepositoryError",
    "RequestError",
    "RosterRepository",
    "TransportError",
    "UnauthorizedError",
    "UserRepository",
]
