"""Permission tags and the pure checks built on them.

Nothing here touches the database: callers load a user's stored permissions
and hand them in.
"""
import logging
from enum import Enum
from typing import Iterable

logger = logging.getLogger(__name__)

ADMIN_USER_ID = 1


class Permission(str, Enum):
    TASKS = "tasks"
    USERS = "users"
    LOCATIONS = "locations"
    TAGS = "tags"
    DEVICE_TYPES = "deviceTypes"
    PROBLEM_TYPES = "problemTypes"
    STATUSES = "statuses"


ALL_PERMISSIONS: tuple[Permission, ...] = tuple(Permission)


def is_admin(user_id: int | None) -> bool:
    """True for the single super-admin identity."""
    return user_id == ADMIN_USER_ID


def parse_permissions(raw: Iterable[str] | None) -> frozenset[Permission]:
    """Coerce a stored JSON list into known permissions, dropping unknown tags."""
    granted = set()
    for value in raw or ():
        try:
            granted.add(Permission(value))
        except ValueError:
            logger.warning("Ignoring unknown permission tag %r", value)
    return frozenset(granted)


def has_any_permission(granted: Iterable[Permission], required: Iterable[Permission]) -> bool:
    return not set(granted).isdisjoint(required)
