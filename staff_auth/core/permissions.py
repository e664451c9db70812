"""Typed capability set resolved once per access token."""

from __future__ import annotations

import enum
from collections.abc import Iterable

from staff_auth.models.enums import StaffRole
from staff_auth.models.staff import Staff


class Permission(str, enum.Enum):
    manage_messages = "manage_messages"
    manage_consultations = "manage_consultations"
    manage_chats = "manage_chats"
    view_analytics = "view_analytics"
    manage_staff = "manage_staff"


ALL_PERMISSIONS: frozenset[Permission] = frozenset(Permission)

# Boolean flags stored on the staff record and the capability each one grants.
FLAG_PERMISSIONS: dict[str, Permission] = {
    "can_manage_messages": Permission.manage_messages,
    "can_manage_consultations": Permission.manage_consultations,
    "can_manage_chats": Permission.manage_chats,
    "can_view_analytics": Permission.view_analytics,
}

ROLE_PERMISSIONS: dict[StaffRole, frozenset[Permission]] = {
    StaffRole.admin: ALL_PERMISSIONS,
    StaffRole.manager: frozenset({Permission.manage_staff}),
    StaffRole.staff: frozenset(),
}


def resolve_permissions(staff: Staff) -> frozenset[Permission]:
    granted = set(ROLE_PERMISSIONS.get(staff.role, frozenset()))
    for flag, permission in FLAG_PERMISSIONS.items():
        if getattr(staff, flag, False):
            granted.add(permission)
    return frozenset(granted)


def parse_permissions(values: Iterable[str]) -> frozenset[Permission]:
    """Rebuild the capability set from token claims; unknown names raise ValueError."""
    return frozenset(Permission(value) for value in values)


def has_permission(granted: Iterable[Permission], permission: Permission) -> bool:
    return permission in set(granted)
