"""Role ladder and moderation guardrails.

Roles form a strict ladder (user < admin < owner). UID 1 is the platform
owner no matter what its ``role`` column says; :func:`is_owner` is the only
place that rule is written down.
"""

from __future__ import annotations

from models import OWNER_UID, User, UserRole


def is_owner(user: User) -> bool:
    return user.uid == OWNER_UID or user.role == UserRole.OWNER.value


def is_admin(user: User) -> bool:
    return is_owner(user) or user.role == UserRole.ADMIN.value


def role_for_new_account(uid: int) -> UserRole:
    """The first account ever issued becomes the owner; everyone else is a user."""
    return UserRole.OWNER if uid == OWNER_UID else UserRole.USER


def is_protected_target(user: User) -> bool:
    """Admins and owners can never be banned, deleted or demoted by moderation."""
    return is_admin(user)


def effective_role(user: User) -> UserRole:
    if is_owner(user):
        return UserRole.OWNER
    if user.role == UserRole.ADMIN.value:
        return UserRole.ADMIN
    return UserRole.USER


__all__ = [
    "effective_role",
    "is_admin",
    "is_owner",
    "is_protected_target",
    "role_for_new_account",
]
