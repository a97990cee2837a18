"""Unit tests for the role ladder helpers."""

import pytest

from models import User, UserRole
from services.authorization import (
    effective_role,
    is_admin,
    is_owner,
    is_protected_target,
    role_for_new_account,
)


def _user(uid: int, role: UserRole) -> User:
    return User(
        id=uid,
        username=f"user{uid}",
        email=f"user{uid}@example.com",
        uid=uid,
        role=role.value,
    )


@pytest.mark.parametrize(
    ("uid", "role", "owner", "admin"),
    [
        (1, UserRole.USER, True, True),
        (1, UserRole.OWNER, True, True),
        (2, UserRole.OWNER, True, True),
        (2, UserRole.ADMIN, False, True),
        (2, UserRole.USER, False, False),
    ],
)
def test_role_ladder(uid: int, role: UserRole, owner: bool, admin: bool):
    user = _user(uid, role)

    assert is_owner(user) is owner
    assert is_admin(user) is admin
    assert is_protected_target(user) is admin


def test_uid_one_is_always_reported_as_owner():
    assert effective_role(_user(1, UserRole.USER)) is UserRole.OWNER
    assert effective_role(_user(5, UserRole.ADMIN)) is UserRole.ADMIN
    assert effective_role(_user(5, UserRole.USER)) is UserRole.USER


def test_role_for_new_account():
    assert role_for_new_account(1) is UserRole.OWNER
    assert role_for_new_account(2) is UserRole.USER
