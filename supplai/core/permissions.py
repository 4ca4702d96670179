"""
Role gating for page view models.

    actions = role_gate(org.role, [MembershipRole.admin], [new_supplier_link], fallback=[])
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TypeVar

from supplai.models.member import MembershipRole

T = TypeVar("T")
F = TypeVar("F")


def _role_value(role: MembershipRole | str) -> str:
    return role.value if isinstance(role, MembershipRole) else str(role)


def role_gate(
    user_role: MembershipRole | str | None,
    allowed_roles: Iterable[MembershipRole | str],
    children: T,
    fallback: F = None,
) -> T | F:
    """Return `children` when `user_role` is allowed, otherwise `fallback`."""
    if user_role is None:
        return fallback
    allowed = {_role_value(r) for r in allowed_roles}
    if _role_value(user_role) not in allowed:
        return fallback
    return children


def admin_only(
    user_role: MembershipRole | str | None,
    children: T,
    fallback: F = None,
) -> T | F:
    """Only show `children` to admins."""
    return role_gate(user_role, [MembershipRole.admin], children, fallback)
