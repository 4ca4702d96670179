"""
Membership role.
"""

from __future__ import annotations

import enum


class MembershipRole(str, enum.Enum):
    """Organization member role enumeration."""

    admin = "admin"
    member = "member"
