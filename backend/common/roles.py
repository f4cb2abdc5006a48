"""
Closed role enumerations.

Two independent privilege scopes exist:
- GlobalRole: platform-wide (user / admin), carried in the session token.
- OrgRole: scoped to a single UKM (member / admin), stored on the membership row.
"""

from enum import Enum
from typing import Optional


class GlobalRole(str, Enum):
    """Platform-wide privilege level."""

    USER = "user"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Optional[str]) -> "GlobalRole":
        """
        Turn a raw role string into a GlobalRole.

        Blank or missing values default to USER. Anything else that is not a
        known role raises ValueError.
        """
        if value is None or not str(value).strip():
            return cls.USER
        return cls(str(value).strip().lower())


class OrgRole(str, Enum):
    """Privilege level inside one UKM."""

    MEMBER = "member"
    ADMIN = "admin"
