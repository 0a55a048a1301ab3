"""
User roles enumeration.

Defines the role types carried in access tokens.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Agency administrator, may confirm and reopen settlements
        OPERATOR: Agency staff recording obligations and payments
    """
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
