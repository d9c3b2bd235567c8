"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Clinic staff roles.

    - ADMIN: Clinic owner/manager (settings, users, follow-up rules)
    - DENTIST: Clinical staff
    - RECEPTIONIST: Front desk (appointments, leads)
    """
    ADMIN = "admin"
    DENTIST = "dentist"
    RECEPTIONIST = "receptionist"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
