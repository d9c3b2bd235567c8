"""Enum definitions for application constants."""

from clinic_api.db.enums.auth import Role
from clinic_api.db.enums.contacts import LeadSource, LeadStatus
from clinic_api.db.enums.defaults import (
    DEFAULT_EXECUTION_STATUS,
    DEFAULT_LEAD_SOURCE,
    DEFAULT_LEAD_STATUS,
    DEFAULT_ROLE,
)
from clinic_api.db.enums.follow_ups import (
    FollowUpExecutionStatus,
    FollowUpTargetType,
    FollowUpTrigger,
    MessageChannel,
)

__all__ = [
    "DEFAULT_EXECUTION_STATUS",
    "DEFAULT_LEAD_SOURCE",
    "DEFAULT_LEAD_STATUS",
    "DEFAULT_ROLE",
    "FollowUpExecutionStatus",
    "FollowUpTargetType",
    "FollowUpTrigger",
    "LeadSource",
    "LeadStatus",
    "MessageChannel",
    "Role",
]
