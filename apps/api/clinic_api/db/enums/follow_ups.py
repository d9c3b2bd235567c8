"""Follow-up enums."""

from enum import Enum


class FollowUpTrigger(str, Enum):
    """Events that generate follow-up executions."""

    LEAD_CREATED = "lead_created"
    LEAD_CONTACTED = "lead_contacted"
    LEAD_QUALIFIED = "lead_qualified"
    PATIENT_CREATED = "patient_created"
    APPOINTMENT_SCHEDULED = "appointment_scheduled"
    APPOINTMENT_COMPLETED = "appointment_completed"
    APPOINTMENT_REMINDER = "appointment_reminder"  # delay relative to appointment date
    BIRTHDAY = "birthday"


class FollowUpTargetType(str, Enum):
    """Kind of contact a follow-up is sent to."""

    LEAD = "lead"
    PATIENT = "patient"


class FollowUpExecutionStatus(str, Enum):
    """
    Status of a single follow-up attempt.

    pending -> claimed -> sent | failed
    pending -> cancelled
    """

    PENDING = "pending"
    CLAIMED = "claimed"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class MessageChannel(str, Enum):
    """Outbound channels a follow-up can be delivered through."""

    WHATSAPP = "whatsapp"
    INSTAGRAM = "instagram"

