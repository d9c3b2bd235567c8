"""Contact (patient/lead) enums."""

from enum import Enum


class LeadSource(str, Enum):
    """Where a lead came from."""

    OMNICHANNEL = "omnichannel"
    WHATSAPP = "whatsapp"
    INSTAGRAM = "instagram"
    WEBSITE = "website"
    REFERRAL = "referral"
    OTHER = "other"


class LeadStatus(str, Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    LOST = "lost"
