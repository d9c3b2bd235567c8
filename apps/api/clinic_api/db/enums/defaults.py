"""Default values shared by models and migrations."""

from clinic_api.db.enums.auth import Role
from clinic_api.db.enums.contacts import LeadSource, LeadStatus
from clinic_api.db.enums.follow_ups import FollowUpExecutionStatus

DEFAULT_ROLE = Role.RECEPTIONIST
DEFAULT_LEAD_SOURCE = LeadSource.OMNICHANNEL
DEFAULT_LEAD_STATUS = LeadStatus.NEW
DEFAULT_EXECUTION_STATUS = FollowUpExecutionStatus.PENDING
