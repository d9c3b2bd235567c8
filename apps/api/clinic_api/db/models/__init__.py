"""SQLAlchemy ORM models."""

from clinic_api.db.models.auth import Clinic, User
from clinic_api.db.models.contacts import Lead, Patient
from clinic_api.db.models.follow_ups import FollowUp, FollowUpExecution
from clinic_api.db.models.settings import ClinicSettings

__all__ = [
    "Clinic",
    "ClinicSettings",
    "FollowUp",
    "FollowUpExecution",
    "Lead",
    "Patient",
    "User",
]
