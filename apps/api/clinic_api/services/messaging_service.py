"""Outbound messaging for follow-ups (WhatsApp Cloud API and Instagram messaging).

Both channels go through the Meta Graph API with the clinic's own tokens
from ClinicSettings. Failures are returned as DispatchResult values; nothing
here raises for a rejected or unreachable send.
"""

import logging
from dataclasses import dataclass

import httpx
from sqlalchemy.orm import Session

from clinic_api.core.config import settings
from clinic_api.db.enums import FollowUpTargetType, LeadSource, MessageChannel
from clinic_api.db.models import ClinicSettings, FollowUpExecution, Lead, Patient
from clinic_api.services.follow_up_processor import DispatchResult

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.facebook.com"
CONNECT_TIMEOUT_SECONDS = 5.0
MAX_ERROR_BODY = 500


@dataclass
class Recipient:
    address: str  # phone number, or Instagram-scoped id for instagram leads
    channel: MessageChannel


def graph_url(path: str) -> str:
    return f"{GRAPH_API_BASE}/{settings.META_GRAPH_API_VERSION}/{path.lstrip('/')}"


def resolve_recipient(db: Session, execution: FollowUpExecution) -> Recipient | None:
    """Find where to deliver an execution. None when the contact has no phone."""
    if execution.target_type == FollowUpTargetType.LEAD.value:
        lead = (
            db.query(Lead)
            .filter(Lead.id == execution.target_id, Lead.clinic_id == execution.clinic_id)
            .first()
        )
        if not lead or not lead.phone:
            return None
        channel = (
            MessageChannel.INSTAGRAM
            if lead.source == LeadSource.INSTAGRAM.value
            else MessageChannel.WHATSAPP
        )
        return Recipient(address=lead.phone, channel=channel)

    patient = (
        db.query(Patient)
        .filter(Patient.id == execution.target_id, Patient.clinic_id == execution.clinic_id)
        .first()
    )
    if not patient or not patient.phone:
        return None
    return Recipient(address=patient.phone, channel=MessageChannel.WHATSAPP)


class MessageDispatcher:
    """Sends a follow-up execution's message through the contact's channel."""

    def __init__(
        self,
        db: Session,
        http_client: httpx.Client | None = None,
        timeout_seconds: float | None = None,
    ):
        self.db = db
        self.http_client = http_client
        self.timeout = httpx.Timeout(
            timeout_seconds or settings.FOLLOW_UP_DISPATCH_TIMEOUT_SECONDS,
            connect=CONNECT_TIMEOUT_SECONDS,
        )

    def send(self, execution: FollowUpExecution) -> DispatchResult:
        recipient = resolve_recipient(self.db, execution)
        if recipient is None:
            return DispatchResult(success=False, error="Phone number not found")

        clinic_settings = (
            self.db.query(ClinicSettings)
            .filter(ClinicSettings.clinic_id == execution.clinic_id)
            .first()
        )
        if not clinic_settings:
            return DispatchResult(success=False, error="Clinic settings not found")

        if recipient.channel == MessageChannel.INSTAGRAM:
            return self.send_instagram_message(recipient.address, execution.message, clinic_settings)
        return self.send_whatsapp_message(recipient.address, execution.message, clinic_settings)

    def send_whatsapp_message(
        self, phone: str, message: str, clinic_settings: ClinicSettings
    ) -> DispatchResult:
        if not clinic_settings.whatsapp_token or not clinic_settings.whatsapp_phone_number_id:
            return DispatchResult(success=False, error="WhatsApp not configured")

        return self._post(
            graph_url(f"{clinic_settings.whatsapp_phone_number_id}/messages"),
            token=clinic_settings.whatsapp_token,
            payload={
                "messaging_product": "whatsapp",
                "to": phone,
                "type": "text",
                "text": {"body": message},
            },
        )

    def send_instagram_message(
        self, recipient_id: str, message: str, clinic_settings: ClinicSettings
    ) -> DispatchResult:
        if not clinic_settings.instagram_access_token:
            return DispatchResult(success=False, error="Instagram not configured")

        return self._post(
            graph_url("me/messages"),
            token=clinic_settings.instagram_access_token,
            payload={
                "recipient": {"id": recipient_id},
                "message": {"text": message},
            },
        )

    def _post(self, url: str, token: str, payload: dict) -> DispatchResult:
        headers = {"Authorization": f"Bearer {token}"}
        try:
            if self.http_client is not None:
                response = self.http_client.post(
                    url, json=payload, headers=headers, timeout=self.timeout
                )
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(url, json=payload, headers=headers)
        except httpx.RequestError as e:
            logger.warning("Graph API request failed: %s", type(e).__name__)
            return DispatchResult(success=False, error=str(e) or type(e).__name__)

        if response.is_success:
            return DispatchResult(success=True)

        logger.warning("Graph API returned %s", response.status_code)
        return DispatchResult(
            success=False,
            error=f"HTTP {response.status_code}: {response.text[:MAX_ERROR_BODY]}",
        )
