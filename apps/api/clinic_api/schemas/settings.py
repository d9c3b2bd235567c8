"""Pydantic schemas for clinic omnichannel settings."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class OmnichannelSettingsUpdate(BaseModel):
    whatsapp_token: str | None = Field(None, max_length=1000)
    whatsapp_phone_number_id: str | None = Field(None, max_length=64)
    instagram_access_token: str | None = Field(None, max_length=1000)


class OmnichannelSettingsRead(BaseModel):
    """Channel settings with secrets masked."""
    clinic_id: UUID
    whatsapp_configured: bool
    whatsapp_phone_number_id: str | None
    whatsapp_token_hint: str | None
    instagram_configured: bool
    instagram_token_hint: str | None
    updated_at: datetime | None
