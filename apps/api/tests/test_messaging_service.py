"""Tests for WhatsApp/Instagram dispatch of follow-up messages."""
from __future__ import annotations

import json

import httpx
import pytest

from clinic_api.db.enums import FollowUpTargetType, FollowUpTrigger, LeadSource
from clinic_api.db.types import utcnow
from clinic_api.services.messaging_service import MessageDispatcher, graph_url

from conftest import configure_whatsapp, create_execution, create_lead, create_patient, create_rule


class _GraphApi:
    """Records requests and answers with a fixed response."""

    def __init__(self, status_code: int = 200, body: dict | None = None, error: Exception | None = None):
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.body = body or {"messages": [{"id": "wamid.1"}]}
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


@pytest.fixture
def patient_execution(db, test_clinic):
    patient = create_patient(db, test_clinic, phone="5511999990000")
    rule = create_rule(db, test_clinic)
    return create_execution(db, rule, patient.id, utcnow(), message="Hi Maria")


def test_patient_message_goes_to_whatsapp(db, test_clinic, patient_execution):
    configure_whatsapp(db, test_clinic)
    api = _GraphApi()

    result = MessageDispatcher(db, http_client=api.client()).send(patient_execution)

    assert result.success is True
    assert result.error is None
    [request] = api.requests
    assert str(request.url) == graph_url("1029384756/messages")
    assert request.headers["Authorization"] == "Bearer wa-token-123456789"
    assert json.loads(request.content) == {
        "messaging_product": "whatsapp",
        "to": "5511999990000",
        "type": "text",
        "text": {"body": "Hi Maria"},
    }


def test_instagram_lead_goes_to_instagram(db, test_clinic):
    configure_whatsapp(db, test_clinic)
    lead = create_lead(db, test_clinic, phone="ig-user-42", source=LeadSource.INSTAGRAM)
    rule = create_rule(
        db,
        test_clinic,
        trigger=FollowUpTrigger.LEAD_CREATED,
        target_type=FollowUpTargetType.LEAD,
    )
    execution = create_execution(db, rule, lead.id, utcnow(), message="Oi!")
    api = _GraphApi()

    result = MessageDispatcher(db, http_client=api.client()).send(execution)

    assert result.success is True
    [request] = api.requests
    assert str(request.url) == graph_url("me/messages")
    assert request.headers["Authorization"] == "Bearer ig-token-123456789"
    assert json.loads(request.content) == {
        "recipient": {"id": "ig-user-42"},
        "message": {"text": "Oi!"},
    }


def test_missing_phone_fails_without_request(db, test_clinic):
    configure_whatsapp(db, test_clinic)
    patient = create_patient(db, test_clinic, phone=None)
    rule = create_rule(db, test_clinic)
    execution = create_execution(db, rule, patient.id, utcnow())
    api = _GraphApi()

    result = MessageDispatcher(db, http_client=api.client()).send(execution)

    assert result.success is False
    assert result.error == "Phone number not found"
    assert api.requests == []


def test_missing_settings_fails(db, patient_execution):
    api = _GraphApi()

    result = MessageDispatcher(db, http_client=api.client()).send(patient_execution)

    assert result.error == "Clinic settings not found"
    assert api.requests == []


def test_unconfigured_whatsapp_fails(db, test_clinic, patient_execution):
    row = configure_whatsapp(db, test_clinic)
    row.whatsapp_token = None
    db.commit()

    result = MessageDispatcher(db, http_client=_GraphApi().client()).send(patient_execution)

    assert result.error == "WhatsApp not configured"


def test_http_error_is_reported(db, test_clinic, patient_execution):
    configure_whatsapp(db, test_clinic)
    api = _GraphApi(status_code=400, body={"error": {"message": "Invalid parameter"}})

    result = MessageDispatcher(db, http_client=api.client()).send(patient_execution)

    assert result.success is False
    assert result.error.startswith("HTTP 400: ")
    assert "Invalid parameter" in result.error


def test_network_error_is_reported(db, test_clinic, patient_execution):
    configure_whatsapp(db, test_clinic)
    api = _GraphApi(error=httpx.ConnectTimeout("timed out"))

    result = MessageDispatcher(db, http_client=api.client()).send(patient_execution)

    assert result.success is False
    assert result.error == "timed out"


def test_configured_timeout_reaches_request(db, test_clinic, patient_execution, monkeypatch):
    from clinic_api.core.config import settings

    monkeypatch.setattr(settings, "FOLLOW_UP_DISPATCH_TIMEOUT_SECONDS", 3.5)
    configure_whatsapp(db, test_clinic)
    api = _GraphApi()

    MessageDispatcher(db, http_client=api.client()).send(patient_execution)

    [request] = api.requests
    assert request.extensions["timeout"] == {
        "connect": 5.0,
        "read": 3.5,
        "write": 3.5,
        "pool": 3.5,
    }
