"""Tests for the follow-up processor (due selection, claiming, outcomes)."""
from __future__ import annotations

import logging
import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from clinic_api.db.enums import FollowUpExecutionStatus
from clinic_api.db.models import FollowUpExecution
from clinic_api.db.types import utcnow
from clinic_api.services.follow_up_processor import DispatchResult, FollowUpProcessor
from clinic_api.services.follow_up_store import FollowUpExecutionStore

from conftest import create_execution, create_patient, create_rule


class RecordingDispatcher:
    def __init__(self, outcomes: dict | None = None):
        self.sent: list[uuid.UUID] = []
        self.outcomes = outcomes or {}

    def send(self, execution):
        self.sent.append(execution.id)
        outcome = self.outcomes.get(execution.id, DispatchResult(success=True))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _reload(db, execution_id) -> FollowUpExecution:
    db.expire_all()
    return db.get(FollowUpExecution, execution_id)


@pytest.fixture
def rule(db, test_clinic):
    return create_rule(db, test_clinic)


@pytest.fixture
def patient(db, test_clinic):
    return create_patient(db, test_clinic)


def test_only_due_pending_executions_are_sent(db, rule, patient):
    now = utcnow()
    hour_ago = create_execution(db, rule, patient.id, now - timedelta(hours=1))
    minute_ago = create_execution(db, rule, patient.id, now - timedelta(minutes=1))
    future = create_execution(db, rule, patient.id, now + timedelta(hours=1))
    ids = (hour_ago.id, minute_ago.id, future.id)

    dispatcher = RecordingDispatcher()
    result = FollowUpProcessor(FollowUpExecutionStore(db), dispatcher).process(now=now)

    assert result.processed == 2
    assert result.sent == 2
    assert result.failed == 0
    # Oldest first
    assert dispatcher.sent == [ids[0], ids[1]]

    for execution_id in ids[:2]:
        execution = _reload(db, execution_id)
        assert execution.status == FollowUpExecutionStatus.SENT.value
        assert execution.executed_at is not None
        assert execution.claimed_at is not None
        assert execution.error is None

    pending = _reload(db, ids[2])
    assert pending.status == FollowUpExecutionStatus.PENDING.value
    assert pending.executed_at is None


def test_failed_dispatch_records_error_and_continues(db, rule, patient):
    now = utcnow()
    first = create_execution(db, rule, patient.id, now - timedelta(minutes=10))
    second = create_execution(db, rule, patient.id, now - timedelta(minutes=5))
    first_id, second_id = first.id, second.id

    dispatcher = RecordingDispatcher(
        outcomes={first_id: DispatchResult(success=False, error="WhatsApp not configured")}
    )
    result = FollowUpProcessor(FollowUpExecutionStore(db), dispatcher).process(now=now)

    assert result.processed == 2
    assert result.sent == 1
    assert result.failed == 1

    failed = _reload(db, first_id)
    assert failed.status == FollowUpExecutionStatus.FAILED.value
    assert failed.error == "WhatsApp not configured"
    assert failed.executed_at is not None
    assert _reload(db, second_id).status == FollowUpExecutionStatus.SENT.value


def test_raising_dispatcher_marks_execution_failed(db, rule, patient):
    now = utcnow()
    broken = create_execution(db, rule, patient.id, now - timedelta(minutes=10))
    healthy = create_execution(db, rule, patient.id, now - timedelta(minutes=5))
    broken_id, healthy_id = broken.id, healthy.id

    dispatcher = RecordingDispatcher(outcomes={broken_id: RuntimeError("gateway exploded")})
    result = FollowUpProcessor(FollowUpExecutionStore(db), dispatcher).process(now=now)

    assert result.processed == 2
    assert result.failed == 1
    assert result.sent == 1

    failed = _reload(db, broken_id)
    assert failed.status == FollowUpExecutionStatus.FAILED.value
    assert "gateway exploded" in failed.error
    assert _reload(db, healthy_id).status == FollowUpExecutionStatus.SENT.value


def test_failure_without_detail_gets_generic_error(db, rule, patient):
    now = utcnow()
    execution = create_execution(db, rule, patient.id, now - timedelta(minutes=1))
    execution_id = execution.id

    dispatcher = RecordingDispatcher(outcomes={execution_id: DispatchResult(success=False)})
    FollowUpProcessor(FollowUpExecutionStore(db), dispatcher).process(now=now)

    assert _reload(db, execution_id).error == "Unknown error"


def test_nothing_due_writes_nothing(db, rule, patient):
    now = utcnow()
    future = create_execution(db, rule, patient.id, now + timedelta(days=2))
    before = future.updated_at

    dispatcher = RecordingDispatcher()
    result = FollowUpProcessor(FollowUpExecutionStore(db), dispatcher).process(now=now)

    assert result.processed == 0
    assert dispatcher.sent == []
    after = _reload(db, future.id)
    assert after.status == FollowUpExecutionStatus.PENDING.value
    assert after.updated_at == before


def test_non_pending_executions_are_never_touched(db, rule, patient):
    now = utcnow()
    past = now - timedelta(hours=3)
    rows = {
        status: create_execution(db, rule, patient.id, past, status=status).id
        for status in (
            FollowUpExecutionStatus.CLAIMED,
            FollowUpExecutionStatus.SENT,
            FollowUpExecutionStatus.FAILED,
            FollowUpExecutionStatus.CANCELLED,
        )
    }

    dispatcher = RecordingDispatcher()
    result = FollowUpProcessor(FollowUpExecutionStore(db), dispatcher).process(now=now)

    assert result.processed == 0
    assert dispatcher.sent == []
    for status, execution_id in rows.items():
        assert _reload(db, execution_id).status == status.value


def test_second_run_sends_nothing(db, rule, patient):
    now = utcnow()
    create_execution(db, rule, patient.id, now - timedelta(minutes=1))

    dispatcher = RecordingDispatcher()
    processor = FollowUpProcessor(FollowUpExecutionStore(db), dispatcher)
    first = processor.process(now=now)
    second = processor.process(now=now)

    assert first.processed == 1
    assert second.processed == 0
    assert len(dispatcher.sent) == 1


def test_batch_size_limits_one_run(db, rule, patient):
    now = utcnow()
    for minutes in (30, 20, 10):
        create_execution(db, rule, patient.id, now - timedelta(minutes=minutes))

    processor = FollowUpProcessor(FollowUpExecutionStore(db), RecordingDispatcher(), batch_size=2)

    assert processor.process(now=now).processed == 2
    assert processor.process(now=now).processed == 1


class RacingStore(FollowUpExecutionStore):
    """Simulates another processor claiming the first due row in between."""

    def select_due(self, now, limit):
        due = super().select_due(now, limit)
        if due:
            FollowUpExecutionStore(self.db).claim(due[0].id)
        return due


def test_claim_lost_to_concurrent_run_is_skipped(db, rule, patient):
    now = utcnow()
    taken = create_execution(db, rule, patient.id, now - timedelta(minutes=10))
    free = create_execution(db, rule, patient.id, now - timedelta(minutes=5))
    taken_id, free_id = taken.id, free.id

    dispatcher = RecordingDispatcher()
    result = FollowUpProcessor(RacingStore(db), dispatcher).process(now=now)

    assert result.skipped == 1
    assert result.processed == 1
    assert dispatcher.sent == [free_id]
    # The other run owns it; it stays claimed until that run completes it
    assert _reload(db, taken_id).status == FollowUpExecutionStatus.CLAIMED.value


class BrokenStore(FollowUpExecutionStore):
    def select_due(self, now, limit):
        raise OperationalError("SELECT ...", {}, Exception("database is locked"))


def test_due_query_failure_propagates(db, rule, patient):
    now = utcnow()
    execution = create_execution(db, rule, patient.id, now - timedelta(minutes=1))

    dispatcher = RecordingDispatcher()
    with pytest.raises(OperationalError):
        FollowUpProcessor(BrokenStore(db), dispatcher).process(now=now)

    assert dispatcher.sent == []
    assert _reload(db, execution.id).status == FollowUpExecutionStatus.PENDING.value


def test_complete_rejects_non_terminal_status(db, rule, patient):
    execution = create_execution(db, rule, patient.id, utcnow())
    store = FollowUpExecutionStore(db)

    with pytest.raises(ValueError):
        store.complete(execution.id, FollowUpExecutionStatus.PENDING)


def test_complete_requires_claim(db, rule, patient):
    execution = create_execution(db, rule, patient.id, utcnow())
    store = FollowUpExecutionStore(db)

    assert store.complete(execution.id, FollowUpExecutionStatus.SENT) is False
    assert store.claim(execution.id) is True
    assert store.claim(execution.id) is False
    assert store.complete(execution.id, FollowUpExecutionStatus.SENT) is True
    assert store.complete(execution.id, FollowUpExecutionStatus.FAILED) is False


def test_error_is_truncated(db, rule, patient):
    execution = create_execution(db, rule, patient.id, utcnow())
    store = FollowUpExecutionStore(db)
    store.claim(execution.id)
    store.complete(execution.id, FollowUpExecutionStatus.FAILED, error="x" * 5000)

    assert len(_reload(db, execution.id).error) == 1000


class FlakyCompleteStore(FollowUpExecutionStore):
    """First outcome write fails, as if the connection dropped mid-update."""

    def __init__(self, db):
        super().__init__(db)
        self.failures_left = 1

    def complete(self, *args, **kwargs):
        if self.failures_left:
            self.failures_left -= 1
            raise OperationalError("UPDATE ...", {}, Exception("connection reset"))
        return super().complete(*args, **kwargs)


def test_outcome_write_failure_does_not_abort_batch(db, rule, patient):
    now = utcnow()
    first = create_execution(db, rule, patient.id, now - timedelta(minutes=10))
    second = create_execution(db, rule, patient.id, now - timedelta(minutes=5))
    first_id, second_id = first.id, second.id

    dispatcher = RecordingDispatcher()
    result = FollowUpProcessor(FlakyCompleteStore(db), dispatcher).process(now=now)

    assert dispatcher.sent == [first_id, second_id]
    assert result.processed == 2
    assert result.sent == 1
    assert result.errors == 1
    # Sent but unrecorded: stays claimed, never re-sent
    assert _reload(db, first_id).status == FollowUpExecutionStatus.CLAIMED.value
    assert _reload(db, second_id).status == FollowUpExecutionStatus.SENT.value


class FlakyClaimStore(FollowUpExecutionStore):
    def __init__(self, db):
        super().__init__(db)
        self.failures_left = 1

    def claim(self, *args, **kwargs):
        if self.failures_left:
            self.failures_left -= 1
            raise OperationalError("UPDATE ...", {}, Exception("connection reset"))
        return super().claim(*args, **kwargs)


def test_claim_failure_leaves_execution_pending(db, rule, patient):
    now = utcnow()
    first = create_execution(db, rule, patient.id, now - timedelta(minutes=10))
    second = create_execution(db, rule, patient.id, now - timedelta(minutes=5))
    first_id, second_id = first.id, second.id

    dispatcher = RecordingDispatcher()
    result = FollowUpProcessor(FlakyClaimStore(db), dispatcher).process(now=now)

    assert dispatcher.sent == [second_id]
    assert result.processed == 1
    assert result.errors == 1
    assert _reload(db, first_id).status == FollowUpExecutionStatus.PENDING.value
    assert _reload(db, second_id).status == FollowUpExecutionStatus.SENT.value


def test_zero_batch_size_means_no_cap(db, rule, patient, monkeypatch):
    from clinic_api.core.config import settings

    monkeypatch.setattr(settings, "FOLLOW_UP_BATCH_SIZE", 0)
    now = utcnow()
    for minutes in range(1, 6):
        create_execution(db, rule, patient.id, now - timedelta(minutes=minutes))

    result = FollowUpProcessor(FollowUpExecutionStore(db), RecordingDispatcher()).process(now=now)

    assert result.processed == 5
    assert db.query(FollowUpExecution).filter(
        FollowUpExecution.status == FollowUpExecutionStatus.PENDING.value
    ).count() == 0


def test_log_context_carries_clinic(db, rule, patient, test_clinic, caplog):
    now = utcnow()
    execution = create_execution(db, rule, patient.id, now - timedelta(minutes=1))
    execution_id = execution.id

    dispatcher = RecordingDispatcher(outcomes={execution_id: RuntimeError("boom")})
    with caplog.at_level(logging.INFO, logger="clinic_api.services.follow_up_processor"):
        FollowUpProcessor(FollowUpExecutionStore(db), dispatcher).process(now=now)

    item_records = [r for r in caplog.records if getattr(r, "execution_id", None) == str(execution_id)]
    assert item_records
    assert all(r.clinic_id == str(test_clinic.id) for r in item_records)
