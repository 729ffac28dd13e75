"""Commit ordering, compensation and optimistic concurrency"""
import pytest

from gatepass.domain.enums import Stage, StageState, RequestLifecycle
from gatepass.domain.errors import ConcurrencyError, InternalServerError
from gatepass.engine.unit_of_work import StageUnitOfWork


def test_failed_ledger_write_restores_request(engine, submit, executive, monkeypatch, event_bus):
    ref = submit()

    def broken_update(*args, **kwargs):
        raise RuntimeError("primary stepped down")

    monkeypatch.setattr(engine.ledger.statuses, "update_row", broken_update)

    with pytest.raises(InternalServerError):
        engine.approve(Stage.EXECUTIVE, ref, None, executive)

    row = engine.ledger.latest(ref)
    assert row.state_of(Stage.EXECUTIVE) == StageState.PENDING
    assert row.request.status == RequestLifecycle.EXECUTIVE_PENDING
    # Submission was the only event
    assert event_bus.publish_request_event.call_count == 1


def test_stale_row_is_refused(engine, submit, executive):
    ref = submit()
    stale = engine.ledger.latest(ref)
    engine.approve(Stage.EXECUTIVE, ref, None, executive)

    uow = StageUnitOfWork(engine.ledger, stale)
    uow.set_stage(Stage.EXECUTIVE, StageState.REJECTED, "SV11111", "late")
    uow.set_request(status=RequestLifecycle.EXECUTIVE_REJECTED)

    with pytest.raises(ConcurrencyError):
        uow.commit()

    current = engine.ledger.latest(ref)
    assert current.state_of(Stage.EXECUTIVE) == StageState.APPROVED
    assert current.request.status == RequestLifecycle.EXECUTIVE_APPROVED


def test_append_keeps_current_row_untouched(engine, submit):
    ref = submit()
    row = engine.ledger.latest(ref)

    uow = StageUnitOfWork(engine.ledger, row)
    uow.set_stage(Stage.VERIFIER, StageState.PENDING)
    uow.append_row()
    new_row = uow.commit()

    assert new_row.status_id != row.status_id
    assert new_row.created_at == row.created_at
    assert new_row.state_of(Stage.EXECUTIVE) == StageState.PENDING
    assert engine.ledger.statuses.get_row(row.status_id).state_of(Stage.VERIFIER) is None


def test_unpopulated_row_is_rejected(engine, submit):
    ref = submit()
    row = engine.ledger.latest(ref, populate=False)
    with pytest.raises(ValueError):
        StageUnitOfWork(engine.ledger, row)
