"""Executive stage: queue, approval routing and rejection"""
import pytest

from gatepass.domain.enums import Stage, StageState, RequestLifecycle, GatePassEvent, UserRole
from gatepass.domain.errors import (
    InvalidStateError, MissingCommentError, PermissionDeniedError, StatusNotFoundError
)
from gatepass.repositories.user_repo import UserRepository
from tests.conftest import make_actor


def test_pending_queue_only_shows_rows_assigned_to_the_executive(engine, submit, executive):
    mine = submit()
    submit(executive_officer_service_no="SV11112")

    rows = engine.list_pending(Stage.EXECUTIVE, executive)

    assert [r.reference_number for r in rows] == [mine]
    assert rows[0].request is not None


def test_user_role_cannot_list_executive_queue(engine, submit, requester):
    submit()
    with pytest.raises(PermissionDeniedError):
        engine.list_pending(Stage.EXECUTIVE, requester)


def test_approve_stamps_verifier_for_out_location(engine, submit, executive, notifications, event_bus):
    ref = submit()
    event_bus.reset_mock()

    row = engine.approve(Stage.EXECUTIVE, ref, "ok", executive)

    assert row.state_of(Stage.EXECUTIVE) == StageState.APPROVED
    assert row.stage(Stage.EXECUTIVE).service_no == "SV11111"
    assert row.state_of(Stage.VERIFIER) == StageState.PENDING
    assert row.stage(Stage.VERIFIER).service_no == "SV22222"
    assert row.request.status == RequestLifecycle.EXECUTIVE_APPROVED
    assert row.request.show is True

    notifications.enqueue_verify_pending.assert_called_once()
    assert notifications.enqueue_verify_pending.call_args.args[1].service_no == "SV22222"
    event_bus.publish_request_event.assert_called_once()
    assert event_bus.publish_request_event.call_args.args[0] == GatePassEvent.REQUEST_APPROVED


def test_approve_routes_non_slt_to_verifier_too(engine, submit, executive):
    ref = submit(is_non_slt_place=True, in_location=None, company_name="Acme Ltd")

    row = engine.approve(Stage.EXECUTIVE, ref, None, executive)

    assert row.state_of(Stage.VERIFIER) == StageState.PENDING
    assert row.stage(Stage.VERIFIER).service_no == "SV22222"


def test_approve_without_verifier_leaves_stage_unassigned(engine, submit, executive, notifications):
    UserRepository().set_active("SV22222", False)
    engine.directory.cache.clear()
    ref = submit()

    row = engine.approve(Stage.EXECUTIVE, ref, None, executive)

    assert row.state_of(Stage.VERIFIER) == StageState.PENDING
    assert row.stage(Stage.VERIFIER).service_no is None
    notifications.enqueue_verify_pending.assert_not_called()


def test_approve_is_idempotent(engine, submit, executive, event_bus):
    ref = submit()
    event_bus.reset_mock()
    first = engine.approve(Stage.EXECUTIVE, ref, None, executive)
    again = engine.approve(Stage.EXECUTIVE, ref, None, executive)

    assert again.version == first.version
    assert event_bus.publish_request_event.call_count == 1


def test_approve_after_reject_is_refused(engine, submit, executive):
    ref = submit()
    engine.reject(Stage.EXECUTIVE, ref, "wrong items", executive)

    with pytest.raises(InvalidStateError):
        engine.approve(Stage.EXECUTIVE, ref, None, executive)


def test_approve_by_other_executive_is_refused(engine, submit):
    ref = submit()
    other = make_actor("SV11112", UserRole.EXECUTIVE, ["Colombo"])

    with pytest.raises(PermissionDeniedError):
        engine.approve(Stage.EXECUTIVE, ref, None, other)


def test_unknown_reference(engine, users, executive):
    with pytest.raises(StatusNotFoundError):
        engine.approve(Stage.EXECUTIVE, "REQ-0-0", None, executive)


@pytest.mark.parametrize("comment", ["", "   ", None])
def test_reject_requires_comment_and_leaves_row_untouched(engine, submit, executive, comment):
    ref = submit()
    before = engine.ledger.latest(ref)

    with pytest.raises(MissingCommentError):
        engine.reject(Stage.EXECUTIVE, ref, comment, executive)

    after = engine.ledger.latest(ref)
    assert after.version == before.version
    assert after.state_of(Stage.EXECUTIVE) == StageState.PENDING


def test_reject_records_provenance_and_notifies_requester(engine, submit, executive, notifications):
    ref = submit()

    row = engine.reject(Stage.EXECUTIVE, ref, "not needed", executive)

    assert row.state_of(Stage.EXECUTIVE) == StageState.REJECTED
    assert row.stage(Stage.EXECUTIVE).comment == "not needed"
    assert row.request.status == RequestLifecycle.EXECUTIVE_REJECTED
    assert row.rejection.rejected_by == "Executive"
    assert row.rejection.level == 1
    assert row.rejection.branch == "Colombo"
    assert row.rejection.service_no == "SV11111"

    recipients = [c.args[1].service_no for c in notifications.enqueue_rejection.call_args_list]
    assert recipients == ["SV00001"]


def test_rejected_queue(engine, submit, executive):
    ref = submit()
    engine.reject(Stage.EXECUTIVE, ref, "no", executive)

    assert engine.list_pending(Stage.EXECUTIVE, executive) == []
    assert [r.reference_number for r in engine.list_rejected(Stage.EXECUTIVE, executive)] == [ref]


def test_transition_log_records_decision(engine, submit, executive, db):
    ref = submit()
    engine.approve(Stage.EXECUTIVE, ref, "fine", executive)

    actions = [d["action"] for d in db["status_transitions"].find({"reference_number": ref})]
    assert actions == ["SUBMIT", "APPROVE"]
