"""Dispatcher (Petrol Leader) stage: release, receiver routing and appended rows"""
import pytest

from gatepass.domain.enums import Stage, StageState, RequestLifecycle, UserRole
from gatepass.domain.errors import PermissionDeniedError
from tests.conftest import make_actor


class TestApprovalOutcomes:

    def test_non_slt_dispatch_closes_the_request(self, engine, submit, advance, colombo_dispatcher, notifications):
        ref = submit(is_non_slt_place=True, in_location=None, company_name="Acme Ltd")
        advance(ref, Stage.VERIFIER)

        row = engine.approve(Stage.DISPATCHER, ref, None, colombo_dispatcher)

        assert row.request.status == RequestLifecycle.DISPATCHED == 13
        assert row.state_of(Stage.DISPATCHER) == StageState.APPROVED
        assert row.state_of(Stage.RECEIVER) is None
        notifications.enqueue_receive_pending_assigned.assert_not_called()
        notifications.enqueue_receive_pending_pool.assert_not_called()

    def test_slt_without_named_receiver_opens_pool(self, engine, submit, advance, dispatcher, notifications):
        ref = submit()
        advance(ref, Stage.VERIFIER)

        row = engine.approve(Stage.DISPATCHER, ref, None, dispatcher)

        assert row.request.status == RequestLifecycle.RECEIVE_PENDING
        assert row.state_of(Stage.RECEIVER) == StageState.PENDING
        assert row.stage(Stage.RECEIVER).service_no is None

        receivers = notifications.enqueue_receive_pending_pool.call_args.args[1]
        assert {r.service_no for r in receivers} == {"SV44444", "SV45555"}
        notifications.enqueue_receive_pending_assigned.assert_not_called()

    def test_slt_with_named_receiver_assigns_it(self, engine, submit, advance, dispatcher, notifications):
        ref = submit(receiver_available=True, receiver_service_no="SV45555")
        advance(ref, Stage.VERIFIER)

        row = engine.approve(Stage.DISPATCHER, ref, None, dispatcher)

        assert row.state_of(Stage.RECEIVER) == StageState.PENDING
        assert row.stage(Stage.RECEIVER).service_no == "SV45555"
        receiver = notifications.enqueue_receive_pending_assigned.call_args.args[1]
        assert receiver.service_no == "SV45555"
        notifications.enqueue_receive_pending_pool.assert_not_called()


def test_decision_appends_row_with_original_created_at(engine, submit, advance, dispatcher):
    ref = submit()
    advance(ref, Stage.VERIFIER)
    original = engine.ledger.rows_for(ref)[0]

    row = engine.approve(Stage.DISPATCHER, ref, None, dispatcher)

    rows = engine.ledger.rows_for(ref)
    assert len(rows) == 2
    assert row.status_id != original.status_id
    assert all(r.created_at == original.created_at for r in rows)
    assert engine.ledger.latest(ref).status_id == row.status_id
    # Earlier stages are carried onto the new row
    assert row.state_of(Stage.EXECUTIVE) == StageState.APPROVED
    assert row.state_of(Stage.VERIFIER) == StageState.APPROVED


def test_older_row_does_not_resurface_in_pending_queue(engine, submit, advance, dispatcher):
    ref = submit()
    advance(ref, Stage.VERIFIER)
    engine.approve(Stage.DISPATCHER, ref, None, dispatcher)

    assert engine.list_pending(Stage.DISPATCHER, dispatcher) == []
    assert [r.reference_number for r in engine.list_approved(Stage.DISPATCHER, dispatcher)] == [ref]


def test_queue_scoped_to_dispatch_location(engine, submit, advance, dispatcher, colombo_dispatcher):
    slt = submit()
    non_slt = submit(is_non_slt_place=True, in_location=None, company_name="Acme Ltd")
    advance(slt, Stage.VERIFIER)
    advance(non_slt, Stage.VERIFIER)

    assert [r.reference_number for r in engine.list_pending(Stage.DISPATCHER, dispatcher)] == [slt]
    assert [r.reference_number for r in engine.list_pending(Stage.DISPATCHER, colombo_dispatcher)] == [non_slt]


def test_receiver_cannot_dispatch(engine, submit, advance, receiver):
    ref = submit()
    advance(ref, Stage.VERIFIER)
    with pytest.raises(PermissionDeniedError):
        engine.approve(Stage.DISPATCHER, ref, None, receiver)


def test_reject_appends_row_and_notifies_three_parties(engine, submit, advance, dispatcher, notifications):
    ref = submit()
    advance(ref, Stage.VERIFIER)

    row = engine.reject(Stage.DISPATCHER, ref, "vehicle missing", dispatcher)

    assert row.request.status == RequestLifecycle.DISPATCH_REJECTED
    assert row.rejection.level == 3
    assert row.rejection.rejected_by == "Dispatcher"
    assert row.rejection.branch == "Kandy"
    assert len(engine.ledger.rows_for(ref)) == 2

    recipients = [c.args[1].service_no for c in notifications.enqueue_rejection.call_args_list]
    assert recipients == ["SV00001", "SV11111", "SV22222"]


def test_rejection_branch_falls_back_to_directory(engine, submit, advance, notifications):
    ref = submit()
    advance(ref, Stage.VERIFIER)
    branchless = make_actor("SV35555", UserRole.SUPER_ADMIN)

    row = engine.reject(Stage.DISPATCHER, ref, "no", branchless)

    assert row.rejection.branch == "Kandy"
