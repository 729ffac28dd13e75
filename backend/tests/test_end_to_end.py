"""Full pipeline runs from submission to completion"""
from gatepass.domain.enums import Stage, StageState, RequestLifecycle, GatePassEvent


def test_slt_pass_through_all_four_stages(engine, submit, executive, verifier, dispatcher, receiver, event_bus):
    ref = submit()

    row = engine.approve(Stage.EXECUTIVE, ref, "ok", executive)
    assert row.request.status == RequestLifecycle.EXECUTIVE_APPROVED

    row = engine.approve(Stage.VERIFIER, ref, "ok", verifier)
    assert row.request.status == RequestLifecycle.VERIFY_APPROVED

    row = engine.approve(Stage.DISPATCHER, ref, "ok", dispatcher)
    assert row.request.status == RequestLifecycle.RECEIVE_PENDING
    assert [r.reference_number for r in engine.list_pending(Stage.RECEIVER, receiver)] == [ref]

    row = engine.approve(Stage.RECEIVER, ref, "ok", receiver)
    assert row.request.status == RequestLifecycle.RECEIVED
    assert {s: row.state_of(s) for s in Stage} == {s: StageState.APPROVED for s in Stage}
    assert row.stage(Stage.RECEIVER).service_no == "SV44444"

    events = [c.args[0] for c in event_bus.publish_request_event.call_args_list]
    assert events == [
        GatePassEvent.NEW_REQUEST,
        GatePassEvent.REQUEST_APPROVED,
        GatePassEvent.REQUEST_APPROVED,
        GatePassEvent.REQUEST_APPROVED,
        GatePassEvent.REQUEST_COMPLETED,
    ]

    # Submission row plus the dispatcher's appended row
    assert len(engine.ledger.rows_for(ref)) == 2
    assert engine.list_approved(Stage.RECEIVER, receiver)[0].reference_number == ref


def test_non_slt_pass_ends_at_dispatch(engine, submit, executive, verifier, colombo_dispatcher, receiver):
    ref = submit(is_non_slt_place=True, in_location=None, company_name="Acme Ltd", company_address="Galle Road")

    engine.approve(Stage.EXECUTIVE, ref, None, executive)
    engine.approve(Stage.VERIFIER, ref, None, verifier)
    row = engine.approve(Stage.DISPATCHER, ref, None, colombo_dispatcher)

    assert row.request.status == RequestLifecycle.DISPATCHED
    assert Stage.RECEIVER.value not in row.stages
    assert engine.list_pending(Stage.RECEIVER, receiver) == []
    assert row.request.destination == "Acme Ltd"


def test_rejected_pass_leaves_every_pending_queue(engine, submit, advance, verifier, dispatcher, executive):
    ref = submit()
    advance(ref, Stage.EXECUTIVE)
    engine.reject(Stage.VERIFIER, ref, "paperwork missing", verifier)

    assert engine.list_pending(Stage.VERIFIER, verifier) == []
    assert engine.list_pending(Stage.DISPATCHER, dispatcher) == []
    assert [r.reference_number for r in engine.list_approved(Stage.EXECUTIVE, executive)] == [ref]
    assert [r.reference_number for r in engine.list_rejected(Stage.VERIFIER, verifier)] == [ref]
