"""Socket event fan-out and scheduling"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from gatepass.domain.enums import GatePassEvent, RequestLifecycle
from gatepass.domain.models import GatePassRequest
from gatepass.services.event_bus_service import EventBusService, build_payload, compute_targets


@pytest.fixture
def request_doc():
    return GatePassRequest(
        request_id="GPR-1",
        reference_number="REQ-1",
        employee_service_no="SV00001",
        out_location="Colombo",
        in_location="Kandy",
        executive_officer_service_no="SV11111",
        status=RequestLifecycle.EXECUTIVE_APPROVED,
    )


@pytest.fixture
def bus():
    server = MagicMock()
    server.emit = AsyncMock()
    return EventBusService(server=server)


def test_targets_cover_people_roles_and_branches(request_doc):
    rooms = compute_targets(request_doc)

    assert {"user-SV00001", "user-SV11111"} <= rooms
    assert {"role-Verifier", "role-Admin", "role-SuperAdmin"} <= rooms
    assert {"branch-Colombo", "branch-Kandy"} <= rooms
    assert "role-Receiver" not in rooms


def test_targets_follow_lifecycle(request_doc):
    received = request_doc.model_copy(update={"status": RequestLifecycle.RECEIVED, "receiver_service_no": "SV44444"})
    rooms = compute_targets(received)

    assert "user-SV44444" in rooms
    assert {"role-User", "role-Dispatcher", "role-Pleader"} <= rooms


def test_payload_shape(request_doc):
    payload = build_payload(request_doc)

    assert payload["referenceNumber"] == "REQ-1"
    assert payload["status"] == 2
    assert payload["updatedAt"]
    assert payload["request"]["out_location"] == "Colombo"


def test_publish_without_loop_is_a_no_op(bus, request_doc):
    assert bus.publish_request_event(GatePassEvent.REQUEST_APPROVED, request_doc) == 0
    bus.server.emit.assert_not_called()


def test_publish_with_no_targets(bus):
    assert bus.publish("request-approved", {}, []) == 0


def test_publish_emits_to_every_room(bus, request_doc):
    async def scenario():
        bus.bind_loop(asyncio.get_running_loop())
        scheduled = bus.publish_request_event(GatePassEvent.REQUEST_APPROVED, request_doc)
        await asyncio.sleep(0.01)
        return scheduled

    scheduled = asyncio.run(scenario())

    rooms = sorted(call.kwargs["room"] for call in bus.server.emit.await_args_list)
    assert scheduled == len(compute_targets(request_doc))
    assert rooms == sorted(compute_targets(request_doc))
    assert all(call.args[0] == "request-approved" for call in bus.server.emit.await_args_list)


def test_emit_failure_does_not_raise(bus, request_doc):
    bus.server.emit.side_effect = RuntimeError("socket closed")

    async def scenario():
        bus.bind_loop(asyncio.get_running_loop())
        scheduled = bus.publish_request_event(GatePassEvent.REQUEST_APPROVED, request_doc)
        await asyncio.sleep(0.01)
        return scheduled

    assert asyncio.run(scenario()) > 0
