"""Normalisation of documents written by the previous backend"""
from datetime import datetime, timezone

from bson import ObjectId

from gatepass.domain.legacy import (
    is_legacy_status, normalize_request_document, normalize_status_document, to_snake
)
from gatepass.domain.models import GatePassRequest, StatusRow
from gatepass.repositories.request_repo import RequestRepository
from gatepass.repositories.status_repo import StatusRepository
from gatepass.engine.ledger import StatusLedger
from gatepass.domain.enums import Stage
from gatepass.services.report_service import ReportService

CREATED = datetime(2025, 6, 1, 8, 0, tzinfo=timezone.utc)
UPDATED = datetime(2025, 6, 2, 8, 0, tzinfo=timezone.utc)


def legacy_status(**overrides):
    doc = {
        "_id": ObjectId(),
        "referenceNumber": "REQ-OLD-1",
        "request": ObjectId(),
        "executiveOfficerStatus": 2,
        "executiveOfficerServiceNo": "SV11111",
        "verifyOfficerStatus": 1,
        "verifyOfficerServiceNumber": "SV22222",
        "createdAt": CREATED,
        "updatedAt": UPDATED,
        "__v": 0,
    }
    doc.update(overrides)
    return doc


def test_to_snake():
    assert to_snake("employeeServiceNo") == "employee_service_no"
    assert to_snake("isNonSltPlace") == "is_non_slt_place"
    assert to_snake("out_location") == "out_location"


def test_status_codes_become_stage_records():
    doc = normalize_status_document(legacy_status())
    row = StatusRow.model_validate(doc)

    assert row.reference_number == "REQ-OLD-1"
    assert row.stages["EXECUTIVE"].state == "APPROVED"
    assert row.stages["EXECUTIVE"].service_no == "SV11111"
    assert row.stages["VERIFIER"].state == "PENDING"
    assert "DISPATCHER" not in row.stages
    assert row.version == 1


def test_dispatch_state_inferred_from_after_status():
    doc = normalize_status_document(legacy_status(afterStatus=8, dispachOfficerServiceNumber="SV35555"))
    assert doc["stages"]["DISPATCHER"]["state"] == "APPROVED"
    assert doc["stages"]["DISPATCHER"]["service_no"] == "SV35555"


def test_unknown_code_is_kept_aside():
    doc = normalize_status_document(legacy_status(verifyOfficerStatus=7))
    assert "VERIFIER" not in doc["stages"]
    assert doc["unmapped_codes"] == {"VERIFIER": 7}


def test_rejection_carried_over():
    doc = normalize_status_document(legacy_status(
        verifyOfficerStatus=3, rejectedBy="Verifier", rejectedByBranch="Colombo", rejectionLevel=2
    ))
    row = StatusRow.model_validate(doc)
    assert row.rejection.rejected_by == "Verifier"
    assert row.rejection.level == 2
    assert row.rejection.rejected_at == UPDATED


def test_new_documents_pass_through():
    doc = {"stages": {}, "reference_number": "REQ-1"}
    assert not is_legacy_status(doc)
    assert normalize_status_document(doc) is doc


def test_request_document_normalised():
    oid = ObjectId()
    doc = normalize_request_document({
        "_id": oid,
        "referenceNumber": "REQ-OLD-1",
        "employeeServiceNumber": "SV00001",
        "outLocation": "Colombo",
        "inLocation": "Kandy",
        "isNonSltPlace": False,
        "executiveOfficerServiceNo": "SV11111",
        "items": [{
            "_id": ObjectId(),
            "serialNumber": "SN-9",
            "itemDescription": "Router",
            "itemCategory": "Network",
            "itemPhotos": [{"url": "https://cdn/x.png", "path": "x.png"}],
            "status": "returnable",
        }],
        "status": 2,
        "__v": 3,
    })
    request = GatePassRequest.model_validate(doc)

    assert request.request_id == str(oid)
    assert request.employee_service_no == "SV00001"
    assert request.version == 4
    assert request.items[0].item_photos == ["https://cdn/x.png"]
    assert request.items[0].returnable is True


def insert_legacy_pass(db, **status_overrides):
    request_oid = ObjectId()
    db["requests"].insert_one({
        "_id": request_oid,
        "referenceNumber": "REQ-OLD-1",
        "employeeServiceNo": "SV00001",
        "outLocation": "Colombo",
        "inLocation": "Kandy",
        "executiveOfficerServiceNo": "SV11111",
        "status": 2,
    })
    db["statuses"].insert_one(legacy_status(request=request_oid, **status_overrides))


def test_ledger_reads_unmigrated_documents(db):
    insert_legacy_pass(db)

    row = StatusLedger(StatusRepository(), RequestRepository()).latest_or_raise("REQ-OLD-1")

    assert row.request.reference_number == "REQ-OLD-1"
    assert row.stages["VERIFIER"].state == "PENDING"


def test_unmigrated_rows_reach_stage_queues(db, engine, verifier, executive):
    insert_legacy_pass(db)

    assert [r.reference_number for r in engine.list_pending(Stage.VERIFIER, verifier)] == ["REQ-OLD-1"]
    assert [r.reference_number for r in engine.list_approved(Stage.EXECUTIVE, executive)] == ["REQ-OLD-1"]
    assert engine.list_rejected(Stage.VERIFIER, verifier) == []


def test_unmigrated_dispatch_row_found_through_after_status(db, engine, dispatcher):
    insert_legacy_pass(db, verifyOfficerStatus=2, afterStatus=7)

    refs = [r.reference_number for r in engine.list_pending(Stage.DISPATCHER, dispatcher)]

    assert refs == ["REQ-OLD-1"]


def test_report_passes_unknown_codes_through(db, engine):
    insert_legacy_pass(db, verifyOfficerStatus=7)

    rows = ReportService(ledger=engine.ledger).list_stage_rows()["rows"]

    by_stage = {r.stage: (r.status_code, r.status_label) for r in rows}
    assert by_stage == {
        "Executive": (2, "Approved"),
        "Verify": (7, "7"),
        "Petrol Leader": (None, None),
        "Receive": (None, None),
    }
