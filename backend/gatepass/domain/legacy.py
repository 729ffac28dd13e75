"""Legacy document normalisation

Rows written by the previous backend used camelCase fields, one integer
tri-state per stage (dispatch inferred from before/after lifecycle codes)
and several spellings of the same actor field. Repositories pass every raw
document through here before validation, and the migration script uses the
same functions to rewrite the collections once.
"""
import re
from typing import Any, Dict, Iterable, List, Optional

from .enums import Stage, StageState

# Alternate spellings seen in production data, preferred first
LEGACY_ACTOR_FIELDS = {
    Stage.EXECUTIVE: ("executiveOfficerServiceNo", "executiveServiceNo"),
    Stage.VERIFIER: ("verifyOfficerServiceNumber", "verifyOfficerServiceNo"),
    Stage.DISPATCHER: ("pleaderServiceNo", "dispatchOfficerServiceNumber", "dispachOfficerServiceNumber"),
    Stage.RECEIVER: ("recieveOfficerServiceNumber", "recieveOfficerServiceNo", "receiveOfficerServiceNo"),
}

LEGACY_STATUS_FIELDS = {
    Stage.EXECUTIVE: "executiveOfficerStatus",
    Stage.VERIFIER: "verifyOfficerStatus",
    Stage.DISPATCHER: "pleaderStatus",
    Stage.RECEIVER: "recieveOfficerStatus",
}

LEGACY_COMMENT_FIELDS = {
    Stage.EXECUTIVE: "executiveOfficerComment",
    Stage.VERIFIER: "verifyOfficerComment",
    Stage.DISPATCHER: "comment",
    Stage.RECEIVER: "recieveOfficerComment",
}

LEGACY_REQUESTER_FIELDS = (
    "employeeServiceNo",
    "employeeServiceNumber",
    "requesterServiceNo",
    "serviceNo",
    "createdByServiceNo",
)

# Lifecycle codes that imply a dispatch decision on old rows
_DISPATCH_AFTER_CODES = {8: StageState.APPROVED, 9: StageState.REJECTED, 7: StageState.PENDING}

_ACRONYM_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_RE = re.compile(r"([a-z0-9])([A-Z])")


def _first_present(doc: Dict[str, Any], fields: Iterable[str]) -> Optional[str]:
    for field in fields:
        value = doc.get(field)
        if value not in (None, ""):
            return str(value)
    return None


def to_snake(name: str) -> str:
    """employeeServiceNo -> employee_service_no"""
    return _CAMEL_RE.sub(r"\1_\2", _ACRONYM_RE.sub(r"\1_\2", name)).lower()


def is_legacy_status(doc: Dict[str, Any]) -> bool:
    return "stages" not in doc and "referenceNumber" in doc


def is_legacy_request(doc: Dict[str, Any]) -> bool:
    return "reference_number" not in doc and "referenceNumber" in doc


def normalize_status_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Convert an old-style ledger document into the stage-map shape"""
    if not is_legacy_status(doc):
        return doc

    updated_at = doc.get("updatedAt") or doc.get("createdAt")
    stages: Dict[str, Dict[str, Any]] = {}
    unmapped: Dict[str, Any] = {}

    for stage in Stage:
        code = doc.get(LEGACY_STATUS_FIELDS[stage])
        state: Optional[StageState] = None
        if code is not None:
            try:
                state = StageState.from_code(int(code))
            except (TypeError, ValueError):
                unmapped[stage.value] = code
                continue
        elif stage == Stage.DISPATCHER:
            state = _DISPATCH_AFTER_CODES.get(doc.get("afterStatus"))

        if state is None:
            continue

        stages[stage.value] = {
            "state": state.value,
            "service_no": _first_present(doc, LEGACY_ACTOR_FIELDS[stage]),
            "comment": doc.get(LEGACY_COMMENT_FIELDS[stage]),
            "updated_at": updated_at,
        }

    rejection = None
    if doc.get("rejectedBy"):
        rejection = {
            "rejected_by": doc["rejectedBy"],
            "service_no": doc.get("rejectedByServiceNo"),
            "branch": doc.get("rejectedByBranch"),
            "rejected_at": doc.get("rejectedAt") or updated_at,
            "level": doc.get("rejectionLevel") or 1,
        }

    return {
        "_id": doc.get("_id"),
        "status_id": str(doc.get("_id")),
        "reference_number": doc["referenceNumber"],
        "request_id": str(doc.get("request")),
        "stages": stages,
        "unmapped_codes": unmapped,
        "rejection": rejection,
        "version": doc.get("__v", 0) + 1,
        "created_at": doc.get("createdAt"),
        "updated_at": doc.get("updatedAt"),
    }


def normalize_request_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Convert an old-style request document to snake_case with one requester field"""
    if not is_legacy_request(doc):
        return doc

    normalized: Dict[str, Any] = {}
    for key, value in doc.items():
        if key in ("_id", "__v") or key in LEGACY_REQUESTER_FIELDS:
            continue
        if isinstance(value, list):
            value = [
                {to_snake(k): v for k, v in entry.items() if k != "_id"} if isinstance(entry, dict) else entry
                for entry in value
            ]
        elif isinstance(value, dict):
            value = {to_snake(k): v for k, v in value.items() if k != "_id"}
        normalized[to_snake(key)] = value

    normalized["_id"] = doc.get("_id")
    normalized["request_id"] = str(doc.get("_id"))
    normalized["employee_service_no"] = _first_present(doc, LEGACY_REQUESTER_FIELDS) or ""
    normalized["version"] = doc.get("__v", 0) + 1
    # Old item photos were {url, path} objects
    for item in normalized.get("items", []):
        photos = item.get("item_photos") or []
        item["item_photos"] = [p.get("url") if isinstance(p, dict) else p for p in photos if p]
        item.setdefault("returnable", item.get("status") == "returnable")
    return normalized


def legacy_state_clauses(stage: Stage, state: Optional[StageState] = None) -> List[Dict[str, Any]]:
    """
    Store filters matching unmigrated rows whose stage is in state

    Without a state, any of the 1/2/3 codes matches. Old dispatcher rows
    without a pleaderStatus are matched through afterStatus, the same way
    normalize_status_document reads them.
    """
    states = [state] if state else list(StageState)
    codes: List[Any] = [s.code for s in states]
    field = LEGACY_STATUS_FIELDS[stage]

    clauses: List[Dict[str, Any]] = [
        {"stages": {"$exists": False}, field: {"$in": codes + [str(c) for c in codes]}}
    ]
    if stage == Stage.DISPATCHER:
        after = [code for code, s in _DISPATCH_AFTER_CODES.items() if s in states]
        clauses.append({"stages": {"$exists": False}, field: None, "afterStatus": {"$in": after}})
    return clauses
