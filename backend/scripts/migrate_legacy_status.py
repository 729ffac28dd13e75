"""
Legacy Migration Script - Rewrites old camelCase requests and ledger rows
Run: python -m scripts.migrate_legacy_status [--dry-run]

Old documents are readable as they are, but stage decisions write with
compare-and-set on the new field names, so they must be migrated first.
Each migrated ledger row gets a MIGRATE transition.
"""
import argparse
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gatepass.repositories.mongo_client import get_collection, create_indexes
from gatepass.repositories.transition_repo import TransitionRepository
from gatepass.domain.legacy import (
    is_legacy_request, is_legacy_status, normalize_request_document, normalize_status_document
)
from gatepass.domain.models import GatePassRequest, StatusRow, StatusTransition
from gatepass.domain.enums import TransitionAction
from gatepass.utils.idgen import generate_transition_id
from gatepass.utils.time import utc_now


def migrate_requests(dry_run: bool) -> int:
    collection = get_collection("requests")
    migrated = 0
    for doc in collection.find({"referenceNumber": {"$exists": True}, "reference_number": {"$exists": False}}):
        if not is_legacy_request(doc):
            continue
        normalized = normalize_request_document(dict(doc))
        normalized.pop("_id", None)
        request = GatePassRequest.model_validate(normalized)
        if not dry_run:
            replacement = request.model_dump()
            collection.replace_one({"_id": doc["_id"]}, replacement)
        migrated += 1
    return migrated


def migrate_statuses(dry_run: bool) -> int:
    collection = get_collection("statuses")
    transitions = TransitionRepository()
    migrated = 0
    for doc in collection.find({"stages": {"$exists": False}}):
        if not is_legacy_status(doc):
            continue
        normalized = normalize_status_document(dict(doc))
        normalized.pop("_id", None)
        row = StatusRow.model_validate(normalized)
        if not dry_run:
            collection.replace_one({"_id": doc["_id"]}, row.model_dump(exclude={"request"}))
            transitions.create_transition(StatusTransition(
                transition_id=generate_transition_id(),
                reference_number=row.reference_number,
                action=TransitionAction.MIGRATE,
                details={"status_id": row.status_id, "stages": list(row.stages)},
                timestamp=utc_now()
            ))
        migrated += 1
    return migrated


def main():
    parser = argparse.ArgumentParser(description="Migrate legacy gate pass documents")
    parser.add_argument("--dry-run", action="store_true", help="Count documents without writing")
    args = parser.parse_args()

    print("=== Migrating legacy documents ===")
    print("-" * 40)
    requests = migrate_requests(args.dry_run)
    print(f"  Requests: {requests}")
    statuses = migrate_statuses(args.dry_run)
    print(f"  Ledger rows: {statuses}")

    # Unique indexes only hold once every document has the new keys
    if not args.dry_run:
        create_indexes()

    print("-" * 40)
    print("Dry run, nothing written." if args.dry_run else "Done!")


if __name__ == "__main__":
    main()
