"""Status Repository - Data access for the status ledger

A reference number owns a growing family of ledger rows. This repository
only stores and fetches them; choosing the "latest" row is done by the
ledger helpers in the engine package so every caller applies the same rule.
"""
from typing import Any, Dict, Iterable, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING

from .mongo_client import get_collection
from ..domain.models import StatusRow
from ..domain.legacy import normalize_status_document
from ..domain.errors import ConcurrencyError, StatusNotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


def _to_row(doc: Dict[str, Any]) -> StatusRow:
    doc = normalize_status_document(doc)
    doc.pop("_id", None)
    return StatusRow.model_validate(doc)


class StatusRepository:
    """Repository for ledger rows"""

    def __init__(self):
        self._statuses: Collection = get_collection("statuses")

    def create_row(self, row: StatusRow) -> StatusRow:
        """Append a ledger row"""
        self._statuses.insert_one(row.to_document())
        logger.info(
            f"Appended ledger row {row.status_id}",
            extra={"reference_number": row.reference_number}
        )
        return row

    def get_row(self, status_id: str) -> Optional[StatusRow]:
        doc = self._statuses.find_one({"status_id": status_id})
        if doc:
            return _to_row(doc)
        return None

    def get_rows_for_reference(self, reference_number: str) -> List[StatusRow]:
        """Every ledger row for a reference number, in insertion order"""
        cursor = self._statuses.find(
            {"$or": [{"reference_number": reference_number}, {"referenceNumber": reference_number}]}
        )
        return [_to_row(doc) for doc in cursor]

    def get_rows_for_references(self, reference_numbers: Iterable[str]) -> List[StatusRow]:
        refs = list(set(reference_numbers))
        if not refs:
            return []
        cursor = self._statuses.find(
            {"$or": [{"reference_number": {"$in": refs}}, {"referenceNumber": {"$in": refs}}]}
        )
        return [_to_row(doc) for doc in cursor]

    def distinct_references(self, query: Dict[str, Any]) -> List[str]:
        """Reference numbers having at least one row matching query (either spelling)"""
        refs = set(self._statuses.distinct("reference_number", query))
        refs.update(self._statuses.distinct("referenceNumber", query))
        return list(refs)

    def find_rows(
        self,
        query: Dict[str, Any],
        skip: int = 0,
        limit: int = 50
    ) -> List[StatusRow]:
        """Page through rows matching query, newest first"""
        cursor = (
            self._statuses.find(query)
            .sort([("updated_at", DESCENDING), ("created_at", DESCENDING)])
            .skip(skip)
            .limit(limit)
        )
        return [_to_row(doc) for doc in cursor]

    def count_rows(self, query: Dict[str, Any]) -> int:
        return self._statuses.count_documents(query)

    def update_row(
        self,
        status_id: str,
        updates: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> StatusRow:
        """Update a ledger row in place with optimistic concurrency"""
        updates = dict(updates)
        updates.setdefault("updated_at", utc_now())

        filter_query: Dict[str, Any] = {"status_id": status_id}
        if expected_version is not None:
            filter_query["version"] = expected_version
            updates["version"] = expected_version + 1

        result = self._statuses.find_one_and_update(
            filter_query,
            {"$set": updates},
            return_document=True
        )

        if result is None:
            if expected_version is not None and self._statuses.find_one({"status_id": status_id}):
                raise ConcurrencyError(
                    f"Ledger row {status_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version}
                )
            raise StatusNotFoundError()

        row = _to_row(result)
        logger.info(
            f"Updated ledger row {status_id}",
            extra={"reference_number": row.reference_number}
        )
        return row
