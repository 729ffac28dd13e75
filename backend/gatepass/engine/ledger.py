"""Status Ledger - latest-row selection over the status store

Several ledger rows can exist per reference number (the dispatcher stage
appends, and older data has duplicates). Every reader goes through the same
selection rule:

    1. group rows by reference number
    2. keep the row with the newest updated_at (created_at when absent),
       ties broken by created_at, then first seen
    3. sort the survivors newest first by the same key

Filtering by stage state happens AFTER selection, so an older row can never
resurface when a newer one has moved on.
"""
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from ..domain.enums import Stage, StageState
from ..domain.errors import StatusNotFoundError
from ..domain.legacy import legacy_state_clauses
from ..domain.models import StatusRow
from ..repositories.request_repo import RequestRepository
from ..repositories.status_repo import StatusRepository
from ..utils.time import ensure_utc
from ..utils.logger import get_logger

logger = get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def row_timestamp(row: StatusRow) -> datetime:
    """updated_at, falling back to created_at"""
    return ensure_utc(row.updated_at or row.created_at) or _EPOCH


def row_sort_key(row: StatusRow) -> Tuple[datetime, datetime]:
    return row_timestamp(row), ensure_utc(row.created_at) or _EPOCH


def latest_per_reference(rows: Iterable[StatusRow]) -> List[StatusRow]:
    """Collapse rows to one per reference number (first seen wins ties)"""
    latest: Dict[str, StatusRow] = {}
    for row in rows:
        current = latest.get(row.reference_number)
        if current is None or row_sort_key(row) > row_sort_key(current):
            latest[row.reference_number] = row
    return list(latest.values())


def sort_newest(rows: Iterable[StatusRow]) -> List[StatusRow]:
    """Newest first; stable for equal timestamps"""
    return sorted(rows, key=row_sort_key, reverse=True)


def select_latest(rows: Iterable[StatusRow]) -> Optional[StatusRow]:
    """The current row among rows of a single reference number"""
    collapsed = latest_per_reference(rows)
    if not collapsed:
        return None
    if len(collapsed) > 1:
        raise ValueError("select_latest expects rows for one reference number")
    return collapsed[0]


class StatusLedger:
    """Read side of the Request store and Status ledger together"""

    def __init__(
        self,
        status_repo: Optional[StatusRepository] = None,
        request_repo: Optional[RequestRepository] = None
    ):
        self.statuses = status_repo or StatusRepository()
        self.requests = request_repo or RequestRepository()

    def populate(self, rows: List[StatusRow]) -> List[StatusRow]:
        """Attach the referenced Request to each row"""
        by_id = self.requests.get_by_ids(row.request_id for row in rows)
        for row in rows:
            row.request = by_id.get(row.request_id)
            if row.request is None:
                logger.warning(
                    f"Ledger row {row.status_id} points at a missing request",
                    extra={"reference_number": row.reference_number}
                )
        return rows

    def rows_for(self, reference_number: str) -> List[StatusRow]:
        return self.statuses.get_rows_for_reference(reference_number)

    def latest(self, reference_number: str, populate: bool = True) -> Optional[StatusRow]:
        """Current ledger row for a reference number"""
        row = select_latest(self.rows_for(reference_number))
        if row and populate:
            self.populate([row])
        return row

    def latest_or_raise(self, reference_number: str) -> StatusRow:
        """Current populated row; StatusNotFoundError when either side is missing"""
        row = self.latest(reference_number)
        if row is None or row.request is None:
            raise StatusNotFoundError(details={"reference_number": reference_number})
        return row

    def first_created_at(self, reference_number: str) -> Optional[datetime]:
        """created_at of the original submission row"""
        stamps = [ensure_utc(r.created_at) for r in self.rows_for(reference_number) if r.created_at]
        return min(stamps) if stamps else None

    def current_rows(self, stage: Stage, state: StageState) -> List[StatusRow]:
        """
        Latest rows whose stage is in the given state, populated and newest first

        The store narrows candidates by reference number, matching both the
        stage map and the numeric fields of unmigrated rows; selection then
        runs over every row of those references.
        """
        refs = self.statuses.distinct_references({"$or": [
            {f"stages.{stage.value}.state": state.value},
            *legacy_state_clauses(stage, state),
        ]})
        if not refs:
            return []

        rows = latest_per_reference(self.statuses.get_rows_for_references(refs))
        matching = [row for row in rows if row.state_of(stage) == state]
        return sort_newest(self.populate(matching))
