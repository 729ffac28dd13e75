"""Stage Unit of Work - one Request change plus one ledger write

Commit order is Request first, then the ledger. If the ledger write fails
the Request fields touched are put back with a compensating update, so the
two stores do not disagree after a failed stage operation. Both writes are
compare-and-set on `version`.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from ..domain.enums import Stage, StageState
from ..domain.models import GatePassRequest, RejectionInfo, StageRecord, StatusRow
from ..utils.idgen import generate_status_id
from ..utils.time import utc_now
from ..utils.logger import get_logger
from .ledger import StatusLedger

logger = get_logger(__name__)


def to_document_value(value: Any) -> Any:
    """Pydantic models (and lists of them) to plain Mongo values"""
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, list):
        return [to_document_value(v) for v in value]
    if isinstance(value, dict):
        return {k: to_document_value(v) for k, v in value.items()}
    return value


class StageUnitOfWork:
    """Collects the writes of one stage operation and commits them together"""

    def __init__(self, ledger: StatusLedger, row: StatusRow):
        if row.request is None:
            raise ValueError("Unit of work needs a populated ledger row")
        self.ledger = ledger
        self.row = row
        self.request: GatePassRequest = row.request
        self.now = utc_now()
        self.context: Dict[str, Any] = {}
        self._request_updates: Dict[str, Any] = {}
        self._stage_updates: Dict[str, StageRecord] = {}
        self._rejection: Optional[RejectionInfo] = None
        self._append_created_at: Optional[datetime] = None
        self._append = False

    # =========================================================================
    # Staging
    # =========================================================================

    def set_stage(
        self,
        stage: Stage,
        state: StageState,
        service_no: Optional[str] = None,
        comment: Optional[str] = None
    ) -> StageRecord:
        record = StageRecord(state=state, service_no=service_no, comment=comment, updated_at=self.now)
        self._stage_updates[stage.value] = record
        return record

    def set_request(self, **fields: Any) -> None:
        self._request_updates.update(fields)

    def set_rejection(self, rejection: RejectionInfo) -> None:
        self._rejection = rejection

    def append_row(self, created_at: Optional[datetime] = None) -> None:
        """Write a new ledger row instead of updating the current one"""
        self._append = True
        self._append_created_at = created_at

    # =========================================================================
    # Commit
    # =========================================================================

    def commit(self) -> StatusRow:
        """Apply the staged writes; returns the new current row, populated"""
        request = self.request
        previous = {
            field: to_document_value(getattr(request, field))
            for field in self._request_updates
        }

        updated_request = request
        if self._request_updates:
            updated_request = self.ledger.requests.update_request(
                request.request_id,
                {k: to_document_value(v) for k, v in self._request_updates.items()},
                expected_version=request.version
            )

        try:
            new_row = self._write_row()
        except Exception:
            if self._request_updates:
                self._compensate(updated_request, previous)
            raise

        new_row.request = updated_request
        return new_row

    def _write_row(self) -> StatusRow:
        row = self.row

        if self._append:
            stages = {k: v for k, v in row.stages.items()}
            stages.update(self._stage_updates)
            new_row = StatusRow(
                status_id=generate_status_id(),
                reference_number=row.reference_number,
                request_id=row.request_id,
                stages=stages,
                rejection=self._rejection or row.rejection,
                version=1,
                created_at=self._append_created_at or row.created_at,
                updated_at=self.now
            )
            return self.ledger.statuses.create_row(new_row)

        updates: Dict[str, Any] = {
            f"stages.{stage}": record.model_dump()
            for stage, record in self._stage_updates.items()
        }
        if self._rejection is not None:
            updates["rejection"] = self._rejection.model_dump()
        updates["updated_at"] = self.now

        return self.ledger.statuses.update_row(row.status_id, updates, expected_version=row.version)

    def _compensate(self, updated_request: GatePassRequest, previous: Dict[str, Any]) -> None:
        try:
            self.ledger.requests.update_request(
                updated_request.request_id,
                previous,
                expected_version=updated_request.version
            )
            logger.warning(
                "Ledger write failed; request changes rolled back",
                extra={"reference_number": updated_request.reference_number}
            )
        except Exception:
            logger.exception(
                "Ledger write failed and request rollback also failed",
                extra={"reference_number": updated_request.reference_number}
            )
