"""Report Service - Oversight views over the status ledger

Ledger rows are paged with a coarse store filter, exploded into one row per
stage, then filtered again per stage row. A ledger row can match the store
filter through one stage while carrying other stages the caller did not ask
for, so the second pass is required.
"""
from datetime import datetime, time, timezone
from typing import Any, Dict, List, Optional

from ..domain.models import StageReportRow, StatusRow
from ..domain.enums import Stage, StageState
from ..domain.errors import NotFoundError, ValidationError
from ..domain.legacy import legacy_state_clauses
from ..repositories.status_repo import StatusRepository
from ..repositories.transition_repo import TransitionRepository
from ..engine.ledger import StatusLedger
from ..config.settings import settings
from ..utils.time import end_of_day, ensure_utc
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Dashboard names for each stage
REPORT_STAGE_NAMES: Dict[Stage, str] = {
    Stage.EXECUTIVE: "Executive",
    Stage.VERIFIER: "Verify",
    Stage.DISPATCHER: "Petrol Leader",
    Stage.RECEIVER: "Receive",
}

# Other names dashboards send for a stage
STAGE_NAME_ALIASES: Dict[str, Stage] = {
    "pleader": Stage.DISPATCHER,
    "petrol-leader": Stage.DISPATCHER,
    "petrol_leader": Stage.DISPATCHER,
    "dispatch": Stage.DISPATCHER,
}

STATUS_LABELS: Dict[StageState, str] = {
    StageState.PENDING: "Pending",
    StageState.APPROVED: "Approved",
    StageState.REJECTED: "Rejected",
}


def parse_stage_name(name: Optional[str]) -> Optional[Stage]:
    """Dashboard or enum stage name to Stage; ValidationError if unknown"""
    if not name:
        return None
    wanted = name.strip().lower()
    if wanted in STAGE_NAME_ALIASES:
        return STAGE_NAME_ALIASES[wanted]
    for stage, label in REPORT_STAGE_NAMES.items():
        if wanted in (label.lower(), stage.value.lower()):
            return stage
    raise ValidationError(
        f"Unknown stage: {name}",
        details={"allowed": list(REPORT_STAGE_NAMES.values())}
    )


def parse_status_label(label: Optional[str]) -> Optional[StageState]:
    """Status label (or 1/2/3 code) to StageState; ValidationError if unknown"""
    if not label:
        return None
    wanted = label.strip().lower()
    for state, text in STATUS_LABELS.items():
        if wanted in (text.lower(), str(state.code)):
            return state
    raise ValidationError(
        f"Unknown status: {label}",
        details={"allowed": list(STATUS_LABELS.values())}
    )


def explode_row(row: StatusRow) -> List[StageReportRow]:
    """
    One report row per pipeline stage, in pipeline order

    A stage the row has not reached comes out with no code and no label.
    Codes outside 1/2/3 on unmigrated rows pass through as-is, labelled
    with their own text.
    """
    exploded = []
    row_updated_at = ensure_utc(row.updated_at or row.created_at)
    for stage in Stage:
        record = row.stage(stage)
        service_no = record.service_no if record else None
        updated_at = ensure_utc(record.updated_at) if record and record.updated_at else row_updated_at

        if record is not None:
            state = StageState(record.state)
            code, label = state.code, STATUS_LABELS[state]
        elif stage.value in row.unmapped_codes:
            code = row.unmapped_codes[stage.value]
            label = str(code)
        else:
            code, label = None, None

        exploded.append(StageReportRow(
            reference_number=row.reference_number,
            stage=REPORT_STAGE_NAMES[stage],
            status_code=code,
            status_label=label,
            service_no=service_no,
            updated_at=updated_at,
            request=row.request
        ))
    return exploded


def _report_key(row: StageReportRow) -> datetime:
    return row.updated_at or datetime.min.replace(tzinfo=timezone.utc)


class ReportService:
    """Stage-level reporting for admins"""

    def __init__(
        self,
        ledger: Optional[StatusLedger] = None,
        transition_repo: Optional[TransitionRepository] = None
    ):
        self.ledger = ledger or StatusLedger()
        self.transition_repo = transition_repo or TransitionRepository()

    @property
    def statuses(self) -> StatusRepository:
        return self.ledger.statuses

    def list_stage_rows(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        stage: Optional[str] = None,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Paged, exploded stage rows: {total, page, limit, rows}"""
        page = max(1, page or 1)
        limit = limit or settings.report_default_limit
        limit = max(1, min(limit, settings.report_max_limit))

        wanted_stage = parse_stage_name(stage)
        wanted_state = parse_status_label(status)
        query = self._build_query(wanted_stage, wanted_state, date_from, date_to)

        total = self.statuses.count_rows(query)
        rows = self.statuses.find_rows(query, skip=(page - 1) * limit, limit=limit)
        self.ledger.populate(rows)

        stage_label = REPORT_STAGE_NAMES[wanted_stage] if wanted_stage else None
        exploded = []
        for row in rows:
            for item in explode_row(row):
                if stage_label and item.stage != stage_label:
                    continue
                if wanted_state and item.status_code != wanted_state.code:
                    continue
                exploded.append(item)

        exploded.sort(key=_report_key, reverse=True)
        return {"total": total, "page": page, "limit": limit, "rows": exploded}

    def _build_query(
        self,
        stage: Optional[Stage],
        state: Optional[StageState],
        date_from: Optional[datetime],
        date_to: Optional[datetime]
    ) -> Dict[str, Any]:
        clauses: List[Dict[str, Any]] = []

        if stage or state:
            stage_clauses: List[Dict[str, Any]] = []
            for s in ([stage] if stage else list(Stage)):
                if state:
                    stage_clauses.append({f"stages.{s.value}.state": state.value})
                else:
                    stage_clauses.append({f"stages.{s.value}": {"$exists": True}})
                stage_clauses.extend(legacy_state_clauses(s, state))
            clauses.append({"$or": stage_clauses})

        if date_from or date_to:
            window: Dict[str, Any] = {}
            if date_from:
                window["$gte"] = ensure_utc(date_from)
            if date_to:
                bound = ensure_utc(date_to)
                # A bare date covers the whole day
                if bound.time() == time.min:
                    bound = end_of_day(bound)
                window["$lte"] = bound
            clauses.append({"$or": [{"updated_at": window}, {"updatedAt": window}]})

        if not clauses:
            return {}
        return clauses[0] if len(clauses) == 1 else {"$and": clauses}

    def timeline(self, reference_number: str) -> Dict[str, Any]:
        """Every ledger row for a reference, exploded oldest first, plus transitions"""
        rows = self.ledger.rows_for(reference_number)
        if not rows:
            raise NotFoundError(
                f"No ledger rows for {reference_number}",
                details={"reference_number": reference_number}
            )
        self.ledger.populate(rows)

        exploded = [item for row in rows for item in explode_row(row)]
        exploded.sort(key=_report_key)

        return {
            "reference_number": reference_number,
            "rows": exploded,
            "transitions": self.transition_repo.get_transitions_for_reference(reference_number),
        }
