"""Audit Writer - Append-only status transitions"""
from typing import Any, Dict, Optional

from ..domain.models import ActorContext, GatePassRequest, StatusTransition
from ..domain.enums import Stage, StageState, TransitionAction
from ..repositories.transition_repo import TransitionRepository
from ..utils.idgen import generate_transition_id
from ..utils.time import utc_now
from ..utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


class AuditWriter:
    """
    Write status transitions (append-only)

    Every ledger change produces one transition. Writes happen after the
    change is committed and never fail the operation that caused them.
    """

    def __init__(self, repo: Optional[TransitionRepository] = None):
        self.repo = repo or TransitionRepository()

    def write_transition(
        self,
        reference_number: str,
        action: TransitionAction,
        actor: ActorContext,
        stage: Optional[Stage] = None,
        from_state: Optional[StageState] = None,
        to_state: Optional[StageState] = None,
        lifecycle_before: Optional[int] = None,
        lifecycle_after: Optional[int] = None,
        comment: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[StatusTransition]:
        """Write a single transition; returns None if the write failed"""
        transition = StatusTransition(
            transition_id=generate_transition_id(),
            reference_number=reference_number,
            stage=stage,
            action=action,
            from_state=from_state,
            to_state=to_state,
            lifecycle_before=lifecycle_before,
            lifecycle_after=lifecycle_after,
            actor_service_no=actor.service_no,
            actor_role=actor.role,
            comment=comment,
            details=details or {},
            correlation_id=get_correlation_id() or None,
            timestamp=utc_now()
        )

        try:
            return self.repo.create_transition(transition)
        except Exception as e:
            logger.warning(
                f"Failed to record transition {action.value}: {e}",
                extra={"reference_number": reference_number, "action": action.value}
            )
            return None

    def write_stage_decision(
        self,
        action: TransitionAction,
        stage: Stage,
        actor: ActorContext,
        before: GatePassRequest,
        after: GatePassRequest,
        to_state: StageState,
        comment: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> Optional[StatusTransition]:
        """Approve or reject at a stage"""
        return self.write_transition(
            reference_number=after.reference_number,
            action=action,
            actor=actor,
            stage=stage,
            from_state=StageState.PENDING,
            to_state=to_state,
            lifecycle_before=int(before.status),
            lifecycle_after=int(after.status),
            comment=comment,
            details=details
        )

    def write_submit(self, request: GatePassRequest, actor: ActorContext) -> Optional[StatusTransition]:
        return self.write_transition(
            reference_number=request.reference_number,
            action=TransitionAction.SUBMIT,
            actor=actor,
            stage=Stage.EXECUTIVE,
            to_state=StageState.PENDING,
            lifecycle_after=int(request.status),
            details={"executive_officer_service_no": request.executive_officer_service_no}
        )

    def write_cancel(
        self,
        before: GatePassRequest,
        after: GatePassRequest,
        actor: ActorContext
    ) -> Optional[StatusTransition]:
        return self.write_transition(
            reference_number=after.reference_number,
            action=TransitionAction.CANCEL,
            actor=actor,
            lifecycle_before=int(before.status),
            lifecycle_after=int(after.status)
        )

    def write_items_returned(
        self,
        request: GatePassRequest,
        actor: ActorContext,
        serial_numbers: list,
        return_status: str
    ) -> Optional[StatusTransition]:
        return self.write_transition(
            reference_number=request.reference_number,
            action=TransitionAction.RETURN_ITEMS,
            actor=actor,
            details={"serial_numbers": serial_numbers, "return_status": return_status}
        )
