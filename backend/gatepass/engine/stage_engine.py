"""
Stage Engine - shared behaviour of the four approval stages

Each stage exposes the same six operations:

    list_pending / list_approved / list_rejected   queue reads
    approve / reject                               decisions

A decision runs in this order:

    1. validate input (a reject needs a comment)
    2. load the current ledger row and its request
    3. check the actor may act, and that the stage is PENDING
    4. stage the writes on a unit of work and commit
    5. record the transition, send emails, publish the event

Step 5 is best-effort: a failure there is logged and never undoes the
decision. Anything unexpected from steps 2-4 surfaces as InternalServerError.
"""
from contextlib import contextmanager
from typing import Any, Callable, List, Optional

from ..domain.models import ActorContext, RejectionInfo, StatusRow, UserRecord
from ..domain.enums import (
    Stage, StageState, RequestLifecycle, TransitionAction, GatePassEvent
)
from ..domain.errors import (
    DomainError, InternalServerError, InvalidStateError, MissingCommentError
)
from ..services.directory_service import (
    DirectoryService, VERIFIER_ROLES, DISPATCHER_ROLES, get_directory
)
from ..services.notification_service import NotificationService
from ..services.event_bus_service import EventBusService, get_event_bus
from .ledger import StatusLedger
from .unit_of_work import StageUnitOfWork
from .audit_writer import AuditWriter
from .permission_guard import PermissionGuard
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a and b) and a.strip().lower() == b.strip().lower()


class StageEngine:
    """Base class; subclasses set the stage constants and routing hooks"""

    stage: Stage
    approve_lifecycle: RequestLifecycle
    reject_lifecycle: RequestLifecycle
    approve_event: GatePassEvent = GatePassEvent.REQUEST_APPROVED
    appends_rows: bool = False

    def __init__(
        self,
        ledger: Optional[StatusLedger] = None,
        directory: Optional[DirectoryService] = None,
        notifications: Optional[NotificationService] = None,
        event_bus: Optional[EventBusService] = None,
        audit: Optional[AuditWriter] = None,
        guard: Optional[PermissionGuard] = None
    ):
        self.ledger = ledger or StatusLedger()
        self.directory = directory or get_directory()
        self.notifications = notifications or NotificationService()
        self.event_bus = event_bus or get_event_bus()
        self.audit = audit or AuditWriter()
        self.guard = guard or PermissionGuard()

    # =========================================================================
    # Queue reads
    # =========================================================================

    def list_pending(self, actor: ActorContext, service_no: Optional[str] = None) -> List[StatusRow]:
        return self._list(StageState.PENDING, actor, service_no)

    def list_approved(self, actor: ActorContext, service_no: Optional[str] = None) -> List[StatusRow]:
        return self._list(StageState.APPROVED, actor, service_no)

    def list_rejected(self, actor: ActorContext, service_no: Optional[str] = None) -> List[StatusRow]:
        return self._list(StageState.REJECTED, actor, service_no)

    def _list(
        self,
        state: StageState,
        actor: ActorContext,
        service_no: Optional[str]
    ) -> List[StatusRow]:
        with self._operation(f"list {state.value.lower()}"):
            owner = self.guard.resolve_queue_owner(actor, service_no)
            self.guard.check_can_list(actor, self.stage)

            rows = []
            for row in self.ledger.current_rows(self.stage, state):
                if row.request is None or not row.request.show:
                    continue
                if not self.guard.in_scope(actor, self.stage, row):
                    continue
                if owner and not self._belongs_to(row, owner):
                    continue
                rows.append(row)
            return rows

    def _belongs_to(self, row: StatusRow, service_no: str) -> bool:
        record = row.stage(self.stage)
        return bool(record and _same(record.service_no, service_no))

    # =========================================================================
    # Decisions
    # =========================================================================

    def approve(
        self,
        reference_number: str,
        comment: Optional[str],
        actor: ActorContext,
        **extras: Any
    ) -> StatusRow:
        """Approve the current row at this stage and route it onward"""
        with self._operation("approve", reference_number):
            row = self._load_for_decision(reference_number, actor, StageState.APPROVED)
            if row.state_of(self.stage) == StageState.APPROVED:
                return row

            uow = StageUnitOfWork(self.ledger, row)
            uow.set_stage(self.stage, StageState.APPROVED, actor.service_no, comment)
            uow.set_request(status=self.approve_lifecycle)
            self.apply_approval(uow, actor, **extras)
            if self.appends_rows:
                uow.append_row(self.ledger.first_created_at(reference_number))
            result = uow.commit()

        self.audit.write_stage_decision(
            TransitionAction.APPROVE, self.stage, actor, row.request, result.request,
            StageState.APPROVED, comment
        )
        self._notify_safely("approval", lambda: self.notify_approval(result, actor, uow))
        self._publish(self.approve_event, result)
        return result

    def reject(self, reference_number: str, comment: Optional[str], actor: ActorContext) -> StatusRow:
        """Reject the current row at this stage and tell everyone involved"""
        if not comment or not comment.strip():
            raise MissingCommentError()

        with self._operation("reject", reference_number):
            row = self._load_for_decision(reference_number, actor, StageState.REJECTED)
            if row.state_of(self.stage) == StageState.REJECTED:
                return row

            uow = StageUnitOfWork(self.ledger, row)
            uow.set_stage(self.stage, StageState.REJECTED, actor.service_no, comment)
            uow.set_request(status=self.reject_lifecycle)
            rejection = RejectionInfo(
                rejected_by=self.stage.label,
                service_no=actor.service_no,
                branch=self._actor_branch(actor),
                rejected_at=uow.now,
                level=self.stage.ordinal
            )
            uow.set_rejection(rejection)
            if self.appends_rows:
                uow.append_row(self.ledger.first_created_at(reference_number))
            result = uow.commit()

        self.audit.write_stage_decision(
            TransitionAction.REJECT, self.stage, actor, row.request, result.request,
            StageState.REJECTED, comment, details={"level": rejection.level}
        )
        self.notify_rejection(result, rejection, comment)
        self._publish(GatePassEvent.REQUEST_REJECTED, result)
        return result

    def _load_for_decision(
        self,
        reference_number: str,
        actor: ActorContext,
        decision: StageState
    ) -> StatusRow:
        row = self.ledger.latest_or_raise(reference_number)
        self.guard.check_can_act(actor, self.stage, row)

        current = row.state_of(self.stage)
        if current == decision:
            logger.info(
                f"{self.stage.label} already {decision.value.lower()}",
                extra={"reference_number": reference_number, "stage": self.stage.value}
            )
            return row
        if current != StageState.PENDING:
            raise InvalidStateError(
                f"{self.stage.label} stage is not pending",
                details={
                    "reference_number": reference_number,
                    "stage": self.stage.value,
                    "state": current.value if current else None
                }
            )
        return row

    @contextmanager
    def _operation(self, action: str, reference_number: Optional[str] = None):
        """Let domain errors through; hide everything else behind a 500"""
        try:
            yield
        except DomainError:
            raise
        except Exception:
            logger.exception(
                f"{self.stage.label} {action} failed",
                extra={"reference_number": reference_number, "stage": self.stage.value, "action": action}
            )
            raise InternalServerError()

    # =========================================================================
    # Stage hooks
    # =========================================================================

    def apply_approval(self, uow: StageUnitOfWork, actor: ActorContext, **extras: Any) -> None:
        """Stage the next stage's state and any request changes"""

    def notify_approval(self, row: StatusRow, actor: ActorContext, uow: StageUnitOfWork) -> None:
        """Email whoever acts next"""

    # =========================================================================
    # Rejection fan-out
    # =========================================================================

    def notify_rejection(self, row: StatusRow, rejection: RejectionInfo, comment: str) -> List[str]:
        """
        Email every party involved up to the rejecting stage

        Requester always; plus the executive (level > 1), verifier
        (level > 2) and dispatcher (level > 3). Each send is independent.
        Returns the labels of the parties that were notified.
        """
        request = row.request
        parties: List[tuple] = [
            ("Requester", lambda: self.directory.find_by_service_no(request.employee_service_no)),
        ]
        if rejection.level > 1:
            parties.append(("Executive", lambda: self._stage_officer(row, Stage.EXECUTIVE)))
        if rejection.level > 2:
            parties.append(("Verifier", lambda: self._stage_officer(row, Stage.VERIFIER)))
        if rejection.level > 3:
            parties.append(("Dispatcher", lambda: self._stage_officer(row, Stage.DISPATCHER)))

        notified = []
        for label, resolve in parties:
            try:
                recipient = resolve()
                if recipient is None:
                    logger.warning(
                        f"No {label} found for rejection notice",
                        extra={"reference_number": row.reference_number}
                    )
                    continue
                self.notifications.enqueue_rejection(request, recipient, label, rejection, comment)
                notified.append(label)
            except Exception as e:
                logger.warning(
                    f"Rejection notice to {label} failed: {e}",
                    extra={"reference_number": row.reference_number, "stage": self.stage.value}
                )
        return notified

    def _stage_officer(self, row: StatusRow, stage: Stage) -> Optional[UserRecord]:
        """Officer recorded on the row for a stage, else the branch default"""
        request = row.request
        record = row.stage(stage)
        if record and record.service_no:
            user = self.directory.find_by_service_no(record.service_no)
            if user:
                return user

        if stage == Stage.EXECUTIVE:
            return self.directory.find_by_service_no(request.executive_officer_service_no)
        if stage == Stage.VERIFIER:
            return self.directory.find_first_by_role_and_branch(VERIFIER_ROLES, request.out_location)
        if stage == Stage.DISPATCHER:
            return self.directory.find_first_by_role_and_branch(DISPATCHER_ROLES, request.dispatch_location)
        return None

    # =========================================================================
    # Helpers
    # =========================================================================

    def _actor_branch(self, actor: ActorContext) -> Optional[str]:
        if actor.primary_branch:
            return actor.primary_branch
        try:
            return self.directory.primary_branch(actor.service_no)
        except Exception as e:
            logger.warning(f"Branch lookup failed for {actor.service_no}: {e}")
            return None

    def _resolve_quietly(self, what: str, lookup: Callable[[], Any]) -> Any:
        """Directory lookup whose failure only costs an email"""
        try:
            return lookup()
        except Exception as e:
            logger.warning(f"Could not resolve {what}: {e}", extra={"stage": self.stage.value})
            return None

    def _notify_safely(self, what: str, send: Callable[[], Any]) -> None:
        try:
            send()
        except Exception as e:
            logger.warning(
                f"{self.stage.label} {what} email failed: {e}",
                extra={"stage": self.stage.value}
            )

    def _publish(self, event: GatePassEvent, row: StatusRow) -> None:
        try:
            self.event_bus.publish_request_event(event, row.request)
        except Exception as e:
            logger.warning(
                f"Publishing {event.value} failed: {e}",
                extra={"reference_number": row.reference_number, "action": event.value}
            )
