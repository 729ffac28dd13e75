"""
Gate Pass Engine - entry point for stage operations

Builds the four stage engines over one shared set of collaborators and
dispatches by Stage. Routes, scripts and tests go through this class.
"""
from typing import Any, Dict, List, Optional

from ..domain.models import ActorContext, StatusRow
from ..domain.enums import Stage
from ..services.directory_service import DirectoryService, get_directory
from ..services.notification_service import NotificationService
from ..services.event_bus_service import EventBusService, get_event_bus
from .ledger import StatusLedger
from .audit_writer import AuditWriter
from .permission_guard import PermissionGuard
from .stage_engine import StageEngine
from .executive_stage import ExecutiveStage
from .verifier_stage import VerifierStage
from .dispatcher_stage import DispatcherStage
from .receiver_stage import ReceiverStage

STAGE_CLASSES = {
    Stage.EXECUTIVE: ExecutiveStage,
    Stage.VERIFIER: VerifierStage,
    Stage.DISPATCHER: DispatcherStage,
    Stage.RECEIVER: ReceiverStage,
}


class GatePassEngine:
    """Stage engines sharing a ledger, directory, outbox and event bus"""

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

        self._stages: Dict[Stage, StageEngine] = {
            stage: cls(
                ledger=self.ledger,
                directory=self.directory,
                notifications=self.notifications,
                event_bus=self.event_bus,
                audit=self.audit,
                guard=self.guard
            )
            for stage, cls in STAGE_CLASSES.items()
        }

    def stage(self, stage: Stage) -> StageEngine:
        return self._stages[Stage(stage)]

    def list_pending(self, stage: Stage, actor: ActorContext, service_no: Optional[str] = None) -> List[StatusRow]:
        return self.stage(stage).list_pending(actor, service_no)

    def list_approved(self, stage: Stage, actor: ActorContext, service_no: Optional[str] = None) -> List[StatusRow]:
        return self.stage(stage).list_approved(actor, service_no)

    def list_rejected(self, stage: Stage, actor: ActorContext, service_no: Optional[str] = None) -> List[StatusRow]:
        return self.stage(stage).list_rejected(actor, service_no)

    def approve(
        self,
        stage: Stage,
        reference_number: str,
        comment: Optional[str],
        actor: ActorContext,
        **extras: Any
    ) -> StatusRow:
        return self.stage(stage).approve(reference_number, comment, actor, **extras)

    def reject(self, stage: Stage, reference_number: str, comment: Optional[str], actor: ActorContext) -> StatusRow:
        return self.stage(stage).reject(reference_number, comment, actor)
