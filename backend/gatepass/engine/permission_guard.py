"""Permission Guard - Who may see and act on a stage queue"""
from typing import Dict, Optional, Tuple

from ..domain.models import ActorContext, StatusRow
from ..domain.enums import Stage, UserRole
from ..domain.errors import AuthorizationError, MissingServiceNoError, PermissionDeniedError
from ..services.directory_service import (
    EXECUTIVE_ROLES, VERIFIER_ROLES, DISPATCHER_ROLES, RECEIVER_ROLES, branch_matches
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

_SECURITY = (UserRole.SECURITY_OFFICER.value,)

# Roles that may work each stage queue
STAGE_ROLES: Dict[Stage, Tuple[str, ...]] = {
    Stage.EXECUTIVE: EXECUTIVE_ROLES,
    Stage.VERIFIER: VERIFIER_ROLES + _SECURITY,
    Stage.DISPATCHER: DISPATCHER_ROLES + _SECURITY,
    Stage.RECEIVER: RECEIVER_ROLES + DISPATCHER_ROLES + _SECURITY,
}


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a and b) and a.strip().lower() == b.strip().lower()


class PermissionGuard:
    """
    Queue scoping and action checks for stage operations

    Rules:
    - SuperAdmin sees and acts on everything
    - Executive: only rows assigned to the actor
    - Verifier: rows whose out-location is one of the actor's branches
    - Dispatcher: rows whose dispatch location is one of the actor's branches
    - Receiver: rows assigned to the actor, or unassigned rows for one of
      the actor's branches
    """

    def has_stage_role(self, actor: ActorContext, stage: Stage) -> bool:
        return actor.is_super_admin or actor.role in STAGE_ROLES[stage]

    def in_scope(self, actor: ActorContext, stage: Stage, row: StatusRow) -> bool:
        """Is this (populated) row on the actor's queue for the stage"""
        if actor.is_super_admin:
            return True

        request = row.request
        if request is None:
            return False

        record = row.stage(stage)
        assigned = record.service_no if record else None

        if stage == Stage.EXECUTIVE:
            return _same(assigned or request.executive_officer_service_no, actor.service_no)

        if stage == Stage.VERIFIER:
            return branch_matches(actor.branches, request.out_location)

        if stage == Stage.DISPATCHER:
            return branch_matches(actor.branches, request.dispatch_location)

        if assigned:
            return _same(assigned, actor.service_no)
        return (
            actor.role in STAGE_ROLES[Stage.RECEIVER]
            and branch_matches(actor.branches, request.in_location)
        )

    def resolve_queue_owner(self, actor: ActorContext, target_service_no: Optional[str]) -> Optional[str]:
        """
        Validate a queue query and return the service number to filter on

        SuperAdmin may name any officer (or none). Everyone else must carry a
        service number and may only name themselves.
        """
        if actor.is_super_admin:
            return target_service_no or None

        if not actor.service_no:
            raise MissingServiceNoError()

        if target_service_no and not _same(target_service_no, actor.service_no):
            raise AuthorizationError(
                "Only SuperAdmin may view another officer's queue",
                details={"service_no": target_service_no}
            )
        return None

    def check_can_list(self, actor: ActorContext, stage: Stage) -> None:
        # Anyone may list receipts assigned to them by name
        if stage == Stage.RECEIVER:
            return
        if not self.has_stage_role(actor, stage):
            raise PermissionDeniedError(
                f"Role {actor.role} cannot view the {stage.label} queue",
                details={"stage": stage.value}
            )

    def check_can_act(self, actor: ActorContext, stage: Stage, row: StatusRow) -> None:
        """Raise PermissionDeniedError unless the actor may decide this row"""
        if actor.is_super_admin:
            return

        record = row.stage(stage)
        assigned_to_actor = bool(record and _same(record.service_no, actor.service_no))

        if not (assigned_to_actor or self.has_stage_role(actor, stage)):
            raise PermissionDeniedError(
                f"Role {actor.role} cannot act at the {stage.label} stage",
                details={"stage": stage.value, "reference_number": row.reference_number}
            )

        if not self.in_scope(actor, stage, row):
            logger.warning(
                f"Out-of-scope {stage.label} action refused",
                extra={"reference_number": row.reference_number, "service_no": actor.service_no}
            )
            raise PermissionDeniedError(
                "This request is not on your queue",
                details={"stage": stage.value, "reference_number": row.reference_number}
            )
