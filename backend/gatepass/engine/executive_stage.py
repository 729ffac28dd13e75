"""Executive stage - first approval, routes the pass to a verifier"""
from typing import Any

from ..domain.models import ActorContext, StatusRow
from ..domain.enums import Stage, StageState, RequestLifecycle
from ..services.directory_service import VERIFIER_ROLES
from .stage_engine import StageEngine
from .unit_of_work import StageUnitOfWork


class ExecutiveStage(StageEngine):
    """Executive officer named by the requester"""

    stage = Stage.EXECUTIVE
    approve_lifecycle = RequestLifecycle.EXECUTIVE_APPROVED
    reject_lifecycle = RequestLifecycle.EXECUTIVE_REJECTED

    def apply_approval(self, uow: StageUnitOfWork, actor: ActorContext, **extras: Any) -> None:
        request = uow.request
        verifier = self._resolve_quietly(
            "verifier",
            lambda: self.directory.find_first_by_role_and_branch(VERIFIER_ROLES, request.out_location)
        )
        # Verifier stage opens even when nobody is found; any verifier at the branch can pick it up
        uow.set_stage(Stage.VERIFIER, StageState.PENDING, verifier.service_no if verifier else None)
        uow.set_request(show=True)
        uow.context["verifier"] = verifier

    def notify_approval(self, row: StatusRow, actor: ActorContext, uow: StageUnitOfWork) -> None:
        verifier = uow.context.get("verifier")
        if verifier:
            self.notifications.enqueue_verify_pending(row.request, verifier, actor.service_no)
