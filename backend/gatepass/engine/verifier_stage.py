"""Verifier stage - security check at the out-location, routes to dispatch"""
from typing import Any

from ..domain.models import ActorContext, StatusRow
from ..domain.enums import Stage, StageState, RequestLifecycle
from ..services.directory_service import DISPATCHER_ROLES
from .stage_engine import StageEngine
from .unit_of_work import StageUnitOfWork


class VerifierStage(StageEngine):
    """Verifier at the sending branch"""

    stage = Stage.VERIFIER
    approve_lifecycle = RequestLifecycle.VERIFY_APPROVED
    reject_lifecycle = RequestLifecycle.VERIFY_REJECTED

    def apply_approval(self, uow: StageUnitOfWork, actor: ActorContext, **extras: Any) -> None:
        request = uow.request
        dispatcher = self._resolve_quietly(
            "dispatcher",
            lambda: self.directory.find_first_by_role_and_branch(DISPATCHER_ROLES, request.dispatch_location)
        )
        uow.set_stage(Stage.DISPATCHER, StageState.PENDING, dispatcher.service_no if dispatcher else None)
        uow.context["dispatcher"] = dispatcher

    def notify_approval(self, row: StatusRow, actor: ActorContext, uow: StageUnitOfWork) -> None:
        dispatcher = uow.context.get("dispatcher")
        if dispatcher:
            self.notifications.enqueue_dispatch_pending(row.request, dispatcher, actor.service_no)
