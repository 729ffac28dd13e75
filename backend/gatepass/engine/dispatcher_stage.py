"""Dispatcher (Petrol Leader) stage - releases the goods

Every dispatcher decision appends a new ledger row carrying the original
submission's created_at. Non-SLT destinations end here; SLT destinations
open the receiver stage.
"""
from typing import Any

from ..domain.models import ActorContext, StatusRow
from ..domain.enums import Stage, StageState, RequestLifecycle
from ..services.directory_service import RECEIVER_ROLES
from .stage_engine import StageEngine
from .unit_of_work import StageUnitOfWork


class DispatcherStage(StageEngine):
    """Dispatcher at the dispatch location"""

    stage = Stage.DISPATCHER
    approve_lifecycle = RequestLifecycle.RECEIVE_PENDING
    reject_lifecycle = RequestLifecycle.DISPATCH_REJECTED
    appends_rows = True

    def apply_approval(self, uow: StageUnitOfWork, actor: ActorContext, **extras: Any) -> None:
        request = uow.request

        if request.is_non_slt_place:
            uow.set_request(status=RequestLifecycle.DISPATCHED)
            return

        receiver_service_no = request.receiver_service_no if request.receiver_available else None
        uow.set_stage(Stage.RECEIVER, StageState.PENDING, receiver_service_no or None)

    def notify_approval(self, row: StatusRow, actor: ActorContext, uow: StageUnitOfWork) -> None:
        request = row.request
        if request.is_non_slt_place:
            return

        record = row.stage(Stage.RECEIVER)
        if record and record.service_no:
            receiver = self.directory.find_by_service_no(record.service_no)
            if receiver:
                self.notifications.enqueue_receive_pending_assigned(request, receiver)
            return

        receivers = self.directory.find_by_role_and_branch(RECEIVER_ROLES, request.in_location)
        if receivers:
            self.notifications.enqueue_receive_pending_pool(request, receivers)
