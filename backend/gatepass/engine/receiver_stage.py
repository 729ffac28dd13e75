"""Receiver stage - confirms arrival at the SLT destination"""
from typing import Any, Dict, List, Optional

from ..domain.models import ActorContext, HandlingDetails, ReturnableItem, StatusRow
from ..domain.enums import Stage, RequestLifecycle, GatePassEvent, LoadingType, PartyType
from .stage_engine import StageEngine
from .unit_of_work import StageUnitOfWork


def merge_returnable_items(
    current: List[ReturnableItem],
    corrections: List[ReturnableItem]
) -> List[ReturnableItem]:
    """Replace entries by serial number, appending ones not seen before"""
    merged: Dict[str, ReturnableItem] = {item.serial_number: item for item in current}
    for item in corrections:
        merged[item.serial_number] = item
    return list(merged.values())


class ReceiverStage(StageEngine):
    """Named receiver, or any receiver at the in-location"""

    stage = Stage.RECEIVER
    approve_lifecycle = RequestLifecycle.RECEIVED
    reject_lifecycle = RequestLifecycle.RECEIVE_REJECTED
    approve_event = GatePassEvent.REQUEST_COMPLETED

    def apply_approval(
        self,
        uow: StageUnitOfWork,
        actor: ActorContext,
        unloading: Optional[HandlingDetails] = None,
        returnable_items: Optional[List[ReturnableItem]] = None,
        **extras: Any
    ) -> None:
        request = uow.request

        details = unloading.model_copy() if unloading else HandlingDetails()
        details.loading_type = LoadingType.UNLOADING.value
        details.loading_location = details.loading_location or request.in_location
        details.loading_time = details.loading_time or uow.now
        if details.staff_type in (None, PartyType.SLT.value) and not details.staff_service_no:
            details.staff_type = PartyType.SLT.value
            details.staff_service_no = actor.service_no
        uow.set_request(un_loading=details)

        if returnable_items:
            uow.set_request(returnable_items=merge_returnable_items(request.returnable_items, returnable_items))

    def notify_approval(self, row: StatusRow, actor: ActorContext, uow: StageUnitOfWork) -> None:
        requester = self.directory.find_by_service_no(row.request.employee_service_no)
        if requester:
            self.notifications.enqueue_request_received(row.request, requester, actor.service_no)
