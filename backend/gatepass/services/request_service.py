"""Request Service - Requester-side gate pass operations"""
from typing import Any, Dict, List, Optional

from ..domain.models import (
    ActorContext, GatePassDraft, GatePassRequest, ReturnableItem, StageRecord, StatusRow
)
from ..domain.enums import (
    Stage, StageState, RequestLifecycle, ItemStatus, GatePassEvent
)
from ..domain.errors import (
    DomainError, InternalServerError, InvalidStateError, MissingServiceNoError,
    NotFoundError, PermissionDeniedError, ValidationError
)
from ..repositories.request_repo import RequestRepository
from ..repositories.status_repo import StatusRepository
from ..engine.audit_writer import AuditWriter
from .directory_service import DirectoryService, get_directory
from .notification_service import NotificationService
from .event_bus_service import EventBusService, get_event_bus
from ..utils.idgen import generate_reference_number, generate_request_id, generate_status_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Item status a return takes, by the stage that sends it back
RETURN_LABELS: Dict[str, str] = {
    Stage.EXECUTIVE.value: ItemStatus.RETURN_TO_SENDER.value,
    Stage.VERIFIER.value: ItemStatus.RETURN_TO_EXECUTIVE_OFFICER.value,
    Stage.DISPATCHER.value: ItemStatus.RETURN_TO_OUT_LOCATION_PETROL_LEADER.value,
    Stage.RECEIVER.value: ItemStatus.RETURN_TO_PETROL_LEADER.value,
}

# Fields a returnable item correction may touch
RETURNABLE_EDITABLE_FIELDS = (
    "serial_number", "item_code", "item_description", "item_category",
    "category_description", "item_quantity", "return_date", "remarks",
)


def return_label_for(stage: Optional[str]) -> str:
    """Return label for a stage name; plain 'returned' for anything else"""
    if not stage:
        return ItemStatus.RETURNED.value
    return RETURN_LABELS.get(stage.strip().upper(), ItemStatus.RETURNED.value)


class RequestService:
    """Submit, read, cancel and track returns for gate passes"""

    def __init__(
        self,
        request_repo: Optional[RequestRepository] = None,
        status_repo: Optional[StatusRepository] = None,
        directory: Optional[DirectoryService] = None,
        notifications: Optional[NotificationService] = None,
        event_bus: Optional[EventBusService] = None,
        audit: Optional[AuditWriter] = None
    ):
        self.request_repo = request_repo or RequestRepository()
        self.status_repo = status_repo or StatusRepository()
        self.directory = directory or get_directory()
        self.notifications = notifications or NotificationService()
        self.event_bus = event_bus or get_event_bus()
        self.audit = audit or AuditWriter()

    # =========================================================================
    # Submit
    # =========================================================================

    def submit_request(self, actor: ActorContext, draft: GatePassDraft) -> GatePassRequest:
        """
        Create a request and its first ledger row

        The executive stage opens PENDING, assigned to the executive
        officer the requester named.
        """
        if not actor.service_no:
            raise MissingServiceNoError()
        self._validate_draft(draft)

        now = utc_now()
        request = GatePassRequest(
            request_id=generate_request_id(),
            reference_number=generate_reference_number(),
            employee_service_no=actor.service_no,
            items=draft.items,
            returnable_items=[
                ReturnableItem(
                    serial_number=item.serial_number,
                    item_code=item.item_code,
                    item_description=item.item_description,
                    item_category=item.item_category,
                    category_description=item.category_description,
                    item_quantity=item.item_quantity,
                    return_date=item.return_date
                )
                for item in draft.items if item.returnable
            ],
            out_location=draft.out_location,
            in_location=None if draft.is_non_slt_place else draft.in_location,
            is_non_slt_place=draft.is_non_slt_place,
            company_name=draft.company_name,
            company_address=draft.company_address,
            receiver_nic=draft.receiver_nic,
            receiver_name=draft.receiver_name,
            receiver_contact=draft.receiver_contact,
            executive_officer_service_no=draft.executive_officer_service_no,
            receiver_available=draft.receiver_available,
            receiver_service_no=draft.receiver_service_no if draft.receiver_available else None,
            transport=draft.transport,
            loading=draft.loading,
            status=RequestLifecycle.EXECUTIVE_PENDING,
            show=True,
            created_at=now,
            updated_at=now
        )
        row = StatusRow(
            status_id=generate_status_id(),
            reference_number=request.reference_number,
            request_id=request.request_id,
            stages={
                Stage.EXECUTIVE.value: StageRecord(
                    state=StageState.PENDING,
                    service_no=draft.executive_officer_service_no,
                    updated_at=now
                )
            },
            created_at=now,
            updated_at=now
        )

        try:
            self.request_repo.create_request(request)
            try:
                self.status_repo.create_row(row)
            except Exception:
                self.request_repo.delete_request(request.request_id)
                raise
        except DomainError:
            raise
        except Exception:
            logger.exception("Gate pass submission failed", extra={"service_no": actor.service_no})
            raise InternalServerError()

        logger.info(
            f"Submitted gate pass {request.reference_number}",
            extra={"reference_number": request.reference_number, "service_no": actor.service_no}
        )
        self.audit.write_submit(request, actor)

        try:
            executive = self.directory.find_by_service_no(request.executive_officer_service_no)
            if executive:
                self.notifications.enqueue_request_submitted(request, executive)
        except Exception as e:
            logger.warning(
                f"Submission email failed: {e}",
                extra={"reference_number": request.reference_number}
            )
        self._publish(GatePassEvent.NEW_REQUEST, request)
        return request

    def _validate_draft(self, draft: GatePassDraft) -> None:
        errors: Dict[str, str] = {}

        if not draft.executive_officer_service_no or not draft.executive_officer_service_no.strip():
            errors["executive_officer_service_no"] = "Executive officer is required"
        if not draft.out_location or not draft.out_location.strip():
            errors["out_location"] = "Out location is required"
        if not draft.items:
            errors["items"] = "At least one item is required"

        if draft.is_non_slt_place:
            if not draft.company_name:
                errors["company_name"] = "Company name is required for Non-SLT destinations"
        elif not draft.in_location:
            errors["in_location"] = "In location is required for SLT destinations"

        if draft.receiver_available and not draft.receiver_service_no:
            errors["receiver_service_no"] = "Receiver service number is required when a receiver is named"

        if errors:
            raise ValidationError("Invalid gate pass request", details=errors)

    # =========================================================================
    # Read
    # =========================================================================

    def get_request(self, reference_number: str) -> GatePassRequest:
        return self.request_repo.get_by_reference_or_raise(reference_number)

    def list_my_requests(self, actor: ActorContext) -> List[GatePassRequest]:
        if not actor.service_no:
            raise MissingServiceNoError()
        return self.request_repo.list_by_requester(actor.service_no)

    # =========================================================================
    # Cancel
    # =========================================================================

    def cancel_request(self, reference_number: str, actor: ActorContext) -> GatePassRequest:
        """Withdraw a request nobody has decided on yet"""
        request = self.request_repo.get_by_reference_or_raise(reference_number)

        is_owner = bool(actor.service_no) and (
            actor.service_no.strip().lower() == request.employee_service_no.strip().lower()
        )
        if not (is_owner or actor.is_super_admin):
            raise PermissionDeniedError(
                "Only the requester can cancel this request",
                details={"reference_number": reference_number}
            )

        if request.status != RequestLifecycle.EXECUTIVE_PENDING:
            raise InvalidStateError(
                "Only requests awaiting executive approval can be canceled",
                details={"reference_number": reference_number, "status": int(request.status)}
            )

        updated = self.request_repo.update_request(
            request.request_id,
            {"status": int(RequestLifecycle.CANCELED), "show": False},
            expected_version=request.version
        )
        self.audit.write_cancel(request, updated, actor)
        self._publish(GatePassEvent.REQUEST_CANCELED, updated)
        return updated

    # =========================================================================
    # Returns
    # =========================================================================

    def mark_items_returned(
        self,
        reference_number: str,
        serial_numbers: List[str],
        actor: ActorContext,
        stage: Optional[str] = None
    ) -> GatePassRequest:
        """Mark items as sent back, labelled by the stage returning them"""
        wanted = {s.strip() for s in serial_numbers if s and s.strip()}
        if not wanted:
            raise ValidationError("At least one serial number is required")

        request = self.request_repo.get_by_reference_or_raise(reference_number)
        label = return_label_for(stage)
        now = utc_now()

        matched = set()
        items = []
        for item in request.items:
            if item.serial_number in wanted:
                item = item.model_copy(update={"status": label})
                matched.add(item.serial_number)
            items.append(item)

        returnable = []
        for item in request.returnable_items:
            if item.serial_number in wanted:
                item = item.model_copy(update={
                    "status": label,
                    "returned": label == ItemStatus.RETURNED.value,
                    "returned_date": now,
                })
                matched.add(item.serial_number)
            returnable.append(item)

        missing = sorted(wanted - matched)
        if missing:
            raise NotFoundError(
                "Items not found on this request",
                details={"serial_numbers": missing}
            )

        updated = self.request_repo.update_request(
            request.request_id,
            {
                "items": [i.model_dump() for i in items],
                "returnable_items": [i.model_dump() for i in returnable],
            },
            expected_version=request.version
        )
        self.audit.write_items_returned(updated, actor, sorted(matched), label)

        try:
            requester = self.directory.find_by_service_no(updated.employee_service_no)
            if requester:
                self.notifications.enqueue_items_returned(updated, requester, sorted(matched), label)
        except Exception as e:
            logger.warning(f"Return email failed: {e}", extra={"reference_number": reference_number})

        self._publish(GatePassEvent.ITEMS_RETURNED, updated)
        return updated

    def update_returnable_item(
        self,
        reference_number: str,
        original_serial_no: str,
        updates: Dict[str, Any]
    ) -> GatePassRequest:
        """Correct the details of one returnable item (and its item line)"""
        changes = {k: v for k, v in updates.items() if k in RETURNABLE_EDITABLE_FIELDS and v is not None}
        if not changes:
            raise ValidationError(
                "No editable fields supplied",
                details={"allowed": list(RETURNABLE_EDITABLE_FIELDS)}
            )

        request = self.request_repo.get_by_reference_or_raise(reference_number)

        found = False
        returnable = []
        for item in request.returnable_items:
            if item.serial_number == original_serial_no:
                item = item.model_copy(update=changes)
                found = True
            returnable.append(item)

        if not found:
            raise NotFoundError(
                f"Returnable item {original_serial_no} not found",
                details={"reference_number": reference_number, "serial_number": original_serial_no}
            )

        item_changes = {k: v for k, v in changes.items() if k != "remarks"}
        items = [
            item.model_copy(update=item_changes) if item.serial_number == original_serial_no else item
            for item in request.items
        ]

        return self.request_repo.update_request(
            request.request_id,
            {
                "items": [i.model_dump() for i in items],
                "returnable_items": [i.model_dump() for i in returnable],
            },
            expected_version=request.version
        )

    def _publish(self, event: GatePassEvent, request: GatePassRequest) -> None:
        try:
            self.event_bus.publish_request_event(event, request)
        except Exception as e:
            logger.warning(
                f"Publishing {event.value} failed: {e}",
                extra={"reference_number": request.reference_number, "action": event.value}
            )
