"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict

from .enums import (
    Stage, StageState, RequestLifecycle, UserRole, TransitionAction, ItemStatus,
    TransportMethod, PartyType, LoadingType, NotificationStatus, NotificationTemplateKey
)
from ..utils.time import utc_now


# ============================================================================
# Identity
# ============================================================================

class ActorContext(BaseModel):
    """Current actor context from JWT token"""
    model_config = ConfigDict(extra="ignore")

    service_no: Optional[str] = Field(None, description="Employee service number")
    role: str = Field(default=UserRole.USER.value, description="Directory role")
    branches: List[str] = Field(default_factory=list, description="Locations the actor acts for")
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[EmailStr] = Field(None, description="User email")

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN.value

    @property
    def primary_branch(self) -> Optional[str]:
        return self.branches[0] if self.branches else None


class UserRecord(BaseModel):
    """Directory user"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    service_no: str = Field(..., description="Business key")
    user_id: Optional[str] = Field(None, description="Login key")
    name: str
    designation: Optional[str] = None
    section: Optional[str] = None
    group: Optional[str] = None
    contact_no: Optional[str] = None
    email: Optional[EmailStr] = None
    role: UserRole = Field(default=UserRole.USER)
    branches: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None


# ============================================================================
# Request
# ============================================================================

class Item(BaseModel):
    """A single item moving through the gate"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    serial_number: str
    item_code: Optional[str] = None
    item_description: str
    item_category: str
    category_description: Optional[str] = None
    item_photos: List[str] = Field(default_factory=list, description="Photo URLs")
    item_quantity: int = Field(default=1, ge=1)
    returnable: bool = False
    return_date: Optional[datetime] = None
    status: ItemStatus = Field(default=ItemStatus.NON_RETURNABLE)


class ReturnableItem(BaseModel):
    """Return tracking for a returnable item"""
    model_config = ConfigDict(extra="ignore")

    serial_number: str
    item_code: Optional[str] = None
    item_description: str
    item_category: str
    category_description: Optional[str] = None
    item_quantity: int = 1
    return_date: Optional[datetime] = Field(None, description="Expected return date")
    returned: bool = False
    returned_date: Optional[datetime] = None
    status: Optional[str] = None
    remarks: Optional[str] = None


class Transport(BaseModel):
    """Transport arrangement"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    transport_method: TransportMethod
    transporter_type: PartyType
    transporter_service_no: Optional[str] = None
    non_slt_transporter_name: Optional[str] = None
    non_slt_transporter_nic: Optional[str] = None
    non_slt_transporter_phone: Optional[str] = None
    non_slt_transporter_email: Optional[str] = None
    vehicle_number: Optional[str] = None
    vehicle_model: Optional[str] = None


class HandlingDetails(BaseModel):
    """Who loaded or unloaded the goods"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    loading_type: Optional[LoadingType] = None
    loading_location: Optional[str] = None
    loading_time: Optional[datetime] = None
    staff_type: Optional[PartyType] = None
    staff_service_no: Optional[str] = None
    non_slt_staff_name: Optional[str] = None
    non_slt_staff_company: Optional[str] = None
    non_slt_staff_nic: Optional[str] = None
    non_slt_staff_contact: Optional[str] = None
    non_slt_staff_email: Optional[str] = None


class GatePassRequest(BaseModel):
    """One movement of goods between two locations or to an external party"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    request_id: str
    reference_number: str
    employee_service_no: str = Field(..., description="Requester")
    items: List[Item] = Field(default_factory=list)
    returnable_items: List[ReturnableItem] = Field(default_factory=list)
    out_location: str
    in_location: Optional[str] = Field(None, description="Null for Non-SLT destinations")
    is_non_slt_place: bool = False
    company_name: Optional[str] = None
    company_address: Optional[str] = None
    receiver_nic: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_contact: Optional[str] = None
    executive_officer_service_no: Optional[str] = None
    receiver_available: bool = False
    receiver_service_no: Optional[str] = None
    transport: Optional[Transport] = None
    loading: Optional[HandlingDetails] = None
    un_loading: Optional[HandlingDetails] = None
    status: RequestLifecycle = Field(default=RequestLifecycle.EXECUTIVE_PENDING)
    show: bool = True
    version: int = 1
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    @property
    def destination(self) -> Optional[str]:
        """Company name for Non-SLT destinations, otherwise the in-location"""
        if self.is_non_slt_place:
            return self.company_name
        return self.in_location

    @property
    def destination_type(self) -> str:
        return PartyType.NON_SLT.value if self.is_non_slt_place else PartyType.SLT.value

    @property
    def dispatch_location(self) -> str:
        """Branch whose dispatcher releases the goods"""
        if self.is_non_slt_place or not self.in_location:
            return self.out_location
        return self.in_location


class GatePassDraft(BaseModel):
    """Requester input for a new gate pass"""
    model_config = ConfigDict(extra="ignore")

    items: List[Item] = Field(..., min_length=1)
    out_location: str
    in_location: Optional[str] = None
    is_non_slt_place: bool = False
    company_name: Optional[str] = None
    company_address: Optional[str] = None
    receiver_nic: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_contact: Optional[str] = None
    executive_officer_service_no: str
    receiver_available: bool = False
    receiver_service_no: Optional[str] = None
    transport: Optional[Transport] = None
    loading: Optional[HandlingDetails] = None


# ============================================================================
# Status Ledger
# ============================================================================

class StageRecord(BaseModel):
    """State of one pipeline stage on a ledger row"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    state: StageState
    service_no: Optional[str] = Field(None, description="Assigned or acting officer")
    comment: Optional[str] = None
    updated_at: Optional[datetime] = None


class RejectionInfo(BaseModel):
    """Rejection provenance"""
    model_config = ConfigDict(extra="ignore")

    rejected_by: str = Field(..., description="Stage role label")
    service_no: Optional[str] = None
    branch: Optional[str] = None
    rejected_at: datetime
    level: int = Field(..., ge=1, le=4)


class StatusRow(BaseModel):
    """One ledger row for a reference number"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    status_id: str
    reference_number: str
    request_id: str
    stages: Dict[str, StageRecord] = Field(default_factory=dict, description="Stage name -> record")
    unmapped_codes: Dict[str, Any] = Field(
        default_factory=dict,
        description="Stage name -> status code outside 1/2/3 found on an unmigrated row"
    )
    rejection: Optional[RejectionInfo] = None
    version: int = 1
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    # Populated on read, never persisted
    request: Optional[GatePassRequest] = None

    def stage(self, stage: Stage) -> Optional[StageRecord]:
        return self.stages.get(stage.value)

    def state_of(self, stage: Stage) -> Optional[StageState]:
        record = self.stage(stage)
        return StageState(record.state) if record else None

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump(exclude={"request"})
        doc["_id"] = self.status_id
        return doc


class StatusTransition(BaseModel):
    """Append-only audit entry for a ledger change"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    transition_id: str
    reference_number: str
    stage: Optional[Stage] = None
    action: TransitionAction
    from_state: Optional[StageState] = None
    to_state: Optional[StageState] = None
    lifecycle_before: Optional[int] = None
    lifecycle_after: Optional[int] = None
    actor_service_no: Optional[str] = None
    actor_role: Optional[str] = None
    comment: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


# ============================================================================
# Reporting
# ============================================================================

class StageReportRow(BaseModel):
    """One exploded (ledger row, stage) pair for oversight dashboards"""
    reference_number: str
    stage: str
    status_code: Optional[Any] = None
    status_label: Optional[str] = None
    service_no: Optional[str] = None
    updated_at: Optional[datetime] = None
    request: Optional[GatePassRequest] = None


# ============================================================================
# Notification Outbox
# ============================================================================

class NotificationOutbox(BaseModel):
    """Notification in outbox"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    notification_id: str
    reference_number: Optional[str] = None
    template_key: NotificationTemplateKey
    recipients: List[EmailStr]
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: NotificationStatus = Field(default=NotificationStatus.PENDING)
    retry_count: int = Field(default=0)
    last_error: Optional[str] = None
    next_retry_at: Optional[datetime] = None
    locked_until: Optional[datetime] = None
    locked_by: Optional[str] = None
    lock_acquired_at: Optional[datetime] = None
    created_at: datetime
    sent_at: Optional[datetime] = None
