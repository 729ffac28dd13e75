"""Domain Enumerations - All status and type definitions"""
from enum import Enum, IntEnum


class Stage(str, Enum):
    """Approval pipeline stage, in pipeline order"""
    EXECUTIVE = "EXECUTIVE"
    VERIFIER = "VERIFIER"
    DISPATCHER = "DISPATCHER"
    RECEIVER = "RECEIVER"

    @property
    def ordinal(self) -> int:
        """1-based position in the pipeline (also the rejection level)"""
        return list(Stage).index(self) + 1

    @property
    def label(self) -> str:
        """Role label recorded as rejection provenance"""
        return STAGE_LABELS[self]


STAGE_LABELS = {
    Stage.EXECUTIVE: "Executive",
    Stage.VERIFIER: "Verifier",
    Stage.DISPATCHER: "Dispatcher",
    Stage.RECEIVER: "Receiver",
}


class StageState(str, Enum):
    """Per-stage decision state"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def code(self) -> int:
        """Numeric code used by reports and legacy rows (1/2/3)"""
        return {StageState.PENDING: 1, StageState.APPROVED: 2, StageState.REJECTED: 3}[self]

    @classmethod
    def from_code(cls, code: int) -> "StageState":
        """Map a legacy 1/2/3 code to a state"""
        for state in cls:
            if state.code == code:
                return state
        raise ValueError(f"Unknown stage status code: {code}")


class RequestLifecycle(IntEnum):
    """Coarse lifecycle position of a gate pass request"""
    EXECUTIVE_PENDING = 1
    EXECUTIVE_APPROVED = 2
    EXECUTIVE_REJECTED = 3
    VERIFY_PENDING = 4
    VERIFY_APPROVED = 5
    VERIFY_REJECTED = 6
    DISPATCH_PENDING = 7
    DISPATCH_APPROVED = 8
    DISPATCH_REJECTED = 9
    RECEIVE_PENDING = 10
    RECEIVED = 11
    RECEIVE_REJECTED = 12
    # 13 closes both a canceled request and a Non-SLT dispatch
    CANCELED = 13
    DISPATCHED = 13


class UserRole(str, Enum):
    """Directory roles"""
    USER = "User"
    APPROVER = "Approver"
    EXECUTIVE = "Executive"
    VERIFIER = "Verifier"
    DISPATCHER = "Dispatcher"
    PLEADER = "Pleader"
    RECEIVER = "Receiver"
    SECURITY_OFFICER = "Security Officer"
    ADMIN = "Admin"
    SUPER_ADMIN = "SuperAdmin"


class TransitionAction(str, Enum):
    """Actions recorded in the status transition log"""
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    RETURN_ITEMS = "RETURN_ITEMS"
    MIGRATE = "MIGRATE"


class ItemStatus(str, Enum):
    """Per-item movement status"""
    RETURNABLE = "returnable"
    NON_RETURNABLE = "non-returnable"
    RETURN_TO_SENDER = "return to Sender"
    RETURN_TO_PETROL_LEADER = "return to Petrol Leader"
    RETURN_TO_OUT_LOCATION_PETROL_LEADER = "return to Out Location Petrol Leader"
    RETURN_TO_EXECUTIVE_OFFICER = "return to Executive Officer"
    RETURNED = "returned"


class TransportMethod(str, Enum):
    """How the goods travel"""
    BY_HAND = "By Hand"
    VEHICLE = "Vehicle"


class PartyType(str, Enum):
    """Internal staff vs external party"""
    SLT = "SLT"
    NON_SLT = "Non-SLT"


class LoadingType(str, Enum):
    """Which end of the movement a handling record describes"""
    LOADING = "Loading"
    UNLOADING = "Unloading"


class GatePassEvent(str, Enum):
    """Real-time event names published on the socket bus"""
    NEW_REQUEST = "new-request"
    REQUEST_APPROVED = "request-approved"
    REQUEST_REJECTED = "request-rejected"
    REQUEST_COMPLETED = "request-completed"
    REQUEST_CANCELED = "request-canceled"
    ITEMS_RETURNED = "items-returned"


class NotificationStatus(str, Enum):
    """Notification outbox status"""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class NotificationTemplateKey(str, Enum):
    """Notification template identifiers"""
    REQUEST_SUBMITTED = "REQUEST_SUBMITTED"
    VERIFY_PENDING = "VERIFY_PENDING"
    DISPATCH_PENDING = "DISPATCH_PENDING"
    RECEIVE_PENDING_ASSIGNED = "RECEIVE_PENDING_ASSIGNED"
    RECEIVE_PENDING_POOL = "RECEIVE_PENDING_POOL"
    REQUEST_RECEIVED = "REQUEST_RECEIVED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    ITEMS_RETURNED = "ITEMS_RETURNED"
    CUSTOM = "CUSTOM"
