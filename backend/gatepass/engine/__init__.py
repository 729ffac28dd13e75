"""Gate Pass Engine - the approval pipeline"""
from .engine import GatePassEngine
from .stage_engine import StageEngine
from .executive_stage import ExecutiveStage
from .verifier_stage import VerifierStage
from .dispatcher_stage import DispatcherStage
from .receiver_stage import ReceiverStage
from .ledger import StatusLedger, latest_per_reference, sort_newest
from .unit_of_work import StageUnitOfWork
from .permission_guard import PermissionGuard
from .audit_writer import AuditWriter

__all__ = [
    "GatePassEngine",
    "StageEngine",
    "ExecutiveStage",
    "VerifierStage",
    "DispatcherStage",
    "ReceiverStage",
    "StatusLedger",
    "latest_per_reference",
    "sort_newest",
    "StageUnitOfWork",
    "PermissionGuard",
    "AuditWriter",
]
