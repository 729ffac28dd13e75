"""Stage API Routes - Queues and decisions for each approval stage"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from pydantic import BaseModel

from ..deps import get_current_user_dep, get_correlation_id_dep, get_engine
from ...domain.models import ActorContext, HandlingDetails, ReturnableItem, StatusRow
from ...domain.enums import Stage
from ...domain.errors import DomainError, ValidationError
from ...engine.engine import GatePassEngine
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()

# URL names for each stage
STAGE_PATHS = {
    "executive": Stage.EXECUTIVE,
    "verifier": Stage.VERIFIER,
    "dispatcher": Stage.DISPATCHER,
    "petrol-leader": Stage.DISPATCHER,
    "receiver": Stage.RECEIVER,
}


# ============================================================================
# Request Models
# ============================================================================

class ApproveRequest(BaseModel):
    """Approve body; unloading and returnable items apply at the receiver"""
    comment: Optional[str] = None
    unloading: Optional[HandlingDetails] = None
    returnable_items: Optional[List[ReturnableItem]] = None


class RejectRequest(BaseModel):
    """Reject body; comment is checked by the engine so blanks map to a domain error"""
    comment: Optional[str] = None


def _stage(name: str) -> Stage:
    stage = STAGE_PATHS.get(name.lower())
    if stage is None:
        error = ValidationError(f"Unknown stage: {name}", details={"allowed": sorted(STAGE_PATHS)})
        raise HTTPException(status_code=error.http_status, detail=error.to_dict())
    return stage


def _rows(rows: List[StatusRow]) -> dict:
    return {"items": [r.model_dump(mode="json") for r in rows], "total": len(rows)}


# ============================================================================
# Queues
# ============================================================================

@router.get("/{stage}/pending")
async def list_pending(
    stage: str = Path(..., description="executive | verifier | dispatcher | receiver"),
    service_no: Optional[str] = Query(None, description="SuperAdmin only: another officer's queue"),
    actor: ActorContext = Depends(get_current_user_dep),
    engine: GatePassEngine = Depends(get_engine)
):
    try:
        return _rows(engine.list_pending(_stage(stage), actor, service_no))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{stage}/approved")
async def list_approved(
    stage: str,
    service_no: Optional[str] = Query(None),
    actor: ActorContext = Depends(get_current_user_dep),
    engine: GatePassEngine = Depends(get_engine)
):
    try:
        return _rows(engine.list_approved(_stage(stage), actor, service_no))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{stage}/rejected")
async def list_rejected(
    stage: str,
    service_no: Optional[str] = Query(None),
    actor: ActorContext = Depends(get_current_user_dep),
    engine: GatePassEngine = Depends(get_engine)
):
    try:
        return _rows(engine.list_rejected(_stage(stage), actor, service_no))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# ============================================================================
# Decisions
# ============================================================================

@router.post("/{stage}/{reference_number}/approve")
async def approve(
    stage: str,
    reference_number: str,
    body: ApproveRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: GatePassEngine = Depends(get_engine)
):
    try:
        target = _stage(stage)
        extras = {}
        if target == Stage.RECEIVER:
            extras = {"unloading": body.unloading, "returnable_items": body.returnable_items}
        row = engine.approve(target, reference_number, body.comment, actor, **extras)
        return row.model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{stage}/{reference_number}/reject")
async def reject(
    stage: str,
    reference_number: str,
    body: RejectRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: GatePassEngine = Depends(get_engine)
):
    try:
        row = engine.reject(_stage(stage), reference_number, body.comment, actor)
        return row.model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
