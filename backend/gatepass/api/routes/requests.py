"""Request API Routes - Submit, read, cancel and return tracking"""
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..deps import get_current_user_dep, get_correlation_id_dep, get_request_service
from ...domain.models import ActorContext, GatePassDraft
from ...domain.errors import DomainError
from ...services.request_service import RequestService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request Models
# ============================================================================

class ReturnItemsRequest(BaseModel):
    """Items being sent back"""
    serial_numbers: List[str] = Field(..., min_length=1)
    stage: Optional[str] = Field(None, description="Stage returning the items")


class ReturnableItemUpdate(BaseModel):
    """Correction to a returnable item"""
    serial_number: Optional[str] = None
    item_code: Optional[str] = None
    item_description: Optional[str] = None
    item_category: Optional[str] = None
    category_description: Optional[str] = None
    item_quantity: Optional[int] = Field(None, ge=1)
    return_date: Optional[datetime] = None
    remarks: Optional[str] = None


# ============================================================================
# Routes
# ============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_request(
    draft: GatePassDraft,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    """Submit a new gate pass"""
    try:
        request = service.submit_request(actor, draft)
        return request.model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/mine")
async def list_my_requests(
    actor: ActorContext = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service)
):
    """The caller's own gate passes, newest first"""
    try:
        requests = service.list_my_requests(actor)
        return {"items": [r.model_dump(mode="json") for r in requests], "total": len(requests)}
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{reference_number}")
async def get_request(
    reference_number: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service)
):
    try:
        return service.get_request(reference_number).model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{reference_number}/cancel")
async def cancel_request(
    reference_number: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    """Cancel a request still waiting for its executive"""
    try:
        return service.cancel_request(reference_number, actor).model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{reference_number}/returns")
async def mark_items_returned(
    reference_number: str,
    body: ReturnItemsRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    try:
        request = service.mark_items_returned(reference_number, body.serial_numbers, actor, body.stage)
        return request.model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{reference_number}/returnable-items/{serial_number}")
async def update_returnable_item(
    reference_number: str,
    serial_number: str,
    body: ReturnableItemUpdate,
    actor: ActorContext = Depends(get_current_user_dep),
    service: RequestService = Depends(get_request_service)
):
    try:
        request = service.update_returnable_item(
            reference_number, serial_number, body.model_dump(exclude_none=True)
        )
        return request.model_dump(mode="json")
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
