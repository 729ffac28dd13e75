"""Admin API Routes - Stage reporting, request timelines and directory upkeep"""
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr

from ..deps import get_admin_user_dep, get_directory_service, get_report_service
from ...domain.models import ActorContext, UserRecord
from ...domain.enums import UserRole
from ...domain.errors import DomainError, ValidationError
from ...services.directory_service import DirectoryService
from ...services.report_service import ReportService
from .directory import UserInfo, user_info
from ...utils.logger import get_logger
from ...utils.time import parse_iso

logger = get_logger(__name__)
router = APIRouter()


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parse_iso(value)
    except ValueError:
        raise ValidationError(f"Invalid date: {value}", details={"value": value})


@router.get("/requests")
async def list_stage_rows(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    stage: Optional[str] = Query(None, description="Executive | Verify | Petrol Leader | Receive"),
    status: Optional[str] = Query(None, description="Pending | Approved | Rejected"),
    date_from: Optional[str] = Query(None, description="ISO date or datetime"),
    date_to: Optional[str] = Query(None, description="ISO date or datetime; a bare date covers the whole day"),
    actor: ActorContext = Depends(get_admin_user_dep),
    service: ReportService = Depends(get_report_service)
):
    """
    Exploded stage rows for the oversight dashboard

    Limit is clamped to the configured maximum.
    """
    try:
        result = service.list_stage_rows(
            page, limit, stage, status, _parse_date(date_from), _parse_date(date_to)
        )
        result["rows"] = [r.model_dump(mode="json") for r in result["rows"]]
        return result
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/requests/{reference_number}")
async def get_timeline(
    reference_number: str,
    actor: ActorContext = Depends(get_admin_user_dep),
    service: ReportService = Depends(get_report_service)
):
    """Full ledger history and transition log for one request"""
    try:
        timeline = service.timeline(reference_number)
        return {
            "reference_number": timeline["reference_number"],
            "rows": [r.model_dump(mode="json") for r in timeline["rows"]],
            "transitions": [t.model_dump(mode="json") for t in timeline["transitions"]],
        }
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


# ============================================================================
# Directory upkeep
# ============================================================================

class UserUpsert(BaseModel):
    """Directory user fields an admin may set"""
    name: str
    email: Optional[EmailStr] = None
    role: UserRole = UserRole.USER
    branches: List[str] = []
    designation: Optional[str] = None
    section: Optional[str] = None
    contact_no: Optional[str] = None


@router.put("/users/{service_no}", response_model=UserInfo)
async def upsert_user(
    service_no: str,
    body: UserUpsert,
    actor: ActorContext = Depends(get_admin_user_dep),
    directory: DirectoryService = Depends(get_directory_service)
):
    """Create or replace a directory user"""
    try:
        user = directory.save_user(UserRecord(service_no=service_no, **body.model_dump()))
        logger.info(
            f"User {service_no} saved by {actor.service_no}",
            extra={"service_no": service_no}
        )
        return user_info(user)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/users/{service_no}/deactivate", response_model=UserInfo)
async def deactivate_user(
    service_no: str,
    actor: ActorContext = Depends(get_admin_user_dep),
    directory: DirectoryService = Depends(get_directory_service)
):
    """Take a user out of routing; their history stays intact"""
    try:
        return user_info(directory.deactivate_user(service_no))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
