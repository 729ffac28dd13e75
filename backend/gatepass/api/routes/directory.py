"""Directory API Routes - User lookup by service number, role and branch"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from ..deps import get_current_user_dep, get_directory_service
from ...domain.models import ActorContext, UserRecord
from ...domain.errors import DomainError, UserNotFoundError
from ...services.directory_service import DirectoryService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Response Models
# ============================================================================

class UserInfo(BaseModel):
    """Public view of a directory user"""
    service_no: str
    name: str
    designation: Optional[str] = None
    section: Optional[str] = None
    email: Optional[str] = None
    contact_no: Optional[str] = None
    role: str
    branches: List[str] = []


class UserSearchResponse(BaseModel):
    """User search response"""
    items: List[UserInfo]


def user_info(user: UserRecord) -> UserInfo:
    return UserInfo(
        service_no=user.service_no,
        name=user.name,
        designation=user.designation,
        section=user.section,
        email=user.email,
        contact_no=user.contact_no,
        role=user.role,
        branches=user.branches
    )


# ============================================================================
# Routes
# ============================================================================

@router.get("/users/{service_no}", response_model=UserInfo)
async def get_user(
    service_no: str,
    actor: ActorContext = Depends(get_current_user_dep),
    directory: DirectoryService = Depends(get_directory_service)
):
    try:
        user = directory.find_by_service_no(service_no)
        if not user:
            raise UserNotFoundError(
                f"User {service_no} not found",
                details={"service_no": service_no}
            )
        return user_info(user)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/users", response_model=UserSearchResponse)
async def search_users(
    role: str = Query(..., description="Directory role"),
    branch: Optional[str] = Query(None, description="Only users serving this branch"),
    actor: ActorContext = Depends(get_current_user_dep),
    directory: DirectoryService = Depends(get_directory_service)
):
    """Users by role, optionally narrowed to a branch"""
    try:
        if branch:
            users = directory.find_by_role_and_branch(role, branch)
        else:
            users = directory.find_by_role(role)
        return UserSearchResponse(items=[user_info(u) for u in users])
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
