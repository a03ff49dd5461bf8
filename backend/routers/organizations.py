# routers/organizations.py — Organizations, their members and activity feed
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field

from auth import get_current_user, CurrentUser
from dependencies import get_member_service, get_organization_service
from models import MemberRole
from schemas import ActivityEntry, Confirmation, OrganizationMemberOut, UserOrganization
from services.members import MemberService
from services.organizations import OrganizationService

router = APIRouter(prefix="/api/v1/organizations", tags=["Organizations"])


# --- Schemas ---

class OrgCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: Optional[str] = None
    logo_url: Optional[str] = None


class OrgUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    logo_url: Optional[str] = None


class MemberAdd(BaseModel):
    email: EmailStr
    role: MemberRole = MemberRole.MEMBER


class MemberRoleUpdate(BaseModel):
    role: MemberRole


# --- Organizations ---

@router.post("", response_model=UserOrganization, status_code=201)
async def create_organization(
    body: OrgCreate,
    user: CurrentUser = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    """Create an organization; the creator becomes its first admin"""
    return await service.create_organization(user.id, body.name, slug=body.slug, logo_url=body.logo_url)


@router.get("", response_model=List[UserOrganization])
async def list_organizations(
    user: CurrentUser = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    """Organizations the current user belongs to, with their role in each"""
    return await service.list_user_organizations(user.id)


@router.get("/{org_id}", response_model=UserOrganization)
async def get_organization(
    org_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return await service.get_organization(user.id, org_id)


@router.patch("/{org_id}", response_model=UserOrganization)
async def update_organization(
    org_id: str,
    body: OrgUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return await service.update_organization(user.id, org_id, body.model_dump(exclude_unset=True))


@router.delete("/{org_id}", response_model=Confirmation)
async def delete_organization(
    org_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return await service.delete_organization(user.id, org_id)


@router.get("/{org_id}/activity", response_model=List[ActivityEntry])
async def organization_activity(
    org_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    service: OrganizationService = Depends(get_organization_service),
):
    return await service.get_organization_activity(user.id, org_id, limit=limit, offset=offset)


# --- Members ---

@router.get("/{org_id}/members", response_model=List[OrganizationMemberOut])
async def list_members(
    org_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: MemberService = Depends(get_member_service),
):
    return await service.get_members(org_id, user.id)


@router.post("/{org_id}/members", response_model=OrganizationMemberOut, status_code=201)
async def add_member(
    org_id: str,
    body: MemberAdd,
    user: CurrentUser = Depends(get_current_user),
    service: MemberService = Depends(get_member_service),
):
    return await service.add_member(org_id, user.id, body.email, role=body.role.value)


@router.patch("/{org_id}/members/{user_id}", response_model=OrganizationMemberOut)
async def update_member_role(
    org_id: str,
    user_id: str,
    body: MemberRoleUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: MemberService = Depends(get_member_service),
):
    return await service.update_member_role(org_id, user.id, user_id, body.role.value)


@router.delete("/{org_id}/members/{user_id}", response_model=Confirmation)
async def remove_member(
    org_id: str,
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: MemberService = Depends(get_member_service),
):
    return await service.remove_member(org_id, user.id, user_id)
