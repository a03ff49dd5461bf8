# routers/admin.py — Platform administration (admin and super_admin only)
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from auth import require_min_role, CurrentUser
from dependencies import get_admin_service
from models import UserRole
from schemas import (
    AdminOrganizationDetail, AdminUserDetail, AdminUserOut, AuditLogPage, Confirmation,
    OrganizationPage, PlatformAnalytics, UserPage,
)
from services.admin import AdminService

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])

admin_user = require_min_role(UserRole.ADMIN)


class SuspendRequest(BaseModel):
    reason: str = ""


class RoleUpdate(BaseModel):
    # Validated in the service so an unknown role surfaces as a 400
    role: str


# --- Users ---

@router.get("/users", response_model=UserPage)
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    search: Optional[str] = None,
    role: Optional[str] = None,
    suspended: Optional[bool] = None,
    admin: CurrentUser = Depends(admin_user),
    service: AdminService = Depends(get_admin_service),
):
    return await service.get_all_users(
        admin.id, page=page, limit=limit, search=search, role=role, suspended=suspended,
    )


@router.get("/users/{user_id}", response_model=AdminUserDetail)
async def get_user(
    user_id: str,
    admin: CurrentUser = Depends(admin_user),
    service: AdminService = Depends(get_admin_service),
):
    return await service.get_user_by_id(admin.id, user_id)


@router.post("/users/{user_id}/suspend", response_model=AdminUserOut)
async def suspend_user(
    user_id: str,
    body: Optional[SuspendRequest] = None,
    admin: CurrentUser = Depends(admin_user),
    service: AdminService = Depends(get_admin_service),
):
    return await service.suspend_user(admin.id, user_id, reason=body.reason if body else "")


@router.post("/users/{user_id}/activate", response_model=AdminUserOut)
async def activate_user(
    user_id: str,
    admin: CurrentUser = Depends(admin_user),
    service: AdminService = Depends(get_admin_service),
):
    return await service.activate_user(admin.id, user_id)


@router.patch("/users/{user_id}/role", response_model=AdminUserOut)
async def update_user_role(
    user_id: str,
    body: RoleUpdate,
    admin: CurrentUser = Depends(admin_user),
    service: AdminService = Depends(get_admin_service),
):
    return await service.update_user_role(admin.id, user_id, body.role)


@router.delete("/users/{user_id}", response_model=Confirmation)
async def delete_user(
    user_id: str,
    admin: CurrentUser = Depends(admin_user),
    service: AdminService = Depends(get_admin_service),
):
    return await service.delete_user(admin.id, user_id)


# --- Organizations ---

@router.get("/organizations", response_model=OrganizationPage)
async def list_organizations(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    search: Optional[str] = None,
    admin: CurrentUser = Depends(admin_user),
    service: AdminService = Depends(get_admin_service),
):
    return await service.get_all_organizations(admin.id, page=page, limit=limit, search=search)


@router.get("/organizations/{org_id}", response_model=AdminOrganizationDetail)
async def get_organization(
    org_id: str,
    admin: CurrentUser = Depends(admin_user),
    service: AdminService = Depends(get_admin_service),
):
    return await service.get_organization_by_id(admin.id, org_id)


@router.delete("/organizations/{org_id}", response_model=Confirmation)
async def delete_organization(
    org_id: str,
    admin: CurrentUser = Depends(admin_user),
    service: AdminService = Depends(get_admin_service),
):
    return await service.delete_organization(admin.id, org_id)


# --- Analytics & audit ---

@router.get("/analytics", response_model=PlatformAnalytics)
async def analytics(
    admin: CurrentUser = Depends(admin_user),
    service: AdminService = Depends(get_admin_service),
):
    return await service.get_analytics(admin.id)


@router.get("/audit-logs", response_model=AuditLogPage)
async def audit_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    admin_user_id: Optional[str] = None,
    action_type: Optional[str] = None,
    admin: CurrentUser = Depends(admin_user),
    service: AdminService = Depends(get_admin_service),
):
    return await service.get_audit_logs(
        admin.id, page=page, limit=limit, admin_user_id=admin_user_id, action_type=action_type,
    )
