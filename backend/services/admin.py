# services/admin.py — Users, organizations, analytics and audit logs for platform admins
# Every mutation is one transaction that also writes the admin audit row:
# mutate -> record_admin_action -> commit. A failed audit write rolls back both.
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from activity import AdminAuditTrail, DEFAULT_LIMIT
from authorization import AccessGuard, forbid_self_action
from errors import ForbiddenError, LastAdminError, NotFoundError, ValidationFailure
from models import (
    ActivityLog, AdminActionType, Board, Card, EntityType, Organization,
    OrganizationMember, User, UserRole, utcnow,
)
from schemas import (
    AdminOrganizationDetail, AdminOrganizationOut, AdminUserDetail, AdminUserOut,
    AuditLogPage, Confirmation, GrowthPoint, OrganizationMemberOut, OrganizationPage,
    PlatformAnalytics, UserPage, paginate,
)
from services.base import logger, require_actor

ACTIVE_WINDOW_DAYS = 30
SIGNUP_WINDOW_DAYS = 7
GROWTH_WINDOW_DAYS = 30


def _platform_role(role) -> UserRole:
    try:
        return UserRole(role)
    except ValueError:
        raise ValidationFailure(f"Invalid role '{role}'. Must be one of: user, admin, super_admin")


def _check_page(page: int, limit: int) -> None:
    if page < 1 or limit < 1:
        raise ValidationFailure("page and limit must be positive")


class AdminService:
    """Cross-tenant operations for platform admins and super admins"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.guard = AccessGuard(db)
        self.audit = AdminAuditTrail(db)

    async def _require_target_user(self, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    @staticmethod
    def _check_super_admin_target(actor: User, target: User, action: str) -> None:
        """Only a super_admin may act on another super_admin"""
        if target.role == UserRole.SUPER_ADMIN and actor.role != UserRole.SUPER_ADMIN:
            raise ForbiddenError(f"Only a super_admin can {action} a super_admin")

    # ==================== Users ====================

    async def get_all_users(
        self,
        admin_id: str,
        page: int = 1,
        limit: int = DEFAULT_LIMIT,
        search: Optional[str] = None,
        role: Optional[str] = None,
        suspended: Optional[bool] = None,
    ) -> UserPage:
        """Search users by name/email and filter by role and suspension, newest first"""
        _check_page(page, limit)
        await self.guard.require_admin_user(admin_id)

        criteria = []
        if search:
            pattern = f"%{search}%"
            criteria.append(or_(User.username.ilike(pattern), User.email.ilike(pattern)))
        if role:
            criteria.append(User.role == _platform_role(role))
        if suspended is not None:
            criteria.append(User.is_suspended == suspended)

        total = (await self.db.execute(
            select(func.count(User.id)).where(*criteria)
        )).scalar() or 0
        result = await self.db.execute(
            select(User)
            .where(*criteria)
            .order_by(User.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        users = [AdminUserOut.model_validate(u) for u in result.scalars().all()]
        return UserPage(users=users, pagination=paginate(page, limit, total))

    async def get_user_by_id(self, admin_id: str, user_id: str) -> AdminUserDetail:
        await self.guard.require_admin_user(admin_id)
        user = await self._require_target_user(user_id)

        org_count = (await self.db.execute(
            select(func.count()).select_from(OrganizationMember).where(OrganizationMember.user_id == user_id)
        )).scalar() or 0
        board_count = (await self.db.execute(
            select(func.count(Board.id)).where(Board.owner_id == user_id)
        )).scalar() or 0

        detail = AdminUserDetail.model_validate(user)
        detail.organization_count = org_count
        detail.board_count = board_count
        return detail

    async def suspend_user(self, admin_id: str, user_id: str, reason: str = "") -> AdminUserOut:
        require_actor(admin_id)
        forbid_self_action(admin_id, user_id, "suspend")
        actor = await self.guard.require_admin_user(admin_id)
        target = await self._require_target_user(user_id)
        self._check_super_admin_target(actor, target, "suspend")

        try:
            target.is_suspended = True
            await self.audit.record_admin_action(
                admin_id, AdminActionType.SUSPEND_USER, EntityType.USER, user_id,
                {"reason": reason or ""},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"User {user_id} suspended by admin {admin_id}")
        return AdminUserOut.model_validate(target)

    async def activate_user(self, admin_id: str, user_id: str) -> AdminUserOut:
        require_actor(admin_id)
        actor = await self.guard.require_admin_user(admin_id)
        target = await self._require_target_user(user_id)
        self._check_super_admin_target(actor, target, "activate")

        try:
            target.is_suspended = False
            await self.audit.record_admin_action(
                admin_id, AdminActionType.ACTIVATE_USER, EntityType.USER, user_id, {},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"User {user_id} activated by admin {admin_id}")
        return AdminUserOut.model_validate(target)

    async def update_user_role(self, admin_id: str, user_id: str, new_role: str) -> AdminUserOut:
        """Change a platform role

        Changing one's own role is rejected before anything else is looked at,
        whatever the caller's privilege.
        """
        require_actor(admin_id)
        forbid_self_action(admin_id, user_id, "change the role of")
        role = _platform_role(new_role)
        actor = await self.guard.require_admin_user(admin_id)
        if role == UserRole.SUPER_ADMIN and actor.role != UserRole.SUPER_ADMIN:
            raise ForbiddenError("Only a super_admin can grant the super_admin role")
        target = await self._require_target_user(user_id)
        self._check_super_admin_target(actor, target, "change the role of")

        old_role = UserRole(target.role).value
        try:
            target.role = role
            await self.audit.record_admin_action(
                admin_id, AdminActionType.CHANGE_ROLE, EntityType.USER, user_id,
                {"old_role": old_role, "new_role": role.value},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"User {user_id} role changed {old_role} -> {role.value} by admin {admin_id}")
        return AdminUserOut.model_validate(target)

    async def delete_user(self, admin_id: str, user_id: str) -> Confirmation:
        """Delete a user; owned boards and memberships go with it via FK cascade"""
        require_actor(admin_id)
        forbid_self_action(admin_id, user_id, "delete")
        actor = await self.guard.require_admin_user(admin_id)
        target = await self._require_target_user(user_id)
        self._check_super_admin_target(actor, target, "delete")
        if await self.guard.sole_admin_organizations(user_id):
            raise LastAdminError(
                "User is the only admin of an organization. Promote another member first."
            )

        details = {"username": target.username, "email": target.email}
        try:
            await self.db.execute(delete(User).where(User.id == user_id))
            await self.audit.record_admin_action(
                admin_id, AdminActionType.DELETE_USER, EntityType.USER, user_id, details,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"User {user_id} deleted by admin {admin_id}")
        return Confirmation(message="User deleted successfully")

    # ==================== Organizations ====================

    @staticmethod
    def _org_counts():
        member_count = (
            select(func.count())
            .select_from(OrganizationMember)
            .where(OrganizationMember.organization_id == Organization.id)
            .correlate(Organization)
            .scalar_subquery()
        )
        board_count = (
            select(func.count(Board.id))
            .where(Board.organization_id == Organization.id)
            .correlate(Organization)
            .scalar_subquery()
        )
        return member_count.label("member_count"), board_count.label("board_count")

    async def get_all_organizations(
        self,
        admin_id: str,
        page: int = 1,
        limit: int = DEFAULT_LIMIT,
        search: Optional[str] = None,
    ) -> OrganizationPage:
        _check_page(page, limit)
        await self.guard.require_admin_user(admin_id)

        criteria = []
        if search:
            pattern = f"%{search}%"
            criteria.append(or_(Organization.name.ilike(pattern), Organization.slug.ilike(pattern)))

        total = (await self.db.execute(
            select(func.count(Organization.id)).where(*criteria)
        )).scalar() or 0
        member_count, board_count = self._org_counts()
        result = await self.db.execute(
            select(Organization, member_count, board_count)
            .where(*criteria)
            .order_by(Organization.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        organizations = []
        for org, members, boards in result.all():
            record = AdminOrganizationOut.model_validate(org)
            record.member_count = members or 0
            record.board_count = boards or 0
            organizations.append(record)
        return OrganizationPage(organizations=organizations, pagination=paginate(page, limit, total))

    async def get_organization_by_id(self, admin_id: str, org_id: str) -> AdminOrganizationDetail:
        await self.guard.require_admin_user(admin_id)
        member_count, board_count = self._org_counts()
        row = (await self.db.execute(
            select(Organization, member_count, board_count).where(Organization.id == org_id)
        )).first()
        if not row:
            raise NotFoundError("Organization", org_id)
        org, members, boards = row

        roster = await self.db.execute(
            select(User, OrganizationMember)
            .join(OrganizationMember, OrganizationMember.user_id == User.id)
            .where(OrganizationMember.organization_id == org_id)
            .order_by(OrganizationMember.joined_at.desc())
        )
        detail = AdminOrganizationDetail.model_validate(org)
        detail.member_count = members or 0
        detail.board_count = boards or 0
        detail.members = [
            OrganizationMemberOut(
                id=user.id,
                username=user.username,
                email=user.email,
                avatar_url=user.avatar_url,
                role=membership.role,
                joined_at=membership.joined_at,
            )
            for user, membership in roster.all()
        ]
        return detail

    async def delete_organization(self, admin_id: str, org_id: str) -> Confirmation:
        """Delete an organization; boards and memberships go with it via FK cascade"""
        require_actor(admin_id)
        await self.guard.require_admin_user(admin_id)
        org = await self.guard.require_organization(org_id)

        details = {"name": org.name, "slug": org.slug}
        try:
            await self.db.execute(delete(Organization).where(Organization.id == org_id))
            await self.audit.record_admin_action(
                admin_id, AdminActionType.DELETE_ORGANIZATION, EntityType.ORGANIZATION, org_id, details,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Organization {org_id} deleted by admin {admin_id}")
        return Confirmation(message="Organization deleted successfully")

    # ==================== Analytics & audit ====================

    async def get_analytics(self, admin_id: str, now: Optional[datetime] = None) -> PlatformAnalytics:
        """Platform-wide counts plus a per-day signup histogram for the last 30 days"""
        await self.guard.require_admin_user(admin_id)
        now = now or utcnow()
        active_since = now - timedelta(days=ACTIVE_WINDOW_DAYS)
        signup_since = now - timedelta(days=SIGNUP_WINDOW_DAYS)
        growth_since = now - timedelta(days=GROWTH_WINDOW_DAYS)

        async def count(stmt) -> int:
            return (await self.db.execute(stmt)).scalar() or 0

        day = func.date(User.created_at).label("day")
        growth = await self.db.execute(
            select(day, func.count(User.id))
            .where(User.created_at > growth_since)
            .group_by(day)
            .order_by(day.asc())
        )

        return PlatformAnalytics(
            total_users=await count(select(func.count(User.id))),
            active_users=await count(
                select(func.count(func.distinct(ActivityLog.user_id))).where(ActivityLog.created_at > active_since)
            ),
            suspended_users=await count(select(func.count(User.id)).where(User.is_suspended.is_(True))),
            total_organizations=await count(select(func.count(Organization.id))),
            total_boards=await count(select(func.count(Board.id))),
            total_cards=await count(select(func.count(Card.id))),
            recent_signups=await count(select(func.count(User.id)).where(User.created_at > signup_since)),
            user_growth=[GrowthPoint(date=str(d), count=c) for d, c in growth.all()],
        )

    async def get_audit_logs(
        self,
        admin_id: str,
        page: int = 1,
        limit: int = DEFAULT_LIMIT,
        admin_user_id: Optional[str] = None,
        action_type: Optional[str] = None,
    ) -> AuditLogPage:
        _check_page(page, limit)
        await self.guard.require_admin_user(admin_id)
        return await self.audit.list_entries(
            page=page, limit=limit, admin_user_id=admin_user_id, action_type=action_type,
        )
