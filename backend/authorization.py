# authorization.py — Role checks for platform admins and organization members
# Platform roles: user < admin < super_admin
# Organization roles: member, admin (organization-admin, independent of platform role)

from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from errors import ForbiddenError, NotFoundError, LastAdminError, SelfActionError
from models import (
    Board, BoardList, Card, Organization, OrganizationMember, MemberRole, User, UserRole,
)

ROLE_HIERARCHY = {
    UserRole.SUPER_ADMIN: 3,
    UserRole.ADMIN: 2,
    UserRole.USER: 1,
}


def role_level(role) -> int:
    try:
        return ROLE_HIERARCHY.get(UserRole(role), 0)
    except ValueError:
        return 0


def has_min_role(role, min_role: UserRole) -> bool:
    return role_level(role) >= ROLE_HIERARCHY[min_role]


def forbid_self_action(actor_id: str, target_user_id: str, action: str) -> None:
    """Admins may not change their own role or delete their own account"""
    if actor_id == target_user_id:
        raise SelfActionError(f"Cannot {action} your own account")


class AccessGuard:
    """Membership lookups backing every organization- and board-scoped check"""

    def __init__(self, db: AsyncSession):
        self.db = db

    # --- Platform ---

    async def require_admin_user(self, user_id: str, min_role: UserRole = UserRole.ADMIN) -> User:
        user = (await self.db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
        if not user or user.is_suspended or not has_min_role(user.role, min_role):
            raise ForbiddenError("Insufficient role level")
        return user

    # --- Organizations ---

    async def get_membership(self, organization_id: str, user_id: str) -> Optional[OrganizationMember]:
        stmt = select(OrganizationMember).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def require_organization(self, organization_id: str) -> Organization:
        org = await self.db.get(Organization, organization_id)
        if not org:
            raise NotFoundError("Organization", organization_id)
        return org

    async def require_member(self, organization_id: str, user_id: str) -> OrganizationMember:
        await self.require_organization(organization_id)
        membership = await self.get_membership(organization_id, user_id)
        if not membership:
            raise ForbiddenError("Not a member of this organization")
        return membership

    async def require_org_admin(self, organization_id: str, user_id: str, action: str = "manage") -> OrganizationMember:
        membership = await self.require_member(organization_id, user_id)
        if membership.role != MemberRole.ADMIN:
            raise ForbiddenError(f"Only admins can {action} this organization")
        return membership

    async def count_admins(self, organization_id: str) -> int:
        stmt = select(func.count()).select_from(OrganizationMember).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.role == MemberRole.ADMIN,
        )
        return (await self.db.execute(stmt)).scalar() or 0

    async def ensure_not_last_admin(self, target: OrganizationMember) -> None:
        """Reject removing or demoting the only remaining admin"""
        if target.role != MemberRole.ADMIN:
            return
        if await self.count_admins(target.organization_id) <= 1:
            raise LastAdminError()

    async def sole_admin_organizations(self, user_id: str) -> list:
        """Organizations in which user_id is the only admin"""
        admin_counts = (
            select(
                OrganizationMember.organization_id,
                func.count().label("admins"),
            )
            .where(OrganizationMember.role == MemberRole.ADMIN)
            .group_by(OrganizationMember.organization_id)
            .subquery()
        )
        stmt = (
            select(OrganizationMember.organization_id)
            .join(admin_counts, admin_counts.c.organization_id == OrganizationMember.organization_id)
            .where(
                OrganizationMember.user_id == user_id,
                OrganizationMember.role == MemberRole.ADMIN,
                admin_counts.c.admins <= 1,
            )
        )
        return list((await self.db.execute(stmt)).scalars().all())

    # --- Boards ---

    async def can_access_board(self, board: Board, user_id: str) -> bool:
        # organization boards follow the roster, ownership included
        if board.organization_id:
            return await self.get_membership(board.organization_id, user_id) is not None
        return board.owner_id == user_id

    async def require_board_access(self, board: Board, user_id: str) -> Board:
        if not await self.can_access_board(board, user_id):
            raise ForbiddenError("You do not have access to this board")
        return board

    async def require_board_owner_or_org_admin(self, board: Board, user_id: str) -> Board:
        if board.organization_id:
            membership = await self.get_membership(board.organization_id, user_id)
            if membership and (board.owner_id == user_id or membership.role == MemberRole.ADMIN):
                return board
        elif board.owner_id == user_id:
            return board
        raise ForbiddenError("Only the board owner or an organization admin can delete this board")

    async def board_for_list(self, list_id: str) -> Optional[Board]:
        stmt = select(Board).join(BoardList, BoardList.board_id == Board.id).where(BoardList.id == list_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def board_for_card(self, card_id: str) -> Optional[Board]:
        stmt = (
            select(Board)
            .join(BoardList, BoardList.board_id == Board.id)
            .join(Card, Card.list_id == BoardList.id)
            .where(Card.id == card_id)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()
