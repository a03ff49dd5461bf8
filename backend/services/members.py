# services/members.py — Organization roster with the last-admin invariant
from typing import List

from sqlalchemy import select, delete

from errors import ConflictError, NotFoundError, ValidationFailure
from models import ActionType, EntityType, MemberRole, OrganizationMember, User
from schemas import Confirmation, OrganizationMemberOut
from services.base import EntityService, require_actor


def _member_role(role) -> MemberRole:
    try:
        return MemberRole(role)
    except ValueError:
        raise ValidationFailure(f"Invalid role '{role}'. Must be one of: admin, member")


def _member_row(user: User, membership: OrganizationMember) -> OrganizationMemberOut:
    return OrganizationMemberOut(
        id=user.id,
        username=user.username,
        email=user.email,
        avatar_url=user.avatar_url,
        role=membership.role,
        joined_at=membership.joined_at,
    )


class MemberService(EntityService):

    async def get_members(self, org_id: str, user_id: str) -> List[OrganizationMemberOut]:
        """Roster in joining order; the caller must belong to the organization"""
        await self.guard.require_member(org_id, user_id)
        stmt = (
            select(User, OrganizationMember)
            .join(OrganizationMember, OrganizationMember.user_id == User.id)
            .where(OrganizationMember.organization_id == org_id)
            .order_by(OrganizationMember.joined_at.asc())
        )
        result = await self.db.execute(stmt)
        return [_member_row(user, membership) for user, membership in result.all()]

    async def add_member(self, org_id: str, user_id: str, email: str, role: str = MemberRole.MEMBER.value) -> OrganizationMemberOut:
        """Add an existing user (looked up by email) to the organization"""
        require_actor(user_id)
        if not email:
            raise ValidationFailure("Email is required")
        member_role = _member_role(role)
        await self.guard.require_org_admin(org_id, user_id, "add members to")

        target = (await self.db.execute(select(User).where(User.email == email))).scalar_one_or_none()
        if not target:
            raise NotFoundError(message="User not found. Please ask them to sign up first.")
        if await self.guard.get_membership(org_id, target.id):
            raise ConflictError("User is already a member of this organization")

        try:
            membership = OrganizationMember(organization_id=org_id, user_id=target.id, role=member_role)
            self.db.add(membership)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record(
            user_id, EntityType.MEMBER, target.id, ActionType.ADD_MEMBER,
            details={"username": target.username, "role": member_role.value},
            organization_id=org_id,
        )
        return _member_row(target, membership)

    async def update_member_role(self, org_id: str, user_id: str, target_user_id: str, new_role: str) -> OrganizationMemberOut:
        require_actor(user_id)
        member_role = _member_role(new_role)
        await self.guard.require_org_admin(org_id, user_id, "change roles in")

        target = await self.guard.get_membership(org_id, target_user_id)
        if not target:
            raise NotFoundError(message="User is not a member of this organization")
        if member_role != MemberRole.ADMIN:
            await self.guard.ensure_not_last_admin(target)

        previous = target.role
        try:
            target.role = member_role
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record(
            user_id, EntityType.MEMBER, target_user_id, ActionType.CHANGE_ROLE,
            details={"old_role": MemberRole(previous).value, "new_role": member_role.value},
            organization_id=org_id,
        )
        user = await self.db.get(User, target_user_id)
        return _member_row(user, target)

    async def remove_member(self, org_id: str, user_id: str, target_user_id: str) -> Confirmation:
        require_actor(user_id)
        await self.guard.require_org_admin(org_id, user_id, "remove members from")

        target = await self.guard.get_membership(org_id, target_user_id)
        if not target:
            raise NotFoundError(message="User is not a member of this organization")
        await self.guard.ensure_not_last_admin(target)

        try:
            await self.db.execute(
                delete(OrganizationMember).where(
                    OrganizationMember.organization_id == org_id,
                    OrganizationMember.user_id == target_user_id,
                )
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record(
            user_id, EntityType.MEMBER, target_user_id, ActionType.REMOVE_MEMBER,
            organization_id=org_id,
        )
        return Confirmation(message="Member removed successfully")
