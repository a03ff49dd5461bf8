# services/organizations.py — Organization lifecycle for its members
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError

from errors import ConflictError, ValidationFailure
from models import ActionType, EntityType, MemberRole, Organization, OrganizationMember
from schemas import ActivityEntry, Confirmation, OrganizationOut, UserOrganization
from services.base import EntityService, logger, pick, require_actor


def _slugify(name: str) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', name.lower()).strip('-')
    return slug[:50]


def _with_role(org: Organization, role) -> UserOrganization:
    return UserOrganization(**OrganizationOut.model_validate(org).model_dump(), role=role)


class OrganizationService(EntityService):

    async def create_organization(
        self,
        user_id: str,
        name: str,
        slug: Optional[str] = None,
        logo_url: Optional[str] = None,
    ) -> UserOrganization:
        """Create an organization with its creator as the first admin member"""
        require_actor(user_id)
        if not name or not name.strip():
            raise ValidationFailure("Name is required")
        slug = _slugify(slug or name)
        if not slug:
            raise ValidationFailure("Slug must contain at least one letter or digit")

        try:
            org = Organization(name=name.strip(), slug=slug, logo_url=logo_url)
            self.db.add(org)
            await self.db.flush()
            self.db.add(OrganizationMember(organization_id=org.id, user_id=user_id, role=MemberRole.ADMIN))
            await self.db.flush()
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(f"Organization slug '{slug}' is already taken")
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Organization created: {org.slug} by {user_id}")
        await self._record(
            user_id, EntityType.ORGANIZATION, org.id, ActionType.CREATE,
            details={"name": org.name}, organization_id=org.id,
        )
        return _with_role(org, MemberRole.ADMIN)

    async def list_user_organizations(self, user_id: str) -> List[UserOrganization]:
        stmt = (
            select(Organization, OrganizationMember.role)
            .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
            .where(OrganizationMember.user_id == user_id)
            .order_by(Organization.name.asc())
        )
        result = await self.db.execute(stmt)
        return [_with_role(org, role) for org, role in result.all()]

    async def get_organization(self, user_id: str, org_id: str) -> UserOrganization:
        membership = await self.guard.require_member(org_id, user_id)
        org = await self.db.get(Organization, org_id)
        return _with_role(org, membership.role)

    async def update_organization(self, user_id: str, org_id: str, updates: Dict[str, Any]) -> UserOrganization:
        """Rename or change the logo; fields left out (or null) keep their value"""
        require_actor(user_id)
        changes = {k: v for k, v in pick(updates, ("name", "logo_url")).items() if v is not None}
        if "name" in changes and not changes["name"].strip():
            raise ValidationFailure("Name cannot be empty")
        membership = await self.guard.require_org_admin(org_id, user_id, "update")
        org = await self.db.get(Organization, org_id)

        try:
            for field, value in changes.items():
                setattr(org, field, value.strip() if field == "name" else value)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if changes:
            await self._record(
                user_id, EntityType.ORGANIZATION, org_id, ActionType.UPDATE,
                details=changes, organization_id=org_id,
            )
        return _with_role(org, membership.role)

    async def delete_organization(self, user_id: str, org_id: str) -> Confirmation:
        """Delete an organization; boards and memberships follow via FK cascade"""
        require_actor(user_id)
        await self.guard.require_org_admin(org_id, user_id, "delete")
        org = await self.db.get(Organization, org_id)
        name = org.name

        try:
            await self.db.execute(delete(Organization).where(Organization.id == org_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Organization deleted: {org_id} by {user_id}")
        # organization_id stays NULL: the organization's log rows were cascaded away
        await self._record(
            user_id, EntityType.ORGANIZATION, org_id, ActionType.DELETE, details={"name": name},
        )
        return Confirmation(message="Organization deleted")

    async def get_organization_activity(
        self, user_id: str, org_id: str, limit: int = 50, offset: int = 0,
    ) -> List[ActivityEntry]:
        await self.guard.require_member(org_id, user_id)
        return await self.activity.get_organization_activity(org_id, limit=limit, offset=offset)
