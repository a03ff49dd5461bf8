# tests/test_organizations.py — Organizations, membership and the last-admin invariant
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from errors import ConflictError, ForbiddenError, LastAdminError, NotFoundError, ValidationFailure
from models import Board, MemberRole, OrganizationMember
from tests.conftest import get_auth_headers, make_user


async def _roster(db_session, org_id):
    rows = await db_session.execute(
        select(OrganizationMember.user_id, OrganizationMember.role)
        .where(OrganizationMember.organization_id == org_id)
    )
    return sorted((user_id, MemberRole(role).value) for user_id, role in rows.all())


@pytest.mark.asyncio
class TestOrganizationService:
    async def test_creator_becomes_admin(self, org_service, member_service, test_user):
        org = await org_service.create_organization(test_user.id, "Acme Corp")
        assert org.slug == "acme-corp"
        assert org.role == MemberRole.ADMIN

        members = await member_service.get_members(org.id, test_user.id)
        assert [(m.id, m.role) for m in members] == [(test_user.id, MemberRole.ADMIN)]

    async def test_duplicate_slug_conflicts(self, org_service, test_user, other_user):
        await org_service.create_organization(test_user.id, "Acme")
        with pytest.raises(ConflictError):
            await org_service.create_organization(other_user.id, "Acme")

    async def test_list_user_organizations_sorted_by_name(self, org_service, test_user):
        await org_service.create_organization(test_user.id, "Zeta")
        await org_service.create_organization(test_user.id, "Alpha")
        names = [o.name for o in await org_service.list_user_organizations(test_user.id)]
        assert names == ["Alpha", "Zeta"]

    async def test_non_member_cannot_read(self, org_service, test_user, other_user):
        org = await org_service.create_organization(test_user.id, "Acme")
        with pytest.raises(ForbiddenError):
            await org_service.get_organization(other_user.id, org.id)

    async def test_only_admin_updates(self, org_service, member_service, test_user, other_user):
        org = await org_service.create_organization(test_user.id, "Acme")
        await member_service.add_member(org.id, test_user.id, other_user.email)
        with pytest.raises(ForbiddenError):
            await org_service.update_organization(other_user.id, org.id, {"name": "Hijacked"})

        updated = await org_service.update_organization(test_user.id, org.id, {"name": "Acme Ltd", "logo_url": None})
        assert updated.name == "Acme Ltd"

    async def test_delete_cascades_to_boards(self, org_service, board_service, db_session, test_user):
        org = await org_service.create_organization(test_user.id, "Acme")
        board = await board_service.create_board("Team", test_user.id, organization_id=org.id)

        await org_service.delete_organization(test_user.id, org.id)
        assert (await db_session.execute(select(Board).where(Board.id == board.id))).first() is None
        assert await _roster(db_session, org.id) == []

    async def test_missing_organization(self, org_service, test_user):
        with pytest.raises(NotFoundError):
            await org_service.get_organization(test_user.id, "missing")


@pytest.mark.asyncio
class TestMemberService:
    async def test_sole_admin_cannot_remove_self(self, org_service, member_service, db_session, test_user):
        org = await org_service.create_organization(test_user.id, "Acme")
        invitee = await make_user(db_session, "x", "x@x.com")
        await member_service.add_member(org.id, test_user.id, "x@x.com", role="member")
        before = await _roster(db_session, org.id)

        with pytest.raises(LastAdminError):
            await member_service.remove_member(org.id, test_user.id, test_user.id)
        assert await _roster(db_session, org.id) == before
        assert (invitee.id, "member") in before

    async def test_sole_admin_cannot_be_demoted(self, org_service, member_service, db_session, test_user):
        org = await org_service.create_organization(test_user.id, "Acme")
        before = await _roster(db_session, org.id)
        with pytest.raises(LastAdminError) as exc_info:
            await member_service.update_member_role(org.id, test_user.id, test_user.id, "member")
        assert "last admin" in exc_info.value.message
        assert await _roster(db_session, org.id) == before

    async def test_demote_allowed_with_second_admin(self, org_service, member_service, test_user, other_user):
        org = await org_service.create_organization(test_user.id, "Acme")
        await member_service.add_member(org.id, test_user.id, other_user.email, role="admin")
        demoted = await member_service.update_member_role(org.id, other_user.id, test_user.id, "member")
        assert demoted.role == MemberRole.MEMBER

    async def test_add_member_errors(self, org_service, member_service, test_user, other_user):
        org = await org_service.create_organization(test_user.id, "Acme")
        with pytest.raises(NotFoundError) as exc_info:
            await member_service.add_member(org.id, test_user.id, "nobody@nowhere.dev")
        assert "sign up first" in exc_info.value.message

        await member_service.add_member(org.id, test_user.id, other_user.email)
        with pytest.raises(ConflictError):
            await member_service.add_member(org.id, test_user.id, other_user.email)
        with pytest.raises(ValidationFailure):
            await member_service.update_member_role(org.id, test_user.id, other_user.id, "owner")

    async def test_member_cannot_manage_roster(self, org_service, member_service, db_session, test_user, other_user):
        org = await org_service.create_organization(test_user.id, "Acme")
        await member_service.add_member(org.id, test_user.id, other_user.email)
        third = await make_user(db_session, "third", "third@taskboard.dev")
        with pytest.raises(ForbiddenError):
            await member_service.add_member(org.id, other_user.id, third.email)
        with pytest.raises(ForbiddenError):
            await member_service.remove_member(org.id, other_user.id, test_user.id)

    async def test_roster_changes_recorded(self, org_service, member_service, recorder, test_user, other_user):
        org = await org_service.create_organization(test_user.id, "Acme")
        await member_service.add_member(org.id, test_user.id, other_user.email)
        await member_service.remove_member(org.id, test_user.id, other_user.id)

        entries = await recorder.get_organization_activity(org.id)
        assert [e.action_type for e in entries] == ["remove_member", "add_member", "create"]


@pytest.mark.asyncio
class TestOrganizationRoutes:
    async def test_organization_flow(self, client: AsyncClient, test_user, other_user):
        headers = get_auth_headers(test_user)
        resp = await client.post("/api/v1/organizations", json={"name": "Acme"}, headers=headers)
        assert resp.status_code == 201
        org = resp.json()
        assert org["role"] == "admin"

        resp = await client.post(
            f"/api/v1/organizations/{org['id']}/members",
            json={"email": other_user.email, "role": "member"},
            headers=headers,
        )
        assert resp.status_code == 201

        resp = await client.get(f"/api/v1/organizations/{org['id']}/members", headers=headers)
        assert len(resp.json()) == 2

        resp = await client.delete(f"/api/v1/organizations/{org['id']}/members/{test_user.id}", headers=headers)
        assert resp.status_code == 409

        resp = await client.get(f"/api/v1/organizations/{org['id']}", headers=get_auth_headers(other_user))
        assert resp.json()["role"] == "member"

        resp = await client.delete(f"/api/v1/organizations/{org['id']}", headers=get_auth_headers(other_user))
        assert resp.status_code == 403

    async def test_activity_requires_membership(self, client: AsyncClient, test_user, other_user):
        org = (await client.post(
            "/api/v1/organizations", json={"name": "Acme"}, headers=get_auth_headers(test_user),
        )).json()
        resp = await client.get(f"/api/v1/organizations/{org['id']}/activity", headers=get_auth_headers(other_user))
        assert resp.status_code == 403
        resp = await client.get(f"/api/v1/organizations/{org['id']}/activity", headers=get_auth_headers(test_user))
        assert [e["action_type"] for e in resp.json()] == ["create"]
