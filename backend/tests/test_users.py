# tests/test_users.py — User directory used by the card-member picker
import pytest
from httpx import AsyncClient

from services.users import UserDirectoryService
from tests.conftest import get_auth_headers, make_user


@pytest.mark.asyncio
class TestUserDirectory:
    async def test_users_ordered_by_username(self, db_session, test_user, other_user):
        await make_user(db_session, "alice", "alice@taskboard.dev")
        users = await UserDirectoryService(db_session).list_users()
        assert [u.username for u in users] == ["alice", "otheruser", "testuser"]
        assert users[2].email == "testuser@taskboard.dev"

    async def test_search_matches_username_or_email(self, db_session, test_user, other_user):
        directory = UserDirectoryService(db_session)
        assert [u.id for u in await directory.list_users(search="OTHER@")] == [other_user.id]
        assert [u.id for u in await directory.list_users(search="testu")] == [test_user.id]


@pytest.mark.asyncio
class TestUserRoutes:
    async def test_regular_user_can_pick_card_member(self, client: AsyncClient, test_user, other_user):
        headers = get_auth_headers(test_user)
        resp = await client.get("/api/v1/users", headers=headers)
        assert resp.status_code == 200
        entries = resp.json()
        assert set(entries[0]) == {"id", "username", "email", "avatar_url"}
        picked = next(u for u in entries if u["username"] == "otheruser")

        board = (await client.post("/api/v1/boards", json={"title": "B"}, headers=headers)).json()
        todo = (await client.post("/api/v1/lists", json={"board_id": board["id"], "title": "L"}, headers=headers)).json()
        card = (await client.post("/api/v1/cards", json={"list_id": todo["id"], "title": "T"}, headers=headers)).json()
        resp = await client.post(
            f"/api/v1/cards/{card['id']}/members", json={"user_id": picked["id"]}, headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["user_id"] == other_user.id

    async def test_requires_authentication(self, client: AsyncClient):
        resp = await client.get("/api/v1/users")
        assert resp.status_code in (401, 403)
