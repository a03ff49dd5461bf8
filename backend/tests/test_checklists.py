# tests/test_checklists.py — Checklists and items
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select

from errors import ForbiddenError, ValidationFailure
from models import ChecklistItem
from tests.conftest import get_auth_headers


@pytest_asyncio.fixture
async def card(board_service, list_service, card_service, test_user):
    board = await board_service.create_board("Checks", test_user.id)
    todo = await list_service.create_list(board.id, "To Do", test_user.id)
    return await card_service.create_card(todo.id, "Task", test_user.id)


@pytest.mark.asyncio
class TestChecklistService:
    async def test_checklists_and_items_are_appended(self, checklist_service, card_service, card, test_user):
        first = await checklist_service.create_checklist(card.id, test_user.id)
        second = await checklist_service.create_checklist(card.id, test_user.id, title="QA")
        assert first.title == "Checklist"
        assert first.position < second.position

        a = await checklist_service.add_item(first.id, "write", test_user.id)
        b = await checklist_service.add_item(first.id, "review", test_user.id)
        assert (a.position, b.position) == (65535, 131070)

        detail = await card_service.get_card(card.id, test_user.id)
        assert [c.title for c in detail.checklists] == ["Checklist", "QA"]
        assert [i.content for i in detail.checklists[0].items] == ["write", "review"]

    async def test_completion_logged_on_card(self, checklist_service, recorder, card, test_user):
        checklist = await checklist_service.create_checklist(card.id, test_user.id)
        item = await checklist_service.add_item(checklist.id, "ship", test_user.id)

        done = await checklist_service.update_item(item.id, {"is_completed": True}, test_user.id)
        assert done.is_completed is True
        await checklist_service.update_item(item.id, {"is_completed": False}, test_user.id)
        # a content edit is not an activity entry
        await checklist_service.update_item(item.id, {"content": "ship it"}, test_user.id)

        actions = [e.action_type for e in await recorder.get_card_activity(card.id)]
        assert actions == ["uncomplete_item", "complete_item", "add_checklist", "create"]

    async def test_delete_checklist_removes_items(self, checklist_service, db_session, recorder, card, test_user):
        checklist = await checklist_service.create_checklist(card.id, test_user.id)
        await checklist_service.add_item(checklist.id, "one", test_user.id)
        await checklist_service.add_item(checklist.id, "two", test_user.id)

        deleted = await checklist_service.delete_checklist(checklist.id, test_user.id)
        assert deleted.id == checklist.id
        rows = await db_session.execute(select(ChecklistItem).where(ChecklistItem.checklist_id == checklist.id))
        assert rows.first() is None
        assert (await recorder.get_card_activity(card.id))[0].action_type == "remove_checklist"

    async def test_delete_item(self, checklist_service, card, test_user):
        checklist = await checklist_service.create_checklist(card.id, test_user.id)
        item = await checklist_service.add_item(checklist.id, "one", test_user.id)
        assert (await checklist_service.delete_item(item.id, test_user.id)).id == item.id
        assert await checklist_service.delete_item(item.id, test_user.id) is None

    async def test_empty_item_rejected(self, checklist_service, card, test_user):
        checklist = await checklist_service.create_checklist(card.id, test_user.id)
        with pytest.raises(ValidationFailure):
            await checklist_service.add_item(checklist.id, "  ", test_user.id)

    async def test_missing_card_returns_none(self, checklist_service, test_user):
        assert await checklist_service.create_checklist("missing", test_user.id) is None

    async def test_outsider_cannot_add_checklist(self, checklist_service, card, other_user):
        with pytest.raises(ForbiddenError):
            await checklist_service.create_checklist(card.id, other_user.id)


@pytest.mark.asyncio
async def test_checklist_routes(client: AsyncClient, test_user):
    headers = get_auth_headers(test_user)
    board = (await client.post("/api/v1/boards", json={"title": "B"}, headers=headers)).json()
    todo = (await client.post("/api/v1/lists", json={"board_id": board["id"], "title": "L"}, headers=headers)).json()
    card = (await client.post("/api/v1/cards", json={"list_id": todo["id"], "title": "T"}, headers=headers)).json()

    resp = await client.post(f"/api/v1/cards/{card['id']}/checklists", json={}, headers=headers)
    assert resp.status_code == 201
    checklist = resp.json()
    assert checklist["items"] == []

    resp = await client.post(f"/api/v1/checklists/{checklist['id']}/items", json={"content": "do it"}, headers=headers)
    assert resp.status_code == 201
    item = resp.json()

    resp = await client.patch(f"/api/v1/checklist-items/{item['id']}", json={"is_completed": True}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["is_completed"] is True

    resp = await client.delete(f"/api/v1/checklists/{checklist['id']}", headers=headers)
    assert resp.status_code == 200
    resp = await client.patch(f"/api/v1/checklist-items/{item['id']}", json={"is_completed": False}, headers=headers)
    assert resp.status_code == 404
