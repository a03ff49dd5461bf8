# tests/test_cards.py — Card moves, cascade delete, copies, labels and members
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

import positions
from activity import ActivityRecorder
from errors import NotFoundError, ValidationFailure
from models import Card, CardLabel, CardMember, Checklist, ChecklistItem
from services.cards import CardService
from tests.conftest import get_auth_headers


@pytest_asyncio.fixture
async def board_with_lists(board_service, list_service, test_user):
    board = await board_service.create_board("Sprint 1", test_user.id)
    todo = await list_service.create_list(board.id, "To Do", test_user.id)
    done = await list_service.create_list(board.id, "Done", test_user.id)
    return board, todo, done


@pytest.mark.asyncio
class TestCardMoves:
    async def test_move_card_to_other_list(self, board_service, card_service, board_with_lists, test_user):
        board, todo, done = board_with_lists
        task_a = await card_service.create_card(todo.id, "Task A", test_user.id)
        task_b = await card_service.create_card(todo.id, "Task B", test_user.id)
        assert (task_a.position, task_b.position) == (65535, 131070)

        moved = await card_service.update_card(
            task_a.id, {"list_id": done.id, "position": positions.between(None, None)}, test_user.id,
        )
        assert moved.list_id == done.id
        assert moved.position == 65535

        detail = await board_service.get_board(board.id, test_user.id)
        by_title = {l.title: [c.title for c in l.cards] for l in detail.lists}
        assert by_title == {"To Do": ["Task B"], "Done": ["Task A"]}

    async def test_list_change_without_position_appends(self, card_service, board_with_lists, test_user):
        _, todo, done = board_with_lists
        await card_service.create_card(done.id, "Already there", test_user.id)
        card = await card_service.create_card(todo.id, "Mover", test_user.id)

        moved = await card_service.update_card(card.id, {"list_id": done.id}, test_user.id)
        assert moved.list_id == done.id
        assert moved.position == 131070

    async def test_move_between_neighbours(self, card_service, board_with_lists, test_user):
        _, todo, _ = board_with_lists
        first = await card_service.create_card(todo.id, "1", test_user.id)
        second = await card_service.create_card(todo.id, "2", test_user.id)
        third = await card_service.create_card(todo.id, "3", test_user.id)

        moved = await card_service.update_card(
            third.id, {"prev_id": first.id, "next_id": second.id}, test_user.id,
        )
        assert first.position < moved.position < second.position

    async def test_move_and_edit_are_logged_distinctly(self, card_service, recorder, board_with_lists, test_user):
        _, todo, done = board_with_lists
        card = await card_service.create_card(todo.id, "Task", test_user.id)
        await card_service.update_card(card.id, {"description": "details"}, test_user.id)
        await card_service.update_card(card.id, {"list_id": done.id}, test_user.id)

        actions = [e.action_type for e in await recorder.get_card_activity(card.id)]
        assert actions == ["move", "update", "create"]

    async def test_repeated_bisection_rebalances_list(self, card_service, db_session, board_with_lists, test_user):
        _, todo, _ = board_with_lists
        anchor = await card_service.create_card(todo.id, "anchor", test_user.id)
        tail = await card_service.create_card(todo.id, "tail", test_user.id)
        mover = await card_service.create_card(todo.id, "mover", test_user.id)

        # keep dropping a card right after the anchor until the gap collapses
        for i in range(20):
            moved = await card_service.update_card(
                mover.id, {"prev_id": anchor.id, "next_id": tail.id}, test_user.id,
            )
            tail = moved
            mover = await card_service.create_card(todo.id, f"mover-{i}", test_user.id)

        rows = (await db_session.execute(
            select(Card.position).where(Card.list_id == todo.id).order_by(Card.position)
        )).scalars().all()
        assert not positions.needs_rebalance(rows)
        assert rows[0] == positions.GAP

    async def test_move_to_other_board_drops_foreign_labels(
        self, board_service, list_service, card_service, db_session, board_with_lists, test_user,
    ):
        source, todo, _ = board_with_lists
        target = await board_service.create_board("Sprint 2", test_user.id)
        backlog = await list_service.create_list(target.id, "Backlog", test_user.id)
        card = await card_service.create_card(todo.id, "Traveller", test_user.id)
        await card_service.add_label(card.id, source.labels[0].id, test_user.id)

        moved = await card_service.update_card(card.id, {"list_id": backlog.id}, test_user.id)
        assert moved.list_id == backlog.id
        assert moved.position == 65535

        detail = await card_service.get_card(card.id, test_user.id)
        assert detail.board_id == target.id
        assert detail.labels == []
        rows = await db_session.execute(select(CardLabel).where(CardLabel.card_id == card.id))
        assert rows.first() is None

        # the label can be attached again from the new board's own set
        await card_service.add_label(card.id, target.labels[0].id, test_user.id)
        board = await board_service.get_board(target.id, test_user.id)
        assert [l.id for l in board.lists[0].cards[0].labels] == [target.labels[0].id]

    async def test_move_within_board_keeps_labels(self, card_service, board_with_lists, test_user):
        board, todo, done = board_with_lists
        card = await card_service.create_card(todo.id, "Stays", test_user.id)
        await card_service.add_label(card.id, board.labels[2].id, test_user.id)

        await card_service.update_card(card.id, {"list_id": done.id}, test_user.id)
        detail = await card_service.get_card(card.id, test_user.id)
        assert [l.id for l in detail.labels] == [board.labels[2].id]

    async def test_moving_to_missing_list_rejected(self, card_service, board_with_lists, test_user):
        _, todo, _ = board_with_lists
        card = await card_service.create_card(todo.id, "Task", test_user.id)
        with pytest.raises(ValidationFailure):
            await card_service.update_card(card.id, {"list_id": "missing"}, test_user.id)


@pytest.mark.asyncio
class TestCardLifecycle:
    async def test_delete_card_removes_associations(
        self, board_with_lists, card_service, checklist_service, db_session, test_user,
    ):
        board, todo, _ = board_with_lists
        card = await card_service.create_card(todo.id, "Doomed", test_user.id)
        await card_service.add_label(card.id, board.labels[0].id, test_user.id)
        await card_service.add_member(card.id, test_user.id, test_user.id)
        checklist = await checklist_service.create_checklist(card.id, test_user.id)
        await checklist_service.add_item(checklist.id, "step one", test_user.id)

        deleted = await card_service.delete_card(card.id, test_user.id)
        assert deleted.id == card.id

        for model, column in (
            (CardLabel, CardLabel.card_id),
            (CardMember, CardMember.card_id),
            (Checklist, Checklist.card_id),
            (Card, Card.id),
        ):
            assert (await db_session.execute(select(model).where(column == card.id))).first() is None
        items = await db_session.execute(
            select(ChecklistItem).where(ChecklistItem.checklist_id == checklist.id)
        )
        assert items.first() is None

    async def test_delete_missing_card_returns_none(self, card_service, test_user):
        assert await card_service.delete_card("missing", test_user.id) is None

    async def test_copy_card_duplicates_children(self, board_with_lists, card_service, checklist_service, test_user):
        board, todo, done = board_with_lists
        await card_service.create_card(done.id, "Existing", test_user.id)
        card = await card_service.create_card(todo.id, "Original", test_user.id, description="desc")
        await card_service.add_label(card.id, board.labels[1].id, test_user.id)
        await card_service.add_member(card.id, test_user.id, test_user.id)
        checklist = await checklist_service.create_checklist(card.id, test_user.id, title="Steps")
        item = await checklist_service.add_item(checklist.id, "one", test_user.id)
        await checklist_service.update_item(item.id, {"is_completed": True}, test_user.id)

        copy = await card_service.copy_card(card.id, done.id, test_user.id)
        assert copy.id != card.id
        assert copy.list_id == done.id
        assert copy.position == 131070
        assert copy.description == "desc"

        detail = await card_service.get_card(copy.id, test_user.id)
        assert [l.id for l in detail.labels] == [board.labels[1].id]
        assert [m.id for m in detail.members] == [test_user.id]
        assert [c.title for c in detail.checklists] == ["Steps"]
        assert [(i.content, i.is_completed) for i in detail.checklists[0].items] == [("one", True)]

    async def test_copy_card_to_missing_list(self, board_with_lists, card_service, db_session, test_user):
        _, todo, _ = board_with_lists
        card = await card_service.create_card(todo.id, "Original", test_user.id)
        with pytest.raises(NotFoundError):
            await card_service.copy_card(card.id, "missing", test_user.id)
        cards = (await db_session.execute(select(Card).where(Card.list_id == todo.id))).scalars().all()
        assert len(cards) == 1

    async def test_label_must_belong_to_board(self, board_service, board_with_lists, card_service, test_user):
        _, todo, _ = board_with_lists
        other_board = await board_service.create_board("Other", test_user.id)
        card = await card_service.create_card(todo.id, "Task", test_user.id)
        with pytest.raises(ValidationFailure):
            await card_service.add_label(card.id, other_board.labels[0].id, test_user.id)

    async def test_add_label_twice_is_idempotent(self, board_with_lists, card_service, db_session, test_user):
        board, todo, _ = board_with_lists
        card = await card_service.create_card(todo.id, "Task", test_user.id)
        await card_service.add_label(card.id, board.labels[0].id, test_user.id)
        await card_service.add_label(card.id, board.labels[0].id, test_user.id)
        rows = (await db_session.execute(select(CardLabel).where(CardLabel.card_id == card.id))).all()
        assert len(rows) == 1

        confirmation = await card_service.remove_label(card.id, board.labels[0].id, test_user.id)
        assert confirmation.success is True

    async def test_create_card_requires_title(self, board_with_lists, card_service, test_user):
        _, todo, _ = board_with_lists
        with pytest.raises(ValidationFailure):
            await card_service.create_card(todo.id, "", test_user.id)


@pytest.mark.asyncio
class TestActivityFailureIsolation:
    async def test_card_created_when_activity_store_fails(self, db_session, board_with_lists, test_user):
        _, todo, _ = board_with_lists
        # a store without tables: every activity insert fails
        broken_engine = create_async_engine("sqlite+aiosqlite://")
        broken = ActivityRecorder(async_sessionmaker(broken_engine, class_=AsyncSession, expire_on_commit=False))
        service = CardService(db_session, broken)

        card = await service.create_card(todo.id, "Survives", test_user.id)
        assert card is not None
        stored = (await db_session.execute(select(Card).where(Card.id == card.id))).scalar_one()
        assert stored.title == "Survives"

        result = await broken.log_activity(test_user.id, "card", card.id, "create")
        assert result.ok is False
        assert result.entry is None
        await broken_engine.dispose()


@pytest.mark.asyncio
class TestCardRoutes:
    async def test_card_flow(self, client: AsyncClient, test_user):
        headers = get_auth_headers(test_user)
        board = (await client.post("/api/v1/boards", json={"title": "B"}, headers=headers)).json()
        todo = (await client.post("/api/v1/lists", json={"board_id": board["id"], "title": "To Do"}, headers=headers)).json()
        done = (await client.post("/api/v1/lists", json={"board_id": board["id"], "title": "Done"}, headers=headers)).json()

        resp = await client.post("/api/v1/cards", json={"list_id": todo["id"], "title": "Task"}, headers=headers)
        assert resp.status_code == 201
        card = resp.json()

        resp = await client.patch(f"/api/v1/cards/{card['id']}", json={"list_id": done["id"]}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["list_id"] == done["id"]

        resp = await client.post(
            f"/api/v1/cards/{card['id']}/labels", json={"label_id": board["labels"][0]["id"]}, headers=headers,
        )
        assert resp.status_code == 200

        resp = await client.get(f"/api/v1/cards/{card['id']}", headers=headers)
        assert resp.json()["board_id"] == board["id"]
        assert len(resp.json()["labels"]) == 1

        resp = await client.get(f"/api/v1/cards/{card['id']}/activity", headers=headers)
        assert [e["action_type"] for e in resp.json()] == ["add_label", "move", "create"]

        resp = await client.delete(f"/api/v1/cards/{card['id']}", headers=headers)
        assert resp.status_code == 200
        resp = await client.get(f"/api/v1/cards/{card['id']}", headers=headers)
        assert resp.status_code == 404

    async def test_foreign_label_is_400(self, client: AsyncClient, test_user):
        headers = get_auth_headers(test_user)
        board = (await client.post("/api/v1/boards", json={"title": "B"}, headers=headers)).json()
        other = (await client.post("/api/v1/boards", json={"title": "O"}, headers=headers)).json()
        todo = (await client.post("/api/v1/lists", json={"board_id": board["id"], "title": "L"}, headers=headers)).json()
        card = (await client.post("/api/v1/cards", json={"list_id": todo["id"], "title": "T"}, headers=headers)).json()

        resp = await client.post(
            f"/api/v1/cards/{card['id']}/labels", json={"label_id": other["labels"][0]["id"]}, headers=headers,
        )
        assert resp.status_code == 400
