# services/checklists.py — Checklists and items; changes are logged on the owning card
from typing import Any, Dict, Optional

from sqlalchemy import delete

from errors import ValidationFailure
from models import ActionType, Card, Checklist, ChecklistItem, EntityType
from schemas import ChecklistItemOut, ChecklistOut, ChecklistWithItems
from services.base import EntityService, pick, require_actor


class ChecklistService(EntityService):

    async def _guard_card(self, card_id: str, acting_user_id: str):
        board = await self.guard.board_for_card(card_id)
        if board:
            await self.guard.require_board_access(board, acting_user_id)
        return board

    async def _record_on_card(self, acting_user_id, board, card_id, action, details):
        await self._record(
            acting_user_id, EntityType.CARD, card_id, action, details=details,
            organization_id=board.organization_id, board_id=board.id,
        )

    async def create_checklist(self, card_id: str, acting_user_id: str, title: Optional[str] = None) -> Optional[ChecklistWithItems]:
        require_actor(acting_user_id)
        if not await self.db.get(Card, card_id):
            return None
        board = await self._guard_card(card_id, acting_user_id)

        try:
            checklist = Checklist(
                card_id=card_id,
                title=(title or "").strip() or "Checklist",
                position=await self._next_position(Checklist, Checklist.card_id, card_id),
            )
            self.db.add(checklist)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record_on_card(
            acting_user_id, board, card_id, ActionType.ADD_CHECKLIST,
            {"checklist_id": checklist.id, "title": checklist.title},
        )
        return ChecklistWithItems.model_validate(checklist)

    async def delete_checklist(self, checklist_id: str, acting_user_id: str) -> Optional[ChecklistOut]:
        """Delete a checklist and its items in one transaction"""
        require_actor(acting_user_id)
        checklist = await self.db.get(Checklist, checklist_id)
        if not checklist:
            return None
        board = await self._guard_card(checklist.card_id, acting_user_id)

        record = ChecklistOut.model_validate(checklist)
        try:
            await self.db.execute(delete(ChecklistItem).where(ChecklistItem.checklist_id == checklist_id))
            await self.db.execute(delete(Checklist).where(Checklist.id == checklist_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record_on_card(
            acting_user_id, board, record.card_id, ActionType.REMOVE_CHECKLIST,
            {"checklist_id": checklist_id, "title": record.title},
        )
        return record

    async def add_item(self, checklist_id: str, content: str, acting_user_id: str) -> Optional[ChecklistItemOut]:
        require_actor(acting_user_id)
        if not content or not content.strip():
            raise ValidationFailure("Content is required")
        checklist = await self.db.get(Checklist, checklist_id)
        if not checklist:
            return None
        await self._guard_card(checklist.card_id, acting_user_id)

        try:
            item = ChecklistItem(
                checklist_id=checklist_id,
                content=content.strip(),
                position=await self._next_position(ChecklistItem, ChecklistItem.checklist_id, checklist_id),
            )
            self.db.add(item)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return ChecklistItemOut.model_validate(item)

    async def update_item(self, item_id: str, updates: Dict[str, Any], acting_user_id: str) -> Optional[ChecklistItemOut]:
        """Toggle completion, edit content or reorder an item

        Completion changes are recorded on the card as complete_item /
        uncomplete_item; other edits are not logged.
        """
        require_actor(acting_user_id)
        changes = pick(updates, ("content", "is_completed", "position"))
        if "content" in changes and not (changes["content"] or "").strip():
            raise ValidationFailure("Content cannot be empty")

        item = await self.db.get(ChecklistItem, item_id)
        if not item or not changes:
            return None
        checklist = await self.db.get(Checklist, item.checklist_id)
        board = await self._guard_card(checklist.card_id, acting_user_id)

        was_completed = item.is_completed
        try:
            if "content" in changes:
                item.content = changes["content"].strip()
            if changes.get("is_completed") is not None:
                item.is_completed = bool(changes["is_completed"])
            if changes.get("position") is not None:
                item.position = float(changes["position"])
                await self.db.flush()
                await self._rebalance_if_needed(ChecklistItem, ChecklistItem.checklist_id, item.checklist_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if item.is_completed != was_completed:
            action = ActionType.COMPLETE_ITEM if item.is_completed else ActionType.UNCOMPLETE_ITEM
            await self._record_on_card(
                acting_user_id, board, checklist.card_id, action,
                {"checklist_id": checklist.id, "item_id": item.id, "content": item.content},
            )
        return ChecklistItemOut.model_validate(item)

    async def delete_item(self, item_id: str, acting_user_id: str) -> Optional[ChecklistItemOut]:
        require_actor(acting_user_id)
        item = await self.db.get(ChecklistItem, item_id)
        if not item:
            return None
        checklist = await self.db.get(Checklist, item.checklist_id)
        await self._guard_card(checklist.card_id, acting_user_id)

        record = ChecklistItemOut.model_validate(item)
        try:
            await self.db.execute(delete(ChecklistItem).where(ChecklistItem.id == item_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return record
