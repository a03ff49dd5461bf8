# services/lists.py — Board columns and their ordering
from typing import Any, Dict, Optional

from sqlalchemy import delete

from errors import ValidationFailure
from models import ActionType, Board, BoardList, EntityType
from schemas import ListOut
from services.base import EntityService, pick, require_actor


class ListService(EntityService):

    async def create_list(self, board_id: str, title: str, acting_user_id: str) -> Optional[ListOut]:
        """Append a list to the end of the board"""
        require_actor(acting_user_id)
        if not title or not title.strip():
            raise ValidationFailure("Title is required")
        board = await self.db.get(Board, board_id)
        if not board:
            return None
        await self.guard.require_board_access(board, acting_user_id)

        try:
            board_list = BoardList(
                board_id=board_id,
                title=title.strip(),
                position=await self._next_position(BoardList, BoardList.board_id, board_id),
            )
            self.db.add(board_list)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record(
            acting_user_id, EntityType.LIST, board_list.id, ActionType.CREATE,
            details={"title": board_list.title},
            organization_id=board.organization_id, board_id=board_id,
        )
        return ListOut.model_validate(board_list)

    async def update_list(self, list_id: str, updates: Dict[str, Any], acting_user_id: str) -> Optional[ListOut]:
        """Rename and/or reorder a list

        Reordering takes either an explicit ``position`` or the ids of the new
        neighbours (``prev_id``/``next_id``). Returns None when the list does
        not exist or the payload carries no known field.
        """
        require_actor(acting_user_id)
        changes = pick(updates, ("title", "position", "prev_id", "next_id"))
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValidationFailure("Title cannot be empty")

        board_list = await self.db.get(BoardList, list_id)
        if not board_list or not changes:
            return None
        board = await self.guard.board_for_list(list_id)
        await self.guard.require_board_access(board, acting_user_id)

        moved = False
        try:
            if "title" in changes:
                board_list.title = changes["title"].strip()
            if changes.get("position") is not None:
                board_list.position = float(changes["position"])
                moved = True
            elif changes.get("prev_id") or changes.get("next_id"):
                prev_pos = await self._neighbour_position(
                    BoardList, BoardList.board_id, board_list.board_id, changes.get("prev_id"))
                next_pos = await self._neighbour_position(
                    BoardList, BoardList.board_id, board_list.board_id, changes.get("next_id"))
                board_list.position = self._between(prev_pos, next_pos)
                moved = True
            await self.db.flush()
            if moved:
                await self._rebalance_if_needed(BoardList, BoardList.board_id, board_list.board_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if "title" in changes:
            action, details = ActionType.RENAME, {"new_title": board_list.title}
            if moved:
                details["new_position"] = board_list.position
        elif moved:
            action, details = ActionType.MOVE, {"new_position": board_list.position}
        else:
            action, details = ActionType.UPDATE, {}
        await self._record(
            acting_user_id, EntityType.LIST, list_id, action, details=details,
            organization_id=board.organization_id, board_id=board.id,
        )
        return ListOut.model_validate(board_list)

    async def delete_list(self, list_id: str, acting_user_id: str) -> Optional[ListOut]:
        """Delete a list; its cards and their children go with it via FK cascade"""
        require_actor(acting_user_id)
        board_list = await self.db.get(BoardList, list_id)
        if not board_list:
            return None
        board = await self.guard.board_for_list(list_id)
        await self.guard.require_board_access(board, acting_user_id)

        record = ListOut.model_validate(board_list)
        try:
            await self.db.execute(delete(BoardList).where(BoardList.id == list_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record(
            acting_user_id, EntityType.LIST, list_id, ActionType.DELETE,
            details={"title": record.title},
            organization_id=board.organization_id, board_id=board.id,
        )
        return record
