# services/cards.py — Cards: drag-and-drop moves, copies, labels and members
# A move is a partial update carrying list_id and/or position (or the neighbour
# ids prev_id/next_id). Only the moved card's row changes unless the target
# list needs rebalancing.
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete

from errors import NotFoundError, ValidationFailure
from models import (
    ActionType, Card, CardLabel, CardMember, Checklist, ChecklistItem,
    EntityType, Label, User,
)
from schemas import (
    ActivityEntry, CardDetail, CardLabelOut, CardMemberOut, CardOut, ChecklistItemOut,
    ChecklistWithItems, Confirmation, LabelOut, MemberBrief,
)
from services.base import EntityService, pick, require_actor

EDIT_FIELDS = ("title", "description", "due_date")
MOVE_FIELDS = ("list_id", "position", "prev_id", "next_id")


class CardService(EntityService):

    async def _card_and_board(self, card_id: str, acting_user_id: str):
        card = await self.db.get(Card, card_id)
        if not card:
            return None, None
        board = await self.guard.board_for_card(card_id)
        await self.guard.require_board_access(board, acting_user_id)
        return card, board

    async def create_card(
        self,
        list_id: str,
        title: str,
        acting_user_id: str,
        description: Optional[str] = None,
        due_date: Optional[datetime] = None,
    ) -> Optional[CardOut]:
        """Append a card to the end of a list"""
        require_actor(acting_user_id)
        if not title or not title.strip():
            raise ValidationFailure("Title is required")
        board = await self.guard.board_for_list(list_id)
        if not board:
            return None
        await self.guard.require_board_access(board, acting_user_id)

        try:
            card = Card(
                list_id=list_id,
                title=title.strip(),
                description=description,
                due_date=due_date,
                position=await self._next_position(Card, Card.list_id, list_id),
            )
            self.db.add(card)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record(
            acting_user_id, EntityType.CARD, card.id, ActionType.CREATE,
            details={"title": card.title},
            organization_id=board.organization_id, board_id=board.id,
        )
        return CardOut.model_validate(card)

    async def get_card(self, card_id: str, acting_user_id: str) -> Optional[CardDetail]:
        """Card with its labels, members and checklists (items ordered by position)"""
        card, board = await self._card_and_board(card_id, acting_user_id)
        if not card:
            return None

        labels = await self.db.execute(
            select(Label).join(CardLabel, CardLabel.label_id == Label.id).where(CardLabel.card_id == card_id)
        )
        members = await self.db.execute(
            select(User).join(CardMember, CardMember.user_id == User.id).where(CardMember.card_id == card_id)
        )
        checklists = (await self.db.execute(
            select(Checklist).where(Checklist.card_id == card_id).order_by(Checklist.position.asc())
        )).scalars().all()

        items_by_checklist = defaultdict(list)
        if checklists:
            items = await self.db.execute(
                select(ChecklistItem)
                .where(ChecklistItem.checklist_id.in_([c.id for c in checklists]))
                .order_by(ChecklistItem.position.asc())
            )
            for item in items.scalars().all():
                items_by_checklist[item.checklist_id].append(ChecklistItemOut.model_validate(item))

        detail = CardDetail(
            **CardOut.model_validate(card).model_dump(),
            board_id=board.id,
            labels=[LabelOut.model_validate(label) for label in labels.scalars().all()],
            members=[MemberBrief.model_validate(user) for user in members.scalars().all()],
        )
        for checklist in checklists:
            entry = ChecklistWithItems.model_validate(checklist)
            entry.items = items_by_checklist.get(checklist.id, [])
            detail.checklists.append(entry)
        return detail

    async def update_card(self, card_id: str, updates: Dict[str, Any], acting_user_id: str) -> Optional[CardOut]:
        """Partial update; a payload with list_id/position/prev_id/next_id is a move"""
        require_actor(acting_user_id)
        edits = pick(updates, EDIT_FIELDS)
        move = {k: v for k, v in pick(updates, MOVE_FIELDS).items() if v is not None}
        if "title" in edits and not (edits["title"] or "").strip():
            raise ValidationFailure("Title cannot be empty")

        card, board = await self._card_and_board(card_id, acting_user_id)
        if not card or not (edits or move):
            return None

        source_board = board
        target_list_id = move.get("list_id", card.list_id)
        if target_list_id != card.list_id:
            target_board = await self.guard.board_for_list(target_list_id)
            if not target_board:
                raise ValidationFailure(f"List '{target_list_id}' does not exist")
            await self.guard.require_board_access(target_board, acting_user_id)
            board = target_board

        try:
            for field, value in edits.items():
                setattr(card, field, value.strip() if field == "title" else value)

            if move:
                if "position" in move:
                    card.position = float(move["position"])
                elif "prev_id" in move or "next_id" in move:
                    prev_pos = await self._neighbour_position(Card, Card.list_id, target_list_id, move.get("prev_id"))
                    next_pos = await self._neighbour_position(Card, Card.list_id, target_list_id, move.get("next_id"))
                    card.position = self._between(prev_pos, next_pos)
                elif target_list_id != card.list_id:
                    card.position = await self._next_position(Card, Card.list_id, target_list_id)
                card.list_id = target_list_id
                if board.id != source_board.id:
                    # labels are board-scoped; drop those the target board does not define
                    foreign_labels = select(Label.id).where(Label.board_id != board.id)
                    await self.db.execute(
                        delete(CardLabel).where(
                            CardLabel.card_id == card.id,
                            CardLabel.label_id.in_(foreign_labels),
                        )
                    )
                await self.db.flush()
                await self._rebalance_if_needed(Card, Card.list_id, target_list_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if move:
            action = ActionType.MOVE
            details = {"list_id": card.list_id, "position": card.position}
        else:
            action = ActionType.UPDATE
            details = {}
            if edits.get("title"):
                details["title"] = card.title
            if "description" in edits:
                details["description_changed"] = True
            if "due_date" in edits:
                details["due_date"] = card.due_date.isoformat() if card.due_date else None
        await self._record(
            acting_user_id, EntityType.CARD, card.id, action, details=details,
            organization_id=board.organization_id, board_id=board.id,
        )
        return CardOut.model_validate(card)

    async def delete_card(self, card_id: str, acting_user_id: str) -> Optional[CardOut]:
        """Delete a card together with its associations, checklists and items

        Children are removed explicitly (not left to FK cascade) inside one
        transaction; any failure rolls the whole deletion back.
        """
        require_actor(acting_user_id)
        card, board = await self._card_and_board(card_id, acting_user_id)
        if not card:
            return None

        record = CardOut.model_validate(card)
        try:
            await self.db.execute(delete(CardLabel).where(CardLabel.card_id == card_id))
            await self.db.execute(delete(CardMember).where(CardMember.card_id == card_id))
            checklist_ids = select(Checklist.id).where(Checklist.card_id == card_id)
            await self.db.execute(delete(ChecklistItem).where(ChecklistItem.checklist_id.in_(checklist_ids)))
            await self.db.execute(delete(Checklist).where(Checklist.card_id == card_id))
            await self.db.execute(delete(Card).where(Card.id == card_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record(
            acting_user_id, EntityType.CARD, card_id, ActionType.DELETE,
            details={"title": record.title},
            organization_id=board.organization_id, board_id=board.id,
        )
        return record

    async def copy_card(
        self,
        card_id: str,
        target_list_id: str,
        acting_user_id: str,
        title: Optional[str] = None,
    ) -> Optional[CardOut]:
        """Duplicate a card (labels, members, checklists with items) at the end of a list"""
        require_actor(acting_user_id)
        original, source_board = await self._card_and_board(card_id, acting_user_id)
        if not original:
            return None
        target_board = await self.guard.board_for_list(target_list_id)
        if not target_board:
            raise NotFoundError("List", target_list_id)
        await self.guard.require_board_access(target_board, acting_user_id)

        try:
            copy = Card(
                list_id=target_list_id,
                title=(title or original.title).strip(),
                description=original.description,
                due_date=original.due_date,
                position=await self._next_position(Card, Card.list_id, target_list_id),
            )
            self.db.add(copy)
            await self.db.flush()

            label_ids = (await self.db.execute(
                select(CardLabel.label_id).where(CardLabel.card_id == card_id)
            )).scalars().all()
            if target_board.id != source_board.id:
                # labels are board-scoped; keep only those defined on the target board
                label_ids = (await self.db.execute(
                    select(Label.id).where(Label.id.in_(label_ids), Label.board_id == target_board.id)
                )).scalars().all() if label_ids else []
            self.db.add_all([CardLabel(card_id=copy.id, label_id=label_id) for label_id in label_ids])

            member_ids = (await self.db.execute(
                select(CardMember.user_id).where(CardMember.card_id == card_id)
            )).scalars().all()
            self.db.add_all([CardMember(card_id=copy.id, user_id=user_id) for user_id in member_ids])

            checklists = (await self.db.execute(
                select(Checklist).where(Checklist.card_id == card_id).order_by(Checklist.position.asc())
            )).scalars().all()
            for checklist in checklists:
                new_checklist = Checklist(card_id=copy.id, title=checklist.title, position=checklist.position)
                self.db.add(new_checklist)
                await self.db.flush()
                items = (await self.db.execute(
                    select(ChecklistItem).where(ChecklistItem.checklist_id == checklist.id)
                )).scalars().all()
                self.db.add_all([
                    ChecklistItem(
                        checklist_id=new_checklist.id,
                        content=item.content,
                        is_completed=item.is_completed,
                        position=item.position,
                    )
                    for item in items
                ])
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record(
            acting_user_id, EntityType.CARD, copy.id, ActionType.COPY,
            details={"source_card_id": card_id, "title": copy.title},
            organization_id=target_board.organization_id, board_id=target_board.id,
        )
        return CardOut.model_validate(copy)

    # --- Labels ---

    async def add_label(self, card_id: str, label_id: str, acting_user_id: str) -> Optional[CardLabelOut]:
        require_actor(acting_user_id)
        card, board = await self._card_and_board(card_id, acting_user_id)
        if not card:
            return None
        label = await self.db.get(Label, label_id)
        if not label or label.board_id != board.id:
            raise ValidationFailure("Label does not belong to this card's board")

        link = await self.db.get(CardLabel, (card_id, label_id))
        if not link:
            try:
                link = CardLabel(card_id=card_id, label_id=label_id)
                self.db.add(link)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        await self._record(
            acting_user_id, EntityType.CARD, card_id, ActionType.ADD_LABEL,
            details={"card_title": card.title, "label_name": label.name, "label_color": label.color},
            organization_id=board.organization_id, board_id=board.id,
        )
        return CardLabelOut.model_validate(link)

    async def remove_label(self, card_id: str, label_id: str, acting_user_id: str) -> Optional[Confirmation]:
        require_actor(acting_user_id)
        card, board = await self._card_and_board(card_id, acting_user_id)
        if not card:
            return None
        label = await self.db.get(Label, label_id)

        try:
            await self.db.execute(
                delete(CardLabel).where(CardLabel.card_id == card_id, CardLabel.label_id == label_id)
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record(
            acting_user_id, EntityType.CARD, card_id, ActionType.REMOVE_LABEL,
            details={"card_title": card.title, "label_name": label.name if label else None},
            organization_id=board.organization_id, board_id=board.id,
        )
        return Confirmation(message="Label removed")

    # --- Members ---

    async def add_member(self, card_id: str, user_id: str, acting_user_id: str) -> Optional[CardMemberOut]:
        require_actor(acting_user_id)
        card, board = await self._card_and_board(card_id, acting_user_id)
        if not card:
            return None
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)

        link = await self.db.get(CardMember, (card_id, user_id))
        if not link:
            try:
                link = CardMember(card_id=card_id, user_id=user_id)
                self.db.add(link)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        await self._record(
            acting_user_id, EntityType.CARD, card_id, ActionType.ADD_MEMBER,
            details={"card_title": card.title, "member_name": user.username},
            organization_id=board.organization_id, board_id=board.id,
        )
        return CardMemberOut.model_validate(link)

    async def remove_member(self, card_id: str, user_id: str, acting_user_id: str) -> Optional[Confirmation]:
        require_actor(acting_user_id)
        card, board = await self._card_and_board(card_id, acting_user_id)
        if not card:
            return None
        user = await self.db.get(User, user_id)

        try:
            await self.db.execute(
                delete(CardMember).where(CardMember.card_id == card_id, CardMember.user_id == user_id)
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self._record(
            acting_user_id, EntityType.CARD, card_id, ActionType.REMOVE_MEMBER,
            details={"card_title": card.title, "member_name": user.username if user else None},
            organization_id=board.organization_id, board_id=board.id,
        )
        return Confirmation(message="Member removed")

    async def get_card_activity(
        self, card_id: str, acting_user_id: str, limit: int = 50, offset: int = 0,
    ) -> Optional[List[ActivityEntry]]:
        card, _ = await self._card_and_board(card_id, acting_user_id)
        if not card:
            return None
        return await self.activity.get_card_activity(card_id, limit=limit, offset=offset)
