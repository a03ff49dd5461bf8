# services/boards.py — Boards, default labels, starring and the nested board read
from collections import defaultdict
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete

from errors import ValidationFailure
from models import (
    ActionType, Board, BoardList, Card, CardLabel, CardMember, EntityType, Label,
    StarredBoard, User,
)
from schemas import (
    ActivityEntry, BoardCreated, BoardDetail, BoardOut, CardSummary, LabelOut, ListWithCards,
    MemberBrief, StarState,
)
from services.base import EntityService, pick, require_actor

DEFAULT_BACKGROUND = "#0079bf"

DEFAULT_LABELS = [
    {"name": "Urgent", "color": "#ff0000"},
    {"name": "Bug", "color": "#ff9900"},
    {"name": "Feature", "color": "#00cc00"},
    {"name": "Documentation", "color": "#0066cc"},
    {"name": "Design", "color": "#89609e"},
]

UPDATABLE_FIELDS = ("title", "background_color", "background_image")


class BoardService(EntityService):

    async def create_board(
        self,
        title: str,
        owner_id: str,
        background_color: Optional[str] = None,
        background_image: Optional[str] = None,
        organization_id: Optional[str] = None,
    ) -> BoardCreated:
        """Create a board and seed its default labels in one transaction"""
        require_actor(owner_id)
        if not title or not title.strip():
            raise ValidationFailure("Title is required")
        if organization_id:
            await self.guard.require_member(organization_id, owner_id)

        board = Board(
            title=title.strip(),
            background_color=background_color or DEFAULT_BACKGROUND,
            background_image=background_image,
            owner_id=owner_id,
            organization_id=organization_id,
        )
        try:
            self.db.add(board)
            await self.db.flush()
            labels = [Label(board_id=board.id, **label_def) for label_def in DEFAULT_LABELS]
            self.db.add_all(labels)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        created = BoardCreated.model_validate(board)
        created.labels = [LabelOut.model_validate(label) for label in labels]

        await self._record(
            owner_id, EntityType.BOARD, board.id, ActionType.CREATE,
            details={"title": board.title},
            organization_id=organization_id, board_id=board.id,
        )
        return created

    async def get_board(self, board_id: str, requesting_user_id: str) -> Optional[BoardDetail]:
        """Board -> ordered lists -> ordered cards (with labels and members)

        Uses a fixed number of queries regardless of card count: lists, cards,
        card labels, card members, board labels and the starred flag are each
        fetched once and stitched together in memory.
        """
        board = await self.db.get(Board, board_id)
        if not board:
            return None
        await self.guard.require_board_access(board, requesting_user_id)

        lists_result = await self.db.execute(
            select(BoardList).where(BoardList.board_id == board_id).order_by(BoardList.position.asc())
        )
        lists = lists_result.scalars().all()

        cards: List[Card] = []
        if lists:
            cards_result = await self.db.execute(
                select(Card)
                .join(BoardList, Card.list_id == BoardList.id)
                .where(BoardList.board_id == board_id)
                .order_by(Card.position.asc())
            )
            cards = cards_result.scalars().all()

        labels_by_card: Dict[str, List[LabelOut]] = defaultdict(list)
        members_by_card: Dict[str, List[MemberBrief]] = defaultdict(list)
        if cards:
            card_ids = [card.id for card in cards]
            label_rows = await self.db.execute(
                select(CardLabel.card_id, Label)
                .join(Label, CardLabel.label_id == Label.id)
                .where(CardLabel.card_id.in_(card_ids))
            )
            for card_id, label in label_rows.all():
                labels_by_card[card_id].append(LabelOut.model_validate(label))

            member_rows = await self.db.execute(
                select(CardMember.card_id, User)
                .join(User, CardMember.user_id == User.id)
                .where(CardMember.card_id.in_(card_ids))
            )
            for card_id, user in member_rows.all():
                members_by_card[card_id].append(MemberBrief.model_validate(user))

        cards_by_list: Dict[str, List[CardSummary]] = defaultdict(list)
        for card in cards:
            summary = CardSummary.model_validate(card)
            summary.labels = labels_by_card.get(card.id, [])
            summary.members = members_by_card.get(card.id, [])
            cards_by_list[card.list_id].append(summary)

        board_labels = await self.db.execute(
            select(Label).where(Label.board_id == board_id).order_by(Label.created_at.asc())
        )

        detail = BoardDetail.model_validate(board)
        detail.lists = []
        for board_list in lists:
            entry = ListWithCards.model_validate(board_list)
            entry.cards = cards_by_list.get(board_list.id, [])
            detail.lists.append(entry)
        detail.labels = [LabelOut.model_validate(label) for label in board_labels.scalars().all()]
        detail.is_starred = await self._is_starred(board_id, requesting_user_id)
        return detail

    async def list_boards(self, owner_id: str, organization_id: Optional[str] = None) -> List[BoardOut]:
        """Personal boards of owner_id, or every board of an organization they belong to"""
        if organization_id:
            await self.guard.require_member(organization_id, owner_id)
            stmt = select(Board).where(Board.organization_id == organization_id)
        else:
            stmt = select(Board).where(Board.owner_id == owner_id, Board.organization_id.is_(None))
        result = await self.db.execute(stmt.order_by(Board.created_at.desc()))
        boards = result.scalars().all()

        starred = set()
        if boards:
            starred_rows = await self.db.execute(
                select(StarredBoard.board_id).where(
                    StarredBoard.user_id == owner_id,
                    StarredBoard.board_id.in_([b.id for b in boards]),
                )
            )
            starred = set(starred_rows.scalars().all())

        out = []
        for board in boards:
            record = BoardOut.model_validate(board)
            record.is_starred = board.id in starred
            out.append(record)
        return out

    async def update_board(self, board_id: str, updates: Dict[str, Any], acting_user_id: str) -> Optional[BoardOut]:
        """Partial update; returns None when the board is missing or nothing changed"""
        require_actor(acting_user_id)
        changes = pick(updates, UPDATABLE_FIELDS)
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValidationFailure("Title cannot be empty")

        board = await self.db.get(Board, board_id)
        if not board or not changes:
            return None
        await self.guard.require_board_access(board, acting_user_id)

        try:
            for field, value in changes.items():
                setattr(board, field, value)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if "title" in changes:
            action, details = ActionType.RENAME, {"new_title": changes["title"]}
        else:
            action = ActionType.CHANGE_BACKGROUND
            details = {"new_background": changes.get("background_color") or changes.get("background_image")}
        await self._record(
            acting_user_id, EntityType.BOARD, board.id, action, details=details,
            organization_id=board.organization_id, board_id=board.id,
        )

        record = BoardOut.model_validate(board)
        record.is_starred = await self._is_starred(board.id, acting_user_id)
        return record

    async def delete_board(self, board_id: str, acting_user_id: str) -> Optional[BoardOut]:
        """Delete a board; lists, cards, labels and stars go with it via FK cascade"""
        require_actor(acting_user_id)
        board = await self.db.get(Board, board_id)
        if not board:
            return None
        await self.guard.require_board_owner_or_org_admin(board, acting_user_id)

        record = BoardOut.model_validate(board)
        try:
            await self.db.execute(delete(Board).where(Board.id == board_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        # board_id stays NULL: the board row (and its log rows) no longer exist
        await self._record(
            acting_user_id, EntityType.BOARD, board_id, ActionType.DELETE,
            details={"title": record.title}, organization_id=record.organization_id,
        )
        return record

    async def toggle_star(self, board_id: str, user_id: str) -> Optional[StarState]:
        require_actor(user_id)
        board = await self.db.get(Board, board_id)
        if not board:
            return None
        await self.guard.require_board_access(board, user_id)

        existing = await self.db.get(StarredBoard, (user_id, board_id))
        try:
            if existing:
                await self.db.delete(existing)
                is_starred = False
            else:
                self.db.add(StarredBoard(user_id=user_id, board_id=board_id))
                is_starred = True
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return StarState(is_starred=is_starred)

    async def _is_starred(self, board_id: str, user_id: str) -> bool:
        return await self.db.get(StarredBoard, (user_id, board_id)) is not None

    async def get_board_activity(
        self, board_id: str, requesting_user_id: str, limit: int = 50, offset: int = 0,
    ) -> Optional[List[ActivityEntry]]:
        board = await self.db.get(Board, board_id)
        if not board:
            return None
        await self.guard.require_board_access(board, requesting_user_id)
        return await self.activity.get_board_activity(board_id, limit=limit, offset=offset)
