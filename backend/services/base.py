# services/base.py — Shared plumbing for the entity services
import logging
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

import positions
from activity import ActivityRecorder
from authorization import AccessGuard
from errors import ValidationFailure

logger = logging.getLogger("taskboard.services")


def require_actor(acting_user_id: Optional[str]) -> str:
    if not acting_user_id:
        raise ValueError("acting_user_id is required for mutating operations")
    return acting_user_id


def pick(updates: Dict[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
    """Keep only the fields present in a partial update"""
    return {key: updates[key] for key in allowed if key in updates}


class EntityService:
    """Base for services that write rows and then record activity"""

    def __init__(self, db: AsyncSession, activity: ActivityRecorder):
        self.db = db
        self.activity = activity
        self.guard = AccessGuard(db)

    async def _record(self, actor_id: str, entity_type, entity_id: str, action_type, **kwargs) -> None:
        """Best-effort activity write; a failure is logged and otherwise ignored"""
        outcome = await self.activity.log_activity(actor_id, entity_type, entity_id, action_type, **kwargs)
        if not outcome.ok:
            logger.debug(f"Continuing without activity entry for {entity_type} {entity_id}")

    async def _max_position(self, model, parent_column, parent_id: str) -> Optional[float]:
        stmt = select(func.max(model.position)).where(parent_column == parent_id)
        return (await self.db.execute(stmt)).scalar()

    async def _next_position(self, model, parent_column, parent_id: str) -> float:
        return positions.append(await self._max_position(model, parent_column, parent_id))

    async def _neighbour_position(self, model, parent_column, parent_id: str, item_id: Optional[str]) -> Optional[float]:
        if item_id is None:
            return None
        stmt = select(model.position).where(model.id == item_id, parent_column == parent_id)
        position = (await self.db.execute(stmt)).scalar_one_or_none()
        if position is None:
            raise ValidationFailure(f"Neighbour '{item_id}' is not in the target sequence")
        return position

    @staticmethod
    def _between(prev_pos: Optional[float], next_pos: Optional[float]) -> float:
        try:
            return positions.between(prev_pos, next_pos)
        except ValueError as exc:
            raise ValidationFailure(str(exc))

    async def _rebalance_if_needed(self, model, parent_column, parent_id: str) -> bool:
        """Renumber a sequence in the current transaction once adjacent gaps get too small"""
        stmt = (
            select(model.id, model.position)
            .where(parent_column == parent_id)
            .order_by(model.position.asc(), model.created_at.asc())
        )
        rows = (await self.db.execute(stmt)).all()
        if not positions.needs_rebalance([row.position for row in rows]):
            return False

        for row, position in zip(rows, positions.rebalanced(len(rows))):
            await self.db.execute(
                update(model).where(model.id == row.id).values(position=position)
            )
        logger.info(f"Rebalanced {len(rows)} {model.__tablename__} positions under {parent_id}")
        return True
