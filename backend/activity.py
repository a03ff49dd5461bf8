# activity.py — Activity log (best-effort) and admin audit trail (transactional)
"""
Two append-only logs with deliberately different failure semantics:

* ActivityRecorder writes user activity in its own short session *after* the
  business transaction has committed. A failed write is reported and handed
  back as a failed LogResult; it never reaches the caller's transaction.
* AdminAuditTrail writes into the caller's session, so the admin action and
  its audit row commit or roll back together.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, List

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models import ActivityLog, AdminAuditLog, EntityType, User
from schemas import ActivityEntry, AdminAuditEntry, AuditLogPage, paginate

logger = logging.getLogger("taskboard.activity")

DEFAULT_LIMIT = 50


@dataclass
class LogResult:
    """Outcome of a best-effort activity write"""
    entry: Optional[ActivityEntry] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _activity_row(log: ActivityLog, username: Optional[str], avatar_url: Optional[str]) -> ActivityEntry:
    entry = ActivityEntry.model_validate(log)
    entry.username = username
    entry.avatar_url = avatar_url
    return entry


class ActivityRecorder:
    """Appends and reads the organization/board/card activity log"""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def log_activity(
        self,
        actor_id: str,
        entity_type: str,
        entity_id: str,
        action_type: str,
        details: Optional[Dict[str, Any]] = None,
        organization_id: Optional[str] = None,
        board_id: Optional[str] = None,
    ) -> LogResult:
        if not actor_id:
            raise ValueError("actor_id is required to record activity")

        log = ActivityLog(
            user_id=actor_id,
            organization_id=organization_id,
            board_id=board_id,
            entity_type=str(getattr(entity_type, "value", entity_type)),
            entity_id=str(entity_id),
            action_type=str(getattr(action_type, "value", action_type)),
            details=details or None,
        )
        try:
            async with self._session_factory() as session:
                session.add(log)
                await session.flush()
                entry = ActivityEntry.model_validate(log)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning(
                f"Activity not recorded ({log.entity_type}:{log.entity_id} {log.action_type}): {exc}"
            )
            return LogResult(error=str(exc))
        return LogResult(entry=entry)

    async def _query(self, *criteria, limit: int, offset: int) -> List[ActivityEntry]:
        stmt = (
            select(ActivityLog, User.username, User.avatar_url)
            .outerjoin(User, ActivityLog.user_id == User.id)
            .where(*criteria)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_activity_row(log, username, avatar) for log, username, avatar in result.all()]

    async def get_organization_activity(
        self, organization_id: str, limit: int = DEFAULT_LIMIT, offset: int = 0,
    ) -> List[ActivityEntry]:
        return await self._query(ActivityLog.organization_id == organization_id, limit=limit, offset=offset)

    async def get_board_activity(
        self, board_id: str, limit: int = DEFAULT_LIMIT, offset: int = 0,
    ) -> List[ActivityEntry]:
        return await self._query(ActivityLog.board_id == board_id, limit=limit, offset=offset)

    async def get_card_activity(
        self, card_id: str, limit: int = DEFAULT_LIMIT, offset: int = 0,
    ) -> List[ActivityEntry]:
        return await self._query(
            ActivityLog.entity_type == EntityType.CARD.value,
            ActivityLog.entity_id == card_id,
            limit=limit,
            offset=offset,
        )


class AdminAuditTrail:
    """Admin audit rows share the session (and transaction) of the admin action"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_admin_action(
        self,
        admin_user_id: str,
        action_type: str,
        target_entity_type: str,
        target_entity_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> AdminAuditLog:
        """Add the audit row and flush it; the caller commits or rolls back"""
        entry = AdminAuditLog(
            admin_user_id=admin_user_id,
            action_type=str(getattr(action_type, "value", action_type)),
            target_entity_type=str(getattr(target_entity_type, "value", target_entity_type)),
            target_entity_id=str(target_entity_id),
            details=details or {},
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def list_entries(
        self,
        page: int = 1,
        limit: int = DEFAULT_LIMIT,
        admin_user_id: Optional[str] = None,
        action_type: Optional[str] = None,
    ) -> AuditLogPage:
        criteria = []
        if admin_user_id:
            criteria.append(AdminAuditLog.admin_user_id == admin_user_id)
        if action_type:
            criteria.append(AdminAuditLog.action_type == action_type)

        count_stmt = select(func.count(AdminAuditLog.id)).where(*criteria)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(AdminAuditLog, User.username, User.email)
            .outerjoin(User, AdminAuditLog.admin_user_id == User.id)
            .where(*criteria)
            .order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        result = await self.db.execute(stmt)
        logs = []
        for log, username, email in result.all():
            entry = AdminAuditEntry.model_validate(log)
            entry.admin_username = username
            entry.admin_email = email
            logs.append(entry)
        return AuditLogPage(logs=logs, pagination=paginate(page, limit, total))
