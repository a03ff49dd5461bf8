# services/users.py — Read-only user directory used to pick card members
from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from models import User
from schemas import UserDirectoryEntry


class UserDirectoryService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_users(self, search: Optional[str] = None) -> List[UserDirectoryEntry]:
        """Every account, ordered by username; ``search`` matches username or email"""
        stmt = select(User).order_by(User.username.asc())
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(User.username.ilike(pattern), User.email.ilike(pattern)))
        result = await self.db.execute(stmt)
        return [UserDirectoryEntry.model_validate(u) for u in result.scalars().all()]
