# routers/users.py — User directory for any signed-in user
from typing import List, Optional

from fastapi import APIRouter, Depends

from auth import get_current_user, CurrentUser
from dependencies import get_user_directory
from schemas import UserDirectoryEntry
from services.users import UserDirectoryService

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("", response_model=List[UserDirectoryEntry])
async def list_users(
    search: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    directory: UserDirectoryService = Depends(get_user_directory),
):
    """List users so a card member can be picked by id"""
    return await directory.list_users(search=search)
