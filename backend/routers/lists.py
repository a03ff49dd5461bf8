# routers/lists.py — Board columns
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import get_current_user, CurrentUser
from dependencies import get_list_service
from schemas import ListOut
from services.lists import ListService

router = APIRouter(prefix="/api/v1/lists", tags=["Lists"])


class ListCreate(BaseModel):
    board_id: str
    title: str = Field(..., min_length=1, max_length=200)


class ListUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    position: Optional[float] = None
    prev_id: Optional[str] = None  # place after this list
    next_id: Optional[str] = None  # place before this list


@router.post("", response_model=ListOut, status_code=201)
async def create_list(
    body: ListCreate,
    user: CurrentUser = Depends(get_current_user),
    service: ListService = Depends(get_list_service),
):
    board_list = await service.create_list(body.board_id, body.title, user.id)
    if not board_list:
        raise HTTPException(status_code=404, detail="Board not found")
    return board_list


@router.patch("/{list_id}", response_model=ListOut)
async def update_list(
    list_id: str,
    body: ListUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: ListService = Depends(get_list_service),
):
    board_list = await service.update_list(list_id, body.model_dump(exclude_unset=True), user.id)
    if not board_list:
        raise HTTPException(status_code=404, detail="List not found or nothing to update")
    return board_list


@router.delete("/{list_id}", response_model=ListOut)
async def delete_list(
    list_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ListService = Depends(get_list_service),
):
    board_list = await service.delete_list(list_id, user.id)
    if not board_list:
        raise HTTPException(status_code=404, detail="List not found")
    return board_list
