# routers/boards.py — Boards, starring and board activity
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from auth import get_current_user, CurrentUser
from dependencies import get_board_service
from schemas import ActivityEntry, BoardCreated, BoardDetail, BoardOut, StarState
from services.boards import BoardService

router = APIRouter(prefix="/api/v1/boards", tags=["Boards"])


# --- Schemas ---

class BoardCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    background_color: Optional[str] = None
    background_image: Optional[str] = None
    organization_id: Optional[str] = None


class BoardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    background_color: Optional[str] = None
    background_image: Optional[str] = None


# --- Endpoints ---

@router.post("", response_model=BoardCreated, status_code=201)
async def create_board(
    body: BoardCreate,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
):
    """Create a board with the default label set"""
    return await service.create_board(
        title=body.title,
        owner_id=user.id,
        background_color=body.background_color,
        background_image=body.background_image,
        organization_id=body.organization_id,
    )


@router.get("", response_model=List[BoardOut])
async def list_boards(
    organization_id: Optional[str] = Query(default=None),
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
):
    """Personal boards, or the boards of one organization"""
    return await service.list_boards(user.id, organization_id=organization_id)


@router.get("/{board_id}", response_model=BoardDetail)
async def get_board(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
):
    board = await service.get_board(board_id, user.id)
    if not board:
        raise HTTPException(status_code=404, detail="Board not found")
    return board


@router.patch("/{board_id}", response_model=BoardOut)
async def update_board(
    board_id: str,
    body: BoardUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
):
    board = await service.update_board(board_id, body.model_dump(exclude_unset=True), user.id)
    if not board:
        raise HTTPException(status_code=404, detail="Board not found or nothing to update")
    return board


@router.delete("/{board_id}", response_model=BoardOut)
async def delete_board(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
):
    board = await service.delete_board(board_id, user.id)
    if not board:
        raise HTTPException(status_code=404, detail="Board not found")
    return board


@router.post("/{board_id}/star", response_model=StarState)
async def toggle_star(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
):
    state = await service.toggle_star(board_id, user.id)
    if not state:
        raise HTTPException(status_code=404, detail="Board not found")
    return state


@router.get("/{board_id}/activity", response_model=List[ActivityEntry])
async def board_activity(
    board_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    service: BoardService = Depends(get_board_service),
):
    entries = await service.get_board_activity(board_id, user.id, limit=limit, offset=offset)
    if entries is None:
        raise HTTPException(status_code=404, detail="Board not found")
    return entries
