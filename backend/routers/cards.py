# routers/cards.py — Cards: CRUD, drag-and-drop moves, copies, labels, members
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from auth import get_current_user, CurrentUser
from dependencies import get_card_service
from schemas import ActivityEntry, CardDetail, CardLabelOut, CardMemberOut, CardOut, Confirmation
from services.cards import CardService

router = APIRouter(prefix="/api/v1/cards", tags=["Cards"])


# --- Schemas ---

class CardCreate(BaseModel):
    list_id: str
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    due_date: Optional[datetime] = None


class CardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    # Any of the following makes the update a move
    list_id: Optional[str] = None
    position: Optional[float] = None
    prev_id: Optional[str] = None
    next_id: Optional[str] = None


class CardCopy(BaseModel):
    list_id: str
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)


class LabelAttach(BaseModel):
    label_id: str


class MemberAttach(BaseModel):
    user_id: str


def _found(value, detail: str = "Card not found"):
    if value is None:
        raise HTTPException(status_code=404, detail=detail)
    return value


# --- Endpoints ---

@router.post("", response_model=CardOut, status_code=201)
async def create_card(
    body: CardCreate,
    user: CurrentUser = Depends(get_current_user),
    service: CardService = Depends(get_card_service),
):
    card = await service.create_card(
        body.list_id, body.title, user.id, description=body.description, due_date=body.due_date,
    )
    return _found(card, "List not found")


@router.get("/{card_id}", response_model=CardDetail)
async def get_card(
    card_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: CardService = Depends(get_card_service),
):
    return _found(await service.get_card(card_id, user.id))


@router.patch("/{card_id}", response_model=CardOut)
async def update_card(
    card_id: str,
    body: CardUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: CardService = Depends(get_card_service),
):
    card = await service.update_card(card_id, body.model_dump(exclude_unset=True), user.id)
    return _found(card, "Card not found or nothing to update")


@router.delete("/{card_id}", response_model=CardOut)
async def delete_card(
    card_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: CardService = Depends(get_card_service),
):
    return _found(await service.delete_card(card_id, user.id))


@router.post("/{card_id}/copy", response_model=CardOut, status_code=201)
async def copy_card(
    card_id: str,
    body: CardCopy,
    user: CurrentUser = Depends(get_current_user),
    service: CardService = Depends(get_card_service),
):
    return _found(await service.copy_card(card_id, body.list_id, user.id, title=body.title))


@router.post("/{card_id}/labels", response_model=CardLabelOut)
async def add_label(
    card_id: str,
    body: LabelAttach,
    user: CurrentUser = Depends(get_current_user),
    service: CardService = Depends(get_card_service),
):
    return _found(await service.add_label(card_id, body.label_id, user.id))


@router.delete("/{card_id}/labels/{label_id}", response_model=Confirmation)
async def remove_label(
    card_id: str,
    label_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: CardService = Depends(get_card_service),
):
    return _found(await service.remove_label(card_id, label_id, user.id))


@router.post("/{card_id}/members", response_model=CardMemberOut)
async def add_member(
    card_id: str,
    body: MemberAttach,
    user: CurrentUser = Depends(get_current_user),
    service: CardService = Depends(get_card_service),
):
    return _found(await service.add_member(card_id, body.user_id, user.id))


@router.delete("/{card_id}/members/{user_id}", response_model=Confirmation)
async def remove_member(
    card_id: str,
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: CardService = Depends(get_card_service),
):
    return _found(await service.remove_member(card_id, user_id, user.id))


@router.get("/{card_id}/activity", response_model=List[ActivityEntry])
async def card_activity(
    card_id: str,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    service: CardService = Depends(get_card_service),
):
    return _found(await service.get_card_activity(card_id, user.id, limit=limit, offset=offset))
