# routers/checklists.py — Checklists and checklist items on a card
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from auth import get_current_user, CurrentUser
from dependencies import get_checklist_service
from schemas import ChecklistItemOut, ChecklistOut, ChecklistWithItems
from services.checklists import ChecklistService

router = APIRouter(prefix="/api/v1", tags=["Checklists"])


class ChecklistCreate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)


class ItemCreate(BaseModel):
    content: str = Field(..., min_length=1)


class ItemUpdate(BaseModel):
    content: Optional[str] = Field(default=None, min_length=1)
    is_completed: Optional[bool] = None
    position: Optional[float] = None


@router.post("/cards/{card_id}/checklists", response_model=ChecklistWithItems, status_code=201)
async def create_checklist(
    card_id: str,
    body: ChecklistCreate,
    user: CurrentUser = Depends(get_current_user),
    service: ChecklistService = Depends(get_checklist_service),
):
    checklist = await service.create_checklist(card_id, user.id, title=body.title)
    if not checklist:
        raise HTTPException(status_code=404, detail="Card not found")
    return checklist


@router.delete("/checklists/{checklist_id}", response_model=ChecklistOut)
async def delete_checklist(
    checklist_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ChecklistService = Depends(get_checklist_service),
):
    checklist = await service.delete_checklist(checklist_id, user.id)
    if not checklist:
        raise HTTPException(status_code=404, detail="Checklist not found")
    return checklist


@router.post("/checklists/{checklist_id}/items", response_model=ChecklistItemOut, status_code=201)
async def add_item(
    checklist_id: str,
    body: ItemCreate,
    user: CurrentUser = Depends(get_current_user),
    service: ChecklistService = Depends(get_checklist_service),
):
    item = await service.add_item(checklist_id, body.content, user.id)
    if not item:
        raise HTTPException(status_code=404, detail="Checklist not found")
    return item


@router.patch("/checklist-items/{item_id}", response_model=ChecklistItemOut)
async def update_item(
    item_id: str,
    body: ItemUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: ChecklistService = Depends(get_checklist_service),
):
    item = await service.update_item(item_id, body.model_dump(exclude_unset=True), user.id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found or nothing to update")
    return item


@router.delete("/checklist-items/{item_id}", response_model=ChecklistItemOut)
async def delete_item(
    item_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ChecklistService = Depends(get_checklist_service),
):
    item = await service.delete_item(item_id, user.id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return item
