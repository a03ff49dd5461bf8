# schemas.py — Typed domain records returned by the service layer
# Every store row passes through model_validate() before leaving a service,
# so these classes (not the query projection) define the response shape.
from datetime import datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field

from models import UserRole, MemberRole


class Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Boards ---

class LabelOut(Record):
    id: str
    board_id: str
    name: str
    color: str


class CardLabelOut(Record):
    card_id: str
    label_id: str


class CardMemberOut(Record):
    card_id: str
    user_id: str


class MemberBrief(Record):
    id: str
    username: str
    avatar_url: Optional[str] = None


class UserDirectoryEntry(MemberBrief):
    email: str


class BoardOut(Record):
    id: str
    title: str
    background_color: Optional[str] = None
    background_image: Optional[str] = None
    owner_id: str
    organization_id: Optional[str] = None
    is_starred: bool = False
    created_at: datetime


class BoardCreated(BoardOut):
    labels: List[LabelOut] = []


class CardOut(Record):
    id: str
    list_id: str
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    position: float
    created_at: datetime


class CardSummary(CardOut):
    labels: List[LabelOut] = []
    members: List[MemberBrief] = []


class ListOut(Record):
    id: str
    board_id: str
    title: str
    position: float
    created_at: datetime


class ListWithCards(ListOut):
    cards: List[CardSummary] = []


class BoardDetail(BoardOut):
    lists: List[ListWithCards] = []
    labels: List[LabelOut] = []


class StarState(BaseModel):
    is_starred: bool


# --- Checklists ---

class ChecklistItemOut(Record):
    id: str
    checklist_id: str
    content: str
    is_completed: bool
    position: float


class ChecklistOut(Record):
    id: str
    card_id: str
    title: str
    position: float


class ChecklistWithItems(ChecklistOut):
    items: List[ChecklistItemOut] = []


class CardDetail(CardSummary):
    board_id: str
    checklists: List[ChecklistWithItems] = []


# --- Organizations ---

class OrganizationOut(Record):
    id: str
    name: str
    slug: str
    logo_url: Optional[str] = None
    created_at: datetime


class UserOrganization(OrganizationOut):
    role: MemberRole


class OrganizationMemberOut(Record):
    id: str
    username: str
    email: str
    avatar_url: Optional[str] = None
    role: MemberRole
    joined_at: Optional[datetime] = None


class Confirmation(BaseModel):
    success: bool = True
    message: str


# --- Activity & admin audit ---

class ActivityEntry(Record):
    id: int
    user_id: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    organization_id: Optional[str] = None
    board_id: Optional[str] = None
    entity_type: str
    entity_id: str
    action_type: str
    details: Optional[Dict[str, Any]] = None
    created_at: datetime


class AdminAuditEntry(Record):
    id: int
    admin_user_id: Optional[str] = None
    admin_username: Optional[str] = None
    admin_email: Optional[str] = None
    action_type: str
    target_entity_type: str
    target_entity_id: str
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


# --- Admin ---

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class AdminUserOut(Record):
    id: str
    username: str
    email: str
    avatar_url: Optional[str] = None
    role: UserRole
    is_suspended: bool
    created_at: datetime


class AdminUserDetail(AdminUserOut):
    auth_provider: str = "local"
    organization_count: int = 0
    board_count: int = 0


class UserPage(BaseModel):
    users: List[AdminUserOut]
    pagination: Pagination


class AdminOrganizationOut(OrganizationOut):
    member_count: int = 0
    board_count: int = 0


class AdminOrganizationDetail(AdminOrganizationOut):
    members: List[OrganizationMemberOut] = []


class OrganizationPage(BaseModel):
    organizations: List[AdminOrganizationOut]
    pagination: Pagination


class AuditLogPage(BaseModel):
    logs: List[AdminAuditEntry]
    pagination: Pagination


class GrowthPoint(BaseModel):
    date: str
    count: int


class PlatformAnalytics(BaseModel):
    total_users: int
    active_users: int
    suspended_users: int
    total_organizations: int
    total_boards: int
    total_cards: int
    recent_signups: int
    user_growth: List[GrowthPoint] = []


def paginate(page: int, limit: int, total: int) -> Pagination:
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=(total + limit - 1) // limit if limit else 0,
    )
