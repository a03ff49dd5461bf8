# dependencies.py — FastAPI providers wiring sessions into the service layer
# Each request gets one AsyncSession; the activity recorder gets the session
# factory so its writes never share the request's transaction.

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from activity import ActivityRecorder
from database import get_db_session, get_session_factory
from services.admin import AdminService
from services.boards import BoardService
from services.cards import CardService
from services.checklists import ChecklistService
from services.lists import ListService
from services.members import MemberService
from services.organizations import OrganizationService
from services.users import UserDirectoryService


def get_activity_recorder(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> ActivityRecorder:
    return ActivityRecorder(session_factory)


def get_board_service(
    db: AsyncSession = Depends(get_db_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
) -> BoardService:
    return BoardService(db, activity)


def get_list_service(
    db: AsyncSession = Depends(get_db_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
) -> ListService:
    return ListService(db, activity)


def get_card_service(
    db: AsyncSession = Depends(get_db_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
) -> CardService:
    return CardService(db, activity)


def get_checklist_service(
    db: AsyncSession = Depends(get_db_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
) -> ChecklistService:
    return ChecklistService(db, activity)


def get_organization_service(
    db: AsyncSession = Depends(get_db_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
) -> OrganizationService:
    return OrganizationService(db, activity)


def get_member_service(
    db: AsyncSession = Depends(get_db_session),
    activity: ActivityRecorder = Depends(get_activity_recorder),
) -> MemberService:
    return MemberService(db, activity)


def get_admin_service(db: AsyncSession = Depends(get_db_session)) -> AdminService:
    return AdminService(db)


def get_user_directory(db: AsyncSession = Depends(get_db_session)) -> UserDirectoryService:
    return UserDirectoryService(db)
