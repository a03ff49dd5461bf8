# models.py — Database models for the Taskboard API
# - UUID string primary keys for entities, integer keys for append-only logs
# - 3-tier platform roles (super_admin, admin, user)
# - Organisation membership with member/admin roles
# - Fractional positions on lists, cards, checklists and checklist items
# - Every ownership edge cascades at the database level

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, JSON, Boolean, Integer, Float,
    Enum as SQLEnum, ForeignKey, Text, Index,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, PyEnum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    USER = "user"


class MemberRole(str, PyEnum):
    ADMIN = "admin"
    MEMBER = "member"


class EntityType(str, PyEnum):
    BOARD = "board"
    LIST = "list"
    CARD = "card"
    ORGANIZATION = "organization"
    MEMBER = "member"
    USER = "user"


class ActionType(str, PyEnum):
    CREATE = "create"
    UPDATE = "update"
    RENAME = "rename"
    MOVE = "move"
    DELETE = "delete"
    COPY = "copy"
    CHANGE_BACKGROUND = "change_background"
    ADD_LABEL = "add_label"
    REMOVE_LABEL = "remove_label"
    ADD_MEMBER = "add_member"
    REMOVE_MEMBER = "remove_member"
    CHANGE_ROLE = "change_role"
    ADD_CHECKLIST = "add_checklist"
    REMOVE_CHECKLIST = "remove_checklist"
    COMPLETE_ITEM = "complete_item"
    UNCOMPLETE_ITEM = "uncomplete_item"


class AdminActionType(str, PyEnum):
    SUSPEND_USER = "suspend_user"
    ACTIVATE_USER = "activate_user"
    CHANGE_ROLE = "change_role"
    DELETE_USER = "delete_user"
    DELETE_ORGANIZATION = "delete_organization"


# ============================================================
# USERS
# ============================================================

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_uuid)
    username = Column(String, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    avatar_url = Column(String, nullable=True)
    password_hash = Column(String, nullable=True)  # NULL for federated-only accounts
    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False, index=True)
    is_suspended = Column(Boolean, default=False, nullable=False, index=True)
    auth_provider = Column(String, default="local", nullable=False)
    external_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ============================================================
# ORGANIZATIONS
# ============================================================

class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, nullable=False, index=True)
    slug = Column(String, unique=True, nullable=False, index=True)
    logo_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class OrganizationMember(Base):
    """Membership roster row; an organization always keeps at least one admin"""
    __tablename__ = "organization_members"

    organization_id = Column(
        String, ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True,
    )
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role = Column(SQLEnum(MemberRole), default=MemberRole.MEMBER, nullable=False)
    joined_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_org_member_role", "organization_id", "role"),
        Index("idx_org_member_user", "user_id"),
    )


# ============================================================
# BOARDS
# ============================================================

class Board(Base):
    """Personal board when organization_id is NULL, otherwise organization-scoped"""
    __tablename__ = "boards"

    id = Column(String, primary_key=True, default=new_uuid)
    title = Column(String, nullable=False)
    background_color = Column(String, nullable=True, default="#0079bf")
    background_image = Column(String, nullable=True)
    owner_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(
        String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class StarredBoard(Base):
    __tablename__ = "starred_boards"

    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    board_id = Column(String, ForeignKey("boards.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class Label(Base):
    """Board-scoped tag"""
    __tablename__ = "labels"

    id = Column(String, primary_key=True, default=new_uuid)
    board_id = Column(String, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    color = Column(String, nullable=False, default="#6366f1")
    created_at = Column(DateTime(timezone=True), default=utcnow)


class BoardList(Base):
    """Column of cards on a board"""
    __tablename__ = "lists"

    id = Column(String, primary_key=True, default=new_uuid)
    board_id = Column(String, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    position = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_list_board_pos", "board_id", "position"),
    )


class Card(Base):
    __tablename__ = "cards"

    id = Column(String, primary_key=True, default=new_uuid)
    list_id = Column(String, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    position = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_card_list_pos", "list_id", "position"),
    )


class CardLabel(Base):
    __tablename__ = "card_labels"

    card_id = Column(String, ForeignKey("cards.id", ondelete="CASCADE"), primary_key=True)
    label_id = Column(String, ForeignKey("labels.id", ondelete="CASCADE"), primary_key=True)


class CardMember(Base):
    __tablename__ = "card_members"

    card_id = Column(String, ForeignKey("cards.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)


class Checklist(Base):
    __tablename__ = "checklists"

    id = Column(String, primary_key=True, default=new_uuid)
    card_id = Column(String, ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False, default="Checklist")
    position = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class ChecklistItem(Base):
    __tablename__ = "checklist_items"

    id = Column(String, primary_key=True, default=new_uuid)
    checklist_id = Column(
        String, ForeignKey("checklists.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    content = Column(Text, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    position = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


# ============================================================
# ACTIVITY & ADMIN AUDIT (append-only)
# ============================================================

class ActivityLog(Base):
    """Best-effort record of user-facing changes"""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    organization_id = Column(
        String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    board_id = Column(String, ForeignKey("boards.id", ondelete="CASCADE"), nullable=True, index=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False)
    action_type = Column(String, nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    __table_args__ = (
        Index("idx_activity_entity", "entity_type", "entity_id"),
        Index("idx_activity_board_created", "board_id", "created_at"),
    )


class AdminAuditLog(Base):
    """Transactional record of platform-administrator actions"""
    __tablename__ = "admin_audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    admin_user_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action_type = Column(String, nullable=False, index=True)
    target_entity_type = Column(String, nullable=False)
    target_entity_id = Column(String, nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
