# models.py — Database models for the Taskboard API
# Hierarchy: Project → Module → KanbanColumn → Task
# - UUID string primary keys, generated at construction time
# - Records validate eagerly: a bad value raises ValidationFailed on construction
# - Deleting a project cascades to memberships, modules, columns and tasks

import re
import uuid
from datetime import date, datetime, timezone
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, String, DateTime, Date, Boolean, Integer,
    Enum as SQLEnum, ForeignKey, Text, Index, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship, validates

from errors import ValidationFailed

Base = declarative_base()

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(value):
    """Emails are stored and looked up trimmed and lowercased"""
    if isinstance(value, str):
        return value.strip().lower()
    return value


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


# ============================================================
# ENUMS
# ============================================================

class SystemRole(str, PyEnum):
    USER = "USER"
    ADMIN = "ADMIN"


class ProjectRole(str, PyEnum):
    PROJECT_MANAGER = "PROJECT_MANAGER"
    DEVELOPER = "DEVELOPER"
    STAKEHOLDER = "STAKEHOLDER"


class TaskPriority(str, PyEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# ============================================================
# VALIDATION HELPERS
# ============================================================

def _check_length(value, min_len: int, max_len: int, message: str) -> str:
    if not isinstance(value, str) or not (min_len <= len(value) <= max_len):
        raise ValidationFailed(message)
    return value


def _check_optional_length(value, max_len: int, message: str):
    if value is None:
        return None
    if not isinstance(value, str) or len(value) > max_len:
        raise ValidationFailed(message)
    return value


def _check_reference(value, message: str) -> str:
    if not value or not isinstance(value, str):
        raise ValidationFailed(message)
    return value


def _check_enum(enum_cls, value, message: str, default=None):
    if value is None and default is not None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationFailed(message)


def _check_order_key(value, message: str):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationFailed(message)
    return value


class Record:
    """Mixin for records that validate on construction.

    Fields listed in ``__required__`` are always routed through their
    validators, so leaving one out fails the same way as passing an empty
    value. ``__defaults__`` fills optional fields the caller did not pass.
    """
    __required__ = ()
    __defaults__ = {}

    def __init__(self, **kwargs):
        if not kwargs.get("id"):
            kwargs["id"] = new_uuid()
        for name in self.__required__:
            kwargs.setdefault(name, None)
        for name, value in self.__defaults__.items():
            kwargs.setdefault(name, value)
        super().__init__(**kwargs)


# ============================================================
# USERS & SESSIONS
# ============================================================

class User(Record, Base):
    __tablename__ = "users"
    __required__ = ("email", "full_name", "password_hash")
    __defaults__ = {"system_role": SystemRole.USER}

    id = Column(String, primary_key=True, default=new_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    password_hash = Column(String, nullable=False)
    system_role = Column(SQLEnum(SystemRole), default=SystemRole.USER, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    @validates("email")
    def _validate_email(self, key, value):
        value = normalize_email(value)
        if not isinstance(value, str) or len(value) > 255 or not EMAIL_PATTERN.match(value):
            raise ValidationFailed("Invalid email address.")
        return value

    @validates("full_name")
    def _validate_full_name(self, key, value):
        return _check_length(value, 2, 255, "Full name must be between 2 and 255 characters.")

    @validates("password_hash")
    def _validate_password_hash(self, key, value):
        if not value or not isinstance(value, str):
            raise ValidationFailed("Password hash is missing.")
        return value

    @validates("system_role")
    def _validate_system_role(self, key, value):
        return _check_enum(SystemRole, value, "Invalid system role.", default=SystemRole.USER)


class UserSession(Base):
    """Server-side half of a login session; the signed cookie carries its id"""
    __tablename__ = "user_sessions"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="sessions")


# ============================================================
# PROJECTS & MEMBERSHIP
# ============================================================

class Project(Record, Base):
    __tablename__ = "projects"
    __required__ = ("name", "owner_id")

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    members = relationship("ProjectMember", back_populates="project", cascade="all, delete-orphan")
    modules = relationship("Module", back_populates="project", cascade="all, delete-orphan")

    @validates("name")
    def _validate_name(self, key, value):
        return _check_length(value, 3, 255, "Project name must be between 3 and 255 characters.")

    @validates("description")
    def _validate_description(self, key, value):
        return _check_optional_length(value, 1000, "Project description cannot exceed 1000 characters.")

    @validates("owner_id")
    def _validate_owner(self, key, value):
        return _check_reference(value, "Project owner is required.")


class ProjectMember(Record, Base):
    __tablename__ = "project_members"
    __required__ = ("project_id", "user_id", "project_role")

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_role = Column(SQLEnum(ProjectRole), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    project = relationship("Project", back_populates="members")
    reported_tasks = relationship("Task", back_populates="reporter", passive_deletes=True)

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_member_project_user"),
    )

    @validates("project_id", "user_id")
    def _validate_refs(self, key, value):
        return _check_reference(value, "Project id, user id and role are required.")

    @validates("project_role")
    def _validate_role(self, key, value):
        return _check_enum(ProjectRole, value, "Invalid project role.")


# ============================================================
# MODULES
# ============================================================

class Module(Record, Base):
    """A task list inside a project; owns one Kanban board"""
    __tablename__ = "modules"
    __required__ = ("name", "project_id")

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    project = relationship("Project", back_populates="modules")
    columns = relationship(
        "KanbanColumn", back_populates="module",
        cascade="all, delete-orphan", order_by="KanbanColumn.order_index",
    )
    tasks = relationship("Task", back_populates="module", cascade="all")

    @validates("name")
    def _validate_name(self, key, value):
        return _check_length(value, 1, 255, "Module name must be between 1 and 255 characters.")

    @validates("description")
    def _validate_description(self, key, value):
        return _check_optional_length(value, 1000, "Module description cannot exceed 1000 characters.")

    @validates("project_id")
    def _validate_project(self, key, value):
        return _check_reference(value, "Project id is required.")

    @validates("start_date", "end_date")
    def _validate_dates(self, key, value):
        if value is not None and not isinstance(value, date):
            raise ValidationFailed(f"{key} must be a date.")
        start = value if key == "start_date" else self.start_date
        end = value if key == "end_date" else self.end_date
        if start is not None and end is not None and end < start:
            raise ValidationFailed("Module end date cannot be before its start date.")
        return value


# ============================================================
# KANBAN
# ============================================================

class KanbanColumn(Record, Base):
    __tablename__ = "kanban_columns"
    __required__ = ("name", "module_id")
    __defaults__ = {"is_done_column": False}

    id = Column(String, primary_key=True, default=new_uuid)
    module_id = Column(String, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    order_index = Column(Integer, nullable=False)  # None until appended by the store
    is_done_column = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    module = relationship("Module", back_populates="columns")
    tasks = relationship("Task", back_populates="column", cascade="all")

    __table_args__ = (
        Index("idx_column_module_order", "module_id", "order_index"),
    )

    @validates("name")
    def _validate_name(self, key, value):
        return _check_length(value, 1, 100, "Column name must be between 1 and 100 characters.")

    @validates("module_id")
    def _validate_module(self, key, value):
        return _check_reference(value, "Module id is required.")

    @validates("order_index")
    def _validate_order_index(self, key, value):
        return _check_order_key(value, "Column order index must be an integer.")

    @validates("is_done_column")
    def _validate_done_flag(self, key, value):
        return bool(value)


class Task(Record, Base):
    __tablename__ = "tasks"
    __required__ = ("title", "module_id", "column_id")
    __defaults__ = {"priority": TaskPriority.MEDIUM}

    id = Column(String, primary_key=True, default=new_uuid)
    module_id = Column(String, ForeignKey("modules.id", ondelete="CASCADE"), nullable=False, index=True)
    column_id = Column(String, ForeignKey("kanban_columns.id", ondelete="CASCADE"), nullable=False, index=True)
    reporter_id = Column(String, ForeignKey("project_members.id", ondelete="SET NULL"), nullable=True)
    assignee_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(SQLEnum(TaskPriority), default=TaskPriority.MEDIUM, nullable=False)
    task_order_index = Column(Integer, nullable=False)  # Order within column
    due_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    module = relationship("Module", back_populates="tasks")
    column = relationship("KanbanColumn", back_populates="tasks")
    reporter = relationship("ProjectMember", back_populates="reported_tasks")
    assignee = relationship("User", foreign_keys=[assignee_id])

    __table_args__ = (
        Index("idx_task_column_order", "column_id", "task_order_index"),
    )

    def __init__(self, **kwargs):
        if "reporter_id" not in kwargs:
            raise ValidationFailed("Task reporter is required.")
        if kwargs.get("priority") is None:
            kwargs.pop("priority", None)
        super().__init__(**kwargs)

    @validates("title")
    def _validate_title(self, key, value):
        return _check_length(value, 1, 255, "Task title is required (max 255 characters).")

    @validates("module_id", "column_id")
    def _validate_container(self, key, value):
        return _check_reference(value, "Task must belong to a module and a column.")

    @validates("reporter_id")
    def _validate_reporter(self, key, value):
        # Null once the reporting member has been removed from the project
        if value is None:
            return None
        return _check_reference(value, "Task reporter is required.")

    @validates("priority")
    def _validate_priority(self, key, value):
        return _check_enum(TaskPriority, value, "Invalid task priority.")

    @validates("task_order_index")
    def _validate_order_index(self, key, value):
        return _check_order_key(value, "Task order index must be an integer.")

    @validates("due_date")
    def _validate_due_date(self, key, value):
        if value is not None and not isinstance(value, date):
            raise ValidationFailed("Task due date must be a date.")
        return value
