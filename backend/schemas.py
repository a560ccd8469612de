# schemas.py — Response shapes shared by the routers
# Every response is wrapped in the envelope {ok, data?, message?}.
# Entity payloads are snake_case records; the user summary is camelCase
# because the browser client stores it as-is.
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import User, Project, ProjectMember, Module, KanbanColumn, Task


def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, (datetime, date)) else str(dt)


def _enum(value) -> Optional[str]:
    if value is None:
        return None
    return value.value if hasattr(value, "value") else str(value)


def ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"ok": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body


# ============================================================
# USERS
# ============================================================

class UserSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    full_name: str = Field(serialization_alias="fullName")
    role: str


class UserSearchResult(BaseModel):
    id: str
    email: str
    full_name: str


def user_summary(user) -> dict:
    """Works for both a User row and an auth.CurrentUser"""
    role = getattr(user, "role", None) or _enum(user.system_role)
    return UserSummary(
        id=user.id, email=user.email, full_name=user.full_name, role=role,
    ).model_dump(by_alias=True)


def user_search_result(user: User) -> dict:
    return UserSearchResult(id=user.id, email=user.email, full_name=user.full_name).model_dump()


# ============================================================
# PROJECTS
# ============================================================

class ProjectOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    owner_id: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MemberOut(BaseModel):
    id: str
    user_id: str
    project_role: str
    full_name: str
    email: str


def project_out(project: Project) -> dict:
    return ProjectOut(
        id=project.id,
        name=project.name,
        description=project.description,
        owner_id=project.owner_id,
        created_at=_ts(project.created_at),
        updated_at=_ts(project.updated_at),
    ).model_dump()


def member_out(member: ProjectMember, full_name: str, email: str) -> dict:
    return MemberOut(
        id=member.id,
        user_id=member.user_id,
        project_role=_enum(member.project_role),
        full_name=full_name,
        email=email,
    ).model_dump()


# ============================================================
# MODULES & KANBAN
# ============================================================

class ModuleOut(BaseModel):
    id: str
    project_id: str
    name: str
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ColumnOut(BaseModel):
    id: str
    module_id: str
    name: str
    order_index: int
    is_done_column: bool = False
    created_at: Optional[str] = None


class TaskOut(BaseModel):
    id: str
    module_id: str
    column_id: str
    reporter_id: Optional[str] = None
    assignee_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    priority: str
    task_order_index: int
    due_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


def module_out(module: Module) -> dict:
    return ModuleOut(
        id=module.id,
        project_id=module.project_id,
        name=module.name,
        description=module.description,
        start_date=_ts(module.start_date),
        end_date=_ts(module.end_date),
        created_at=_ts(module.created_at),
        updated_at=_ts(module.updated_at),
    ).model_dump()


def column_out(column: KanbanColumn) -> dict:
    return ColumnOut(
        id=column.id,
        module_id=column.module_id,
        name=column.name,
        order_index=column.order_index,
        is_done_column=column.is_done_column or False,
        created_at=_ts(column.created_at),
    ).model_dump()


def task_out(task: Task) -> dict:
    return TaskOut(
        id=task.id,
        module_id=task.module_id,
        column_id=task.column_id,
        reporter_id=task.reporter_id,
        assignee_id=task.assignee_id,
        title=task.title,
        description=task.description,
        priority=_enum(task.priority),
        task_order_index=task.task_order_index,
        due_date=_ts(task.due_date),
        created_at=_ts(task.created_at),
        updated_at=_ts(task.updated_at),
    ).model_dump()


def many(converter, records: List[Any]) -> List[dict]:
    return [converter(r) for r in records]
