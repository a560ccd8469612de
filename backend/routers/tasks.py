# routers/tasks.py — Tasks on a module's Kanban board
# Creating a task is the one place an owner without a membership row gets
# one: a PROJECT_MANAGER row is added before the task records its reporter.
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from access import (
    is_project_member, resolve_module_access, resolve_task_access,
    ensure_columns_in_module, ensure_tasks_in_module,
)
from auth import get_current_user, CurrentUser
from database import get_db_session
from errors import AccessDenied, NotFound, ValidationFailed
from models import Project, ProjectMember, ProjectRole, Task
from ordering import move_tasks
from schemas import ok, many, task_out
from store import ColumnStore, MemberStore, ModuleStore, TaskStore

logger = logging.getLogger("taskboard.tasks")

router = APIRouter(prefix="/api", tags=["Tasks"])


# ============================================================
# SCHEMAS
# ============================================================

class TaskCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    module_id: str = Field(..., alias="moduleId", min_length=1)
    column_id: str = Field(..., alias="columnId", min_length=1)
    description: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[date] = Field(None, alias="dueDate")


class TaskUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    assignee_id: Optional[str] = Field(None, alias="assigneeId")
    due_date: Optional[date] = Field(None, alias="dueDate")


class TaskPosition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    column_id: str = Field(..., alias="columnId")
    order_index: int = Field(..., alias="orderIndex")


class TaskReorder(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    module_id: str = Field(..., alias="moduleId", min_length=1)
    updates: List[TaskPosition]


# ============================================================
# HELPERS
# ============================================================

async def _reporter_for(db: AsyncSession, project_id: str, user_id: str) -> ProjectMember:
    """Membership row of the acting user, provisioning one for the owner"""
    member = await MemberStore.find_by_project_and_user(db, project_id, user_id)
    if member is not None:
        return member

    project = await db.get(Project, project_id)
    if project is None or project.owner_id != user_id:
        raise AccessDenied()

    member = ProjectMember(
        project_id=project_id, user_id=user_id, project_role=ProjectRole.PROJECT_MANAGER,
    )
    await MemberStore.save(db, member)
    logger.info(f"Provisioned owner membership for {user_id} in project {project_id}")
    return member


# ============================================================
# ENDPOINTS
# ============================================================

@router.get("/modules/{module_id}/tasks")
async def list_tasks(
    module_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_module_access(db, module_id, user.id)
    tasks = await TaskStore.find_all_by_module(db, module_id)
    return ok(many(task_out, tasks))


@router.post("/tasks")
async def create_task(
    data: TaskCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    module = await ModuleStore.find_by_id(db, data.module_id)
    if module is None:
        raise NotFound("Module not found.")
    reporter = await _reporter_for(db, module.project_id, user.id)

    column = await ColumnStore.find_by_id(db, data.column_id)
    if column is None:
        raise NotFound("Column not found.")
    if column.module_id != module.id:
        raise ValidationFailed("Column does not belong to this module.")

    task = Task(
        title=data.title,
        module_id=module.id,
        column_id=column.id,
        reporter_id=reporter.id,
        description=data.description,
        priority=data.priority,
        due_date=data.due_date,
    )
    await TaskStore.save(db, task)
    await db.commit()
    return ok(task_out(task))


@router.patch("/tasks/reorder")
async def reorder_tasks(
    data: TaskReorder,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Persist task positions after a drag and drop, possibly across columns"""
    await resolve_module_access(db, data.module_id, user.id)
    await ensure_tasks_in_module(db, [u.id for u in data.updates], data.module_id)
    await ensure_columns_in_module(db, sorted({u.column_id for u in data.updates}), data.module_id)

    moved = await move_tasks(db, [(u.id, u.column_id, u.order_index) for u in data.updates])
    await db.commit()

    logger.info(f"{moved} tasks reordered in module {data.module_id} by {user.id}")
    tasks = await TaskStore.find_all_by_module(db, data.module_id)
    return ok(many(task_out, tasks))


@router.put("/tasks/{task_id}")
async def update_task(
    task_id: str,
    data: TaskUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    task = await resolve_task_access(db, task_id, user.id)
    fields = data.model_fields_set

    if "title" in fields:
        task.title = data.title
    if "description" in fields:
        task.description = data.description
    if "priority" in fields:
        task.priority = data.priority
    if "due_date" in fields:
        task.due_date = data.due_date
    if "assignee_id" in fields:
        if data.assignee_id is not None:
            module = await ModuleStore.find_by_id(db, task.module_id)
            if not await is_project_member(db, module.project_id, data.assignee_id):
                raise ValidationFailed("Assignee must be a member of the project.")
        task.assignee_id = data.assignee_id

    await TaskStore.save(db, task)
    await db.commit()
    return ok(task_out(task))


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_task_access(db, task_id, user.id)
    await TaskStore.delete(db, task_id)
    await db.commit()
    return ok(message="Task deleted.")
