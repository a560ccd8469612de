# access.py — Project membership checks
# Every module, column and task resolves up the hierarchy to one project;
# reading or writing any of them requires the caller to own that project or
# hold a membership row in it. Renaming or deleting the project and managing
# its members is reserved for the owner.
from typing import Sequence

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from errors import AccessDenied, NotFound, ValidationFailed
from models import Project, ProjectMember, Module, KanbanColumn, Task


async def is_project_member(db: AsyncSession, project_id: str, user_id: str) -> bool:
    """Owner, or a ProjectMember row for (project, user)"""
    member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
    stmt = select(Project.id).where(
        Project.id == project_id,
        or_(Project.owner_id == user_id, Project.id.in_(member_of)),
    )
    result = await db.execute(stmt)
    return result.first() is not None


async def resolve_project_access(db: AsyncSession, project_id: str, user_id: str) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found.")
    if not await is_project_member(db, project_id, user_id):
        raise AccessDenied()
    return project


async def require_project_owner(db: AsyncSession, project_id: str, user_id: str) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found.")
    if project.owner_id != user_id:
        raise AccessDenied("Only the project owner can do this.")
    return project


async def resolve_module_access(db: AsyncSession, module_id: str, user_id: str) -> Module:
    module = await db.get(Module, module_id)
    if module is None:
        raise NotFound("Module not found.")
    if not await is_project_member(db, module.project_id, user_id):
        raise AccessDenied()
    return module


async def resolve_column_access(db: AsyncSession, column_id: str, user_id: str) -> KanbanColumn:
    column = await db.get(KanbanColumn, column_id)
    if column is None:
        raise NotFound("Column not found.")
    await resolve_module_access(db, column.module_id, user_id)
    return column


async def resolve_task_access(db: AsyncSession, task_id: str, user_id: str) -> Task:
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found.")
    await resolve_module_access(db, task.module_id, user_id)
    return task


# ============================================================
# CONTAINMENT
# ============================================================

async def _ensure_contained(db: AsyncSession, model, parent_attr, ids: Sequence[str], module_id: str, label: str):
    if not ids:
        return
    stmt = select(model.id, parent_attr).where(model.id.in_(list(ids)))
    result = await db.execute(stmt)
    found = {row[0]: row[1] for row in result.all()}
    missing = [i for i in ids if i not in found]
    if missing:
        raise NotFound(f"{label} not found: {', '.join(missing)}")
    if any(parent != module_id for parent in found.values()):
        raise ValidationFailed(f"Every {label.lower()} must belong to this module.")


async def ensure_columns_in_module(db: AsyncSession, column_ids: Sequence[str], module_id: str) -> None:
    """Reject column ids that are unknown or belong to another module"""
    await _ensure_contained(db, KanbanColumn, KanbanColumn.module_id, column_ids, module_id, "Column")


async def ensure_tasks_in_module(db: AsyncSession, task_ids: Sequence[str], module_id: str) -> None:
    await _ensure_contained(db, Task, Task.module_id, task_ids, module_id, "Task")
