# store.py — Persistence operations for every record kind
# - save() inserts new records and updates existing ones in place
# - Only mutable fields are copied on update; ids, parent references and
#   created_at are fixed once a record exists
# - Column/Task inserts without an order key are appended to their sibling set
# - delete() of a record that does not exist raises NotFound for every kind
#
# Nothing here commits: routers commit once per logical operation.
from typing import Awaitable, Callable, List, Optional, Sequence

from sqlalchemy import select, delete as sql_delete, or_, inspect
from sqlalchemy.ext.asyncio import AsyncSession

from errors import NotFound, ValidationFailed
from models import (
    User, UserSession, Project, ProjectMember, Module, KanbanColumn, Task,
    normalize_email,
)
from ordering import next_order_index


async def _save(
    db: AsyncSession,
    record,
    mutable: Sequence[str],
    immutable: Sequence[str],
    before_insert: Optional[Callable[[AsyncSession, object], Awaitable[None]]] = None,
):
    """Insert-or-update shared by every store"""
    model = type(record)
    state = inspect(record)

    if state.persistent:
        for name in immutable:
            if state.attrs[name].history.has_changes():
                raise ValidationFailed(f"{model.__name__} {name} cannot be changed.")
        await db.flush()
        return record

    existing = await db.get(model, record.id)
    if existing is None:
        if before_insert is not None:
            await before_insert(db, record)
        db.add(record)
        await db.flush()
        return record

    for name in immutable:
        value = getattr(record, name)
        if value is not None and value != getattr(existing, name):
            raise ValidationFailed(f"{model.__name__} {name} cannot be changed.")
    for name in mutable:
        value = getattr(record, name)
        if value is None and not model.__table__.c[name].nullable:
            continue
        setattr(existing, name, value)
    await db.flush()
    return existing


async def _delete(db: AsyncSession, model, record_id: str, message: str) -> None:
    record = await db.get(model, record_id)
    if record is None:
        raise NotFound(message)
    await db.delete(record)
    await db.flush()


# ============================================================
# USERS & SESSIONS
# ============================================================

class UserStore:

    @staticmethod
    async def find_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
        return await db.get(User, user_id)

    @staticmethod
    async def find_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    @staticmethod
    async def search_by_email(
        db: AsyncSession, query: str, exclude_user_id: str, limit: int = 5,
    ) -> List[User]:
        stmt = (
            select(User)
            .where(User.email.icontains(query, autoescape=True), User.id != exclude_user_id)
            .order_by(User.email)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def save(db: AsyncSession, user: User) -> User:
        return await _save(
            db, user,
            mutable=("password_hash",),
            immutable=("email", "created_at"),
        )

    @staticmethod
    async def update_password(db: AsyncSession, user_id: str, password_hash: str) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFound("User not found.")
        user.password_hash = password_hash
        await db.flush()
        return user


class SessionStore:

    @staticmethod
    async def find_by_id(db: AsyncSession, session_id: str) -> Optional[UserSession]:
        return await db.get(UserSession, session_id)

    @staticmethod
    async def find_user(db: AsyncSession, session_id: str) -> Optional[User]:
        stmt = (
            select(User)
            .join(UserSession, UserSession.user_id == User.id)
            .where(UserSession.id == session_id)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def save(db: AsyncSession, session: UserSession) -> UserSession:
        db.add(session)
        await db.flush()
        return session

    @staticmethod
    async def delete(db: AsyncSession, session_id: str) -> None:
        await _delete(db, UserSession, session_id, "Session not found.")

    @staticmethod
    async def delete_all_for_user(db: AsyncSession, user_id: str) -> int:
        result = await db.execute(
            sql_delete(UserSession)
            .where(UserSession.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


# ============================================================
# PROJECTS & MEMBERSHIP
# ============================================================

class ProjectStore:

    @staticmethod
    async def find_by_id(db: AsyncSession, project_id: str) -> Optional[Project]:
        return await db.get(Project, project_id)

    @staticmethod
    async def find_all_for_user(db: AsyncSession, user_id: str) -> List[Project]:
        """Projects the user owns or belongs to, newest first"""
        member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        stmt = (
            select(Project)
            .where(or_(Project.owner_id == user_id, Project.id.in_(member_of)))
            .order_by(Project.created_at.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def save(db: AsyncSession, project: Project) -> Project:
        return await _save(
            db, project,
            mutable=("name", "description"),
            immutable=("owner_id", "created_at"),
        )

    @staticmethod
    async def delete(db: AsyncSession, project_id: str) -> None:
        await _delete(db, Project, project_id, "Project not found.")


class MemberStore:

    @staticmethod
    async def find_by_id(db: AsyncSession, member_id: str) -> Optional[ProjectMember]:
        return await db.get(ProjectMember, member_id)

    @staticmethod
    async def find_by_project_and_user(
        db: AsyncSession, project_id: str, user_id: str,
    ) -> Optional[ProjectMember]:
        stmt = select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_by_project(db: AsyncSession, project_id: str) -> list:
        """Membership rows joined with the member's name and email"""
        stmt = (
            select(ProjectMember, User.full_name, User.email)
            .join(User, User.id == ProjectMember.user_id)
            .where(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.created_at)
        )
        result = await db.execute(stmt)
        return list(result.all())

    @staticmethod
    async def save(db: AsyncSession, member: ProjectMember) -> ProjectMember:
        return await _save(
            db, member,
            mutable=("project_role",),
            immutable=("project_id", "user_id", "created_at"),
        )

    @staticmethod
    async def delete(db: AsyncSession, project_id: str, user_id: str) -> None:
        member = await MemberStore.find_by_project_and_user(db, project_id, user_id)
        if member is None:
            raise NotFound("Member not found.")
        await db.delete(member)
        await db.flush()


# ============================================================
# MODULES
# ============================================================

class ModuleStore:

    @staticmethod
    async def find_by_id(db: AsyncSession, module_id: str) -> Optional[Module]:
        return await db.get(Module, module_id)

    @staticmethod
    async def find_all_by_project(db: AsyncSession, project_id: str) -> List[Module]:
        stmt = select(Module).where(Module.project_id == project_id).order_by(Module.created_at)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def save(db: AsyncSession, module: Module) -> Module:
        return await _save(
            db, module,
            mutable=("name", "description", "start_date", "end_date"),
            immutable=("project_id", "created_at"),
        )

    @staticmethod
    async def delete(db: AsyncSession, module_id: str) -> None:
        await _delete(db, Module, module_id, "Module not found.")


# ============================================================
# KANBAN
# ============================================================

async def _append_column(db: AsyncSession, column: KanbanColumn) -> None:
    if column.order_index is None:
        column.order_index = await next_order_index(db, KanbanColumn, column.module_id)


async def _append_task(db: AsyncSession, task: Task) -> None:
    if task.task_order_index is None:
        task.task_order_index = await next_order_index(db, Task, task.column_id)


class ColumnStore:

    @staticmethod
    async def find_by_id(db: AsyncSession, column_id: str) -> Optional[KanbanColumn]:
        return await db.get(KanbanColumn, column_id)

    @staticmethod
    async def find_all_by_module(db: AsyncSession, module_id: str) -> List[KanbanColumn]:
        stmt = (
            select(KanbanColumn)
            .where(KanbanColumn.module_id == module_id)
            .order_by(KanbanColumn.order_index, KanbanColumn.created_at)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def save(db: AsyncSession, column: KanbanColumn) -> KanbanColumn:
        return await _save(
            db, column,
            mutable=("name", "order_index", "is_done_column"),
            immutable=("module_id", "created_at"),
            before_insert=_append_column,
        )

    @staticmethod
    async def delete(db: AsyncSession, column_id: str) -> None:
        await _delete(db, KanbanColumn, column_id, "Column not found.")


class TaskStore:

    @staticmethod
    async def find_by_id(db: AsyncSession, task_id: str) -> Optional[Task]:
        return await db.get(Task, task_id)

    @staticmethod
    async def find_all_by_module(db: AsyncSession, module_id: str) -> List[Task]:
        stmt = (
            select(Task)
            .where(Task.module_id == module_id)
            .order_by(Task.task_order_index, Task.created_at)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def find_all_by_column(db: AsyncSession, column_id: str) -> List[Task]:
        stmt = (
            select(Task)
            .where(Task.column_id == column_id)
            .order_by(Task.task_order_index, Task.created_at)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def save(db: AsyncSession, task: Task) -> Task:
        return await _save(
            db, task,
            mutable=(
                "title", "description", "column_id", "priority",
                "task_order_index", "assignee_id", "due_date",
            ),
            immutable=("module_id", "reporter_id", "created_at"),
            before_insert=_append_task,
        )

    @staticmethod
    async def delete(db: AsyncSession, task_id: str) -> None:
        await _delete(db, Task, task_id, "Task not found.")
