# tests/test_access.py — Membership and ownership checks
import pytest
import pytest_asyncio

from access import (
    is_project_member, resolve_project_access, require_project_owner,
    resolve_module_access, resolve_column_access, resolve_task_access,
    ensure_columns_in_module, ensure_tasks_in_module,
)
from errors import AccessDenied, NotFound, ValidationFailed
from models import Project, ProjectMember, ProjectRole, Module, KanbanColumn, Task
from store import ProjectStore, MemberStore, ModuleStore, ColumnStore, TaskStore


@pytest_asyncio.fixture
async def workspace(db_session, test_user, other_user):
    """Alice owns a project (no membership row); Bob is a DEVELOPER in it"""
    project = await ProjectStore.save(db_session, Project(name="Demo", owner_id=test_user.id))
    bob = await MemberStore.save(db_session, ProjectMember(
        project_id=project.id, user_id=other_user.id, project_role=ProjectRole.DEVELOPER,
    ))
    module = await ModuleStore.save(db_session, Module(name="Backlog", project_id=project.id))
    column = await ColumnStore.save(db_session, KanbanColumn(name="To Do", module_id=module.id))
    task = await TaskStore.save(db_session, Task(
        title="Draft release notes", module_id=module.id, column_id=column.id, reporter_id=bob.id,
    ))
    await db_session.commit()
    return {"project": project, "module": module, "column": column, "task": task}


@pytest.mark.asyncio
class TestMembership:
    async def test_owner_is_member_without_row(self, workspace, db_session, test_user):
        assert await is_project_member(db_session, workspace["project"].id, test_user.id)

    async def test_member_row(self, workspace, db_session, other_user):
        assert await is_project_member(db_session, workspace["project"].id, other_user.id)

    async def test_stranger(self, workspace, db_session, third_user):
        assert not await is_project_member(db_session, workspace["project"].id, third_user.id)

    async def test_unknown_project(self, db_session, test_user):
        assert not await is_project_member(db_session, "nope", test_user.id)


@pytest.mark.asyncio
class TestResolvers:
    async def test_project_access(self, workspace, db_session, other_user, third_user):
        project = await resolve_project_access(db_session, workspace["project"].id, other_user.id)
        assert project.id == workspace["project"].id
        with pytest.raises(AccessDenied):
            await resolve_project_access(db_session, workspace["project"].id, third_user.id)
        with pytest.raises(NotFound):
            await resolve_project_access(db_session, "nope", other_user.id)

    async def test_owner_only(self, workspace, db_session, test_user, other_user):
        await require_project_owner(db_session, workspace["project"].id, test_user.id)
        with pytest.raises(AccessDenied):
            await require_project_owner(db_session, workspace["project"].id, other_user.id)
        with pytest.raises(NotFound):
            await require_project_owner(db_session, "nope", test_user.id)

    async def test_chain_resolves_to_project(self, workspace, db_session, other_user, third_user):
        assert (await resolve_module_access(db_session, workspace["module"].id, other_user.id)).id == workspace["module"].id
        assert (await resolve_column_access(db_session, workspace["column"].id, other_user.id)).id == workspace["column"].id
        assert (await resolve_task_access(db_session, workspace["task"].id, other_user.id)).id == workspace["task"].id

        for resolve, key in (
            (resolve_module_access, "module"),
            (resolve_column_access, "column"),
            (resolve_task_access, "task"),
        ):
            with pytest.raises(AccessDenied):
                await resolve(db_session, workspace[key].id, third_user.id)
            with pytest.raises(NotFound):
                await resolve(db_session, "nope", other_user.id)

    async def test_not_found_is_a_validation_failure(self):
        # Both map to HTTP 400
        assert issubclass(NotFound, ValidationFailed)


@pytest.mark.asyncio
class TestContainment:
    async def test_columns_in_module(self, workspace, db_session):
        module = workspace["module"]
        await ensure_columns_in_module(db_session, [workspace["column"].id], module.id)
        await ensure_columns_in_module(db_session, [], module.id)

        other = await ModuleStore.save(db_session, Module(name="Other", project_id=workspace["project"].id))
        with pytest.raises(ValidationFailed):
            await ensure_columns_in_module(db_session, [workspace["column"].id], other.id)
        with pytest.raises(NotFound):
            await ensure_columns_in_module(db_session, ["ghost"], module.id)

    async def test_tasks_in_module(self, workspace, db_session):
        await ensure_tasks_in_module(db_session, [workspace["task"].id], workspace["module"].id)
        with pytest.raises(ValidationFailed):
            await ensure_tasks_in_module(db_session, [workspace["task"].id], "another-module")
