# tests/test_ordering.py — Order keys inside sibling sets
import pytest
import pytest_asyncio
from sqlalchemy import select

from errors import NotFound, ValidationFailed
from models import Project, Module, KanbanColumn, Task, ProjectMember, ProjectRole
from ordering import next_order_index, reorder_siblings, move_task, move_tasks
from store import ProjectStore, MemberStore, ModuleStore, ColumnStore, TaskStore


@pytest_asyncio.fixture
async def board(db_session, test_user):
    """A module with three columns; returns (module, [columns], reporter)"""
    project = await ProjectStore.save(db_session, Project(name="Demo", owner_id=test_user.id))
    reporter = await MemberStore.save(db_session, ProjectMember(
        project_id=project.id, user_id=test_user.id, project_role=ProjectRole.PROJECT_MANAGER,
    ))
    module = await ModuleStore.save(db_session, Module(name="Backlog", project_id=project.id))
    columns = [
        await ColumnStore.save(db_session, KanbanColumn(name=name, module_id=module.id))
        for name in ("To Do", "In Progress", "Done")
    ]
    await db_session.commit()
    return module, columns, reporter


async def _new_task(db_session, module, column, reporter, title, index=None) -> Task:
    return await TaskStore.save(db_session, Task(
        title=title, module_id=module.id, column_id=column.id,
        reporter_id=reporter.id, task_order_index=index,
    ))


async def _column_order(db_session, module):
    result = await db_session.execute(
        select(KanbanColumn.name).where(KanbanColumn.module_id == module.id).order_by(KanbanColumn.order_index)
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
class TestNextOrderIndex:
    async def test_empty_set_starts_at_zero(self, db_session, test_user):
        project = await ProjectStore.save(db_session, Project(name="Demo", owner_id=test_user.id))
        module = await ModuleStore.save(db_session, Module(name="Empty", project_id=project.id))
        assert await next_order_index(db_session, KanbanColumn, module.id) == 0

    async def test_max_plus_one(self, board, db_session):
        module, columns, reporter = board
        assert [c.order_index for c in columns] == [0, 1, 2]
        assert await next_order_index(db_session, KanbanColumn, module.id) == 3

        await _new_task(db_session, module, columns[0], reporter, "A", index=7)
        assert await next_order_index(db_session, Task, columns[0].id) == 8
        assert await next_order_index(db_session, Task, columns[1].id) == 0


@pytest.mark.asyncio
class TestReorderSiblings:
    async def test_reorder_reproduces_sequence(self, board, db_session):
        module, (todo, doing, done), _ = board
        await reorder_siblings(db_session, KanbanColumn, [(done.id, 0), (todo.id, 1), (doing.id, 2)])
        assert await _column_order(db_session, module) == ["Done", "To Do", "In Progress"]

    async def test_reorder_is_idempotent(self, board, db_session):
        module, (todo, doing, done), _ = board
        items = [(doing.id, 0), (done.id, 1), (todo.id, 2)]
        await reorder_siblings(db_session, KanbanColumn, items)
        first = await _column_order(db_session, module)
        await reorder_siblings(db_session, KanbanColumn, items)
        assert await _column_order(db_session, module) == first == ["In Progress", "Done", "To Do"]

    async def test_unknown_id_writes_nothing(self, board, db_session):
        module, (todo, doing, done), _ = board
        with pytest.raises(NotFound):
            await reorder_siblings(db_session, KanbanColumn, [(done.id, 0), ("ghost", 1)])
        assert [todo.order_index, doing.order_index, done.order_index] == [0, 1, 2]

    async def test_duplicate_ids_rejected(self, board, db_session):
        _, (todo, _, _), _ = board
        with pytest.raises(ValidationFailed):
            await reorder_siblings(db_session, KanbanColumn, [(todo.id, 0), (todo.id, 1)])

    async def test_empty_batch(self, board, db_session):
        assert await reorder_siblings(db_session, KanbanColumn, []) == 0

    async def test_reorder_tasks_in_column(self, board, db_session):
        module, (todo, _, _), reporter = board
        a = await _new_task(db_session, module, todo, reporter, "A")
        b = await _new_task(db_session, module, todo, reporter, "B")
        await reorder_siblings(db_session, Task, [(b.id, 0), (a.id, 1)])
        titles = [t.title for t in await TaskStore.find_all_by_column(db_session, todo.id)]
        assert titles == ["B", "A"]


@pytest.mark.asyncio
class TestMoveTask:
    async def test_move_sets_column(self, board, db_session):
        module, (todo, doing, _), reporter = board
        task = await _new_task(db_session, module, todo, reporter, "A")
        moved = await move_task(db_session, task.id, doing.id, 4)
        assert moved.column_id == doing.id
        assert moved.task_order_index == 4

        reloaded = await TaskStore.find_by_id(db_session, task.id)
        assert reloaded.column_id == doing.id

    async def test_move_appends_without_index(self, board, db_session):
        module, (todo, doing, _), reporter = board
        await _new_task(db_session, module, doing, reporter, "Existing")
        task = await _new_task(db_session, module, todo, reporter, "A")
        moved = await move_task(db_session, task.id, doing.id)
        assert moved.task_order_index == 1

    async def test_move_unknown_task_or_column(self, board, db_session):
        module, (todo, _, _), reporter = board
        task = await _new_task(db_session, module, todo, reporter, "A")
        with pytest.raises(NotFound):
            await move_task(db_session, "ghost", todo.id, 0)
        with pytest.raises(NotFound):
            await move_task(db_session, task.id, "ghost", 0)

    async def test_move_tasks_batch(self, board, db_session):
        module, (todo, doing, done), reporter = board
        a = await _new_task(db_session, module, todo, reporter, "A")
        b = await _new_task(db_session, module, todo, reporter, "B")
        count = await move_tasks(db_session, [(a.id, done.id, 1), (b.id, done.id, 0)])
        assert count == 2
        titles = [t.title for t in await TaskStore.find_all_by_column(db_session, done.id)]
        assert titles == ["B", "A"]

    async def test_move_tasks_unknown_column_writes_nothing(self, board, db_session):
        module, (todo, _, done), reporter = board
        a = await _new_task(db_session, module, todo, reporter, "A")
        with pytest.raises(NotFound):
            await move_tasks(db_session, [(a.id, done.id, 0), (a.id + "x", "ghost", 1)])
        assert a.column_id == todo.id
