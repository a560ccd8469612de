# ordering.py — Order keys for Kanban sibling sets
# A sibling set is every column of one module, or every task of one column.
# Order keys only need to sort correctly inside their sibling set: gaps and
# duplicates across unrelated sets are fine, values are never displayed.
#
# Nothing here commits. The caller's transaction covers the whole batch, so
# a failed reorder leaves every sibling untouched.
import logging
from typing import Optional, Sequence, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from errors import NotFound, ValidationFailed
from models import KanbanColumn, Module, Task

logger = logging.getLogger("taskboard.ordering")

# model → (parent reference, order key, parent model)
SIBLING_KEYS = {
    KanbanColumn: (KanbanColumn.module_id, KanbanColumn.order_index, Module),
    Task: (Task.column_id, Task.task_order_index, KanbanColumn),
}


async def next_order_index(db: AsyncSession, model, parent_id: str) -> int:
    """Append position for a new item: max(sibling keys) + 1, or 0 for an empty set.

    The parent row is locked first so two appends into the same sibling set
    cannot read the same maximum (no-op on SQLite, which has no row locks).
    """
    parent_attr, order_attr, parent_model = SIBLING_KEYS[model]
    await db.execute(
        select(parent_model.id).where(parent_model.id == parent_id).with_for_update()
    )
    result = await db.execute(select(func.max(order_attr)).where(parent_attr == parent_id))
    current = result.scalar()
    return (current if current is not None else -1) + 1


def _check_unique(ids: Sequence[str]) -> None:
    if len(set(ids)) != len(ids):
        raise ValidationFailed("Each item may appear only once in a reorder request.")


async def _load_all(db: AsyncSession, model, ids: Sequence[str], label: str) -> dict:
    if not ids:
        return {}
    result = await db.execute(select(model).where(model.id.in_(list(ids))))
    records = {r.id: r for r in result.scalars().all()}
    missing = [i for i in ids if i not in records]
    if missing:
        raise NotFound(f"{label} not found: {', '.join(missing)}")
    return records


async def reorder_siblings(
    db: AsyncSession, model, items: Sequence[Tuple[str, int]],
) -> int:
    """Write the submitted order keys for one sibling set.

    ``items`` is the client's target sequence as (id, new_index) pairs.
    Applying the same sequence twice gives the same order.
    """
    _, order_attr, _ = SIBLING_KEYS[model]
    ids = [item_id for item_id, _ in items]
    _check_unique(ids)

    records = await _load_all(db, model, ids, model.__name__)
    for item_id, new_index in items:
        setattr(records[item_id], order_attr.key, new_index)

    await db.flush()
    logger.info(f"Reordered {len(items)} {model.__tablename__}")
    return len(items)


async def move_task(
    db: AsyncSession, task_id: str, new_column_id: str, new_index: Optional[int] = None,
) -> Task:
    """Move one task into a column at new_index (appended when None).

    Column-to-module containment is not checked here; callers verify it
    against the module they authorised.
    """
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found.")
    column = await db.get(KanbanColumn, new_column_id)
    if column is None:
        raise NotFound("Column not found.")

    if new_index is None:
        new_index = await next_order_index(db, Task, new_column_id)
    task.column_id = new_column_id
    task.task_order_index = new_index

    await db.flush()
    return task


async def move_tasks(
    db: AsyncSession, updates: Sequence[Tuple[str, str, int]],
) -> int:
    """Batch form of move_task used by drag and drop: (task id, column id, new index)"""
    ids = [task_id for task_id, _, _ in updates]
    _check_unique(ids)

    tasks = await _load_all(db, Task, ids, "Task")
    await _load_all(db, KanbanColumn, sorted({col_id for _, col_id, _ in updates}), "Column")

    for task_id, column_id, new_index in updates:
        task = tasks[task_id]
        task.column_id = column_id
        task.task_order_index = new_index

    await db.flush()
    logger.info(f"Moved {len(updates)} tasks")
    return len(updates)
