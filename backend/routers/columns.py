# routers/columns.py — Kanban columns of a module
# Columns are listed by order_index; new columns go to the end unless the
# client passes an explicit position.
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from access import resolve_module_access, resolve_column_access, ensure_columns_in_module
from auth import get_current_user, CurrentUser
from database import get_db_session
from models import KanbanColumn
from ordering import reorder_siblings
from schemas import ok, many, column_out
from store import ColumnStore

logger = logging.getLogger("taskboard.columns")

router = APIRouter(prefix="/api", tags=["Kanban Columns"])


# ============================================================
# SCHEMAS
# ============================================================

class ColumnCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    order_index: Optional[int] = Field(None, alias="orderIndex")
    is_done_column: bool = Field(False, alias="isDoneColumn")


class ColumnUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    is_done_column: Optional[bool] = Field(None, alias="isDoneColumn")


class ColumnPosition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    order_index: int = Field(..., alias="orderIndex")


class ColumnReorder(BaseModel):
    columns: List[ColumnPosition]


# ============================================================
# ENDPOINTS
# ============================================================

@router.get("/modules/{module_id}/columns")
async def list_columns(
    module_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_module_access(db, module_id, user.id)
    columns = await ColumnStore.find_all_by_module(db, module_id)
    return ok(many(column_out, columns))


@router.post("/modules/{module_id}/columns")
async def create_column(
    module_id: str,
    data: ColumnCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_module_access(db, module_id, user.id)
    column = KanbanColumn(
        name=data.name,
        module_id=module_id,
        order_index=data.order_index,
        is_done_column=data.is_done_column,
    )
    await ColumnStore.save(db, column)
    await db.commit()
    return ok(column_out(column))


@router.patch("/modules/{module_id}/columns/reorder")
async def reorder_columns(
    module_id: str,
    data: ColumnReorder,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Persist the board's column order after a drag and drop"""
    await resolve_module_access(db, module_id, user.id)
    await ensure_columns_in_module(db, [c.id for c in data.columns], module_id)

    await reorder_siblings(db, KanbanColumn, [(c.id, c.order_index) for c in data.columns])
    await db.commit()

    logger.info(f"Columns of module {module_id} reordered by {user.id}")
    columns = await ColumnStore.find_all_by_module(db, module_id)
    return ok(many(column_out, columns))


@router.put("/columns/{column_id}")
async def update_column(
    column_id: str,
    data: ColumnUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    column = await resolve_column_access(db, column_id, user.id)
    column.name = data.name
    if data.is_done_column is not None:
        column.is_done_column = data.is_done_column
    await ColumnStore.save(db, column)
    await db.commit()
    return ok(column_out(column))


@router.delete("/columns/{column_id}")
async def delete_column(
    column_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete the column and the tasks in it"""
    await resolve_column_access(db, column_id, user.id)
    await ColumnStore.delete(db, column_id)
    await db.commit()
    return ok(message="Column deleted.")
