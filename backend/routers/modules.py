# routers/modules.py — Modules (task lists) inside a project
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from access import resolve_project_access, resolve_module_access
from auth import get_current_user, CurrentUser
from database import get_db_session
from models import Module
from schemas import ok, module_out
from store import ModuleStore

router = APIRouter(prefix="/api/modules", tags=["Modules"])


class ModuleCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    project_id: str = Field(..., alias="projectId", min_length=1)
    description: Optional[str] = None
    start_date: Optional[date] = Field(None, alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")


class ModuleUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: Optional[str] = None
    start_date: Optional[date] = Field(None, alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")


@router.post("", status_code=201)
async def create_module(
    data: ModuleCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_project_access(db, data.project_id, user.id)
    module = Module(
        name=data.name,
        project_id=data.project_id,
        description=data.description,
        start_date=data.start_date,
        end_date=data.end_date,
    )
    await ModuleStore.save(db, module)
    await db.commit()
    return ok(module_out(module))


@router.get("/{module_id}")
async def get_module(
    module_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    module = await resolve_module_access(db, module_id, user.id)
    return ok(module_out(module))


@router.put("/{module_id}")
async def update_module(
    module_id: str,
    data: ModuleUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    module = await resolve_module_access(db, module_id, user.id)
    fields = data.model_fields_set

    module.name = data.name
    if "description" in fields:
        module.description = data.description
    if "start_date" in fields and "end_date" in fields:
        # Both dates move together; drop the old end so the new range is checked as a pair
        module.end_date = None
    if "start_date" in fields:
        module.start_date = data.start_date
    if "end_date" in fields:
        module.end_date = data.end_date

    await ModuleStore.save(db, module)
    await db.commit()
    return ok(module_out(module))


@router.delete("/{module_id}")
async def delete_module(
    module_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete the module with its board"""
    await resolve_module_access(db, module_id, user.id)
    await ModuleStore.delete(db, module_id)
    await db.commit()
    return ok(message="Module deleted.")
