# routers/projects.py — Projects and their membership lists
# Any member may read a project; only the owner renames or deletes it and
# manages its members. The owner always keeps a PROJECT_MANAGER row.
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from access import resolve_project_access, require_project_owner
from auth import get_current_user, CurrentUser
from database import get_db_session
from errors import NotFound, ValidationFailed
from models import Project, ProjectMember, ProjectRole
from schemas import ok, many, project_out, module_out, member_out
from store import ProjectStore, MemberStore, ModuleStore, UserStore

logger = logging.getLogger("taskboard.projects")

router = APIRouter(prefix="/api/projects", tags=["Projects"])


# ============================================================
# SCHEMAS
# ============================================================

class ProjectCreate(BaseModel):
    name: str
    description: Optional[str] = None


class ProjectUpdate(BaseModel):
    name: str
    description: Optional[str] = None


class MemberAdd(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    role: str


# ============================================================
# PROJECT ENDPOINTS
# ============================================================

@router.get("")
async def list_projects(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Projects the caller owns or is a member of, newest first"""
    projects = await ProjectStore.find_all_for_user(db, user.id)
    return ok(many(project_out, projects))


@router.post("", status_code=201)
async def create_project(
    data: ProjectCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    project = Project(name=data.name, description=data.description, owner_id=user.id)
    await ProjectStore.save(db, project)
    await MemberStore.save(db, ProjectMember(
        project_id=project.id,
        user_id=user.id,
        project_role=ProjectRole.PROJECT_MANAGER,
    ))
    await db.commit()

    logger.info(f"Project {project.id} created by {user.id}")
    return ok(project_out(project))


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Project with its modules"""
    project = await resolve_project_access(db, project_id, user.id)
    modules = await ModuleStore.find_all_by_project(db, project.id)
    return ok({"project": project_out(project), "modules": many(module_out, modules)})


@router.put("/{project_id}")
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    project = await require_project_owner(db, project_id, user.id)
    project.name = data.name
    if "description" in data.model_fields_set:
        project.description = data.description
    await ProjectStore.save(db, project)
    await db.commit()
    return ok(project_out(project))


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete the project with its members, modules, columns and tasks"""
    await require_project_owner(db, project_id, user.id)
    await ProjectStore.delete(db, project_id)
    await db.commit()

    logger.info(f"Project {project_id} deleted by {user.id}")
    return ok(message="Project deleted.")


# ============================================================
# MEMBER ENDPOINTS
# ============================================================

@router.get("/{project_id}/members")
async def list_members(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_project_access(db, project_id, user.id)
    rows = await MemberStore.list_by_project(db, project_id)
    return ok([member_out(member, full_name, email) for member, full_name, email in rows])


@router.post("/{project_id}/members", status_code=201)
async def add_member(
    project_id: str,
    data: MemberAdd,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await require_project_owner(db, project_id, user.id)

    target = await UserStore.find_by_id(db, data.user_id)
    if target is None:
        raise NotFound("User not found.")
    if await MemberStore.find_by_project_and_user(db, project_id, target.id):
        raise ValidationFailed("User is already a member of this project.")

    member = ProjectMember(project_id=project_id, user_id=target.id, project_role=data.role)
    await MemberStore.save(db, member)
    await db.commit()

    logger.info(f"User {target.id} added to project {project_id} as {member.project_role.value}")
    return ok(member_out(member, target.full_name, target.email))


@router.delete("/{project_id}/members/{member_user_id}")
async def remove_member(
    project_id: str,
    member_user_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    project = await require_project_owner(db, project_id, user.id)
    if member_user_id == project.owner_id:
        raise ValidationFailed("The project owner cannot be removed.")

    await MemberStore.delete(db, project_id, member_user_id)
    await db.commit()

    logger.info(f"User {member_user_id} removed from project {project_id}")
    return ok(message="Member removed.")
