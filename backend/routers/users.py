# routers/users.py — Registration, password change and member lookup
import logging

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from auth import (
    AuthService, CurrentUser, get_current_user, get_current_session, clear_session_cookie,
)
from database import get_db_session
from errors import ValidationFailed
from models import User
from schemas import ok, user_summary, user_search_result
from store import UserStore

logger = logging.getLogger("taskboard.auth")

router = APIRouter(prefix="/api/users", tags=["Users"])

MIN_PASSWORD_LENGTH = 6


# --- Schemas ---

class UserRegister(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    full_name: str = Field(..., alias="fullName")
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)


class PasswordChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    old_password: str = Field(..., alias="oldPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=MIN_PASSWORD_LENGTH)


# --- Endpoints ---

@router.post("", status_code=201)
async def register(
    data: UserRegister,
    db: AsyncSession = Depends(get_db_session),
):
    """Create an account. Does not sign the user in."""
    email = str(data.email)
    if await UserStore.find_by_email(db, email):
        raise ValidationFailed("Email is already registered.")

    user = User(
        email=email,
        full_name=data.full_name,
        password_hash=AuthService.hash_password(data.password),
    )
    try:
        await UserStore.save(db, user)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationFailed("Email is already registered.")

    logger.info(f"Registered user {user.id}")
    return ok(user_summary(user))


@router.patch("/password")
async def change_password(
    data: PasswordChange,
    response: Response,
    user: CurrentUser = Depends(get_current_session),
    db: AsyncSession = Depends(get_db_session),
):
    """Replace the password and end every session of the user"""
    account = await UserStore.find_by_id(db, user.id)
    if not AuthService.verify_password(data.old_password, account.password_hash):
        raise ValidationFailed("Old password is incorrect.")

    await UserStore.update_password(db, user.id, AuthService.hash_password(data.new_password))
    revoked = await AuthService.revoke_user_sessions(user.id, db)
    await db.commit()

    clear_session_cookie(response)
    logger.info(f"User {user.id} changed password, {revoked} sessions revoked")
    return ok(message="Password changed. Please sign in again.")


@router.get("/search")
async def search_users(
    email: str = Query(..., min_length=2, max_length=255),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Up to five users whose email contains the query, excluding the caller"""
    users = await UserStore.search_by_email(db, email, exclude_user_id=user.id)
    return ok([user_search_result(u) for u in users])
