# routers/auth.py — Login, logout and session check
import logging

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth import (
    AuthService, CurrentUser, get_current_user, get_current_session,
    set_session_cookie, clear_session_cookie,
)
from database import get_db_session
from errors import ValidationFailed
from schemas import ok, user_summary

logger = logging.getLogger("taskboard.auth")

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


@router.post("/login")
async def login(
    credentials: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
):
    """Check credentials, open a session and set the session cookie"""
    try:
        user, token = await AuthService.authenticate_user(credentials.email, credentials.password, db)
    except ValidationFailed:
        logger.info(f"Failed login for {credentials.email}")
        raise
    await db.commit()

    set_session_cookie(response, token)
    logger.info(f"User {user.id} logged in")
    return ok(user_summary(user))


@router.get("/logout")
async def logout(
    response: Response,
    user: CurrentUser = Depends(get_current_session),
    db: AsyncSession = Depends(get_db_session),
):
    """Revoke the current session and clear the cookie"""
    await AuthService.revoke_session(user.session_id, db)
    await db.commit()

    clear_session_cookie(response)
    logger.info(f"User {user.id} logged out")
    return ok(message="Logged out.")


@router.get("/check")
async def check_session(user: CurrentUser = Depends(get_current_user)):
    """Return the signed-in user; the dependency re-issues the cookie"""
    return ok(user_summary(user))
