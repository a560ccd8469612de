# auth.py — Identity & session service for the Taskboard API
# Features:
# - bcrypt password hashing (constant-time verification, dummy check for unknown emails)
# - Server-side sessions: the signed JWT only carries the session id
# - Sliding expiration: every authenticated request re-issues a 24h token
# - Revocation by deleting the persisted session (logout, password change)
# - Session cookie "jwt" (HTTP-only, SameSite=Lax)

import os
import uuid
import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple

import bcrypt
from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import Depends, Request, Response
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db_session
from errors import (
    ValidationFailed, TokenMissing, TokenInvalid, TokenExpired, SessionExpired,
)
from models import User, UserSession
from store import UserStore, SessionStore

logger = logging.getLogger("taskboard.auth")

# ============================================================
# CONFIGURATION
# ============================================================

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
if not SECRET_KEY or SECRET_KEY == "change-this-to-a-secure-random-key-in-production":
    SECRET_KEY = secrets.token_urlsafe(64)
    logger.warning(
        "JWT_SECRET_KEY not set or insecure. Generated ephemeral key; "
        "sessions will not survive a restart. Set JWT_SECRET_KEY in production!"
    )

ALGORITHM = "HS256"
SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "24"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

COOKIE_NAME = "jwt"
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None

# Compared against when the email is unknown, so both paths cost one bcrypt check
_DUMMY_HASH = bcrypt.hashpw(b"taskboard-dummy-password", bcrypt.gensalt(rounds=BCRYPT_ROUNDS))


class CurrentUser(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    session_id: str


# ============================================================
# AUTH SERVICE
# ============================================================

class AuthService:
    """Password verification plus the session lifecycle"""

    @staticmethod
    def hash_password(password: str) -> str:
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Stored value is not a bcrypt hash
            return False

    @staticmethod
    def create_session_token(session_id: str, expires_delta: Optional[timedelta] = None) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sid": session_id,
            "iat": now,
            "exp": now + (expires_delta or timedelta(hours=SESSION_TTL_HOURS)),
        }
        return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)

    @staticmethod
    def decode_session_token(token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise TokenExpired()
        except JWTError:
            raise TokenInvalid()

    @staticmethod
    async def allocate_session(user: User, db: AsyncSession) -> str:
        """Persist a new session for the user and return its id"""
        while True:
            session_id = str(uuid.uuid4())
            if await SessionStore.find_by_id(db, session_id) is None:
                break
        await SessionStore.save(db, UserSession(id=session_id, user_id=user.id))
        return session_id

    @staticmethod
    async def authenticate_user(email: str, password: str, db: AsyncSession) -> Tuple[User, str]:
        """Check credentials and open a session. Returns (user, signed token)."""
        user = await UserStore.find_by_email(db, email)
        if user is None:
            bcrypt.checkpw(password.encode("utf-8"), _DUMMY_HASH)
            raise ValidationFailed("Invalid email or password.")
        if not AuthService.verify_password(password, user.password_hash):
            raise ValidationFailed("Invalid email or password.")

        session_id = await AuthService.allocate_session(user, db)
        return user, AuthService.create_session_token(session_id)

    @staticmethod
    async def resolve_session(token: Optional[str], db: AsyncSession) -> Tuple[User, str]:
        if not token:
            raise TokenMissing()

        payload = AuthService.decode_session_token(token)
        session_id = payload.get("sid")
        if not session_id or not isinstance(session_id, str):
            raise TokenInvalid()

        user = await SessionStore.find_user(db, session_id)
        if user is None:
            raise SessionExpired()
        return user, session_id

    @staticmethod
    def refresh(session_id: str) -> str:
        return AuthService.create_session_token(session_id)

    @staticmethod
    async def revoke_session(session_id: str, db: AsyncSession) -> None:
        await SessionStore.delete(db, session_id)

    @staticmethod
    async def revoke_user_sessions(user_id: str, db: AsyncSession) -> int:
        return await SessionStore.delete_all_for_user(db, user_id)


# ============================================================
# COOKIE HELPERS
# ============================================================

def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=SESSION_TTL_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
        domain=COOKIE_DOMAIN,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=COOKIE_NAME,
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
        domain=COOKIE_DOMAIN,
    )


# ============================================================
# FASTAPI DEPENDENCIES
# ============================================================

async def get_current_session(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> CurrentUser:
    """Resolve the session cookie without re-issuing it (logout, password change)"""
    user, session_id = await AuthService.resolve_session(request.cookies.get(COOKIE_NAME), db)
    return CurrentUser(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.system_role.value if hasattr(user.system_role, "value") else user.system_role,
        session_id=session_id,
    )


async def get_current_user(
    response: Response,
    current: CurrentUser = Depends(get_current_session),
) -> CurrentUser:
    set_session_cookie(response, AuthService.refresh(current.session_id))
    return current
