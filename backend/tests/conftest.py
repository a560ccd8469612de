# tests/conftest.py — Shared test fixtures
import os
import uuid

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-unit-tests-only-min-32-chars"
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"

from models import Base, User
from auth import AuthService, COOKIE_NAME
from database import get_db_session
from main import app


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False,
    )

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def _make_user(db_session, email: str, full_name: str, password: str) -> User:
    user = User(
        id=str(uuid.uuid4()),
        email=email,
        full_name=full_name,
        password_hash=AuthService.hash_password(password),
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def test_user(db_session):
    """Alice, password 'secret1'"""
    return await _make_user(db_session, "alice@example.com", "Alice Example", "secret1")


@pytest_asyncio.fixture
async def other_user(db_session):
    """Bob, password 'secret2'"""
    return await _make_user(db_session, "bob@example.com", "Bob Example", "secret2")


@pytest_asyncio.fixture
async def third_user(db_session):
    return await _make_user(db_session, "carol@example.com", "Carol Example", "secret3")


async def get_auth_headers(db_session, user: User) -> dict:
    """Open a session for the user and return a Cookie header carrying it"""
    session_id = await AuthService.allocate_session(user, db_session)
    await db_session.commit()
    return cookie_header(AuthService.create_session_token(session_id))


def cookie_header(token: str) -> dict:
    return {"Cookie": f"{COOKIE_NAME}={token}"}


def set_cookie_headers(response) -> list:
    return response.headers.get_list("set-cookie")


def cookie_cleared(response) -> bool:
    return any(
        h.startswith(f"{COOKIE_NAME}=") and "max-age=0" in h.lower()
        for h in set_cookie_headers(response)
    )


# ============================================================
# API HELPERS
# ============================================================

async def create_project(client, headers, name="Demo", description=None) -> dict:
    body = {"name": name}
    if description is not None:
        body["description"] = description
    resp = await client.post("/api/projects", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def create_module(client, headers, project_id, name="Backlog", **extra) -> dict:
    resp = await client.post("/api/modules", json={"name": name, "projectId": project_id, **extra}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def create_column(client, headers, module_id, name="To Do", **extra) -> dict:
    resp = await client.post(f"/api/modules/{module_id}/columns", json={"name": name, **extra}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def create_task(client, headers, module_id, column_id, title="Draft release notes", **extra) -> dict:
    resp = await client.post(
        "/api/tasks",
        json={"title": title, "moduleId": module_id, "columnId": column_id, **extra},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def add_member(client, headers, project_id, user_id, role="DEVELOPER"):
    return await client.post(
        f"/api/projects/{project_id}/members",
        json={"userId": user_id, "role": role},
        headers=headers,
    )


async def create_board(client, headers, column_names=("To Do", "In Progress", "Done")):
    """Project → module → columns; returns (project, module, columns)"""
    project = await create_project(client, headers)
    module = await create_module(client, headers, project["id"])
    columns = [await create_column(client, headers, module["id"], name) for name in column_names]
    return project, module, columns
