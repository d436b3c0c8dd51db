"""Shared fixtures: a fresh SQLite database per test and an HTTP client bound to it."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from taskflow.core.security import create_access_token
from taskflow.database import Base, get_db
from taskflow.main import app
from taskflow.models.organization import Organization
from taskflow.models.project import Project
from taskflow.models.task import Task, TaskAssignee
from taskflow.models.user import User

# Thursday; with Sunday-start weeks the current week is Oct 11 - Oct 17
NOW = datetime(2026, 10, 15, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskflow_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make_user(role: str = "USER", name: str = None, email: str = None) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=email or f"user{n}@example.com",
            name=name or f"User {n}",
            hashed_password="not-a-real-hash",
            role=role,
            is_active=True,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_task(db):
    async def _make_task(
        creator: User,
        status: str = "OPEN",
        priority: str = "MEDIUM",
        type: str = "TASK",
        created_at: datetime = None,
        updated_at: datetime = None,
        due_date: datetime = None,
        project: Project = None,
        assignees=(),
        title: str = "Task",
    ) -> Task:
        updated_at = updated_at or NOW - timedelta(hours=1)
        task = Task(
            title=title,
            status=status,
            priority=priority,
            type=type,
            creator_id=creator.id,
            project_id=project.id if project else None,
            due_date=due_date,
            created_at=created_at or updated_at - timedelta(days=1),
            updated_at=updated_at,
        )
        db.add(task)
        await db.flush()
        for assignee in assignees:
            db.add(TaskAssignee(task_id=task.id, user_id=assignee.id))
        await db.commit()
        return task

    return _make_task


@pytest.fixture
def make_project(db):
    counter = {"n": 0}

    async def _make_project(
        name: str = None, organization: Organization = None, status: str = "ACTIVE", owner: User = None,
    ) -> Project:
        counter["n"] += 1
        project = Project(
            name=name or f"Project {counter['n']}",
            key=f"PRJ-{1000 + counter['n']}",
            organization_id=organization.id if organization else None,
            owner_id=owner.id if owner else None,
            status=status,
        )
        db.add(project)
        await db.commit()
        await db.refresh(project)
        return project

    return _make_project


@pytest.fixture
def make_organization(db):
    async def _make_organization(name: str = "Acme") -> Organization:
        organization = Organization(name=name, description="")
        db.add(organization)
        await db.commit()
        await db.refresh(organization)
        return organization

    return _make_organization
