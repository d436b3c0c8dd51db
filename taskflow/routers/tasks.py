from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from taskflow.database import get_db
from taskflow.core.auth import get_current_user
from taskflow.schemas.task import (
    TaskCreate, TaskUpdate, TaskAssign, TaskResponse, CommentCreate, CommentResponse,
)
from taskflow.services import workspace
from taskflow.services.analytics import parse_organization_id

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await workspace.create_task(db, current_user, task_in)
    [response] = await workspace.task_responses(db, [task])
    return response


@router.get("", response_model=List[TaskResponse])
async def list_tasks(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    project_id: Optional[int] = Query(None, alias="projectId"),
    organization_id: Optional[str] = Query(None, alias="organizationId"),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    # Tasks I created or am assigned to
    tasks = await workspace.list_tasks(
        db, current_user.id,
        status=status,
        priority=priority,
        project_id=project_id,
        organization_id=parse_organization_id(organization_id),
    )
    return await workspace.task_responses(db, tasks)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await workspace.get_accessible_task(db, task_id, current_user)
    [response] = await workspace.task_responses(db, [task])
    return response


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_in: TaskUpdate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await workspace.get_accessible_task(db, task_id, current_user)
    task = await workspace.update_task(db, task, task_in, current_user)
    [response] = await workspace.task_responses(db, [task])
    return response


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await workspace.get_accessible_task(db, task_id, current_user)
    await workspace.delete_task(db, task, current_user)


@router.post("/{task_id}/assignees", response_model=TaskResponse)
async def assign_task(
    task_id: int,
    assign_in: TaskAssign,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await workspace.get_accessible_task(db, task_id, current_user)
    assignee = await workspace.get_user(db, assign_in.user_id)
    await workspace.assign_task(db, task, assignee)
    [response] = await workspace.task_responses(db, [task])
    return response


@router.get("/{task_id}/comments", response_model=List[CommentResponse])
async def list_comments(
    task_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await workspace.get_accessible_task(db, task_id, current_user)
    return await workspace.list_comments(db, task)


@router.post("/{task_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
    task_id: int,
    comment_in: CommentCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    task = await workspace.get_accessible_task(db, task_id, current_user)
    return await workspace.add_comment(db, task, current_user, comment_in.content)
