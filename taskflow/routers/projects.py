from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from taskflow.database import get_db
from taskflow.core.auth import get_current_user
from taskflow.schemas.project import ProjectCreate, ProjectResponse
from taskflow.services import workspace
from taskflow.services.analytics import parse_organization_id

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_in: ProjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await workspace.create_project(db, current_user, project_in)


@router.get("", response_model=List[ProjectResponse])
async def list_projects(
    organization_id: Optional[str] = Query(None, alias="organizationId"),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await workspace.list_projects(db, current_user, parse_organization_id(organization_id))


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await workspace.get_visible_project(db, current_user, project_id)
