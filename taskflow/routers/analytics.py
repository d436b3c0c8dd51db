from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from taskflow.config import settings
from taskflow.database import get_db
from taskflow.core.auth import get_current_user, get_current_manager
from taskflow.schemas.analytics import (
    AnalyticsOverview, ProductivityAnalytics, TaskAnalytics, TeamAnalytics,
)
from taskflow.services.analytics import (
    AnalyticsScope, parse_organization_id, compute_overview,
    compute_productivity_analytics, compute_task_analytics, compute_team_analytics,
)
from taskflow.services.export import TABS, export_csv, export_filename

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


def _scope(user, organization_id: Optional[str], project_id: Optional[int] = None) -> AnalyticsScope:
    return AnalyticsScope(
        user_id=user.id,
        role=user.role,
        organization_id=parse_organization_id(organization_id),
        project_id=project_id,
    )


@router.get("", response_model=AnalyticsOverview)
async def get_analytics_overview(
    months: int = Query(6, ge=1, le=settings.ANALYTICS_MAX_MONTHS),
    weeks: int = Query(4, ge=1, le=settings.ANALYTICS_MAX_WEEKS),
    organization_id: Optional[str] = Query(None, alias="organizationId"),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    # teamAnalytics is null for anyone below manager
    return await compute_overview(db, _scope(current_user, organization_id), months, weeks)


@router.get("/tasks", response_model=TaskAnalytics)
async def get_task_analytics(
    months: int = Query(6, ge=1, le=settings.ANALYTICS_MAX_MONTHS),
    organization_id: Optional[str] = Query(None, alias="organizationId"),
    project_id: Optional[int] = Query(None, alias="projectId"),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await compute_task_analytics(db, _scope(current_user, organization_id, project_id), months)


@router.get("/productivity", response_model=ProductivityAnalytics)
async def get_productivity_analytics(
    weeks: int = Query(4, ge=1, le=settings.ANALYTICS_MAX_WEEKS),
    organization_id: Optional[str] = Query(None, alias="organizationId"),
    project_id: Optional[int] = Query(None, alias="projectId"),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await compute_productivity_analytics(db, _scope(current_user, organization_id, project_id), weeks)


@router.get("/team", response_model=TeamAnalytics)
async def get_team_analytics(
    organization_id: Optional[str] = Query(None, alias="organizationId"),
    db: AsyncSession = Depends(get_db),
    manager = Depends(get_current_manager)
):
    return await compute_team_analytics(db, _scope(manager, organization_id))


@router.get("/export")
async def export_analytics(
    tab: str = Query("tasks", pattern=f"^({'|'.join(TABS)})$"),
    months: int = Query(6, ge=1, le=settings.ANALYTICS_MAX_MONTHS),
    weeks: int = Query(4, ge=1, le=settings.ANALYTICS_MAX_WEEKS),
    organization_id: Optional[str] = Query(None, alias="organizationId"),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    scope = _scope(current_user, organization_id)
    if tab == "tasks":
        payload = await compute_task_analytics(db, scope, months)
    elif tab == "productivity":
        payload = await compute_productivity_analytics(db, scope, weeks)
    else:
        payload = await compute_team_analytics(db, scope)
        if payload is None:
            raise HTTPException(403, "Manager or admin access required")

    filename = export_filename(tab, datetime.now(timezone.utc).date())
    return Response(
        content=export_csv(tab, payload),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
