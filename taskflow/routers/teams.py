from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from taskflow.database import get_db
from taskflow.core.auth import get_current_user
from taskflow.schemas.organization import MemberInvite
from taskflow.schemas.team import TeamCreate, TeamResponse, TeamMembershipResponse
from taskflow.services import workspace
from taskflow.services.analytics import parse_organization_id

router = APIRouter(prefix="/api/teams", tags=["teams"])


@router.post("", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    team_in: TeamCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await workspace.create_team(db, current_user, team_in)


@router.get("", response_model=List[TeamResponse])
async def list_teams(
    organization_id: Optional[str] = Query(None, alias="organizationId"),
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await workspace.list_teams(db, current_user, parse_organization_id(organization_id))


@router.post("/{team_id}/members", response_model=TeamMembershipResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    team_id: int,
    invite_in: MemberInvite,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await workspace.add_team_member(db, current_user, team_id, invite_in.email)
