from typing import List
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from taskflow.database import get_db
from taskflow.core.auth import get_current_user
from taskflow.schemas.organization import (
    OrganizationCreate, OrganizationResponse, MemberInvite, OrganizationMemberResponse,
)
from taskflow.services import workspace

router = APIRouter(prefix="/api/organizations", tags=["organizations"])


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    organization_in: OrganizationCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    # Creator becomes the OWNER member
    organization = await workspace.create_organization(db, current_user, organization_in)
    return OrganizationResponse(
        id=organization.id,
        name=organization.name,
        description=organization.description,
        created_at=organization.created_at,
        member_count=1,
    )


@router.get("", response_model=List[OrganizationResponse])
async def list_organizations(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await workspace.list_organizations(db, current_user)


@router.post("/{organization_id}/members", response_model=OrganizationMemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    organization_id: int,
    invite_in: MemberInvite,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return await workspace.add_organization_member(db, current_user, organization_id, invite_in.email)
