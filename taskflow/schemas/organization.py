from pydantic import EmailStr, Field
from datetime import datetime
from typing import Optional
from taskflow.schemas.base import CamelModel

class OrganizationCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None

class OrganizationResponse(CamelModel):
    id: int
    name: str
    description: Optional[str]
    created_at: datetime
    project_count: int = 0
    team_count: int = 0
    member_count: int = 0

class MemberInvite(CamelModel):
    email: EmailStr

class OrganizationMemberResponse(CamelModel):
    id: int
    organization_id: int
    user_id: int
    role: str
