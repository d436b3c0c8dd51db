from pydantic import Field
from datetime import datetime
from typing import Optional
from taskflow.schemas.base import CamelModel

class TeamCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    organization_id: Optional[int] = None

class TeamResponse(CamelModel):
    id: int
    name: str
    description: Optional[str]
    organization_id: Optional[int]
    owner_id: int
    created_at: datetime
    member_count: int = 0

class TeamMembershipResponse(CamelModel):
    id: int
    team_id: int
    user_id: int
    status: str
    role: str
