from pydantic import Field
from datetime import datetime
from typing import Optional
from taskflow.schemas.base import CamelModel

class ProjectCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    key: Optional[str] = Field(None, pattern="^[A-Z0-9-]{2,16}$")
    organization_id: Optional[int] = None

class ProjectResponse(CamelModel):
    id: int
    name: str
    description: Optional[str]
    key: str
    organization_id: Optional[int]
    owner_id: Optional[int] = None
    status: str
    created_at: datetime
    task_count: int = 0
