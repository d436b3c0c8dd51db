from pydantic import Field
from datetime import datetime
from typing import Optional
from taskflow.schemas.base import CamelModel

class TagCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: Optional[str] = Field(None, pattern="^#[0-9A-Fa-f]{6}$")

class TagSummary(CamelModel):
    id: int
    name: str
    color: str

class TagResponse(TagSummary):
    created_at: datetime
    task_count: int = 0
