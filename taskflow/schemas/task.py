from pydantic import Field
from datetime import datetime
from typing import Optional, List
from taskflow.schemas.base import CamelModel
from taskflow.schemas.tag import TagSummary
from taskflow.schemas.user import UserSummary

STATUS_PATTERN = "^(OPEN|IN_PROGRESS|REVIEW|DONE|CLOSED|CANCELLED)$"
PRIORITY_PATTERN = "^(LOW|MEDIUM|HIGH|URGENT)$"
TYPE_PATTERN = "^(TASK|BUG|STORY|EPIC|SUBTASK)$"

class TaskCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: str = Field("OPEN", pattern=STATUS_PATTERN)
    priority: str = Field("MEDIUM", pattern=PRIORITY_PATTERN)
    type: str = Field("TASK", pattern=TYPE_PATTERN)
    due_date: Optional[datetime] = None
    project_id: Optional[int] = None
    parent_id: Optional[int] = None
    assignee_ids: List[int] = []
    tag_ids: List[int] = []

class TaskUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[str] = Field(None, pattern=STATUS_PATTERN)
    priority: Optional[str] = Field(None, pattern=PRIORITY_PATTERN)
    type: Optional[str] = Field(None, pattern=TYPE_PATTERN)
    due_date: Optional[datetime] = None
    project_id: Optional[int] = None
    tag_ids: Optional[List[int]] = None  # replaces the whole tag set

class TaskAssign(CamelModel):
    user_id: int

class TaskResponse(CamelModel):
    id: int
    title: str
    description: Optional[str]
    status: str
    priority: str
    type: str
    due_date: Optional[datetime]
    project_id: Optional[int]
    parent_id: Optional[int]
    creator_id: int
    created_at: datetime
    updated_at: Optional[datetime]
    assignees: List[UserSummary] = []
    tags: List[TagSummary] = []

class CommentCreate(CamelModel):
    content: str = Field(..., min_length=1)

class CommentResponse(CamelModel):
    id: int
    task_id: int
    author_id: int
    content: str
    created_at: datetime
