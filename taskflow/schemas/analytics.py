from typing import List, Optional
from taskflow.schemas.base import CamelModel


class StatusCount(CamelModel):
    status: str
    count: int

class PriorityCount(CamelModel):
    priority: str
    count: int

class TypeCount(CamelModel):
    type: str
    count: int


class ProjectRef(CamelModel):
    id: int
    name: str
    key: str

class ProjectCount(CamelModel):
    project_id: Optional[int]
    count: int
    project: Optional[ProjectRef] = None


class OrganizationRef(CamelModel):
    id: int
    name: str

class OrganizationCount(CamelModel):
    organization_id: int
    count: int
    organization: Optional[OrganizationRef] = None


class MonthBucket(CamelModel):
    month: str  # "Oct 2026"
    completed_tasks: int


class TaskAnalytics(CamelModel):
    tasks_by_status: List[StatusCount]
    tasks_by_priority: List[PriorityCount]
    tasks_by_project: List[ProjectCount]
    tasks_by_organization: List[OrganizationCount] = []
    tasks_by_month: List[MonthBucket]
    tasks_by_type: List[TypeCount]


class DayBucket(CamelModel):
    day: str   # "Mon"
    date: str  # "2026-10-12"
    completed_tasks: int

class WeekBucket(CamelModel):
    week: str        # "Week 1" is the oldest week of the window
    week_start: str  # "Oct 11"
    week_end: str
    week_total: int
    daily_completions: List[DayBucket]


class ProductivityAnalytics(CamelModel):
    weekly_productivity: List[WeekBucket]
    avg_completion_time: float
    current_streak: int
    total_completed: int


class MemberProductivity(CamelModel):
    id: int
    name: Optional[str]
    email: str
    avatar: Optional[str] = None
    assigned_tasks: int
    completed_tasks: int
    overdue_tasks: int
    completion_rate: int


class AssigneeRef(CamelModel):
    id: int
    name: Optional[str]
    email: str

class AssigneeCount(CamelModel):
    assignee_id: int
    count: int
    assignee: Optional[AssigneeRef] = None


class TeamAnalytics(CamelModel):
    team_productivity: List[MemberProductivity]
    project_status: List[StatusCount]
    organization_status: List[StatusCount] = []
    tasks_by_assignee: List[AssigneeCount]


class AnalyticsOverview(CamelModel):
    task_analytics: TaskAnalytics
    productivity_analytics: ProductivityAnalytics
    team_analytics: Optional[TeamAnalytics] = None
