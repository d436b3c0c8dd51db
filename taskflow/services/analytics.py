"""Read-side task statistics for the analytics pages, CSV export and voice agent.

Every computation is scoped by an `AnalyticsScope`: tasks the user created or
is assigned to, optionally narrowed to one organization (through the task's
project) and/or one project. Nothing in here writes to the database.

A DONE task's `updated_at` is used as its completion time.
"""
import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Union

from sqlalchemy import select, func, or_, and_, case
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.config import settings
from taskflow.core.exceptions import ValidationError
from taskflow.models.enums import (
    MANAGER_ROLES, TEAM_MEMBER_ROLES, ProjectStatus, TaskStatus,
)
from taskflow.models.organization import Organization
from taskflow.models.project import Project
from taskflow.models.task import Task, TaskAssignee
from taskflow.models.user import User
from taskflow.schemas.analytics import (
    AnalyticsOverview, AssigneeCount, AssigneeRef, DayBucket, MemberProductivity,
    MonthBucket, OrganizationCount, OrganizationRef, PriorityCount,
    ProductivityAnalytics, ProjectCount, ProjectRef, StatusCount, TaskAnalytics,
    TeamAnalytics, TypeCount, WeekBucket,
)
from taskflow.utils.dates import (
    as_utc, days_of_week, month_bounds, shift_months, utcnow,
)

logger = logging.getLogger(__name__)

ALL_ORGANIZATIONS = "ALL"
DONE = TaskStatus.DONE.value
TOP_N = 5


def parse_organization_id(value: Union[int, str, None]) -> Optional[int]:
    """None, "" and "ALL" mean no organization restriction."""
    if value is None or value == "" or value == ALL_ORGANIZATIONS:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid organization id: {value}")


@dataclass(frozen=True)
class AnalyticsScope:
    user_id: int
    role: str = "USER"
    organization_id: Optional[int] = None
    project_id: Optional[int] = None

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES

    def organization_criteria(self) -> list:
        if self.organization_id is None:
            return []
        return [
            Task.project_id.in_(
                select(Project.id).where(Project.organization_id == self.organization_id)
            )
        ]

    def task_filter(self) -> list:
        is_assignee = (
            select(TaskAssignee.id)
            .where(TaskAssignee.task_id == Task.id)
            .where(TaskAssignee.user_id == self.user_id)
            .exists()
        )
        criteria = [or_(Task.creator_id == self.user_id, is_assignee)]
        criteria.extend(self.organization_criteria())
        if self.project_id is not None:
            criteria.append(Task.project_id == self.project_id)
        return criteria


def _resolve_now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else utcnow()


async def _histogram(db: AsyncSession, column, criteria: list) -> list:
    result = await db.execute(
        select(column, func.count(Task.id))
        .where(*criteria)
        .group_by(column)
        .order_by(column)
    )
    return result.all()


async def _count_tasks(db: AsyncSession, criteria: list) -> int:
    result = await db.execute(select(func.count(Task.id)).where(*criteria))
    return result.scalar_one() or 0


async def _tasks_by_project(db: AsyncSession, criteria: list) -> List[ProjectCount]:
    task_count = func.count(Task.id)
    result = await db.execute(
        select(Task.project_id, task_count)
        .where(*criteria)
        .group_by(Task.project_id)
        .order_by(task_count.desc(), Task.project_id)
        .limit(TOP_N)
    )
    rows = result.all()

    project_ids = [project_id for project_id, _ in rows if project_id is not None]
    projects = {}
    if project_ids:
        found = await db.execute(
            select(Project.id, Project.name, Project.key).where(Project.id.in_(project_ids))
        )
        projects = {p.id: ProjectRef(id=p.id, name=p.name, key=p.key) for p in found.all()}

    return [
        ProjectCount(project_id=project_id, count=count, project=projects.get(project_id))
        for project_id, count in rows
    ]


async def _tasks_by_organization(db: AsyncSession, criteria: list) -> List[OrganizationCount]:
    result = await db.execute(
        select(Project.organization_id, func.count(Task.id))
        .join(Project, Project.id == Task.project_id)
        .where(*criteria)
        .where(Project.organization_id.isnot(None))
        .group_by(Project.organization_id)
        .order_by(Project.organization_id)
    )
    rows = result.all()
    if not rows:
        return []

    found = await db.execute(
        select(Organization.id, Organization.name)
        .where(Organization.id.in_([org_id for org_id, _ in rows]))
    )
    organizations = {o.id: OrganizationRef(id=o.id, name=o.name) for o in found.all()}
    return [
        OrganizationCount(organization_id=org_id, count=count, organization=organizations.get(org_id))
        for org_id, count in rows
    ]


async def compute_task_analytics(
    db: AsyncSession,
    scope: AnalyticsScope,
    months: int = 6,
    now: Optional[datetime] = None,
) -> TaskAnalytics:
    if months < 1:
        raise ValidationError("months must be a positive integer")
    now = _resolve_now(now)
    criteria = scope.task_filter()
    logger.debug("Computing task analytics for user %s (months=%s)", scope.user_id, months)

    by_status = await _histogram(db, Task.status, criteria)
    by_priority = await _histogram(db, Task.priority, criteria)
    by_type = await _histogram(db, Task.type, criteria)
    by_project = await _tasks_by_project(db, criteria)

    by_organization = []
    if scope.organization_id is None:
        by_organization = await _tasks_by_organization(db, criteria)

    # Oldest month first, always `months` buckets
    month_buckets = []
    this_month = now.date().replace(day=1)
    for offset in range(months - 1, -1, -1):
        start, end = month_bounds(shift_months(this_month, -offset))
        completed = await _count_tasks(db, [
            *criteria,
            Task.status == DONE,
            Task.updated_at >= start,
            Task.updated_at < end,
        ])
        month_buckets.append(MonthBucket(month=start.strftime("%b %Y"), completed_tasks=completed))

    return TaskAnalytics(
        tasks_by_status=[StatusCount(status=s, count=c) for s, c in by_status],
        tasks_by_priority=[PriorityCount(priority=p, count=c) for p, c in by_priority],
        tasks_by_project=by_project,
        tasks_by_organization=by_organization,
        tasks_by_month=month_buckets,
        tasks_by_type=[TypeCount(type=t, count=c) for t, c in by_type],
    )


def compute_streak(completions: Iterable[datetime], today: date) -> int:
    """Consecutive days, ending today, with at least one completion.

    Completions are collapsed to calendar days first, so several tasks done on
    the same day count once.
    """
    days = {as_utc(completed).date() for completed in completions}
    streak = 0
    while today - timedelta(days=streak) in days:
        streak += 1
    return streak


def average_completion_days(spans: Iterable[tuple]) -> float:
    """Mean of (completed - created) in days, rounded to one decimal; 0 when empty."""
    durations = [
        (as_utc(completed) - as_utc(created)).total_seconds() / 86400
        for created, completed in spans
        if created is not None and completed is not None
    ]
    if not durations:
        return 0
    return round(sum(durations) / len(durations), 1)


def build_weekly_buckets(
    completions: Iterable[datetime],
    weeks: int,
    today: date,
    week_start_day: int,
) -> List[WeekBucket]:
    per_day = Counter(as_utc(completed).date() for completed in completions)
    buckets = []
    for offset in range(weeks - 1, -1, -1):
        days = days_of_week(today - timedelta(weeks=offset), week_start_day)
        daily = [
            DayBucket(day=day.strftime("%a"), date=day.isoformat(), completed_tasks=per_day.get(day, 0))
            for day in days
        ]
        buckets.append(WeekBucket(
            week=f"Week {weeks - offset}",
            week_start=days[0].strftime("%b %d"),
            week_end=days[-1].strftime("%b %d"),
            week_total=sum(d.completed_tasks for d in daily),
            daily_completions=daily,
        ))
    return buckets


async def compute_productivity_analytics(
    db: AsyncSession,
    scope: AnalyticsScope,
    weeks: int = 4,
    now: Optional[datetime] = None,
) -> ProductivityAnalytics:
    if weeks < 1:
        raise ValidationError("weeks must be a positive integer")
    now = _resolve_now(now)
    logger.debug("Computing productivity analytics for user %s (weeks=%s)", scope.user_id, weeks)

    result = await db.execute(
        select(Task.created_at, Task.updated_at)
        .where(*scope.task_filter())
        .where(Task.status == DONE)
        .order_by(Task.updated_at.desc())
    )
    rows = result.all()
    completions = [row.updated_at for row in rows if row.updated_at is not None]

    return ProductivityAnalytics(
        weekly_productivity=build_weekly_buckets(
            completions, weeks, now.date(), settings.WEEK_START_DAY
        ),
        avg_completion_time=average_completion_days((row.created_at, row.updated_at) for row in rows),
        current_streak=compute_streak(completions, now.date()),
        total_completed=len(rows),
    )


def completion_rate(completed: int, assigned: int) -> int:
    """Percentage rounded half up; 0 when nothing is assigned."""
    if assigned <= 0:
        return 0
    return min(100, math.floor(completed / assigned * 100 + 0.5))


async def compute_team_analytics(
    db: AsyncSession,
    scope: AnalyticsScope,
    now: Optional[datetime] = None,
) -> Optional[TeamAnalytics]:
    """Only for managers and admins; anyone else gets None."""
    if not scope.is_manager:
        return None
    now = _resolve_now(now)
    org_criteria = scope.organization_criteria()
    logger.debug("Computing team analytics for user %s", scope.user_id)

    members = await db.execute(
        select(User)
        .where(User.role.in_(TEAM_MEMBER_ROLES))
        .order_by(User.id)
    )
    members = members.scalars().all()

    is_overdue = and_(
        Task.status != DONE,
        Task.due_date.isnot(None),
        Task.due_date < now,
    )
    counts = await db.execute(
        select(
            TaskAssignee.user_id,
            func.count(Task.id),
            func.sum(case((Task.status == DONE, 1), else_=0)),
            func.sum(case((is_overdue, 1), else_=0)),
        )
        .join(Task, Task.id == TaskAssignee.task_id)
        .where(*org_criteria)
        .group_by(TaskAssignee.user_id)
    )
    per_user = {
        user_id: (assigned, int(completed or 0), int(overdue or 0))
        for user_id, assigned, completed, overdue in counts.all()
    }

    team_productivity = []
    for member in members:
        assigned, completed, overdue = per_user.get(member.id, (0, 0, 0))
        team_productivity.append(MemberProductivity(
            id=member.id,
            name=member.name,
            email=member.email,
            avatar=member.avatar,
            assigned_tasks=assigned,
            completed_tasks=completed,
            overdue_tasks=overdue,
            completion_rate=completion_rate(completed, assigned),
        ))
    team_productivity.sort(key=lambda m: m.completion_rate, reverse=True)

    project_query = select(Project.status, func.count(Project.id)).group_by(Project.status).order_by(Project.status)
    if scope.organization_id is not None:
        project_query = project_query.where(Project.organization_id == scope.organization_id)
    project_status = await db.execute(project_query)

    organization_status = []
    if scope.organization_id is None:
        organization_status = await _organization_status(db)

    return TeamAnalytics(
        team_productivity=team_productivity,
        project_status=[StatusCount(status=s, count=c) for s, c in project_status.all()],
        organization_status=organization_status,
        tasks_by_assignee=await _tasks_by_assignee(db, org_criteria),
    )


async def _organization_status(db: AsyncSession) -> List[StatusCount]:
    # An organization counts as ACTIVE while it has at least one ACTIVE project
    result = await db.execute(
        select(
            Organization.id,
            func.sum(case((Project.status == ProjectStatus.ACTIVE.value, 1), else_=0)),
        )
        .outerjoin(Project, Project.organization_id == Organization.id)
        .group_by(Organization.id)
    )
    statuses = Counter(
        "ACTIVE" if (active or 0) > 0 else "INACTIVE"
        for _, active in result.all()
    )
    return [
        StatusCount(status=status, count=statuses[status])
        for status in ("ACTIVE", "INACTIVE")
        if statuses[status]
    ]


async def _tasks_by_assignee(db: AsyncSession, org_criteria: list) -> List[AssigneeCount]:
    task_count = func.count(Task.id)
    result = await db.execute(
        select(TaskAssignee.user_id, task_count)
        .join(Task, Task.id == TaskAssignee.task_id)
        .where(*org_criteria)
        .group_by(TaskAssignee.user_id)
        .order_by(task_count.desc(), TaskAssignee.user_id)
        .limit(TOP_N)
    )
    rows = result.all()
    if not rows:
        return []

    found = await db.execute(
        select(User.id, User.name, User.email).where(User.id.in_([user_id for user_id, _ in rows]))
    )
    users = {u.id: AssigneeRef(id=u.id, name=u.name, email=u.email) for u in found.all()}
    return [
        AssigneeCount(assignee_id=user_id, count=count, assignee=users.get(user_id))
        for user_id, count in rows
    ]


async def compute_overview(
    db: AsyncSession,
    scope: AnalyticsScope,
    months: int = 6,
    weeks: int = 4,
    now: Optional[datetime] = None,
) -> AnalyticsOverview:
    # A single AsyncSession cannot run queries concurrently
    return AnalyticsOverview(
        task_analytics=await compute_task_analytics(db, scope, months, now),
        productivity_analytics=await compute_productivity_analytics(db, scope, weeks, now),
        team_analytics=await compute_team_analytics(db, scope, now),
    )
