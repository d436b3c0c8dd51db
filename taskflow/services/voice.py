"""Maps free-text commands onto workspace and analytics operations.

Detection is plain substring matching in a fixed priority order, followed by
keyword-anchored regexes for the parameters. `detect_intent` does no I/O;
entity names it extracts are resolved against the database by the handlers.
"""
import enum
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.config import settings
from taskflow.core.exceptions import TaskFlowError
from taskflow.models.enums import TaskPriority, TaskStatus
from taskflow.models.user import User
from taskflow.schemas.organization import OrganizationCreate, OrganizationResponse, OrganizationMemberResponse
from taskflow.schemas.notification import NotificationResponse
from taskflow.schemas.project import ProjectCreate, ProjectResponse
from taskflow.schemas.task import TaskCreate, TaskUpdate
from taskflow.schemas.team import TeamCreate, TeamResponse, TeamMembershipResponse
from taskflow.schemas.voice import VoiceResponse
from taskflow.services import analytics, notifications, workspace
from taskflow.utils.dates import shift_months, start_of_day, utcnow

logger = logging.getLogger(__name__)

UNKNOWN_REPLY = "I didn't understand that command. Please try again."


class Intent(str, enum.Enum):
    CREATE_TASK = "CreateTask"
    GET_TASKS = "GetTasks"
    UPDATE_TASK = "UpdateTask"
    ASSIGN_TASK = "AssignTask"
    CREATE_PROJECT = "CreateProject"
    GET_PROJECTS = "GetProjects"
    CREATE_TEAM = "CreateTeam"
    GET_TEAMS = "GetTeams"
    INVITE_TO_TEAM = "InviteToTeam"
    CREATE_ORGANIZATION = "CreateOrganization"
    GET_ORGANIZATIONS = "GetOrganizations"
    INVITE_TO_ORGANIZATION = "InviteToOrganization"
    GET_ANALYTICS = "GetAnalytics"
    GET_NOTIFICATIONS = "GetNotifications"
    UNKNOWN = "Unknown"


@dataclass
class DetectedIntent:
    intent: Intent
    parameters: Dict[str, Any] = field(default_factory=dict)


# Parameter extraction

def extract_parameter(query: str, keywords: Iterable[str]) -> Optional[str]:
    """Value following the first keyword found: a quoted phrase or a single word."""
    for keyword in keywords:
        match = re.search(
            rf"\b{keyword}\s+(?:\"([^\"]+)\"|'([^']+)'|([^\"'\s,]+))",
            query,
            re.IGNORECASE,
        )
        if match:
            return next(group for group in match.groups() if group)
    return None


def extract_number(query: str, keywords: Iterable[str]) -> Optional[int]:
    for keyword in keywords:
        match = re.search(rf"\b{keyword}\s+(\d+)", query, re.IGNORECASE)
        if match:
            return int(match.group(1))
    # "last 3 weeks"
    for keyword in keywords:
        match = re.search(rf"(\d+)\s+{keyword}\b", query, re.IGNORECASE)
        if match:
            return int(match.group(1))
    return None


def extract_email(query: str) -> Optional[str]:
    match = re.search(r"([a-zA-Z0-9._+-]+@[a-zA-Z0-9._-]+\.[a-zA-Z0-9_-]+)", query)
    return match.group(1) if match else None


def extract_task_id(query: str) -> Optional[int]:
    match = re.search(r"\btask\s+(?:id\s+)?#?(\d+)\b", query, re.IGNORECASE) or re.search(r"#(\d+)\b", query)
    return int(match.group(1)) if match else None


def extract_project_reference(query: str) -> Optional[str]:
    key_match = re.search(r"\b([A-Z0-9]{2,4}-\d{4})\b", query)
    if key_match:
        return key_match.group(1)
    return extract_parameter(query, ["project"])


def extract_due_date(query: str, today: Optional[date] = None) -> Optional[datetime]:
    match = re.search(r"(today|tomorrow|next week|next month|\d{1,2}/\d{1,2}/\d{4})", query, re.IGNORECASE)
    if not match:
        return None
    today = today or utcnow().date()
    phrase = match.group(1).lower()
    if phrase == "today":
        day = today
    elif phrase == "tomorrow":
        day = today + timedelta(days=1)
    elif phrase == "next week":
        day = today + timedelta(weeks=1)
    elif phrase == "next month":
        day = shift_months(today, 1)
    else:
        try:
            day = datetime.strptime(phrase, "%m/%d/%Y").date()
        except ValueError:
            return None
    return start_of_day(day)


def _enum_value(raw: Optional[str], enum_cls) -> Optional[str]:
    """Normalise "in progress" / "in-progress" style words onto an enum value."""
    if not raw:
        return None
    value = re.sub(r"[\s-]+", "_", raw.strip()).upper()
    if value not in enum_cls.__members__:
        raise TaskFlowError(f"Unknown {enum_cls.__name__.replace('Task', '').lower()} \"{raw}\".")
    return value


def detect_intent(query: str) -> DetectedIntent:
    q = query.lower()

    def has(*phrases):
        return any(phrase in q for phrase in phrases)

    # Tasks
    if has("create task", "add task"):
        return DetectedIntent(Intent.CREATE_TASK, {
            "title": extract_parameter(query, ["named", "called", "task"]),
            "description": extract_parameter(query, ["description", "details", "about"]),
            "priority": extract_parameter(query, ["priority", "importance"]),
            "due_date": extract_due_date(query),
            "project": extract_project_reference(query),
        })
    if has("show task", "get task", "list task"):
        return DetectedIntent(Intent.GET_TASKS, {
            "status": extract_parameter(query, ["status", "state"]),
            "priority": extract_parameter(query, ["priority", "importance"]),
            "project": extract_project_reference(query),
            "organization": extract_parameter(query, ["organization"]),
        })
    if has("update task", "change task"):
        return DetectedIntent(Intent.UPDATE_TASK, {
            "task_id": extract_task_id(query),
            "title": extract_parameter(query, ["title", "name"]),
            "status": extract_parameter(query, ["status", "state"]),
            "priority": extract_parameter(query, ["priority", "importance"]),
            "due_date": extract_due_date(query),
        })
    if has("assign task", "delegate task"):
        return DetectedIntent(Intent.ASSIGN_TASK, {
            "task_id": extract_task_id(query),
            "assignee": extract_parameter(query, ["to", "assignee", "user"]),
        })

    # Projects
    if has("create project", "add project"):
        return DetectedIntent(Intent.CREATE_PROJECT, {
            "name": extract_parameter(query, ["named", "called", "project"]),
            "description": extract_parameter(query, ["description", "details", "about"]),
            "organization": extract_parameter(query, ["organization"]),
        })
    if has("show project", "get project", "list project"):
        return DetectedIntent(Intent.GET_PROJECTS, {
            "organization": extract_parameter(query, ["organization"]),
        })

    # Teams
    if has("create team", "add team"):
        return DetectedIntent(Intent.CREATE_TEAM, {
            "name": extract_parameter(query, ["named", "called", "team"]),
            "description": extract_parameter(query, ["description", "details", "about"]),
            "organization": extract_parameter(query, ["organization"]),
        })
    if has("show team", "get team", "list team"):
        return DetectedIntent(Intent.GET_TEAMS, {
            "organization": extract_parameter(query, ["organization"]),
        })
    if has("invite to team", "add to team"):
        return DetectedIntent(Intent.INVITE_TO_TEAM, {
            "team": extract_parameter(query, ["team"]),
            "email": extract_email(query),
        })

    # Organizations
    if has("create organization", "add organization"):
        return DetectedIntent(Intent.CREATE_ORGANIZATION, {
            "name": extract_parameter(query, ["named", "called", "organization"]),
            "description": extract_parameter(query, ["description", "details", "about"]),
        })
    if has("show organization", "get organization", "list organization"):
        return DetectedIntent(Intent.GET_ORGANIZATIONS)
    if has("invite to organization", "add to organization"):
        return DetectedIntent(Intent.INVITE_TO_ORGANIZATION, {
            "organization": extract_parameter(query, ["organization"]),
            "email": extract_email(query),
        })

    if has("analytics", "report", "statistics"):
        return DetectedIntent(Intent.GET_ANALYTICS, {
            "organization": extract_parameter(query, ["organization"]),
            "weeks": extract_number(query, ["weeks", "week"]),
            "months": extract_number(query, ["months", "month"]),
        })

    if has("notification", "alert", "message"):
        return DetectedIntent(Intent.GET_NOTIFICATIONS, {"unread": "unread" in q})

    return DetectedIntent(Intent.UNKNOWN)


# Handlers

Handler = Callable[[AsyncSession, User, Dict[str, Any]], Awaitable[VoiceResponse]]


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


async def _organization_id(db: AsyncSession, user: User, name: Optional[str]) -> Optional[int]:
    if not name:
        return None
    organization = await workspace.find_organization(db, user, name)
    if not organization:
        raise TaskFlowError(f'Organization "{name}" not found.')
    return organization.id


async def _project_id(db: AsyncSession, user: User, reference: Optional[str]) -> Optional[int]:
    if not reference:
        return None
    project = await workspace.find_project(db, user, reference)
    if not project:
        raise TaskFlowError(f'Project "{reference}" not found.')
    return project.id


async def handle_create_task(db, user, params):
    if not params.get("title"):
        return VoiceResponse(text="Please specify a task title.")
    task = await workspace.create_task(db, user, TaskCreate(
        title=params["title"],
        description=params.get("description") or "",
        priority=_enum_value(params.get("priority"), TaskPriority) or "MEDIUM",
        due_date=params.get("due_date"),
        project_id=await _project_id(db, user, params.get("project")),
    ))
    [response] = await workspace.task_responses(db, [task])
    return VoiceResponse(text=f'Task "{task.title}" created successfully.', data=_dump(response))


async def handle_get_tasks(db, user, params):
    tasks = await workspace.list_tasks(
        db, user.id,
        status=_enum_value(params.get("status"), TaskStatus),
        priority=_enum_value(params.get("priority"), TaskPriority),
        project_id=await _project_id(db, user, params.get("project")),
        organization_id=await _organization_id(db, user, params.get("organization")),
    )
    if not tasks:
        return VoiceResponse(text="No tasks found matching your criteria.")
    responses = await workspace.task_responses(db, tasks)
    lines = "\n".join(f"- {t.title} (Status: {t.status}, Priority: {t.priority})" for t in tasks)
    return VoiceResponse(
        text=f"Found {len(tasks)} tasks:\n{lines}",
        data=[_dump(r) for r in responses],
    )


async def handle_update_task(db, user, params):
    if not params.get("task_id"):
        return VoiceResponse(text="Please specify a task ID.")
    task = await workspace.get_accessible_task(db, params["task_id"], user)
    changes = {}
    if params.get("title"):
        changes["title"] = params["title"]
    if params.get("status"):
        changes["status"] = _enum_value(params["status"], TaskStatus)
    if params.get("priority"):
        changes["priority"] = _enum_value(params["priority"], TaskPriority)
    if params.get("due_date"):
        changes["due_date"] = params["due_date"]
    if not changes:
        return VoiceResponse(text="Please specify what to change (title, status, priority or due date).")
    task = await workspace.update_task(db, task, TaskUpdate(**changes), user)
    [response] = await workspace.task_responses(db, [task])
    return VoiceResponse(text=f'Task "{task.title}" updated successfully.', data=_dump(response))


async def handle_assign_task(db, user, params):
    if not params.get("task_id") or not params.get("assignee"):
        return VoiceResponse(text="Please specify both task ID and assignee name.")
    assignee = await workspace.find_user_by_name(db, params["assignee"])
    if not assignee:
        return VoiceResponse(text=f'User "{params["assignee"]}" not found.')
    task = await workspace.get_accessible_task(db, params["task_id"], user)
    await workspace.assign_task(db, task, assignee)
    [response] = await workspace.task_responses(db, [task])
    return VoiceResponse(
        text=f'Task "{task.title}" assigned to {assignee.name or assignee.email} successfully.',
        data=_dump(response),
    )


async def handle_create_project(db, user, params):
    if not params.get("name"):
        return VoiceResponse(text="Please specify a project name.")
    project = await workspace.create_project(db, user, ProjectCreate(
        name=params["name"],
        description=params.get("description"),
        organization_id=await _organization_id(db, user, params.get("organization")),
    ))
    return VoiceResponse(
        text=f'Project "{project.name}" created successfully with key {project.key}.',
        data=_dump(ProjectResponse.model_validate(project)),
    )


async def handle_get_projects(db, user, params):
    projects = await workspace.list_projects(db, user, await _organization_id(db, user, params.get("organization")))
    if not projects:
        return VoiceResponse(text="No projects found.")
    lines = "\n".join(f"- {p.name} ({p.key}) - {p.task_count} tasks" for p in projects)
    return VoiceResponse(text=f"Found {len(projects)} projects:\n{lines}", data=[_dump(p) for p in projects])


async def handle_create_team(db, user, params):
    if not params.get("name"):
        return VoiceResponse(text="Please specify a team name.")
    team = await workspace.create_team(db, user, TeamCreate(
        name=params["name"],
        description=params.get("description"),
        organization_id=await _organization_id(db, user, params.get("organization")),
    ))
    return VoiceResponse(text=f'Team "{team.name}" created successfully.', data=_dump(TeamResponse.model_validate(team)))


async def handle_get_teams(db, user, params):
    teams = await workspace.list_teams(db, user, await _organization_id(db, user, params.get("organization")))
    if not teams:
        return VoiceResponse(text="No teams found.")
    lines = "\n".join(f"- {t.name} - {t.member_count} members" for t in teams)
    return VoiceResponse(text=f"Found {len(teams)} teams:\n{lines}", data=[_dump(t) for t in teams])


async def handle_invite_to_team(db, user, params):
    if not params.get("team") or not params.get("email"):
        return VoiceResponse(text="Please specify both team name and email address.")
    team = await workspace.find_team(db, user, params["team"])
    if not team:
        return VoiceResponse(text=f'Team "{params["team"]}" not found.')
    membership = await workspace.add_team_member(db, user, team.id, params["email"])
    return VoiceResponse(
        text=f'{params["email"]} added to team "{team.name}" successfully.',
        data=_dump(TeamMembershipResponse.model_validate(membership)),
    )


async def handle_create_organization(db, user, params):
    if not params.get("name"):
        return VoiceResponse(text="Please specify an organization name.")
    organization = await workspace.create_organization(db, user, OrganizationCreate(
        name=params["name"],
        description=params.get("description"),
    ))
    return VoiceResponse(
        text=f'Organization "{organization.name}" created successfully.',
        data=_dump(OrganizationResponse.model_validate(organization)),
    )


async def handle_get_organizations(db, user, params):
    organizations = await workspace.list_organizations(db, user)
    if not organizations:
        return VoiceResponse(text="No organizations found.")
    lines = "\n".join(
        f"- {o.name} - {o.project_count} projects, {o.team_count} teams, {o.member_count} members"
        for o in organizations
    )
    return VoiceResponse(
        text=f"Found {len(organizations)} organizations:\n{lines}",
        data=[_dump(o) for o in organizations],
    )


async def handle_invite_to_organization(db, user, params):
    if not params.get("organization") or not params.get("email"):
        return VoiceResponse(text="Please specify both organization name and email address.")
    organization_id = await _organization_id(db, user, params["organization"])
    membership = await workspace.add_organization_member(db, user, organization_id, params["email"])
    return VoiceResponse(
        text=f'{params["email"]} added to organization "{params["organization"]}" successfully.',
        data=_dump(OrganizationMemberResponse.model_validate(membership)),
    )


def format_analytics(overview) -> str:
    text = "Here's your analytics report:\n\n"
    tasks = overview.task_analytics
    if tasks.tasks_by_status:
        text += "Tasks by Status:\n"
        text += "".join(f"- {item.status}: {item.count}\n" for item in tasks.tasks_by_status)
        text += "\n"
    if tasks.tasks_by_priority:
        text += "Tasks by Priority:\n"
        text += "".join(f"- {item.priority}: {item.count}\n" for item in tasks.tasks_by_priority)
        text += "\n"

    productivity = overview.productivity_analytics
    if productivity.weekly_productivity:
        text += "Weekly Productivity:\n"
        text += "".join(
            f"- {week.week}: {week.week_total} tasks completed\n"
            for week in productivity.weekly_productivity
        )
        text += f"\nAverage completion time: {productivity.avg_completion_time} days\n"
        text += f"Current streak: {productivity.current_streak} days\n\n"

    team = overview.team_analytics
    if team and team.team_productivity:
        text += "Team Productivity:\n"
        text += "".join(
            f"- {member.name or member.email}: {member.completion_rate}% completion rate\n"
            for member in team.team_productivity[:5]
        )
    return text


async def handle_get_analytics(db, user, params):
    scope = analytics.AnalyticsScope(
        user_id=user.id,
        role=user.role,
        organization_id=await _organization_id(db, user, params.get("organization")),
    )
    overview = await analytics.compute_overview(
        db, scope,
        months=min(params.get("months") or 6, settings.ANALYTICS_MAX_MONTHS),
        weeks=min(params.get("weeks") or 4, settings.ANALYTICS_MAX_WEEKS),
    )
    return VoiceResponse(text=format_analytics(overview), data=_dump(overview))


async def handle_get_notifications(db, user, params):
    unread = bool(params.get("unread"))
    items = await notifications.list_notifications(db, user.id, unread=unread)
    if not items:
        return VoiceResponse(text="No unread notifications." if unread else "No notifications found.")
    lines = "\n".join(
        f"- {n.title}: {n.message} ({'Read' if n.read else 'Unread'})" for n in items
    )
    return VoiceResponse(
        text=f"Found {len(items)} notifications:\n{lines}",
        data=[_dump(NotificationResponse.model_validate(n)) for n in items],
    )


async def handle_unknown(db, user, params):
    return VoiceResponse(text=UNKNOWN_REPLY)


HANDLERS: Dict[Intent, Handler] = {
    Intent.CREATE_TASK: handle_create_task,
    Intent.GET_TASKS: handle_get_tasks,
    Intent.UPDATE_TASK: handle_update_task,
    Intent.ASSIGN_TASK: handle_assign_task,
    Intent.CREATE_PROJECT: handle_create_project,
    Intent.GET_PROJECTS: handle_get_projects,
    Intent.CREATE_TEAM: handle_create_team,
    Intent.GET_TEAMS: handle_get_teams,
    Intent.INVITE_TO_TEAM: handle_invite_to_team,
    Intent.CREATE_ORGANIZATION: handle_create_organization,
    Intent.GET_ORGANIZATIONS: handle_get_organizations,
    Intent.INVITE_TO_ORGANIZATION: handle_invite_to_organization,
    Intent.GET_ANALYTICS: handle_get_analytics,
    Intent.GET_NOTIFICATIONS: handle_get_notifications,
    Intent.UNKNOWN: handle_unknown,
}


async def dispatch(db: AsyncSession, user: User, detected: DetectedIntent) -> VoiceResponse:
    """Run the handler for a detected intent.

    Missing or unresolvable parameters come back as guidance text rather than
    errors. Anything that is not a TaskFlowError propagates.
    """
    handler = HANDLERS[detected.intent]
    try:
        return await handler(db, user, detected.parameters)
    except TaskFlowError as e:
        await db.rollback()
        return VoiceResponse(text=e.message)


async def answer(db: AsyncSession, user: User, query: str) -> VoiceResponse:
    detected = detect_intent(query)
    logger.info("Voice query from user %s matched intent %s", user.id, detected.intent.value)
    return await dispatch(db, user, detected)
