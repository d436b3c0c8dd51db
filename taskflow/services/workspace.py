"""Create/read/update/delete operations for tasks, tags, projects, organizations and teams.

Routers and the voice agent both go through these functions. Business-rule
violations raise `TaskFlowError` subclasses; routers turn them into HTTP
errors and the voice agent into plain-text answers.
"""
import logging
import random
import re
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, func, and_, or_, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.core.exceptions import ConflictError, NotFoundError, PermissionDeniedError
from taskflow.models.enums import (
    MANAGER_ROLES,
    ORGANIZATION_MANAGER_ROLES,
    MembershipStatus,
    NotificationType,
    OrganizationRole,
    TeamRole,
    UserRole,
)
from taskflow.models.organization import Organization, OrganizationMember
from taskflow.models.project import Project
from taskflow.models.tag import DEFAULT_TAG_COLOR, Tag, TaskTag
from taskflow.models.task import Task, TaskAssignee, Comment
from taskflow.models.team import Team, TeamMembership
from taskflow.models.user import User
from taskflow.schemas.organization import OrganizationCreate, OrganizationResponse
from taskflow.schemas.project import ProjectCreate, ProjectResponse
from taskflow.schemas.tag import TagCreate, TagResponse, TagSummary
from taskflow.schemas.task import TaskCreate, TaskResponse, TaskUpdate
from taskflow.schemas.team import TeamCreate, TeamResponse
from taskflow.schemas.user import UserSummary
from taskflow.services.notifications import create_notification

logger = logging.getLogger(__name__)


# Users

async def find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def find_user_by_name(db: AsyncSession, name: str) -> Optional[User]:
    pattern = f"%{name}%"
    result = await db.execute(
        select(User)
        .where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
        .order_by(User.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError(f"User with ID {user_id} not found.")
    return user


# Tasks

async def get_task(db: AsyncSession, task_id: int) -> Task:
    result = await db.execute(select(Task).where(Task.id == task_id))
    task = result.scalar_one_or_none()
    if not task:
        raise NotFoundError(f"Task with ID {task_id} not found.")
    return task


async def _is_assignee(db: AsyncSession, task_id: int, user_id: int) -> bool:
    result = await db.execute(
        select(TaskAssignee.id)
        .where(TaskAssignee.task_id == task_id)
        .where(TaskAssignee.user_id == user_id)
    )
    return result.first() is not None


async def get_accessible_task(db: AsyncSession, task_id: int, user: User) -> Task:
    """Creator, assignees, managers and admins may see a task."""
    task = await get_task(db, task_id)
    if task.creator_id == user.id or user.role in MANAGER_ROLES:
        return task
    if await _is_assignee(db, task.id, user.id):
        return task
    raise NotFoundError(f"Task with ID {task_id} not found.")


async def task_responses(db: AsyncSession, tasks: Sequence[Task]) -> List[TaskResponse]:
    task_ids = [task.id for task in tasks]
    assignees: Dict[int, List[UserSummary]] = {task_id: [] for task_id in task_ids}
    if task_ids:
        result = await db.execute(
            select(TaskAssignee.task_id, User.id, User.name, User.email)
            .join(User, User.id == TaskAssignee.user_id)
            .where(TaskAssignee.task_id.in_(task_ids))
            .order_by(TaskAssignee.id)
        )
        for task_id, user_id, name, email in result.all():
            assignees[task_id].append(UserSummary(id=user_id, name=name, email=email))

    tags: Dict[int, List[TagSummary]] = {task_id: [] for task_id in task_ids}
    if task_ids:
        result = await db.execute(
            select(TaskTag.task_id, Tag.id, Tag.name, Tag.color)
            .join(Tag, Tag.id == TaskTag.tag_id)
            .where(TaskTag.task_id.in_(task_ids))
            .order_by(Tag.name)
        )
        for task_id, tag_id, name, color in result.all():
            tags[task_id].append(TagSummary(id=tag_id, name=name, color=color))

    responses = []
    for task in tasks:
        response = TaskResponse.model_validate(task)
        response.assignees = assignees.get(task.id, [])
        response.tags = tags.get(task.id, [])
        responses.append(response)
    return responses


async def _get_tags(db: AsyncSession, tag_ids: Sequence[int]) -> List[Tag]:
    tag_ids = list(dict.fromkeys(tag_ids))
    if not tag_ids:
        return []
    result = await db.execute(select(Tag).where(Tag.id.in_(tag_ids)))
    found = {tag.id: tag for tag in result.scalars().all()}
    for tag_id in tag_ids:
        if tag_id not in found:
            raise NotFoundError(f"Tag with ID {tag_id} not found.")
    return [found[tag_id] for tag_id in tag_ids]


async def create_task(db: AsyncSession, creator: User, task_in: TaskCreate) -> Task:
    if task_in.project_id is not None:
        await get_visible_project(db, creator, task_in.project_id)
    task_type = task_in.type
    if task_in.parent_id is not None:
        await get_task(db, task_in.parent_id)
        if task_type == "TASK":
            task_type = "SUBTASK"

    assignees = []
    for user_id in dict.fromkeys(task_in.assignee_ids):
        assignees.append(await get_user(db, user_id))
    tags = await _get_tags(db, task_in.tag_ids)

    task = Task(
        title=task_in.title,
        description=task_in.description,
        status=task_in.status,
        priority=task_in.priority,
        type=task_type,
        due_date=task_in.due_date,
        project_id=task_in.project_id,
        parent_id=task_in.parent_id,
        creator_id=creator.id,
    )
    db.add(task)
    await db.flush()

    for assignee in assignees:
        db.add(TaskAssignee(task_id=task.id, user_id=assignee.id))
        if assignee.id != creator.id:
            create_notification(
                db, assignee.id, "Task Assigned",
                f"You have been assigned to task: {task.title}",
                NotificationType.TASK_ASSIGNED.value,
            )
    for tag in tags:
        db.add(TaskTag(task_id=task.id, tag_id=tag.id))

    await db.commit()
    await db.refresh(task)
    logger.info("Task %s created by user %s", task.id, creator.id)
    return task


async def list_tasks(
    db: AsyncSession,
    user_id: int,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    project_id: Optional[int] = None,
    organization_id: Optional[int] = None,
) -> List[Task]:
    is_assignee = (
        select(TaskAssignee.id)
        .where(TaskAssignee.task_id == Task.id)
        .where(TaskAssignee.user_id == user_id)
        .exists()
    )
    query = select(Task).where(or_(Task.creator_id == user_id, is_assignee))
    if status:
        query = query.where(Task.status == status.upper())
    if priority:
        query = query.where(Task.priority == priority.upper())
    if project_id is not None:
        query = query.where(Task.project_id == project_id)
    if organization_id is not None:
        query = query.where(
            Task.project_id.in_(select(Project.id).where(Project.organization_id == organization_id))
        )
    result = await db.execute(query.order_by(Task.created_at.desc(), Task.id.desc()))
    return result.scalars().all()


async def update_task(db: AsyncSession, task: Task, task_in: TaskUpdate, user: User) -> Task:
    changes = task_in.model_dump(exclude_unset=True)
    tag_ids = changes.pop("tag_ids", None)
    if changes.get("project_id") is not None:
        await get_visible_project(db, user, changes["project_id"])
    for field, value in changes.items():
        if field in ("title", "status", "priority", "type") and value is None:
            continue
        setattr(task, field, value)

    if tag_ids is not None:
        tags = await _get_tags(db, tag_ids)
        await db.execute(delete(TaskTag).where(TaskTag.task_id == task.id))
        for tag in tags:
            db.add(TaskTag(task_id=task.id, tag_id=tag.id))
        # A tag edit counts as an edit of the task, DONE tasks included
        task.updated_at = func.now()
    db.add(task)
    await db.commit()
    await db.refresh(task)
    return task


async def delete_task(db: AsyncSession, task: Task, user: User) -> None:
    if task.creator_id != user.id and user.role not in MANAGER_ROLES:
        raise PermissionDeniedError("Only the creator can delete this task")
    await db.execute(delete(TaskAssignee).where(TaskAssignee.task_id == task.id))
    await db.execute(delete(TaskTag).where(TaskTag.task_id == task.id))
    await db.execute(delete(Comment).where(Comment.task_id == task.id))
    await db.execute(update(Task).where(Task.parent_id == task.id).values(parent_id=None))
    await db.delete(task)
    await db.commit()
    logger.info("Task %s deleted by user %s", task.id, user.id)


async def assign_task(db: AsyncSession, task: Task, assignee: User) -> TaskAssignee:
    if await _is_assignee(db, task.id, assignee.id):
        raise ConflictError(f"Task is already assigned to {assignee.name or assignee.email}.")

    assignment = TaskAssignee(task_id=task.id, user_id=assignee.id)
    db.add(assignment)
    create_notification(
        db, assignee.id, "Task Assigned",
        f"You have been assigned to task: {task.title}",
        NotificationType.TASK_ASSIGNED.value,
    )
    await db.commit()
    await db.refresh(assignment)
    return assignment


async def add_comment(db: AsyncSession, task: Task, author: User, content: str) -> Comment:
    comment = Comment(task_id=task.id, author_id=author.id, content=content)
    db.add(comment)
    await db.commit()
    await db.refresh(comment)
    return comment


async def list_comments(db: AsyncSession, task: Task) -> List[Comment]:
    result = await db.execute(
        select(Comment).where(Comment.task_id == task.id).order_by(Comment.created_at, Comment.id)
    )
    return result.scalars().all()


# Projects

def generate_project_key(name: str) -> str:
    """First four letters of the name plus four random digits, e.g. WEBS-4821."""
    prefix = re.sub(r"[^A-Za-z0-9]", "", name)[:4].upper() or "PROJ"
    return f"{prefix}-{random.randint(1000, 9999)}"


def _member_organization_ids(user_id: int):
    return select(OrganizationMember.organization_id).where(OrganizationMember.user_id == user_id)


def visible_project_criteria(user: User) -> list:
    """Projects of the user's organizations plus their own unaffiliated ones; managers see all."""
    if user.role in MANAGER_ROLES:
        return []
    return [or_(
        Project.organization_id.in_(_member_organization_ids(user.id)),
        and_(Project.organization_id.is_(None), Project.owner_id == user.id),
    )]


async def get_visible_project(db: AsyncSession, user: User, project_id: int) -> Project:
    result = await db.execute(
        select(Project).where(Project.id == project_id).where(*visible_project_criteria(user))
    )
    project = result.scalar_one_or_none()
    if not project:
        raise NotFoundError(f"Project with ID {project_id} not found.")
    return project


async def find_project(db: AsyncSession, user: User, reference: str) -> Optional[Project]:
    """Look a visible project up by its key, falling back to a name match."""
    visible = visible_project_criteria(user)
    result = await db.execute(select(Project).where(Project.key == reference.upper()).where(*visible))
    project = result.scalar_one_or_none()
    if project:
        return project
    result = await db.execute(
        select(Project)
        .where(Project.name.ilike(f"%{reference}%"))
        .where(*visible)
        .order_by(Project.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_project(db: AsyncSession, owner: User, project_in: ProjectCreate) -> Project:
    if project_in.organization_id is not None:
        await _require_organization_member(db, owner, project_in.organization_id)

    key = project_in.key
    if key:
        existing = await db.execute(select(Project.id).where(Project.key == key))
        if existing.first():
            raise ConflictError(f"Project key {key} is already in use.")
    else:
        for _ in range(10):
            key = generate_project_key(project_in.name)
            existing = await db.execute(select(Project.id).where(Project.key == key))
            if not existing.first():
                break
        else:
            raise ConflictError("Could not generate a unique project key.")

    project = Project(
        name=project_in.name,
        description=project_in.description or "",
        key=key,
        organization_id=project_in.organization_id,
        owner_id=owner.id,
    )
    db.add(project)
    await db.commit()
    await db.refresh(project)
    logger.info("Project %s created with key %s", project.id, project.key)
    return project


async def list_projects(
    db: AsyncSession,
    user: User,
    organization_id: Optional[int] = None,
) -> List[ProjectResponse]:
    task_count = (
        select(func.count(Task.id))
        .where(Task.project_id == Project.id)
        .scalar_subquery()
    )
    query = select(Project, task_count).where(*visible_project_criteria(user))
    if organization_id is not None:
        query = query.where(Project.organization_id == organization_id)
    result = await db.execute(query.order_by(Project.created_at.desc(), Project.id.desc()))

    projects = []
    for project, count in result.all():
        response = ProjectResponse.model_validate(project)
        response.task_count = count
        projects.append(response)
    return projects


# Organizations

async def get_organization(db: AsyncSession, organization_id: int) -> Organization:
    result = await db.execute(select(Organization).where(Organization.id == organization_id))
    organization = result.scalar_one_or_none()
    if not organization:
        raise NotFoundError(f"Organization with ID {organization_id} not found.")
    return organization


async def _organization_membership(
    db: AsyncSession, organization_id: int, user_id: int
) -> Optional[OrganizationMember]:
    result = await db.execute(
        select(OrganizationMember)
        .where(OrganizationMember.organization_id == organization_id)
        .where(OrganizationMember.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def _require_organization_member(db: AsyncSession, user: User, organization_id: int) -> Organization:
    organization = await get_organization(db, organization_id)
    if user.role != UserRole.ADMIN.value and not await _organization_membership(db, organization.id, user.id):
        raise PermissionDeniedError("Permission denied")
    return organization


async def find_organization(db: AsyncSession, user: User, name: str) -> Optional[Organization]:
    """Name lookup among the organizations the user belongs to."""
    result = await db.execute(
        select(Organization)
        .where(Organization.name.ilike(f"%{name}%"))
        .where(Organization.id.in_(_member_organization_ids(user.id)))
        .order_by(Organization.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_organization(db: AsyncSession, owner: User, organization_in: OrganizationCreate) -> Organization:
    organization = Organization(
        name=organization_in.name,
        description=organization_in.description or "",
    )
    db.add(organization)
    await db.flush()
    db.add(OrganizationMember(
        organization_id=organization.id,
        user_id=owner.id,
        role=OrganizationRole.OWNER.value,
    ))
    await db.commit()
    await db.refresh(organization)
    logger.info("Organization %s created by user %s", organization.id, owner.id)
    return organization


async def list_organizations(db: AsyncSession, user: User) -> List[OrganizationResponse]:
    project_count = select(func.count(Project.id)).where(Project.organization_id == Organization.id).scalar_subquery()
    team_count = select(func.count(Team.id)).where(Team.organization_id == Organization.id).scalar_subquery()
    member_count = (
        select(func.count(OrganizationMember.id))
        .where(OrganizationMember.organization_id == Organization.id)
        .scalar_subquery()
    )
    result = await db.execute(
        select(Organization, project_count, team_count, member_count)
        .where(Organization.id.in_(_member_organization_ids(user.id)))
        .order_by(Organization.created_at.desc(), Organization.id.desc())
    )

    organizations = []
    for organization, projects, teams, members in result.all():
        response = OrganizationResponse.model_validate(organization)
        response.project_count = projects
        response.team_count = teams
        response.member_count = members
        organizations.append(response)
    return organizations


async def add_organization_member(
    db: AsyncSession, actor: User, organization_id: int, email: str
) -> OrganizationMember:
    """Global admins and the organization's OWNER/ADMIN members may add people."""
    organization = await get_organization(db, organization_id)
    if actor.role != UserRole.ADMIN.value:
        own = await _organization_membership(db, organization.id, actor.id)
        if not own or own.role not in ORGANIZATION_MANAGER_ROLES:
            raise PermissionDeniedError("Permission denied")

    user = await find_user_by_email(db, email)
    if not user:
        raise NotFoundError(f"User with email {email} not found.")
    if await _organization_membership(db, organization.id, user.id):
        raise ConflictError(f'User is already a member of organization "{organization.name}".')

    membership = OrganizationMember(
        organization_id=organization.id,
        user_id=user.id,
        role=OrganizationRole.MEMBER.value,
    )
    db.add(membership)
    create_notification(
        db, user.id, "Organization Invitation",
        f"You have been added to organization: {organization.name}",
        NotificationType.SYSTEM.value,
    )
    await db.commit()
    await db.refresh(membership)
    logger.info("User %s added to organization %s by user %s", user.id, organization.id, actor.id)
    return membership


# Teams

def visible_team_criteria(user: User) -> list:
    member_of = select(TeamMembership.team_id).where(TeamMembership.user_id == user.id)
    return [or_(Team.owner_id == user.id, Team.id.in_(member_of))]


async def get_team(db: AsyncSession, team_id: int) -> Team:
    result = await db.execute(select(Team).where(Team.id == team_id))
    team = result.scalar_one_or_none()
    if not team:
        raise NotFoundError(f"Team with ID {team_id} not found.")
    return team


async def find_team(db: AsyncSession, user: User, name: str) -> Optional[Team]:
    result = await db.execute(
        select(Team)
        .where(Team.name.ilike(f"%{name}%"))
        .where(*visible_team_criteria(user))
        .order_by(Team.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_team(db: AsyncSession, owner: User, team_in: TeamCreate) -> Team:
    if team_in.organization_id is not None:
        await _require_organization_member(db, owner, team_in.organization_id)
    team = Team(
        name=team_in.name,
        description=team_in.description or "",
        organization_id=team_in.organization_id,
        owner_id=owner.id,
    )
    db.add(team)
    await db.commit()
    await db.refresh(team)
    return team


async def list_teams(
    db: AsyncSession,
    user: User,
    organization_id: Optional[int] = None,
) -> List[TeamResponse]:
    member_count = (
        select(func.count(TeamMembership.id))
        .where(TeamMembership.team_id == Team.id)
        .scalar_subquery()
    )
    query = select(Team, member_count).where(*visible_team_criteria(user))
    if organization_id is not None:
        query = query.where(Team.organization_id == organization_id)
    result = await db.execute(query.order_by(Team.created_at.desc(), Team.id.desc()))

    teams = []
    for team, members in result.all():
        response = TeamResponse.model_validate(team)
        response.member_count = members
        teams.append(response)
    return teams


async def _team_membership(db: AsyncSession, team_id: int, user_id: int) -> Optional[TeamMembership]:
    result = await db.execute(
        select(TeamMembership)
        .where(TeamMembership.team_id == team_id)
        .where(TeamMembership.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def add_team_member(db: AsyncSession, actor: User, team_id: int, email: str) -> TeamMembership:
    """Global admins, the team owner and the team's ADMIN members may add people."""
    team = await get_team(db, team_id)
    if actor.role != UserRole.ADMIN.value and team.owner_id != actor.id:
        own = await _team_membership(db, team.id, actor.id)
        if not own or own.role != TeamRole.ADMIN.value:
            raise PermissionDeniedError("Permission denied")

    user = await find_user_by_email(db, email)
    if not user:
        raise NotFoundError(f"User with email {email} not found.")
    if await _team_membership(db, team.id, user.id):
        raise ConflictError(f'User is already a member of team "{team.name}".')

    membership = TeamMembership(
        team_id=team.id,
        user_id=user.id,
        status=MembershipStatus.ACTIVE.value,
        role=TeamRole.MEMBER.value,
    )
    db.add(membership)
    create_notification(
        db, user.id, "Team Invitation",
        f"You have been added to team: {team.name}",
        NotificationType.TEAM_INVITATION.value,
    )
    await db.commit()
    await db.refresh(membership)
    logger.info("User %s added to team %s by user %s", user.id, team.id, actor.id)
    return membership


# Tags

async def list_tags(db: AsyncSession, search: Optional[str] = None) -> List[TagResponse]:
    task_count = select(func.count(TaskTag.id)).where(TaskTag.tag_id == Tag.id).scalar_subquery()
    query = select(Tag, task_count)
    if search:
        query = query.where(Tag.name.ilike(f"%{search}%"))
    result = await db.execute(query.order_by(Tag.name))

    tags = []
    for tag, count in result.all():
        response = TagResponse.model_validate(tag)
        response.task_count = count
        tags.append(response)
    return tags


async def create_tag(db: AsyncSession, tag_in: TagCreate) -> Tag:
    existing = await db.execute(select(Tag.id).where(Tag.name == tag_in.name))
    if existing.first():
        raise ConflictError("Tag already exists")
    tag = Tag(name=tag_in.name, color=tag_in.color or DEFAULT_TAG_COLOR)
    db.add(tag)
    await db.commit()
    await db.refresh(tag)
    return tag
