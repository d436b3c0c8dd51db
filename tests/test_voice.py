from datetime import date, datetime, timezone

import pytest
from sqlalchemy import func, select

from taskflow.models.notification import Notification
from taskflow.models.task import Task
from taskflow.services.voice import (
    HANDLERS,
    UNKNOWN_REPLY,
    Intent,
    answer,
    detect_intent,
    extract_due_date,
    extract_number,
    extract_parameter,
    extract_project_reference,
    extract_task_id,
)


class TestDetectIntent:
    def test_create_task(self):
        detected = detect_intent('Create task named "Write report" with priority high')
        assert detected.intent == Intent.CREATE_TASK
        assert detected.parameters["title"] == "Write report"
        assert detected.parameters["priority"] == "high"
        assert detected.parameters["due_date"] is None

    def test_create_task_takes_precedence_over_analytics_words(self):
        detected = detect_intent("create task called report")
        assert detected.intent == Intent.CREATE_TASK
        assert detected.parameters["title"] == "report"

    def test_get_tasks_with_filters(self):
        detected = detect_intent("show tasks with status in-progress in project WEB-1234")
        assert detected.intent == Intent.GET_TASKS
        assert detected.parameters["status"] == "in-progress"
        assert detected.parameters["project"] == "WEB-1234"

    def test_update_task(self):
        detected = detect_intent("update task 12 status done")
        assert detected.intent == Intent.UPDATE_TASK
        assert detected.parameters["task_id"] == 12
        assert detected.parameters["status"] == "done"

    def test_assign_task(self):
        detected = detect_intent("assign task #7 to alice")
        assert detected.intent == Intent.ASSIGN_TASK
        assert detected.parameters == {"task_id": 7, "assignee": "alice"}

    def test_create_project_in_organization(self):
        detected = detect_intent("create project named Website in organization Acme")
        assert detected.intent == Intent.CREATE_PROJECT
        assert detected.parameters["name"] == "Website"
        assert detected.parameters["organization"] == "Acme"

    @pytest.mark.parametrize("query,intent", [
        ("list projects", Intent.GET_PROJECTS),
        ("add team called Design", Intent.CREATE_TEAM),
        ("show teams", Intent.GET_TEAMS),
        ("invite to team Design bob@example.com", Intent.INVITE_TO_TEAM),
        ("create organization named Acme", Intent.CREATE_ORGANIZATION),
        ("show organizations", Intent.GET_ORGANIZATIONS),
        ("add to organization Acme bob@example.com", Intent.INVITE_TO_ORGANIZATION),
        ("give me a report", Intent.GET_ANALYTICS),
        ("any new messages?", Intent.GET_NOTIFICATIONS),
        ("what's the weather like", Intent.UNKNOWN),
    ])
    def test_routing(self, query, intent):
        assert detect_intent(query).intent == intent

    def test_invite_to_team_parameters(self):
        detected = detect_intent("invite to team Design bob@example.com")
        assert detected.parameters == {"team": "Design", "email": "bob@example.com"}

    def test_analytics_window(self):
        detected = detect_intent("show analytics for the last 3 weeks")
        assert detected.intent == Intent.GET_ANALYTICS
        assert detected.parameters["weeks"] == 3
        assert detected.parameters["months"] is None

    def test_unread_notifications(self):
        assert detect_intent("show unread notifications").parameters == {"unread": True}
        assert detect_intent("show notifications").parameters == {"unread": False}


def test_every_intent_has_a_handler():
    assert set(HANDLERS) == set(Intent)


def test_extract_parameter():
    assert extract_parameter("project 'Big Launch' now", ["project"]) == "Big Launch"
    assert extract_parameter("team Design, please", ["team"]) == "Design"
    assert extract_parameter("nothing here", ["team"]) is None


def test_extract_number():
    assert extract_number("analytics for weeks 6", ["weeks", "week"]) == 6
    assert extract_number("last 2 months", ["months", "month"]) == 2
    assert extract_number("analytics", ["months"]) is None


def test_extract_task_id():
    assert extract_task_id("update task id 42") == 42
    assert extract_task_id("close #9 now") == 9
    assert extract_task_id("update task") is None


def test_extract_project_reference():
    assert extract_project_reference("tasks in ABCD-0042") == "ABCD-0042"
    assert extract_project_reference("tasks in project Website") == "Website"


def test_extract_due_date():
    today = date(2026, 10, 15)
    def midnight(*args):
        return datetime(*args, tzinfo=timezone.utc)

    assert extract_due_date("due today", today) == midnight(2026, 10, 15)
    assert extract_due_date("due tomorrow", today) == midnight(2026, 10, 16)
    assert extract_due_date("due next week", today) == midnight(2026, 10, 22)
    assert extract_due_date("due next month", today) == midnight(2026, 11, 15)
    assert extract_due_date("due 12/24/2026", today) == midnight(2026, 12, 24)
    assert extract_due_date("due 13/45/2026", today) is None
    assert extract_due_date("no date", today) is None


async def _task_count(db) -> int:
    return (await db.execute(select(func.count(Task.id)))).scalar_one()


async def test_create_task_needs_a_title(db, make_user):
    user = await make_user()
    response = await answer(db, user, "create task")
    assert response.text == "Please specify a task title."
    assert response.data is None
    assert await _task_count(db) == 0


async def test_create_task(db, make_user):
    user = await make_user()
    response = await answer(db, user, "create task named Deploy with priority high")

    assert response.text == 'Task "Deploy" created successfully.'
    assert response.data["title"] == "Deploy"
    assert response.data["priority"] == "HIGH"
    assert response.data["creatorId"] == user.id
    assert await _task_count(db) == 1


async def test_unknown_priority_is_reported_not_raised(db, make_user):
    user = await make_user()
    response = await answer(db, user, "create task named Deploy with priority extreme")

    assert response.text == 'Unknown priority "extreme".'
    assert await _task_count(db) == 0


async def test_assign_task_and_notify(db, make_user, make_task):
    me = await make_user(name="Morgan")
    bob = await make_user(name="Bob Builder")
    task = await make_task(me, title="Ship it")

    response = await answer(db, me, f"assign task {task.id} to bob")
    assert response.text == 'Task "Ship it" assigned to Bob Builder successfully.'
    assert [a["id"] for a in response.data["assignees"]] == [bob.id]

    again = await answer(db, me, f"assign task {task.id} to bob")
    assert again.text == "Task is already assigned to Bob Builder."
    # the failed command rolled the session back, which expires loaded rows
    await db.refresh(bob)

    notifications = await answer(db, bob, "show unread notifications")
    assert notifications.text.startswith("Found 1 notifications:")
    assert "Ship it" in notifications.text
    count = await db.execute(select(func.count(Notification.id)).where(Notification.user_id == bob.id))
    assert count.scalar_one() == 1


async def test_assign_to_missing_user(db, make_user, make_task):
    me = await make_user()
    task = await make_task(me)
    response = await answer(db, me, f"assign task {task.id} to nobody")
    assert response.text == 'User "nobody" not found.'


async def test_update_task_someone_else_cannot_see(db, make_user, make_task):
    owner = await make_user()
    stranger = await make_user()
    task_id = (await make_task(owner)).id
    response = await answer(db, stranger, f"update task {task_id} status done")
    assert response.text == f"Task with ID {task_id} not found."


async def test_update_task_status(db, make_user, make_task):
    me = await make_user()
    task = await make_task(me, title="Fix login")
    response = await answer(db, me, f"update task {task.id} status done")
    assert response.text == 'Task "Fix login" updated successfully.'
    assert response.data["status"] == "DONE"


async def test_get_tasks(db, make_user, make_task):
    me = await make_user()
    await make_task(me, title="First", status="DONE")
    await make_task(me, title="Second")

    response = await answer(db, me, "show tasks with status done")
    assert response.text == "Found 1 tasks:\n- First (Status: DONE, Priority: MEDIUM)"

    empty = await answer(db, me, "show tasks with status review")
    assert empty.text == "No tasks found matching your criteria."


async def test_missing_organization(db, make_user):
    me = await make_user()
    response = await answer(db, me, "show projects in organization Nowhere")
    assert response.text == 'Organization "Nowhere" not found.'


async def test_analytics_for_regular_user(db, make_user, make_task):
    me = await make_user()
    await make_task(me, status="DONE")

    response = await answer(db, me, "show my analytics for 2 weeks")
    assert response.text.startswith("Here's your analytics report:")
    assert "Tasks by Status:\n- DONE: 1" in response.text
    assert len(response.data["productivityAnalytics"]["weeklyProductivity"]) == 2
    assert response.data["teamAnalytics"] is None


async def test_unknown_command(db, make_user):
    me = await make_user()
    response = await answer(db, me, "sing me a song")
    assert response.text == UNKNOWN_REPLY
    assert response.data is None


async def test_organizations_are_scoped_to_members(db, make_user):
    owner = await make_user(name="Olive")
    member = await make_user(name="Mel", email="mel@example.com")
    stranger = await make_user(name="Stan")
    await make_user(name="Third", email="third@example.com")

    assert (await answer(db, owner, "create organization named Acme")).text == 'Organization "Acme" created successfully.'
    added = await answer(db, owner, "add to organization Acme mel@example.com")
    assert added.text == 'mel@example.com added to organization "Acme" successfully.'

    assert (await answer(db, stranger, "show organizations")).text == "No organizations found."
    assert (await answer(db, stranger, "show projects in organization Acme")).text == 'Organization "Acme" not found.'
    await db.refresh(member)
    assert (await answer(db, member, "show organizations")).text.startswith("Found 1 organizations:\n- Acme")

    denied = await answer(db, member, "add to organization Acme third@example.com")
    assert denied.text == "Permission denied"
    assert denied.data is None


async def test_invite_to_team_someone_else_owns(db, make_user):
    owner = await make_user(name="Olive")
    stranger = await make_user(name="Stan")
    await make_user(name="Bob", email="bob@example.com")

    assert (await answer(db, owner, "create team named Design")).text == 'Team "Design" created successfully.'
    response = await answer(db, stranger, "invite to team Design bob@example.com")
    assert response.text == 'Team "Design" not found.'
