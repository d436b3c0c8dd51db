from datetime import date

import pytest

from taskflow.schemas.analytics import (
    AssigneeCount, AssigneeRef, DayBucket, MemberProductivity, MonthBucket,
    PriorityCount, ProductivityAnalytics, ProjectCount, ProjectRef, StatusCount,
    TaskAnalytics, TeamAnalytics, TypeCount, WeekBucket,
)
from taskflow.services.export import export_csv, export_filename


def _sections(text: str) -> list:
    return [block.split("\n") for block in text.strip("\n").split("\n\n")]


def _week(label: str, start: str, end: str, first_day: int, counts: list) -> WeekBucket:
    days = [
        DayBucket(day=name, date=f"2026-10-{first_day + i:02d}", completed_tasks=count)
        for i, (name, count) in enumerate(zip(["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"], counts))
    ]
    return WeekBucket(week=label, week_start=start, week_end=end, week_total=sum(counts), daily_completions=days)


@pytest.fixture
def task_analytics():
    return TaskAnalytics(
        tasks_by_status=[StatusCount(status="DONE", count=3), StatusCount(status="OPEN", count=2)],
        tasks_by_priority=[PriorityCount(priority="HIGH", count=5)],
        tasks_by_project=[
            ProjectCount(project_id=1, count=4, project=ProjectRef(id=1, name='Web, "Alpha"', key="WEBA-1234")),
            ProjectCount(project_id=None, count=1),
        ],
        tasks_by_month=[
            MonthBucket(month="Sep 2026", completed_tasks=1),
            MonthBucket(month="Oct 2026", completed_tasks=2),
        ],
        tasks_by_type=[TypeCount(type="BUG", count=5)],
    )


def test_filename():
    assert export_filename("tasks", date(2026, 10, 15)) == "tasks-analytics-2026-10-15.csv"


def test_tasks_sections_in_order(task_analytics):
    sections = _sections(export_csv("tasks", task_analytics))

    assert [s[0] for s in sections] == [
        "Tasks by Status",
        "Tasks by Priority",
        "Tasks by Project",
        "Tasks by Type",
        "Tasks Completed by Month",
    ]
    assert sections[0] == ["Tasks by Status", "Status,Count", "DONE,3", "OPEN,2"]
    assert sections[4] == ["Tasks Completed by Month", "Month,Completed Tasks", "Sep 2026,1", "Oct 2026,2"]


def test_tasks_project_rows_are_quoted(task_analytics):
    project_section = _sections(export_csv("tasks", task_analytics))[2]

    assert project_section[1] == "Project Name,Project Key,Count"
    assert project_section[2] == '"Web, ""Alpha""",WEBA-1234,4'
    assert project_section[3] == "Unknown,,1"


def test_productivity_export_uses_latest_week():
    analytics = ProductivityAnalytics(
        weekly_productivity=[
            _week("Week 1", "Oct 04", "Oct 10", 4, [1, 0, 0, 0, 0, 0, 0]),
            _week("Week 2", "Oct 11", "Oct 17", 11, [0, 0, 2, 0, 1, 0, 0]),
        ],
        avg_completion_time=1.5,
        current_streak=2,
        total_completed=9,
    )
    sections = _sections(export_csv("productivity", analytics))

    assert sections[0] == [
        "Productivity Summary",
        "Average Completion Time (days),1.5",
        "Current Streak (days),2",
        "Total Completed Tasks,9",
    ]
    assert sections[1] == [
        "Weekly Productivity",
        "Week,Week Start,Week End,Total Completed",
        "Week 1,Oct 04,Oct 10,1",
        "Week 2,Oct 11,Oct 17,3",
    ]
    daily = sections[2]
    assert daily[0] == "Daily Productivity"
    assert daily[1] == "Day,Date,Completed Tasks"
    assert len(daily) == 9
    assert daily[2] == "Sun,2026-10-11,0"
    assert daily[4] == "Tue,2026-10-13,2"


def test_team_export():
    analytics = TeamAnalytics(
        team_productivity=[
            MemberProductivity(id=1, name="Alice", email="alice@example.com", assigned_tasks=3,
                               completed_tasks=2, overdue_tasks=1, completion_rate=67),
            MemberProductivity(id=2, name=None, email="nameless@example.com", assigned_tasks=0,
                               completed_tasks=0, overdue_tasks=0, completion_rate=0),
        ],
        project_status=[StatusCount(status="ACTIVE", count=2)],
        tasks_by_assignee=[
            AssigneeCount(assignee_id=1, count=3, assignee=AssigneeRef(id=1, name="Alice", email="alice@example.com")),
            AssigneeCount(assignee_id=2, count=1, assignee=AssigneeRef(id=2, name=None, email="nameless@example.com")),
            AssigneeCount(assignee_id=9, count=1),
        ],
    )
    sections = _sections(export_csv("team", analytics))

    assert sections[0] == [
        "Team Productivity",
        "Name,Email,Assigned Tasks,Completed Tasks,Overdue Tasks,Completion Rate",
        "Alice,alice@example.com,3,2,1,67%",
        ",nameless@example.com,0,0,0,0%",
    ]
    assert sections[1] == ["Project Status", "Status,Count", "ACTIVE,2"]
    assert sections[2] == [
        "Tasks by Assignee",
        "Assignee,Task Count",
        "Alice,3",
        "nameless@example.com,1",
        "Unknown,1",
    ]


def test_unknown_tab():
    with pytest.raises(ValueError):
        export_csv("billing", None)
