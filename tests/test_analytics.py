from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import NOW
from taskflow.core.exceptions import ValidationError
from taskflow.services.analytics import (
    AnalyticsScope,
    average_completion_days,
    build_weekly_buckets,
    completion_rate,
    compute_productivity_analytics,
    compute_streak,
    compute_task_analytics,
    compute_team_analytics,
    parse_organization_id,
)

TODAY = NOW.date()


def at(day: date, hour: int = 12) -> datetime:
    return datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)


class TestStreak:
    def test_three_consecutive_days(self):
        completions = [at(TODAY), at(TODAY - timedelta(days=1)), at(TODAY - timedelta(days=2))]
        assert compute_streak(completions, TODAY) == 3

    def test_gap_stops_the_walk(self):
        completions = [
            at(TODAY),
            at(TODAY - timedelta(days=1)),
            at(TODAY - timedelta(days=2)),
            at(TODAY - timedelta(days=4)),
        ]
        assert compute_streak(completions, TODAY) == 3

    def test_several_completions_on_one_day_count_once(self):
        completions = [
            at(TODAY, 9),
            at(TODAY, 15),
            at(TODAY - timedelta(days=1), 8),
            at(TODAY - timedelta(days=1), 18),
            at(TODAY - timedelta(days=2)),
        ]
        assert compute_streak(completions, TODAY) == 3

    def test_nothing_today_means_no_streak(self):
        completions = [at(TODAY - timedelta(days=1)), at(TODAY - timedelta(days=2))]
        assert compute_streak(completions, TODAY) == 0

    def test_naive_timestamps_are_treated_as_utc(self):
        assert compute_streak([datetime(2026, 10, 15, 0, 30)], TODAY) == 1

    def test_empty(self):
        assert compute_streak([], TODAY) == 0


class TestCompletionTime:
    def test_zero_without_done_tasks(self):
        assert average_completion_days([]) == 0

    def test_mean_in_days_rounded_to_one_decimal(self):
        spans = [
            (NOW - timedelta(days=1), NOW),
            (NOW - timedelta(days=2), NOW),
            (NOW - timedelta(hours=6), NOW),
        ]
        # (1 + 2 + 0.25) / 3 = 1.0833...
        assert average_completion_days(spans) == 1.1


class TestCompletionRate:
    @pytest.mark.parametrize("completed,assigned,expected", [
        (0, 0, 0),
        (0, 4, 0),
        (1, 2, 50),
        (2, 3, 67),
        (1, 8, 13),
        (5, 5, 100),
    ])
    def test_rates(self, completed, assigned, expected):
        assert completion_rate(completed, assigned) == expected


class TestWeeklyBuckets:
    def test_window_shape(self):
        buckets = build_weekly_buckets([], 4, TODAY, week_start_day=6)

        assert [b.week for b in buckets] == ["Week 1", "Week 2", "Week 3", "Week 4"]
        assert buckets[-1].week_start == "Oct 11"
        assert buckets[-1].week_end == "Oct 17"
        assert buckets[0].week_start == "Sep 20"
        assert all(len(b.daily_completions) == 7 for b in buckets)
        assert buckets[-1].daily_completions[0].day == "Sun"

    def test_counts_per_day_and_week(self):
        completions = [
            at(date(2026, 10, 13), 9),
            at(date(2026, 10, 13), 17),
            at(date(2026, 10, 15)),
            at(date(2026, 10, 5)),
            at(date(2026, 8, 1)),  # outside the window
        ]
        buckets = build_weekly_buckets(completions, 2, TODAY, week_start_day=6)

        assert [b.week_total for b in buckets] == [1, 3]
        tuesday = buckets[-1].daily_completions[2]
        assert tuesday.date == "2026-10-13"
        assert tuesday.completed_tasks == 2

    def test_monday_start(self):
        buckets = build_weekly_buckets([], 1, TODAY, week_start_day=0)
        assert buckets[0].week_start == "Oct 12"
        assert buckets[0].week_end == "Oct 18"


def test_parse_organization_id():
    assert parse_organization_id(None) is None
    assert parse_organization_id("ALL") is None
    assert parse_organization_id("") is None
    assert parse_organization_id("7") == 7
    with pytest.raises(ValidationError):
        parse_organization_id("acme")


async def test_tasks_by_month_has_one_bucket_per_month(db, make_user):
    user = await make_user()
    scope = AnalyticsScope(user_id=user.id)

    result = await compute_task_analytics(db, scope, months=6, now=NOW)
    assert [m.month for m in result.tasks_by_month] == [
        "May 2026", "Jun 2026", "Jul 2026", "Aug 2026", "Sep 2026", "Oct 2026",
    ]
    assert all(m.completed_tasks == 0 for m in result.tasks_by_month)

    result = await compute_task_analytics(db, scope, months=14, now=NOW)
    labels = [m.month for m in result.tasks_by_month]
    assert len(labels) == 14
    assert len(set(labels)) == 14
    assert labels[0] == "Sep 2025"
    assert labels[-1] == "Oct 2026"


async def test_months_must_be_positive(db, make_user):
    user = await make_user()
    with pytest.raises(ValidationError):
        await compute_task_analytics(db, AnalyticsScope(user_id=user.id), months=0, now=NOW)


async def test_task_analytics_counts(db, make_user, make_task, make_project):
    me = await make_user()
    other = await make_user()
    project = await make_project(name="Website")

    await make_task(me, status="DONE", priority="HIGH", updated_at=at(date(2026, 10, 2)), project=project)
    await make_task(me, status="DONE", priority="HIGH", updated_at=at(date(2026, 9, 30), 23))
    await make_task(me, status="OPEN", priority="LOW", type="BUG", project=project)
    # assigned to me by someone else
    await make_task(other, status="DONE", updated_at=at(date(2026, 8, 10)), assignees=[me])
    # not mine at all
    await make_task(other, status="DONE", updated_at=at(date(2026, 10, 3)))

    result = await compute_task_analytics(db, AnalyticsScope(user_id=me.id), months=3, now=NOW)

    assert {s.status: s.count for s in result.tasks_by_status} == {"DONE": 3, "OPEN": 1}
    assert {p.priority: p.count for p in result.tasks_by_priority} == {"HIGH": 2, "LOW": 1, "MEDIUM": 1}
    assert {t.type: t.count for t in result.tasks_by_type} == {"TASK": 3, "BUG": 1}
    assert [(m.month, m.completed_tasks) for m in result.tasks_by_month] == [
        ("Aug 2026", 1), ("Sep 2026", 1), ("Oct 2026", 1),
    ]

    by_project = {p.project_id: p for p in result.tasks_by_project}
    assert by_project[project.id].count == 2
    assert by_project[project.id].project.key == project.key
    assert by_project[None].count == 2
    assert by_project[None].project is None


async def test_organization_all_matches_unfiltered(db, make_user, make_task, make_project, make_organization):
    me = await make_user()
    acme = await make_organization("Acme")
    globex = await make_organization("Globex")
    acme_project = await make_project(organization=acme)
    globex_project = await make_project(organization=globex)

    await make_task(me, status="DONE", project=acme_project)
    await make_task(me, status="OPEN", project=acme_project)
    await make_task(me, status="OPEN", project=globex_project)
    await make_task(me, status="REVIEW")

    unfiltered = await compute_task_analytics(db, AnalyticsScope(user_id=me.id), now=NOW)
    everything = await compute_task_analytics(
        db, AnalyticsScope(user_id=me.id, organization_id=parse_organization_id("ALL")), now=NOW
    )
    assert unfiltered.tasks_by_status == everything.tasks_by_status
    assert unfiltered.tasks_by_priority == everything.tasks_by_priority
    assert sum(s.count for s in unfiltered.tasks_by_status) == 4
    assert {o.organization_id: o.count for o in unfiltered.tasks_by_organization} == {acme.id: 2, globex.id: 1}

    only_acme = await compute_task_analytics(db, AnalyticsScope(user_id=me.id, organization_id=acme.id), now=NOW)
    assert {s.status: s.count for s in only_acme.tasks_by_status} == {"DONE": 1, "OPEN": 1}
    assert only_acme.tasks_by_organization == []


async def test_project_scope(db, make_user, make_task, make_project):
    me = await make_user()
    website = await make_project()
    mobile = await make_project()
    await make_task(me, project=website)
    await make_task(me, project=mobile)

    result = await compute_task_analytics(db, AnalyticsScope(user_id=me.id, project_id=website.id), now=NOW)
    assert sum(s.count for s in result.tasks_by_status) == 1


async def test_productivity_analytics(db, make_user, make_task):
    me = await make_user()
    for days_ago in (0, 1, 2, 4):
        done_at = NOW - timedelta(days=days_ago)
        await make_task(me, status="DONE", updated_at=done_at, created_at=done_at - timedelta(days=2))
    await make_task(me, status="DONE", updated_at=NOW - timedelta(days=120), created_at=NOW - timedelta(days=124))
    await make_task(me, status="IN_PROGRESS")

    result = await compute_productivity_analytics(db, AnalyticsScope(user_id=me.id), weeks=2, now=NOW)

    assert result.current_streak == 3
    assert result.total_completed == 5
    assert result.avg_completion_time == 2.4
    assert [w.week for w in result.weekly_productivity] == ["Week 1", "Week 2"]
    # Oct 11 (4 days ago) through today all fall in the current week
    assert result.weekly_productivity[-1].week_total == 4
    assert result.total_completed >= max(w.week_total for w in result.weekly_productivity)


async def test_productivity_without_completed_tasks(db, make_user, make_task):
    me = await make_user()
    await make_task(me, status="OPEN")

    result = await compute_productivity_analytics(db, AnalyticsScope(user_id=me.id), weeks=4, now=NOW)

    assert result.avg_completion_time == 0
    assert result.current_streak == 0
    assert result.total_completed == 0
    assert len(result.weekly_productivity) == 4


async def test_total_completed_covers_month_buckets(db, make_user, make_task):
    me = await make_user()
    await make_task(me, status="DONE", updated_at=at(date(2026, 10, 1)))
    await make_task(me, status="DONE", updated_at=at(date(2026, 10, 9)))
    await make_task(me, status="DONE", updated_at=at(date(2025, 1, 9)))
    scope = AnalyticsScope(user_id=me.id)

    tasks = await compute_task_analytics(db, scope, months=3, now=NOW)
    productivity = await compute_productivity_analytics(db, scope, weeks=1, now=NOW)

    assert tasks.tasks_by_month[-1].completed_tasks == 2
    assert productivity.total_completed == 3
    assert all(productivity.total_completed >= m.completed_tasks for m in tasks.tasks_by_month)


async def test_team_analytics_requires_manager(db, make_user):
    user = await make_user(role="USER")
    agent = await make_user(role="AGENT")
    assert await compute_team_analytics(db, AnalyticsScope(user_id=user.id, role=user.role), now=NOW) is None
    assert await compute_team_analytics(db, AnalyticsScope(user_id=agent.id, role=agent.role), now=NOW) is None


async def test_team_analytics(db, make_user, make_task, make_project, make_organization):
    manager = await make_user(role="MANAGER", name="Morgan")
    alice = await make_user(role="USER", name="Alice")
    bob = await make_user(role="AGENT", name="Bob")
    idle = await make_user(role="USER", name="Idle")
    acme = await make_organization("Acme")
    await make_organization("Empty Org")
    project = await make_project(organization=acme)
    await make_project(status="ARCHIVED")

    await make_task(manager, status="DONE", assignees=[alice], project=project)
    await make_task(manager, status="DONE", assignees=[alice])
    await make_task(manager, status="OPEN", assignees=[bob], due_date=NOW - timedelta(days=1))
    await make_task(manager, status="DONE", assignees=[bob], project=project)

    result = await compute_team_analytics(db, AnalyticsScope(user_id=manager.id, role="MANAGER"), now=NOW)

    members = {m.name: m for m in result.team_productivity}
    assert set(members) == {"Alice", "Bob", "Idle"}
    assert (members["Alice"].assigned_tasks, members["Alice"].completed_tasks) == (2, 2)
    assert members["Alice"].completion_rate == 100
    assert members["Bob"].completion_rate == 50
    assert members["Bob"].overdue_tasks == 1
    assert members["Idle"].assigned_tasks == 0
    assert members["Idle"].completion_rate == 0
    assert [m.name for m in result.team_productivity] == ["Alice", "Bob", "Idle"]
    assert all(0 <= m.completion_rate <= 100 for m in result.team_productivity)

    assert {s.status: s.count for s in result.project_status} == {"ACTIVE": 1, "ARCHIVED": 1}
    assert {s.status: s.count for s in result.organization_status} == {"ACTIVE": 1, "INACTIVE": 1}
    assert [(a.assignee.name, a.count) for a in result.tasks_by_assignee] == [("Alice", 2), ("Bob", 2)]

    scoped = await compute_team_analytics(
        db, AnalyticsScope(user_id=manager.id, role="ADMIN", organization_id=acme.id), now=NOW
    )
    members = {m.name: m for m in scoped.team_productivity}
    assert members["Alice"].assigned_tasks == 1
    assert members["Bob"].assigned_tasks == 1
    assert members["Bob"].overdue_tasks == 0
    assert scoped.organization_status == []
    assert {s.status: s.count for s in scoped.project_status} == {"ACTIVE": 1}
