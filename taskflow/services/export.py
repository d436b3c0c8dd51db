import csv
import io
from datetime import date
from typing import List, Sequence

from taskflow.schemas.analytics import ProductivityAnalytics, TaskAnalytics, TeamAnalytics

TABS = ("tasks", "productivity", "team")


def export_filename(tab: str, today: date) -> str:
    return f"{tab}-analytics-{today.isoformat()}.csv"


class _SectionWriter:
    """Writes "title / header / rows" blocks separated by a blank line."""

    def __init__(self):
        self.buffer = io.StringIO()
        self.writer = csv.writer(self.buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
        self.sections = 0

    def section(self, title: str, header: Sequence[str], rows: List[Sequence]):
        if self.sections:
            self.buffer.write("\n")
        self.writer.writerow([title])
        if header:
            self.writer.writerow(header)
        self.writer.writerows(rows)
        self.sections += 1

    def getvalue(self) -> str:
        return self.buffer.getvalue()


def tasks_csv(analytics: TaskAnalytics) -> str:
    out = _SectionWriter()
    out.section("Tasks by Status", ["Status", "Count"],
                [[item.status, item.count] for item in analytics.tasks_by_status])
    out.section("Tasks by Priority", ["Priority", "Count"],
                [[item.priority, item.count] for item in analytics.tasks_by_priority])
    out.section("Tasks by Project", ["Project Name", "Project Key", "Count"], [
        [
            item.project.name if item.project else "Unknown",
            item.project.key if item.project else "",
            item.count,
        ]
        for item in analytics.tasks_by_project
    ])
    out.section("Tasks by Type", ["Type", "Count"],
                [[item.type, item.count] for item in analytics.tasks_by_type])
    out.section("Tasks Completed by Month", ["Month", "Completed Tasks"],
                [[item.month, item.completed_tasks] for item in analytics.tasks_by_month])
    return out.getvalue()


def productivity_csv(analytics: ProductivityAnalytics) -> str:
    out = _SectionWriter()
    out.section("Productivity Summary", [], [
        ["Average Completion Time (days)", analytics.avg_completion_time],
        ["Current Streak (days)", analytics.current_streak],
        ["Total Completed Tasks", analytics.total_completed],
    ])
    out.section("Weekly Productivity", ["Week", "Week Start", "Week End", "Total Completed"], [
        [week.week, week.week_start, week.week_end, week.week_total]
        for week in analytics.weekly_productivity
    ])
    if analytics.weekly_productivity:
        latest = analytics.weekly_productivity[-1]
        out.section("Daily Productivity", ["Day", "Date", "Completed Tasks"], [
            [day.day, day.date, day.completed_tasks]
            for day in latest.daily_completions
        ])
    return out.getvalue()


def team_csv(analytics: TeamAnalytics) -> str:
    out = _SectionWriter()
    out.section(
        "Team Productivity",
        ["Name", "Email", "Assigned Tasks", "Completed Tasks", "Overdue Tasks", "Completion Rate"],
        [
            [
                member.name or "",
                member.email,
                member.assigned_tasks,
                member.completed_tasks,
                member.overdue_tasks,
                f"{member.completion_rate}%",
            ]
            for member in analytics.team_productivity
        ],
    )
    out.section("Project Status", ["Status", "Count"],
                [[item.status, item.count] for item in analytics.project_status])
    out.section("Tasks by Assignee", ["Assignee", "Task Count"], [
        [
            (item.assignee.name or item.assignee.email) if item.assignee else "Unknown",
            item.count,
        ]
        for item in analytics.tasks_by_assignee
    ])
    return out.getvalue()


def export_csv(tab: str, payload) -> str:
    if tab == "tasks":
        return tasks_csv(payload)
    if tab == "productivity":
        return productivity_csv(payload)
    if tab == "team":
        return team_csv(payload)
    raise ValueError(f"Unknown analytics tab: {tab}")
