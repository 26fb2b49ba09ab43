"""Build notification texts: match alerts, confirmations, daily summary, activity log."""
from __future__ import annotations

from datetime import datetime

from autoapply.log import get_logger
from autoapply.models import JobPosting, MatchRecord, QueueItem

log = get_logger(__name__)


def _link(job: JobPosting) -> str:
    return f"[View job]({job.url})" if job.url else ""


def job_match_message(name: str, job: JobPosting, score: int) -> tuple[str, str]:
    subject = f"New {score}% match: {job.title} at {job.company}"
    lines = [
        f"# Hi {name or 'there'},",
        "",
        f"We found a **{score}%** match for you.",
        "",
        f"- **Role:** {job.title}",
        f"- **Company:** {job.company}",
        f"- **Location:** {job.location or 'Not specified'}",
    ]
    if job.url:
        lines.append(f"- {_link(job)}")
    return subject, "\n".join(lines)


def application_message(name: str, job: JobPosting, status: str) -> tuple[str, str]:
    verb = "submitted" if status == "applied" else "queued for you to finish"
    subject = f"Application {verb}: {job.title} at {job.company}"
    lines = [
        f"# Hi {name or 'there'},",
        "",
        f"Your application for **{job.title}** at **{job.company}** was {verb}.",
    ]
    if job.url:
        lines.append("")
        lines.append(f"- {_link(job)}")
    return subject, "\n".join(lines)


def build_daily_summary(
    name: str,
    date: datetime,
    *,
    applications_today: int,
    matches_today: int,
    total_applications: int,
    top_matches: list[MatchRecord] | None = None,
    failures: list[QueueItem] | None = None,
) -> tuple[str, str]:
    day = date.strftime("%Y-%m-%d")
    subject = f"AutoApply daily summary – {day}"
    lines: list[str] = [
        f"# Daily summary — {day}",
        "",
        f"Hi {name or 'there'}, here is what happened today.",
        "",
        f"- **Applications today:** {applications_today}",
        f"- **New matches today:** {matches_today}",
        f"- **Applications overall:** {total_applications}",
    ]

    if top_matches:
        lines += ["", "## Best open matches", ""]
        for m in top_matches[:5]:
            lines.append(f"- **{m.total_score}%** {m.company} — [link]({m.job_url})")

    if failures:
        lines += ["", "## Problems", ""]
        lines += activity_log_lines(failures)

    log.debug("Built daily summary: %d applications, %d matches", applications_today, matches_today)
    return subject, "\n".join(lines)


def activity_log_lines(items: list[QueueItem]) -> list[str]:
    """One line per queue item, newest first, with its last error when there is one."""
    lines: list[str] = []
    for item in sorted(items, key=lambda i: i.created_at, reverse=True):
        when = (item.processed_at or item.created_at).strftime("%Y-%m-%d %H:%M")
        line = f"- {when} **{item.type.value}** {item.status.value}"
        if item.last_error:
            err = item.last_error
            line += f" — _{err[:120]}{'…' if len(err) > 120 else ''}_"
        lines.append(line)
    return lines
