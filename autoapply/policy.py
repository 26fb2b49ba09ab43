"""Decide, per user and per scheduled tick, which work to enqueue.

Pure functions over already-fetched snapshots: no I/O and no clock reads, so a
tick can be replayed in tests with any ``now``.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from autoapply.config import PolicyConfig
from autoapply.log import get_logger
from autoapply.models import (
    SYSTEM_OWNER,
    ApplicationRecord,
    AutomationSettings,
    MatchRecord,
    QueueItemRequest,
    QueueType,
    UserSnapshot,
)

log = get_logger(__name__)

DAILY_SUMMARY = "daily_summary"


def _aware(now: datetime) -> datetime:
    return now if now.tzinfo else now.replace(tzinfo=timezone.utc)


def _zone(settings: AutomationSettings) -> tzinfo:
    return ZoneInfo(settings.timezone)


def _due(last: datetime | None, now: datetime, every_hours: float) -> bool:
    """True when nothing happened yet or the last run is at least *every_hours* old."""
    if last is None or every_hours <= 0:
        return True
    return _aware(last) <= now - timedelta(hours=every_hours)


def in_apply_window(local_now: datetime, settings: AutomationSettings) -> bool:
    """Local hour in [start, end) and, unless allowed, a Monday–Friday."""
    if not settings.apply_window_start <= local_now.hour < settings.apply_window_end:
        return False
    if local_now.weekday() >= 5 and not settings.apply_on_weekends:
        return False
    return True


def applications_today(applications: Iterable[ApplicationRecord], now: datetime, tz: tzinfo) -> int:
    today = _aware(now).astimezone(tz).date()
    return sum(1 for a in applications if a.local_date(tz) == today)


def _company_key(name: str) -> str:
    return (name or "").strip().lower()


def select_apply_targets(user: UserSnapshot, now: datetime, tz: tzinfo) -> list[MatchRecord]:
    """Highest-scoring eligible matches, at most the user's remaining daily capacity."""
    settings = user.settings
    remaining = settings.max_applications_per_day - applications_today(user.applications, now, tz)
    if remaining <= 0:
        return []

    applied = {a.job_url for a in user.applications}
    excluded = {_company_key(c) for c in settings.excluded_companies}
    seen: set[str] = set()
    eligible: list[MatchRecord] = []
    for match in user.pending_matches:
        if match.total_score < settings.min_match_score:
            continue
        if match.job_url in applied or match.job_url in seen:
            continue
        if _company_key(match.company) in excluded:
            continue
        seen.add(match.job_url)
        eligible.append(match)

    eligible.sort(key=lambda m: -m.total_score)
    return eligible[:remaining]


def _scrape_requests(user: UserSnapshot, policy: PolicyConfig) -> list[QueueItemRequest]:
    titles = list(user.criteria.preferred_titles)[: policy.max_scrape_titles]
    if not titles:
        log.debug("%s has no preferred titles — nothing to scrape", user.owner)
        return []
    locations = user.criteria.preferred_locations
    location = locations[0] if locations else policy.default_scrape_location
    return [
        QueueItemRequest(
            QueueType.SCRAPE,
            user.owner,
            {"source": source, "query": title, "location": location},
        )
        for source in user.settings.preferred_sources
        for title in titles
    ]


def evaluate_user(now: datetime, user: UserSnapshot, policy: PolicyConfig | None = None) -> list[QueueItemRequest]:
    """Scrape, match, apply and summary decisions for one user, in that order."""
    policy = policy or PolicyConfig()
    now = _aware(now)
    settings = user.settings

    problems = settings.problems()
    try:
        tz = _zone(settings)
    except (ZoneInfoNotFoundError, ValueError):
        problems.append(f"unknown timezone {settings.timezone!r}")
    if problems:
        log.warning("Skipping %s — invalid automation settings: %s", user.owner, "; ".join(problems))
        return []

    requests: list[QueueItemRequest] = []

    if settings.auto_scrape_enabled and _due(user.last_scrape_at, now, settings.scrape_frequency_hours):
        requests.extend(_scrape_requests(user, policy))

    if settings.auto_match_enabled and _due(user.last_match_at, now, policy.match_interval_hours):
        requests.append(QueueItemRequest(QueueType.MATCH, user.owner, {}))

    local_now = now.astimezone(tz)
    if settings.auto_apply_enabled and in_apply_window(local_now, settings):
        for match in select_apply_targets(user, now, tz):
            requests.append(
                QueueItemRequest(
                    QueueType.APPLY,
                    user.owner,
                    {"job_url": match.job_url, "match_score": match.total_score},
                )
            )

    if settings.daily_summary_enabled and local_now.hour == settings.daily_summary_hour:
        last = user.last_summary_at
        if last is None or _aware(last).astimezone(tz).date() != local_now.date():
            requests.append(QueueItemRequest(QueueType.NOTIFY, user.owner, {"kind": DAILY_SUMMARY}))

    return requests


def evaluate_automation_tick(
    now: datetime,
    users: Iterable[UserSnapshot],
    policy: PolicyConfig | None = None,
) -> list[QueueItemRequest]:
    """Queue requests for every user for the tick at *now*."""
    policy = policy or PolicyConfig()
    requests: list[QueueItemRequest] = []
    count = 0
    for user in users:
        count += 1
        requests.extend(evaluate_user(now, user, policy))
    log.info("Tick %s: %d user(s) → %d request(s)", _aware(now).isoformat(timespec="minutes"), count, len(requests))
    return requests


def evaluate_system_tick(
    now: datetime,
    last_cleanup_at: datetime | None,
    policy: PolicyConfig | None = None,
) -> list[QueueItemRequest]:
    """Global maintenance owned by the "system" sentinel."""
    policy = policy or PolicyConfig()
    if _due(last_cleanup_at, _aware(now), policy.cleanup_interval_hours):
        return [QueueItemRequest(QueueType.CLEANUP, SYSTEM_OWNER, {})]
    return []
