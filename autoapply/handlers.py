"""Queue handlers: the work behind scrape, match, apply, notify and cleanup items.

Each handler takes ``(item, now)`` and either returns (the item completes) or
raises (the worker records the error and retries).  Skips that retrying would
not fix, such as an already-applied job, return normally and are only logged.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Mapping
from zoneinfo import ZoneInfo

from autoapply.config import HandlerConfig
from autoapply.log import get_logger
from autoapply.models import (
    APPLICATION_STATUSES,
    ApplicationRecord,
    CandidateCriteria,
    MatchRecord,
    QueueItem,
    QueueStatus,
    QueueType,
    UserAccount,
)
from autoapply.normalizer import normalize_candidate, normalize_job
from autoapply.notifier import Notifier
from autoapply.policy import DAILY_SUMMARY
from autoapply.queue import QueueStore
from autoapply.report import application_message, build_daily_summary, job_match_message
from autoapply.scorer import score_match
from autoapply.sources import JobSource, get_source
from autoapply.stores import ApplicationStore, JobStore, MatchStore
from autoapply.submitters import ManualSubmitter, SubmissionError, Submitter
from autoapply.worker import Handler

log = get_logger(__name__)


class Automation:
    """Stores and collaborators shared by every handler of one deployment."""

    def __init__(
        self,
        *,
        users: Mapping[str, UserAccount],
        jobs: JobStore,
        matches: MatchStore,
        applications: ApplicationStore,
        queue: QueueStore,
        notifier: Notifier,
        submitter: Submitter | None = None,
        config: HandlerConfig | None = None,
        source_factory: Callable[[str], JobSource] = get_source,
    ) -> None:
        self.users = dict(users)
        self.jobs = jobs
        self.matches = matches
        self.applications = applications
        self.queue = queue
        self.notifier = notifier
        self.submitter = submitter or ManualSubmitter()
        self.config = config or HandlerConfig()
        self.source_factory = source_factory

    def handlers(self) -> dict[QueueType, Handler]:
        return {
            QueueType.SCRAPE: self.scrape,
            QueueType.MATCH: self.match,
            QueueType.APPLY: self.apply,
            QueueType.NOTIFY: self.notify,
            QueueType.CLEANUP: self.cleanup,
        }

    def user(self, owner: str) -> UserAccount:
        try:
            return self.users[owner]
        except KeyError:
            raise RuntimeError(f"User profile not found: {owner}") from None

    def criteria_for(self, owner: str, now: datetime | None = None) -> CandidateCriteria:
        user = self.user(owner)
        return normalize_candidate(user.profile, user.skills, today=now.date() if now else None)

    def pending_matches(self, owner: str) -> list[MatchRecord]:
        """Stored matches the owner has not applied to yet, best first.

        Matches whose job is gone or was deactivated by cleanup are left out.
        """
        applied = self.applications.applied_urls(owner)
        pending = [
            m for m in self.matches.for_owner(owner)
            if m.job_url not in applied and self._job_is_active(m.job_url)
        ]
        return sorted(pending, key=lambda m: -m.total_score)

    def _job_is_active(self, url: str) -> bool:
        job = self.jobs.get(url)
        return job is not None and job.active

    def _deliver(self, owner: str, subject: str, body: str) -> None:
        if not self.notifier.notify(owner, subject, body):
            raise RuntimeError(f"Notification to {owner} could not be delivered")

    # ── handlers ──────────────────────────────────────────────

    def scrape(self, item: QueueItem, now: datetime) -> None:
        payload = item.payload
        query = str(payload.get("query") or "").strip()
        if not query:
            raise ValueError("Scrape item has no query")
        location = str(payload.get("location") or "")
        source = self.source_factory(str(payload.get("source") or ""))

        found = source.search(query, location, limit=self.config.scrape_limit)
        jobs = [normalize_job(j) for j in found]
        new = self.jobs.save_new([j for j in jobs if j.url], now)
        log.info(
            "Scraped %s for %r in %r: %d found, %d new",
            source.name, query, location or "anywhere", len(jobs), len(new),
        )

    def match(self, item: QueueItem, now: datetime) -> None:
        owner = item.owner
        user = self.user(owner)
        criteria = self.criteria_for(owner, now)
        since = now - timedelta(days=self.config.match_lookback_days)
        already = self.matches.matched_urls(owner)
        candidates = [j for j in self.jobs.recent(since) if j.url not in already]
        candidates = candidates[: self.config.match_batch_limit]

        saved = notified = 0
        for job in candidates:
            breakdown = score_match(job, criteria)
            if breakdown.total_score < self.config.match_min_score:
                continue
            self.matches.save(MatchRecord(owner, job.url, job.company, breakdown, now))
            saved += 1
            if breakdown.total_score >= self.config.notify_min_score:
                subject, body = job_match_message(user.name, job, breakdown.total_score)
                if self.notifier.notify(owner, subject, body):
                    notified += 1
        log.info("Matched %d new job(s) for %s: %d saved, %d notified", len(candidates), owner, saved, notified)

    def apply(self, item: QueueItem, now: datetime) -> None:
        owner = item.owner
        job_url = item.payload.get("job_url")
        if not job_url:
            raise ValueError("Apply item has no job_url")
        job = self.jobs.get(job_url)
        if job is None:
            raise RuntimeError(f"Job not found: {job_url}")
        if not job.active:
            raise RuntimeError(f"Job is no longer active: {job_url}")

        if self.applications.has_applied(owner, job_url):
            log.info("%s already applied to %s — skipping", owner, job_url)
            return
        user = self.user(owner)
        settings = user.settings
        tz = ZoneInfo(settings.timezone)
        if self.applications.count_on_local_date(owner, now, tz) >= settings.max_applications_per_day:
            log.info("%s reached the daily cap of %d — skipping %s", owner, settings.max_applications_per_day, job_url)
            return

        status = self.submitter.submit(owner, job)
        if status not in APPLICATION_STATUSES:
            raise SubmissionError(f"{type(self.submitter).__name__} returned unknown status {status!r} for {job_url}")
        score = item.payload.get("match_score")
        self.applications.record(
            ApplicationRecord(
                owner=owner,
                job_url=job_url,
                status=status,
                applied_at=now,
                title=job.title,
                company=job.company,
                score=int(score) if score is not None else None,
            )
        )
        log.info("Recorded %s application for %s: %s @ %s", status, owner, job.title, job.company)
        subject, body = application_message(user.name, job, status)
        self.notifier.notify(owner, subject, body)

    def notify(self, item: QueueItem, now: datetime) -> None:
        kind = item.payload.get("kind", DAILY_SUMMARY)
        if kind == DAILY_SUMMARY:
            subject, body = self.daily_summary(item.owner, now)
        elif kind == "message":
            subject = str(item.payload.get("subject") or "AutoApply notification")
            body = str(item.payload.get("body") or "")
        else:
            raise ValueError(f"Unknown notification kind: {kind}")
        self._deliver(item.owner, subject, body)

    def daily_summary(self, owner: str, now: datetime) -> tuple[str, str]:
        user = self.user(owner)
        tz = ZoneInfo(user.settings.timezone)
        local_now = now.astimezone(tz)
        day_start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)

        failures = [
            i for i in self.queue.items(status=QueueStatus.FAILED, owner=owner)
            if i.processed_at and i.processed_at >= day_start
        ]
        return build_daily_summary(
            user.name,
            local_now,
            applications_today=self.applications.count_on_local_date(owner, now, tz),
            matches_today=self.matches.count_since(owner, day_start),
            total_applications=len(self.applications.for_owner(owner)),
            top_matches=self.pending_matches(owner),
            failures=failures,
        )

    def cleanup(self, item: QueueItem, now: datetime) -> None:
        jobs_cutoff = now - timedelta(days=self.config.job_retention_days)
        deactivated = self.jobs.deactivate_older_than(jobs_cutoff)
        purged = self.queue.purge_finished(now - timedelta(days=self.config.queue_retention_days))
        log.info("Cleanup: %d job(s) deactivated, %d finished queue item(s) purged", deactivated, purged)
