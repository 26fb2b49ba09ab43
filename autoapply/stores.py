"""Persistence interfaces the automation core depends on, plus in-memory versions.

Handlers and the scheduler only ever talk to these abstract classes; the JSON /
CSV file stores in ``autoapply.storage`` and ``autoapply.tracker`` implement them
for a single-host deployment.
"""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime, tzinfo

from autoapply.models import ApplicationRecord, JobPosting, MatchRecord


class JobStore(ABC):
    @abstractmethod
    def save_new(self, jobs: list[JobPosting], now: datetime) -> list[JobPosting]:
        """Insert jobs whose URL is not stored yet; return the newly inserted ones."""

    @abstractmethod
    def get(self, url: str) -> JobPosting | None:
        pass

    @abstractmethod
    def all(self) -> list[JobPosting]:
        pass

    @abstractmethod
    def deactivate_older_than(self, cutoff: datetime) -> int:
        """Soft-delete active jobs first seen before *cutoff*; return how many."""

    def recent(self, since: datetime, limit: int | None = None) -> list[JobPosting]:
        """Active jobs first seen at or after *since*, newest first."""
        jobs = [j for j in self.all() if j.active and j.seen_at and j.seen_at >= since]
        jobs.sort(key=lambda j: j.seen_at, reverse=True)
        return jobs if limit is None else jobs[:limit]


class MatchStore(ABC):
    @abstractmethod
    def save(self, record: MatchRecord) -> None:
        """Insert or replace the match for (owner, job_url)."""

    @abstractmethod
    def for_owner(self, owner: str) -> list[MatchRecord]:
        pass

    def matched_urls(self, owner: str) -> set[str]:
        return {m.job_url for m in self.for_owner(owner)}

    def count_since(self, owner: str, since: datetime) -> int:
        return sum(1 for m in self.for_owner(owner) if m.matched_at >= since)


class ApplicationStore(ABC):
    @abstractmethod
    def record(self, application: ApplicationRecord) -> None:
        pass

    @abstractmethod
    def for_owner(self, owner: str) -> list[ApplicationRecord]:
        pass

    def has_applied(self, owner: str, job_url: str) -> bool:
        return any(a.job_url == job_url for a in self.for_owner(owner))

    def applied_urls(self, owner: str) -> set[str]:
        return {a.job_url for a in self.for_owner(owner)}

    def count_on_local_date(self, owner: str, now: datetime, tz: tzinfo) -> int:
        today = now.astimezone(tz).date()
        return sum(1 for a in self.for_owner(owner) if a.local_date(tz) == today)


class MemoryJobStore(JobStore):
    def __init__(self) -> None:
        self._jobs: dict[str, JobPosting] = {}
        self._lock = threading.Lock()

    def save_new(self, jobs: list[JobPosting], now: datetime) -> list[JobPosting]:
        inserted: list[JobPosting] = []
        with self._lock:
            for job in jobs:
                if not job.url or job.url in self._jobs:
                    continue
                if job.scraped_at is None:
                    job.scraped_at = now
                self._jobs[job.url] = job
                inserted.append(job)
        return inserted

    def get(self, url: str) -> JobPosting | None:
        return self._jobs.get(url)

    def all(self) -> list[JobPosting]:
        return list(self._jobs.values())

    def deactivate_older_than(self, cutoff: datetime) -> int:
        count = 0
        with self._lock:
            for job in self._jobs.values():
                if job.active and job.seen_at and job.seen_at < cutoff:
                    job.active = False
                    count += 1
        return count


class MemoryMatchStore(MatchStore):
    def __init__(self) -> None:
        self._matches: dict[tuple[str, str], MatchRecord] = {}

    def save(self, record: MatchRecord) -> None:
        self._matches[(record.owner, record.job_url)] = record

    def for_owner(self, owner: str) -> list[MatchRecord]:
        return [m for (o, _), m in self._matches.items() if o == owner]


class MemoryApplicationStore(ApplicationStore):
    def __init__(self) -> None:
        self._records: list[ApplicationRecord] = []

    def record(self, application: ApplicationRecord) -> None:
        self._records.append(application)

    def for_owner(self, owner: str) -> list[ApplicationRecord]:
        return [a for a in self._records if a.owner == owner]
