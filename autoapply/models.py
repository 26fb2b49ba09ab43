"""Data models for jobs, candidates, matches, queue items and applications."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Any

SYSTEM_OWNER = "system"


class QueueType(str, Enum):
    SCRAPE = "scrape"
    MATCH = "match"
    APPLY = "apply"
    NOTIFY = "notify"
    CLEANUP = "cleanup"


class QueueStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


APPLICATION_STATUSES: tuple[str, ...] = ("pending", "applied", "accepted", "rejected", "failed")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class SalaryExpectation:
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True)
class CandidateCriteria:
    skills: tuple[str, ...] = ()
    experience_years: float = 0
    preferred_titles: tuple[str, ...] = ()
    preferred_locations: tuple[str, ...] = ()
    salary_expectation: SalaryExpectation = field(default_factory=SalaryExpectation)


@dataclass
class JobPosting:
    title: str
    company: str
    url: str
    location: str | None = None
    description: str | None = None
    requirements: str | None = None
    salary_range: str | None = None
    posted_at: datetime | None = None
    source: str = "unknown"
    scraped_at: datetime | None = None
    active: bool = True

    @property
    def seen_at(self) -> datetime | None:
        return self.posted_at or self.scraped_at

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["posted_at"] = _iso(self.posted_at)
        data["scraped_at"] = _iso(self.scraped_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JobPosting":
        return cls(
            title=data.get("title", ""),
            company=data.get("company", ""),
            url=data.get("url", ""),
            location=data.get("location"),
            description=data.get("description"),
            requirements=data.get("requirements"),
            salary_range=data.get("salary_range"),
            posted_at=parse_datetime(data.get("posted_at")),
            source=data.get("source", "unknown"),
            scraped_at=parse_datetime(data.get("scraped_at")),
            active=bool(data.get("active", True)),
        )


@dataclass(frozen=True)
class MatchScoreBreakdown:
    skills_match: int
    title_match: int
    location_match: int
    experience_match: int
    salary_match: int
    total_score: int
    matched_skills: frozenset[str] = frozenset()
    missing_skills: frozenset[str] = frozenset()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["matched_skills"] = sorted(self.matched_skills)
        data["missing_skills"] = sorted(self.missing_skills)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchScoreBreakdown":
        return cls(
            skills_match=int(data["skills_match"]),
            title_match=int(data["title_match"]),
            location_match=int(data["location_match"]),
            experience_match=int(data["experience_match"]),
            salary_match=int(data["salary_match"]),
            total_score=int(data["total_score"]),
            matched_skills=frozenset(data.get("matched_skills", [])),
            missing_skills=frozenset(data.get("missing_skills", [])),
        )


@dataclass
class MatchRecord:
    """Stored result of scoring one job for one owner."""

    owner: str
    job_url: str
    company: str
    breakdown: MatchScoreBreakdown
    matched_at: datetime

    @property
    def total_score(self) -> int:
        return self.breakdown.total_score

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "job_url": self.job_url,
            "company": self.company,
            "breakdown": self.breakdown.to_dict(),
            "matched_at": _iso(self.matched_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchRecord":
        return cls(
            owner=data["owner"],
            job_url=data["job_url"],
            company=data.get("company", ""),
            breakdown=MatchScoreBreakdown.from_dict(data["breakdown"]),
            matched_at=parse_datetime(data["matched_at"]),
        )


@dataclass
class AutomationSettings:
    auto_apply_enabled: bool = False
    min_match_score: int = 70
    max_applications_per_day: int = 10
    apply_window_start: int = 9
    apply_window_end: int = 17
    excluded_companies: frozenset[str] = frozenset()
    auto_scrape_enabled: bool = False
    scrape_frequency_hours: int = 24
    auto_match_enabled: bool = True
    apply_on_weekends: bool = False
    preferred_sources: tuple[str, ...] = ("remotive",)
    timezone: str = "UTC"
    daily_summary_enabled: bool = False
    daily_summary_hour: int = 18

    def problems(self) -> list[str]:
        """Describe every invariant this configuration breaks (empty when valid)."""
        issues: list[str] = []
        if not 0 <= self.min_match_score <= 100:
            issues.append(f"min_match_score {self.min_match_score} outside 0-100")
        if self.max_applications_per_day < 1:
            issues.append(f"max_applications_per_day must be positive, got {self.max_applications_per_day}")
        if not (0 <= self.apply_window_start <= 23 and 0 <= self.apply_window_end <= 24):
            issues.append(
                f"apply window {self.apply_window_start}-{self.apply_window_end} outside 0-24"
            )
        if self.apply_window_start >= self.apply_window_end:
            issues.append(
                f"apply window start {self.apply_window_start} must be before end {self.apply_window_end}"
            )
        if self.scrape_frequency_hours < 1:
            issues.append(f"scrape_frequency_hours must be positive, got {self.scrape_frequency_hours}")
        if not 0 <= self.daily_summary_hour <= 23:
            issues.append(f"daily_summary_hour {self.daily_summary_hour} outside 0-23")
        return issues


@dataclass
class QueueItem:
    id: str
    type: QueueType
    owner: str
    payload: dict[str, Any]
    created_at: datetime
    status: QueueStatus = QueueStatus.PENDING
    attempt_count: int = 0
    max_attempts: int = 3
    last_error: str | None = None
    processing_at: datetime | None = None
    processed_at: datetime | None = None
    available_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (QueueStatus.COMPLETED, QueueStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "owner": self.owner,
            "payload": self.payload,
            "status": self.status.value,
            "attempt_count": self.attempt_count,
            "max_attempts": self.max_attempts,
            "last_error": self.last_error,
            "created_at": _iso(self.created_at),
            "processing_at": _iso(self.processing_at),
            "processed_at": _iso(self.processed_at),
            "available_at": _iso(self.available_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueueItem":
        return cls(
            id=data["id"],
            type=QueueType(data["type"]),
            owner=data["owner"],
            payload=dict(data.get("payload") or {}),
            created_at=parse_datetime(data["created_at"]),
            status=QueueStatus(data.get("status", "pending")),
            attempt_count=int(data.get("attempt_count", 0)),
            max_attempts=int(data.get("max_attempts", 3)),
            last_error=data.get("last_error"),
            processing_at=parse_datetime(data.get("processing_at")),
            processed_at=parse_datetime(data.get("processed_at")),
            available_at=parse_datetime(data.get("available_at")),
        )


@dataclass(frozen=True)
class QueueItemRequest:
    type: QueueType
    owner: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class ApplicationRecord:
    owner: str
    job_url: str
    status: str
    applied_at: datetime
    title: str = ""
    company: str = ""
    score: int | None = None

    def local_date(self, tz: tzinfo) -> date:
        return self.applied_at.astimezone(tz).date()


@dataclass
class UserSnapshot:
    """Everything the policy evaluator needs about one user, already fetched."""

    owner: str
    settings: AutomationSettings
    applications: list[ApplicationRecord] = field(default_factory=list)
    pending_matches: list[MatchRecord] = field(default_factory=list)
    criteria: CandidateCriteria = field(default_factory=CandidateCriteria)
    last_scrape_at: datetime | None = None
    last_match_at: datetime | None = None
    last_summary_at: datetime | None = None


@dataclass
class UserAccount:
    """One configured user: identity, raw profile records and settings."""

    id: str
    email: str = ""
    name: str = ""
    profile: dict[str, Any] = field(default_factory=dict)
    skills: list[Any] = field(default_factory=list)
    settings: AutomationSettings = field(default_factory=AutomationSettings)
