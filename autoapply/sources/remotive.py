"""Remotive — free API for remote tech jobs (no API key required).

Docs: https://remotive.com/api/remote-jobs
"""
from __future__ import annotations

import requests

from autoapply.log import get_logger
from autoapply.models import JobPosting, parse_datetime
from autoapply.retry import retry
from autoapply.sources.base import JobSource

log = get_logger(__name__)

API_URL = "https://remotive.com/api/remote-jobs"

# Remotive matches on short terms; full titles like "Senior Backend Engineer"
# return almost nothing.
_GENERIC_WORDS: frozenset[str] = frozenset({
    "senior", "junior", "lead", "staff", "principal", "manager",
    "engineer", "specialist", "consultant", "ii", "iii", "iv",
})


def search_term(query: str) -> str:
    """Most distinctive word of a job title, falling back to its first word."""
    words = query.lower().split()
    distinctive = [w for w in words if w not in _GENERIC_WORDS]
    if distinctive:
        return distinctive[0]
    return words[0] if words else "engineer"


def _to_posting(hit: dict) -> JobPosting:
    tags = hit.get("tags") or []
    desc = hit.get("description", "") or ""
    if tags:
        desc += " " + " ".join(tags)
    try:
        posted_at = parse_datetime(hit.get("publication_date"))
    except ValueError:
        posted_at = None
    return JobPosting(
        title=hit.get("title", ""),
        company=hit.get("company_name", ""),
        url=hit.get("url", ""),
        location=hit.get("candidate_required_location") or "Remote",
        description=desc,
        salary_range=hit.get("salary") or None,
        posted_at=posted_at,
        source="remotive",
    )


class RemotiveSource(JobSource):
    name = "remotive"

    def __init__(self, timeout: float = 15.0) -> None:
        self.timeout = timeout

    @retry(max_attempts=2, base_delay=1.5, retryable=(requests.RequestException, OSError))
    def _fetch(self, search: str, limit: int) -> list[JobPosting]:
        params: dict = {"limit": limit}
        if search:
            params["search"] = search

        r = requests.get(API_URL, params=params, timeout=self.timeout)
        r.raise_for_status()
        data = r.json()
        return [_to_posting(hit) for hit in data.get("jobs", []) if hit.get("url")]

    def search(self, query: str, location: str, limit: int = 20) -> list[JobPosting]:
        term = search_term(query)
        jobs = self._fetch(term, limit)
        log.debug("Remotive search=%r returned %d jobs", term, len(jobs))
        return jobs[:limit]
