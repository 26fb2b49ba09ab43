"""Mock job source for local runs and tests; never touches the network."""
from __future__ import annotations

from autoapply.log import get_logger
from autoapply.models import JobPosting
from autoapply.sources.base import JobSource

log = get_logger(__name__)


class MockSource(JobSource):
    name = "mock"

    def search(self, query: str, location: str, limit: int = 20) -> list[JobPosting]:
        title = query or "Software Engineer"
        slug = "-".join(title.lower().split())
        log.info("MockSource generating sample jobs for %r", title)
        mock_jobs = [
            JobPosting(
                title=title,
                company="TechCorp",
                url=f"https://example.com/jobs/{slug}/1",
                location=location or "Remote",
                description="Python, Docker and AWS. 5+ years experience building services.",
                salary_range="$120k-$150k",
                source=self.name,
            ),
            JobPosting(
                title=f"Senior {title}",
                company="CloudScale",
                url=f"https://example.com/jobs/{slug}/2",
                location="Remote",
                description="Kubernetes, Go and incident response for a senior engineer.",
                source=self.name,
            ),
            JobPosting(
                title=f"Junior {title}",
                company="Startly",
                url=f"https://example.com/jobs/{slug}/3",
                location=location or "New York, NY",
                description="Entry level role working with JavaScript, React and Git.",
                salary_range="$70,000 - $85,000",
                source=self.name,
            ),
        ]
        return mock_jobs[:limit]
