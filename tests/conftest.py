import os
from datetime import datetime, timezone

import pytest

os.environ.setdefault("AUTOAPPLY_LOG_FILE", "0")

from autoapply.models import JobPosting  # noqa: E402


# Wednesday, inside the default 9-17 apply window in UTC.
NOW = datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


def make_job(url="https://example.com/jobs/1", **overrides):
    fields = {
        "title": "Backend Engineer",
        "company": "Acme",
        "url": url,
        "location": "Remote",
        "description": "Python and AWS services. 5+ years experience.",
    }
    fields.update(overrides)
    return JobPosting(**fields)
