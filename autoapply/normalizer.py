"""Adapt stored profile and job rows into the shapes the scorer expects.

Stored data comes in a few layouts (a profile plus separate skill rows, a single
denormalized row, job rows with ``job_title``/``company_name`` or ``title``/
``company`` keys, joins that wrap a job in a one-element list).  Everything here
tolerates missing fields; sparse data is the scorer's problem, not an error.
"""
from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Iterable, Mapping

from autoapply.log import get_logger
from autoapply.models import CandidateCriteria, JobPosting, SalaryExpectation, parse_datetime

log = get_logger(__name__)

_TITLE_KEYS = ("desired_job_titles", "job_titles", "preferred_titles")
_LOCATION_KEYS = ("preferred_locations", "locations")
_YEARS_KEYS = ("years_of_experience", "experience_years", "years_experience")


def _first(record: Mapping[str, Any], keys: Iterable[str], default: Any = None) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return default


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(";") if part.strip()]
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def _as_number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        log.debug("Ignoring non-numeric value %r", value)
        return None
    if not math.isfinite(number):
        log.debug("Ignoring non-finite value %r", value)
        return None
    return number


def _to_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        log.debug("Ignoring unparseable date %r", value)
        return None


def total_experience_years(experiences: Iterable[Mapping[str, Any]], today: date | None = None) -> float:
    """Sum the month spans of each experience entry, in years to one decimal.

    Entries without an end date run until *today*.
    """
    today = today or date.today()
    months = 0
    for exp in experiences or []:
        start = _to_date(exp.get("start_date"))
        if start is None:
            continue
        end = _to_date(exp.get("end_date")) or today
        months += max(0, (end.year - start.year) * 12 + (end.month - start.month))
    return round(months / 12, 1)


def _skill_name(record: Any) -> str:
    if isinstance(record, Mapping):
        return str(record.get("skill_name") or record.get("name") or "").strip()
    return str(record or "").strip()


def _salary(profile: Mapping[str, Any]) -> SalaryExpectation:
    raw = profile.get("salary_expectation")
    if isinstance(raw, Mapping):
        return SalaryExpectation(min=_as_number(raw.get("min")), max=_as_number(raw.get("max")))
    low = _as_number(_first(profile, ("desired_salary_min", "salary_min")))
    if low is None:
        low = _as_number(raw)
    high = _as_number(_first(profile, ("desired_salary_max", "salary_max")))
    return SalaryExpectation(min=low, max=high)


def normalize_candidate(
    profile_record: Mapping[str, Any] | None,
    skill_records: Iterable[Any] | None = None,
    *,
    today: date | None = None,
) -> CandidateCriteria:
    """Build CandidateCriteria from a profile row and its (optional) skill rows.

    A string ``skills`` value is comma-separated (``"python, sql"``).  String
    titles and locations are semicolon-separated instead, because a single
    location such as ``"Austin, TX"`` contains a comma.
    """
    profile = profile_record or {}

    names = [_skill_name(s) for s in (skill_records or [])]
    if not names:
        names = [_skill_name(s) for s in _as_list_or_records(profile.get("skills"))]
    skills = tuple(dict.fromkeys(n for n in names if n))

    years = _as_number(_first(profile, _YEARS_KEYS))
    if years is None and profile.get("experiences"):
        years = total_experience_years(profile["experiences"], today=today)

    return CandidateCriteria(
        skills=skills,
        experience_years=max(0.0, years or 0.0),
        preferred_titles=tuple(_as_list(_first(profile, _TITLE_KEYS))),
        preferred_locations=tuple(_as_list(_first(profile, _LOCATION_KEYS))),
        salary_expectation=_salary(profile),
    )


def _as_list_or_records(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return list(value)


def _salary_text(record: Mapping[str, Any]) -> str | None:
    text = _first(record, ("salary_range", "salary"))
    if text:
        return str(text)
    low = _as_number(record.get("salary_min"))
    high = _as_number(record.get("salary_max"))
    if high:
        return f"${int(low or 0)}-${int(high)}"
    if low:
        return f"${int(low)}"
    return None


def _posted_at(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    try:
        return parse_datetime(value)
    except ValueError:
        log.debug("Ignoring unparseable posted_at %r", value)
        return None


def normalize_job(job_record: Any) -> JobPosting:
    """Return the one canonical JobPosting for a stored or scraped job row."""
    if isinstance(job_record, JobPosting):
        return job_record
    if isinstance(job_record, (list, tuple)):
        job_record = job_record[0] if job_record else {}
    record: Mapping[str, Any] = job_record or {}

    description = _first(record, ("description",))
    return JobPosting(
        title=str(_first(record, ("title", "job_title"), "")),
        company=str(_first(record, ("company", "company_name"), "")),
        url=str(_first(record, ("url", "job_url", "apply_url"), "")),
        location=_first(record, ("location",)),
        description=description,
        requirements=_first(record, ("requirements",), description),
        salary_range=_salary_text(record),
        posted_at=_posted_at(_first(record, ("posted_at", "posted_date"))),
        source=str(_first(record, ("source", "portal_id"), "unknown")),
    )
