"""Score jobs against candidate criteria with a weighted multi-factor match."""
from __future__ import annotations

import math
import re

from autoapply.log import get_logger
from autoapply.models import CandidateCriteria, JobPosting, MatchScoreBreakdown, SalaryExpectation

log = get_logger(__name__)

# Percent weights; they sum to 100 so the total can be computed in integers.
WEIGHTS: dict[str, int] = {
    "skills": 40,
    "title": 25,
    "location": 15,
    "experience": 10,
    "salary": 10,
}

# Terms scanned for in job text to approximate the "required skills" set.
REFERENCE_SKILLS: tuple[str, ...] = (
    "javascript", "typescript", "python", "java", "react", "angular", "vue",
    "node", "express", "django", "flask", "spring", "sql", "mongodb", "postgresql",
    "aws", "azure", "gcp", "docker", "kubernetes", "git", "agile", "scrum",
)

_REFERENCE_PATTERNS: dict[str, re.Pattern[str]] = {
    term: re.compile(rf"(?<![a-z0-9]){re.escape(term)}(?![a-z0-9])")
    for term in REFERENCE_SKILLS
}

REMOTE_MARKERS: tuple[str, ...] = ("remote", "anywhere")

# Checked in order; the first pattern that matches wins.
EXPERIENCE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(\d+)\+?\s*years?\s*(?:of\s*)?experience"),
    re.compile(r"(\d+)\s*to\s*(\d+)\s*years"),
    re.compile(r"minimum\s*(\d+)\s*years"),
)

EXPERIENCE_KEYWORDS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("entry level", "junior", "graduate"), 1),
    (("senior", "lead"), 5),
    (("mid-level", "intermediate"), 3),
)

# (max gap in years, score); anything wider scores 20.
EXPERIENCE_STEPS: tuple[tuple[float, int], ...] = (
    (0, 100),
    (1, 90),
    (2, 75),
    (3, 60),
    (5, 40),
)

_TITLE_SPLIT = re.compile(r"[\s\-/]+")
_SALARY_NUMBER = re.compile(r"\d+(?:,\d{3})*")

NEUTRAL_SKILLS = 50
WEAK_SKILLS = 40
NEUTRAL_TITLE = 50
NEUTRAL_LOCATION = 70
NEUTRAL_EXPERIENCE = 70
NEUTRAL_SALARY = 70


def _normalize(s: str | None) -> str:
    return (s or "").lower().strip()


def _round(value: float) -> int:
    """Round half up, clamped to the 0-100 component scale."""
    return max(0, min(100, int(math.floor(value + 0.5))))


def _job_text(job: JobPosting) -> str:
    return f"{job.requirements or ''} {job.description or ''}".lower()


def _candidate_skills(skills) -> list[str]:
    normalized = [_normalize(s) for s in skills]
    return list(dict.fromkeys(s for s in normalized if s))


def skills_match(job: JobPosting, skills) -> tuple[int, frozenset[str], frozenset[str]]:
    """Return (score, matched, missing) for the candidate's skills against the job text."""
    if not job.requirements and not job.description:
        return NEUTRAL_SKILLS, frozenset(), frozenset()

    job_text = _job_text(job)
    candidate = _candidate_skills(skills)
    matched = [s for s in candidate if s in job_text]
    missing = [s for s in candidate if s not in job_text]

    required = [term for term, pattern in _REFERENCE_PATTERNS.items() if pattern.search(job_text)]
    candidate_set = set(candidate)
    intersection = [term for term in required if term in candidate_set]

    if required:
        score = 100 * len(intersection) / len(required)
    elif matched:
        score = min(100.0, 100 * len(matched) / len(candidate))
    else:
        score = WEAK_SKILLS

    return _round(score), frozenset(matched), frozenset(missing)


def title_match(job_title: str | None, preferred_titles) -> int:
    prefs = [p for p in (_normalize(t) for t in preferred_titles) if p]
    if not prefs:
        return NEUTRAL_TITLE

    title = _normalize(job_title)
    if not title:
        return NEUTRAL_TITLE

    job_tokens = [w for w in _TITLE_SPLIT.split(title) if len(w) > 2]
    best = 0.0
    for pref in prefs:
        if title == pref:
            return 100
        if pref in title or title in pref:
            best = max(best, 90.0)
            continue
        pref_tokens = [w for w in _TITLE_SPLIT.split(pref) if w]
        if not pref_tokens:
            continue
        overlap = sum(
            1 for token in pref_tokens
            if any(jt in token or token in jt for jt in job_tokens)
        )
        best = max(best, 80 * overlap / len(pref_tokens))
    return _round(best)


def location_match(job_location: str | None, preferred_locations) -> int:
    location = _normalize(job_location)
    if not location:
        return NEUTRAL_LOCATION
    prefs = [p for p in (_normalize(loc) for loc in preferred_locations) if p]
    if not prefs:
        return NEUTRAL_LOCATION

    if any(marker in location for marker in REMOTE_MARKERS):
        return 100

    job_parts = [part.strip() for part in location.split(",")]
    for pref in prefs:
        if location == pref:
            return 100
        if pref in location or location in pref:
            return 90
        pref_parts = {part.strip() for part in pref.split(",")}
        if any(part and part in pref_parts for part in job_parts):
            return 70
    return 30


def required_years(job: JobPosting) -> int | None:
    """Years of experience the posting asks for, or None when it cannot be told."""
    text = _job_text(job)
    for pattern in EXPERIENCE_PATTERNS:
        m = pattern.search(text)
        if m:
            years = int(m.group(1))
            if years:
                return years
            break
    for keywords, years in EXPERIENCE_KEYWORDS:
        if any(k in text for k in keywords):
            return years
    return None


def experience_match(job: JobPosting, experience_years: float) -> int:
    required = required_years(job)
    if required is None:
        return NEUTRAL_EXPERIENCE
    gap = abs((experience_years or 0) - required)
    for limit, score in EXPERIENCE_STEPS:
        if gap <= limit:
            return score
    return 20


def parse_salary_range(text: str | None) -> tuple[int, int] | None:
    """Pull (min, max) out of free salary text like "$120k-$150k"; None if no digits."""
    if not text:
        return None
    numbers = [int(n.replace(",", "")) for n in _SALARY_NUMBER.findall(text)[:2]]
    if not numbers:
        return None
    low = numbers[0]
    high = numbers[1] if len(numbers) > 1 else low
    if "k" in text.lower():
        low *= 1000
        high *= 1000
    return min(low, high), max(low, high)


def salary_match(salary_range: str | None, expectation: SalaryExpectation) -> int:
    if not salary_range or (not expectation.min and not expectation.max):
        return NEUTRAL_SALARY
    parsed = parse_salary_range(salary_range)
    if parsed is None:
        return NEUTRAL_SALARY

    job_min, job_max = parsed
    user_min = expectation.min or 0
    user_max = expectation.max or math.inf

    if job_max < user_min or job_min > user_max:
        return 20

    overlap = min(job_max, user_max) - max(job_min, user_min)
    job_range = job_max - job_min
    if math.isinf(user_max):
        average = job_range
    else:
        average = ((user_max - user_min) + job_range) / 2
    if average <= 0:
        return 100
    return _round(min(100.0, overlap / average * 100))


def score_match(job: JobPosting, criteria: CandidateCriteria) -> MatchScoreBreakdown:
    """Weighted match of one job against one candidate. Pure and deterministic."""
    skills, matched, missing = skills_match(job, criteria.skills)
    title = title_match(job.title, criteria.preferred_titles)
    location = location_match(job.location, criteria.preferred_locations)
    experience = experience_match(job, criteria.experience_years)
    salary = salary_match(job.salary_range, criteria.salary_expectation)

    weighted = (
        WEIGHTS["skills"] * skills
        + WEIGHTS["title"] * title
        + WEIGHTS["location"] * location
        + WEIGHTS["experience"] * experience
        + WEIGHTS["salary"] * salary
    )
    total = (weighted + 50) // 100

    return MatchScoreBreakdown(
        skills_match=skills,
        title_match=title,
        location_match=location,
        experience_match=experience,
        salary_match=salary,
        total_score=total,
        matched_skills=matched,
        missing_skills=missing,
    )


def filter_and_rank(
    jobs: list[JobPosting], criteria: CandidateCriteria, min_score: int = 60
) -> list[tuple[JobPosting, MatchScoreBreakdown]]:
    scored = [(job, score_match(job, criteria)) for job in jobs]
    result = sorted(
        [pair for pair in scored if pair[1].total_score >= min_score],
        key=lambda pair: -pair[1].total_score,
    )
    log.info("Scored %d jobs → %d at or above %d", len(jobs), len(result), min_score)
    return result
