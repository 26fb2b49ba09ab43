from datetime import date, datetime, timezone

from autoapply.models import JobPosting, SalaryExpectation
from autoapply.normalizer import normalize_candidate, normalize_job, total_experience_years


def test_candidate_from_profile_and_skill_rows():
    profile = {
        "years_of_experience": 5,
        "desired_job_titles": ["Backend Engineer"],
        "preferred_locations": ["Remote", "Austin, TX"],
        "desired_salary_min": 100000,
        "desired_salary_max": "160000",
    }
    skills = [{"skill_name": "Python"}, {"name": "AWS"}, "Docker", {"skill_name": " "}]
    c = normalize_candidate(profile, skills)
    assert c.skills == ("Python", "AWS", "Docker")
    assert c.experience_years == 5
    assert c.preferred_titles == ("Backend Engineer",)
    assert c.preferred_locations == ("Remote", "Austin, TX")
    assert c.salary_expectation == SalaryExpectation(min=100000, max=160000)


def test_candidate_from_denormalized_row():
    row = {"skills": "python, sql ,", "job_titles": "Data Engineer; Analyst", "locations": "Berlin"}
    c = normalize_candidate(row)
    assert c.skills == ("python", "sql")
    assert c.preferred_titles == ("Data Engineer", "Analyst")
    assert c.preferred_locations == ("Berlin",)


def test_candidate_missing_fields_are_empty():
    c = normalize_candidate(None)
    assert c.skills == ()
    assert c.experience_years == 0
    assert c.preferred_titles == ()
    assert c.preferred_locations == ()
    assert c.salary_expectation == SalaryExpectation()


def test_candidate_salary_mapping_and_bad_numbers():
    c = normalize_candidate({"salary_expectation": {"min": "90000", "max": None}, "years_of_experience": "lots"})
    assert c.salary_expectation == SalaryExpectation(min=90000, max=None)
    assert c.experience_years == 0


def test_years_from_experiences():
    experiences = [
        {"start_date": "2018-01-01", "end_date": "2020-01-01"},
        {"start_date": "2021-07-01", "end_date": None},
        {"title": "no dates"},
    ]
    assert total_experience_years(experiences, today=date(2024, 7, 1)) == 5.0
    c = normalize_candidate({"experiences": experiences}, today=date(2024, 7, 1))
    assert c.experience_years == 5.0


def test_job_alias_keys_and_salary_range():
    job = normalize_job({
        "job_title": "Platform Engineer",
        "company_name": "Initech",
        "job_url": "https://example.com/p",
        "description": "Kubernetes everywhere",
        "salary_min": 120000,
        "salary_max": 150000,
        "posted_date": "2026-10-01T08:00:00Z",
        "portal_id": "remotive",
    })
    assert job.title == "Platform Engineer"
    assert job.company == "Initech"
    assert job.url == "https://example.com/p"
    assert job.requirements == "Kubernetes everywhere"
    assert job.salary_range == "$120000-$150000"
    assert job.posted_at == datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc)
    assert job.source == "remotive"


def test_job_unwraps_single_element_list():
    job = normalize_job([{"title": "Dev", "company": "Co", "url": "https://example.com/d", "salary": "$90k"}])
    assert job.title == "Dev"
    assert job.salary_range == "$90k"


def test_job_sparse_record_never_raises():
    job = normalize_job({"posted_at": "not a date"})
    assert job.title == ""
    assert job.url == ""
    assert job.posted_at is None
    assert job.salary_range is None
    assert normalize_job([]).url == ""


def test_job_posting_passes_through():
    posting = JobPosting(title="T", company="C", url="https://example.com/t")
    assert normalize_job(posting) is posting


def test_job_malformed_salary_bounds_never_raise():
    assert normalize_job({"title": "Dev", "url": "u", "salary_min": "50k", "salary_max": "competitive"}).salary_range is None
    assert normalize_job({"title": "Dev", "url": "u", "salary_min": "120000.5"}).salary_range == "$120000"
    assert normalize_job({"title": "Dev", "url": "u", "salary_min": "n/a", "salary_max": "150000"}).salary_range == "$0-$150000"
    assert normalize_job({"title": "Dev", "url": "u", "salary_max": "inf"}).salary_range is None


def test_candidate_titles_and_locations_split_on_semicolons():
    c = normalize_candidate({
        "skills": "python, go",
        "desired_job_titles": "Backend Engineer; Platform Engineer",
        "preferred_locations": "Austin, TX; Remote",
    })
    assert c.skills == ("python", "go")
    assert c.preferred_titles == ("Backend Engineer", "Platform Engineer")
    assert c.preferred_locations == ("Austin, TX", "Remote")
