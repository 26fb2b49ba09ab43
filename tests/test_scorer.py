import random

from autoapply.models import CandidateCriteria, JobPosting, SalaryExpectation
from autoapply.scorer import (
    WEIGHTS,
    experience_match,
    filter_and_rank,
    location_match,
    parse_salary_range,
    required_years,
    salary_match,
    score_match,
    skills_match,
    title_match,
)

from conftest import make_job


def _backend_scenario():
    job = JobPosting(
        title="Backend Engineer",
        company="Acme",
        url="https://example.com/jobs/backend",
        location="Remote",
        requirements="5+ years experience with Python, AWS, PostgreSQL",
        salary_range="$120k-$150k",
    )
    criteria = CandidateCriteria(
        skills=("python", "aws"),
        experience_years=5,
        preferred_titles=("backend engineer",),
        preferred_locations=("San Francisco",),
        salary_expectation=SalaryExpectation(min=100000, max=160000),
    )
    return job, criteria


def test_backend_engineer_scenario():
    job, criteria = _backend_scenario()
    b = score_match(job, criteria)
    assert b.title_match == 100
    assert b.location_match == 100
    assert b.experience_match == 100
    assert b.skills_match == 67
    assert b.matched_skills == {"python", "aws"}
    # 30k overlap against a 45k average range width
    assert b.salary_match == 67
    assert b.total_score == 84


def test_sql_is_not_found_inside_postgresql():
    job = make_job(description="We run PostgreSQL", requirements=None)
    score, matched, missing = skills_match(job, ["postgresql", "sql"])
    assert score == 100
    # literal substring matching still credits the candidate's "sql"
    assert matched == {"postgresql", "sql"}
    assert missing == frozenset()


def test_sparse_inputs_give_neutral_defaults():
    job = JobPosting(title="", company="", url="https://example.com/x")
    b = score_match(job, CandidateCriteria())
    assert b.skills_match == 50
    assert b.title_match == 50
    assert b.location_match == 70
    assert b.experience_match == 70
    assert b.salary_match == 70
    assert b.total_score == 57


def test_skills_without_reference_terms_use_literal_matches():
    job = make_job(description="Terraform and Ansible for our fleet", requirements=None)
    assert skills_match(job, ["terraform", "puppet"])[0] == 50
    assert skills_match(job, ["cobol"])[0] == 40


def test_remote_location_always_scores_full():
    assert location_match("Remote - US", ["Berlin"]) == 100
    assert location_match("Work from anywhere", ["Berlin"]) == 100


def test_location_levels():
    assert location_match("Austin, TX", ["austin, tx"]) == 100
    assert location_match("Austin, TX, USA", ["Austin, TX"]) == 90
    assert location_match("Dallas, TX", ["Austin, TX"]) == 70
    assert location_match("Berlin", ["Austin, TX"]) == 30
    assert location_match(None, ["Austin"]) == 70
    assert location_match("Berlin", []) == 70


def test_exact_title_beats_partial():
    assert title_match("Backend Engineer", ["backend engineer"]) == 100
    assert title_match("Senior Backend Engineer", ["backend engineer"]) == 90
    assert title_match("Backend Developer", ["backend engineer"]) == 40
    assert title_match("Chef", ["backend engineer"]) == 0
    assert title_match("Anything", []) == 50


def test_required_years_pattern_priority():
    assert required_years(make_job(description="3 to 5 years in backend")) == 3
    assert required_years(make_job(description="Minimum 4 years of Go")) == 4
    assert required_years(make_job(description="Senior role")) == 5
    assert required_years(make_job(description="Junior position")) == 1
    assert required_years(make_job(description="Mid-level developer")) == 3
    assert required_years(make_job(description="Great team")) is None


def test_zero_years_falls_back_to_keywords():
    job = make_job(description="0+ years experience, senior mindset")
    assert required_years(job) == 5


def test_experience_steps():
    job = make_job(description="4+ years experience")
    assert experience_match(job, 4) == 100
    assert experience_match(job, 5) == 90
    assert experience_match(job, 6) == 75
    assert experience_match(job, 7) == 60
    assert experience_match(job, 9) == 40
    assert experience_match(job, 20) == 20


def test_parse_salary_range():
    assert parse_salary_range("$120k-$150k") == (120000, 150000)
    assert parse_salary_range("$70,000 - $85,000") == (70000, 85000)
    assert parse_salary_range("90000") == (90000, 90000)
    assert parse_salary_range("Competitive") is None
    assert parse_salary_range(None) is None


def test_salary_cases():
    expectation = SalaryExpectation(min=100000, max=120000)
    assert salary_match("$50k-$60k", expectation) == 20
    assert salary_match("$100k-$120k", expectation) == 100
    assert salary_match("Competitive", expectation) == 70
    assert salary_match(None, expectation) == 70
    assert salary_match("$100k-$120k", SalaryExpectation()) == 70


def test_salary_degenerate_and_unbounded():
    assert salary_match("$100k", SalaryExpectation(min=100000, max=100000)) == 100
    # no upper bound: overlap is measured against the job range only
    assert salary_match("$120k-$150k", SalaryExpectation(min=130000)) == 67
    assert salary_match("$120k", SalaryExpectation(min=100000)) == 100


def test_weights_sum_to_100():
    assert sum(WEIGHTS.values()) == 100


def _random_case(rng):
    words = ["python", "aws", "react", "java", "docker", "sql", "rust", "go", "senior", "remote"]
    job = JobPosting(
        title=rng.choice(["Backend Engineer", "Data Scientist", "", "Senior Frontend Dev"]),
        company="Co",
        url="https://example.com/r",
        location=rng.choice([None, "Remote", "Austin, TX", "Berlin"]),
        description=" ".join(rng.sample(words, rng.randint(0, 6))) or None,
        requirements=rng.choice([None, f"{rng.randint(0, 12)}+ years experience"]),
        salary_range=rng.choice([None, "$80k-$120k", "$150,000", "DOE"]),
    )
    criteria = CandidateCriteria(
        skills=tuple(rng.sample(words, rng.randint(0, 4))),
        experience_years=rng.randint(0, 15),
        preferred_titles=tuple(rng.sample(["backend engineer", "data scientist", "dev"], rng.randint(0, 2))),
        preferred_locations=tuple(rng.sample(["Austin, TX", "Berlin", "Remote"], rng.randint(0, 2))),
        salary_expectation=rng.choice(
            [SalaryExpectation(), SalaryExpectation(min=90000), SalaryExpectation(min=70000, max=130000)]
        ),
    )
    return job, criteria


def test_components_in_range_and_total_is_weighted_sum():
    rng = random.Random(1234)
    for _ in range(300):
        job, criteria = _random_case(rng)
        b = score_match(job, criteria)
        parts = [b.skills_match, b.title_match, b.location_match, b.experience_match, b.salary_match]
        assert all(isinstance(p, int) and 0 <= p <= 100 for p in parts)
        weighted = sum(w * p for w, p in zip(WEIGHTS.values(), parts))
        assert abs(b.total_score - weighted / 100) <= 0.5
        assert 0 <= b.total_score <= 100


def test_scoring_is_deterministic():
    job, criteria = _backend_scenario()
    assert score_match(job, criteria) == score_match(job, criteria)


def test_filter_and_rank_orders_by_score():
    _, criteria = _backend_scenario()
    good = make_job("https://example.com/a", requirements="5+ years experience with Python, AWS")
    weak = make_job("https://example.com/b", title="Chef", location="Paris", description="Cooking", requirements=None)
    ranked = filter_and_rank([weak, good], criteria, min_score=60)
    assert [job.url for job, _ in ranked] == ["https://example.com/a"]
    assert filter_and_rank([weak, good], criteria, min_score=0)[0][0] is good
