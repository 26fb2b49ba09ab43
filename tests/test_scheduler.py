from datetime import timedelta

import pytest

from autoapply.config import AppConfig
from autoapply.handlers import Automation
from autoapply.models import AutomationSettings, QueueType, UserAccount
from autoapply.notifier import LogNotifier
from autoapply.queue import JsonQueueStore, MemoryQueueStore
from autoapply.scheduler import Runtime, build_runtime, build_snapshot, run_forever, run_tick
from autoapply.sources import MockSource
from autoapply.stores import MemoryApplicationStore, MemoryJobStore, MemoryMatchStore


def _alex():
    return UserAccount(
        id="alex",
        email="alex@example.com",
        name="Alex",
        profile={
            "years_of_experience": 5,
            "desired_job_titles": ["Backend Engineer"],
            "preferred_locations": ["Remote"],
        },
        skills=["python", "aws", "docker"],
        settings=AutomationSettings(
            auto_scrape_enabled=True,
            auto_apply_enabled=True,
            preferred_sources=("mock",),
            max_applications_per_day=2,
        ),
    )


@pytest.fixture
def runtime():
    automation = Automation(
        users={"alex": _alex()},
        jobs=MemoryJobStore(),
        matches=MemoryMatchStore(),
        applications=MemoryApplicationStore(),
        queue=MemoryQueueStore(),
        notifier=LogNotifier(),
        source_factory=lambda name: MockSource(),
    )
    return Runtime(config=AppConfig(), automation=automation)


def _types(runtime):
    return [r.type for r in runtime.enqueued]


def test_ticks_scrape_match_then_apply(runtime, now):
    result = run_tick(now, runtime)
    assert _types(runtime) == [QueueType.SCRAPE, QueueType.MATCH, QueueType.CLEANUP]
    assert (result.claimed, result.completed, result.failed) == (3, 3, 0)
    scores = sorted(m.total_score for m in runtime.automation.matches.for_owner("alex"))
    assert scores == [49, 55, 97]

    run_tick(now + timedelta(hours=1), runtime)
    assert _types(runtime) == [QueueType.MATCH, QueueType.APPLY]
    (application,) = runtime.automation.applications.for_owner("alex")
    assert application.job_url == "https://example.com/jobs/backend-engineer/1"
    assert application.status == "pending"
    assert application.score == 97

    run_tick(now + timedelta(hours=2), runtime)
    assert _types(runtime) == [QueueType.MATCH]


def test_snapshot_skips_matches_with_apply_in_flight(runtime, now):
    run_tick(now, runtime)
    url = "https://example.com/jobs/backend-engineer/1"
    runtime.automation.queue.enqueue(QueueType.APPLY, "alex", {"job_url": url}, now)

    snapshot = build_snapshot(runtime.automation, "alex", now)
    assert url not in {m.job_url for m in snapshot.pending_matches}
    assert snapshot.last_scrape_at == now
    assert snapshot.criteria.preferred_titles == ("Backend Engineer",)


def test_run_forever_sleeps_between_ticks(runtime, now):
    sleeps = []
    ticks = run_forever(runtime, clock=lambda: now, sleep=sleeps.append, max_ticks=2)
    assert ticks == 2
    assert sleeps == [3600]


def test_build_runtime_uses_file_stores(tmp_path, monkeypatch, now):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    monkeypatch.setattr("autoapply.scheduler.load_users", lambda default_timezone: [_alex()])
    runtime = build_runtime(AppConfig(data_dir=tmp_path))

    assert isinstance(runtime.automation.queue, JsonQueueStore)
    assert isinstance(runtime.automation.notifier, LogNotifier)
    assert set(runtime.automation.users) == {"alex"}
    runtime.automation.queue.enqueue(QueueType.MATCH, "alex", {}, now)
    assert (tmp_path / "queue.json").exists()


def test_soft_deleted_job_is_never_applied_to(runtime, now):
    run_tick(now, runtime)
    assert max(m.total_score for m in runtime.automation.matches.for_owner("alex")) == 97
    assert runtime.automation.jobs.deactivate_older_than(now + timedelta(seconds=1)) == 3

    for hour in range(1, 8):
        result = run_tick(now + timedelta(hours=hour), runtime)
        assert QueueType.APPLY not in _types(runtime)
        assert result.failed == 0

    assert runtime.automation.queue.items(type=QueueType.APPLY) == []
    assert not any("task failed" in subject for _, subject, _ in runtime.automation.notifier.sent)
