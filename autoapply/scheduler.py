"""One automation tick: snapshot users, evaluate policy, enqueue, work the queue.

Usage (see run_agent.py):
  - Cron (recommended): run every hour. Install with: python setup_cron.py
      Then: 0 * * * * cd /path/to/project && .venv/bin/python run_agent.py
  - Or keep one process ticking: python run_agent.py --loop
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from autoapply.config import AppConfig, ensure_dirs, load_config, load_users
from autoapply.handlers import Automation
from autoapply.log import get_logger
from autoapply.models import SYSTEM_OWNER, QueueItemRequest, QueueStatus, QueueType, UserSnapshot
from autoapply.notifier import Notifier, build_notifier
from autoapply.policy import DAILY_SUMMARY, evaluate_automation_tick, evaluate_system_tick
from autoapply.queue import JsonQueueStore
from autoapply.storage import JsonJobStore, JsonMatchStore
from autoapply.tracker import CsvApplicationStore
from autoapply.worker import WorkerResult, process_queue

log = get_logger(__name__)


@dataclass
class Runtime:
    config: AppConfig
    automation: Automation
    enqueued: list[QueueItemRequest] = field(default_factory=list)


def build_runtime(config: AppConfig | None = None, notifier: Notifier | None = None) -> Runtime:
    """File-backed stores under ``config.data_dir`` and the users from users.yaml."""
    config = config or load_config()
    ensure_dirs(config)
    users = {u.id: u for u in load_users(default_timezone=config.timezone)}
    worker = config.worker
    data = config.data_dir

    queue = JsonQueueStore(
        data / "queue.json",
        stale_after=timedelta(minutes=worker.stale_after_minutes),
        retry_base_delay=worker.retry_base_delay_seconds,
        retry_max_delay=worker.retry_max_delay_seconds,
    )
    automation = Automation(
        users=users,
        jobs=JsonJobStore(data / "jobs.json"),
        matches=JsonMatchStore(data / "matches.json"),
        applications=CsvApplicationStore(data / "applications.csv"),
        queue=queue,
        notifier=notifier or build_notifier(lambda owner: users[owner].email if owner in users else None),
        config=config.handlers,
    )
    log.info("Runtime ready: %d user(s), data in %s", len(users), data)
    return Runtime(config=config, automation=automation)


def _in_flight_apply_urls(automation: Automation, owner: str) -> set[str]:
    return {
        i.payload.get("job_url")
        for i in automation.queue.items(owner=owner, type=QueueType.APPLY)
        if i.status in (QueueStatus.PENDING, QueueStatus.PROCESSING)
    }


def build_snapshot(automation: Automation, owner: str, now: datetime) -> UserSnapshot:
    """Fetch everything the policy needs for *owner* at *now*."""
    user = automation.user(owner)
    queue = automation.queue
    in_flight = _in_flight_apply_urls(automation, owner)
    return UserSnapshot(
        owner=owner,
        settings=user.settings,
        applications=automation.applications.for_owner(owner),
        pending_matches=[m for m in automation.pending_matches(owner) if m.job_url not in in_flight],
        criteria=automation.criteria_for(owner, now),
        last_scrape_at=queue.latest_created(owner, QueueType.SCRAPE),
        last_match_at=queue.latest_created(owner, QueueType.MATCH),
        last_summary_at=queue.latest_created(owner, QueueType.NOTIFY, {"kind": DAILY_SUMMARY}),
    )


def run_tick(now: datetime, runtime: Runtime) -> WorkerResult:
    """Evaluate every user and the system, enqueue the requests, process one batch."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    automation = runtime.automation
    config = runtime.config

    snapshots = [build_snapshot(automation, owner, now) for owner in automation.users]
    requests = evaluate_automation_tick(now, snapshots, config.policy)
    requests += evaluate_system_tick(now, automation.queue.latest_created(SYSTEM_OWNER, QueueType.CLEANUP), config.policy)

    for req in requests:
        automation.queue.enqueue(req.type, req.owner, req.payload, now, max_attempts=config.worker.max_attempts)
    runtime.enqueued = requests

    return process_queue(
        now,
        automation.queue,
        automation.handlers(),
        batch_size=config.worker.batch_size,
        notifier=automation.notifier,
    )


def run_forever(
    runtime: Runtime,
    *,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    sleep: Callable[[float], None] = time.sleep,
    max_ticks: int | None = None,
) -> int:
    """Tick every ``tick_minutes``; returns the number of ticks run."""
    interval = runtime.config.tick_minutes * 60
    log.info("Scheduler: tick every %d minute(s)", runtime.config.tick_minutes)
    ticks = 0
    while max_ticks is None or ticks < max_ticks:
        started = clock()
        try:
            run_tick(started, runtime)
        except Exception as exc:
            log.exception("Tick at %s failed: %s", started.isoformat(timespec="minutes"), exc)
        ticks += 1
        if max_ticks is not None and ticks >= max_ticks:
            break
        elapsed = (clock() - started).total_seconds()
        wait_secs = max(0.0, interval - elapsed)
        log.info("Next tick in %.1f minute(s)", wait_secs / 60)
        sleep(wait_secs)
    return ticks
