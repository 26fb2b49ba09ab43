"""Process one batch of queued work per tick."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Mapping

from autoapply.log import get_logger
from autoapply.models import SYSTEM_OWNER, QueueItem, QueueStatus, QueueType
from autoapply.notifier import Notifier
from autoapply.queue import QueueStore

log = get_logger(__name__)

Handler = Callable[[QueueItem, datetime], None]


@dataclass
class WorkerResult:
    claimed: int = 0
    completed: int = 0
    retried: int = 0
    failed: int = 0
    failures: list[QueueItem] = field(default_factory=list)


def _report_failure(item: QueueItem, notifier: Notifier | None) -> None:
    log.error(
        "%s item %s for %s failed after %d attempt(s): %s",
        item.type.value, item.id, item.owner, item.attempt_count, item.last_error,
    )
    if notifier is None or item.owner == SYSTEM_OWNER:
        return
    body = "\n".join([
        "# Automation task failed",
        "",
        f"- **Task:** {item.type.value}",
        f"- **Attempts:** {item.attempt_count}/{item.max_attempts}",
        f"- **Error:** {item.last_error}",
    ])
    notifier.notify(item.owner, f"AutoApply: {item.type.value} task failed", body)


def process_queue(
    now: datetime,
    store: QueueStore,
    handlers: Mapping[QueueType, Handler],
    *,
    batch_size: int = 10,
    notifier: Notifier | None = None,
) -> WorkerResult:
    """Claim up to *batch_size* items (oldest first) and run their handlers.

    Handler exceptions never escape: the error is recorded on the item, which
    goes back to pending until its attempts run out.  Stale items the claim
    abandoned are counted and reported as failures too.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    result = WorkerResult()
    items = store.claim_pending(batch_size, now)
    result.claimed = len(items)
    for item in store.take_abandoned():
        result.failed += 1
        result.failures.append(item)
        _report_failure(item, notifier)
    if not items:
        log.debug("Queue empty")
        return result

    for item in items:
        handler = handlers.get(item.type)
        try:
            if handler is None:
                raise ValueError(f"Unknown queue item type: {item.type.value}")
            handler(item, now)
        except Exception as exc:
            log.warning("%s item %s attempt %d/%d failed: %s",
                        item.type.value, item.id, item.attempt_count, item.max_attempts, exc)
            updated = store.mark_failed_or_retry(item.id, str(exc) or exc.__class__.__name__, now)
            if updated.status == QueueStatus.FAILED:
                result.failed += 1
                result.failures.append(updated)
                _report_failure(updated, notifier)
            else:
                result.retried += 1
            continue
        store.mark_completed(item.id, now)
        result.completed += 1

    log.info(
        "Processed %d item(s): %d completed, %d retrying, %d failed",
        result.claimed, result.completed, result.retried, result.failed,
    )
    return result
