"""Queue of deferred work items with retry bookkeeping.

Lifecycle of one item::

    pending --claim--> processing --success--> completed
                           |
                           +--failure, attempts left--> pending (retry)
                           +--failure, no attempts left--> failed

``attempt_count`` is incremented at claim time.  Claiming happens inside a
single store transaction (a thread lock in memory, an exclusive ``flock`` on
the JSON file), so one item is never handed to two workers at once.  Items left
in ``processing`` longer than ``stale_after`` (a worker died mid-item) become
claimable again.
"""
from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterator

from autoapply.log import get_logger
from autoapply.models import QueueItem, QueueStatus, QueueType
from autoapply.retry import backoff_delay
from autoapply.storage import JsonTable

log = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_STALE_AFTER = timedelta(minutes=30)


def _aware(now: datetime) -> datetime:
    """Stored timestamps are UTC-aware; treat a naive *now* as UTC."""
    return now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)


class QueueStore(ABC):
    def __init__(
        self,
        *,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
        retry_base_delay: float = 0.0,
        retry_max_delay: float = 3600.0,
    ) -> None:
        self.stale_after = stale_after
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self._abandoned: list[QueueItem] = []

    @abstractmethod
    @contextmanager
    def _transaction(self) -> Iterator[list[QueueItem]]:
        """Yield every item under exclusive access; mutations are persisted on exit."""

    @abstractmethod
    def _snapshot(self) -> list[QueueItem]:
        """Return a read-only copy of every item."""

    def enqueue(
        self,
        type: QueueType,
        owner: str,
        payload: dict[str, Any] | None,
        now: datetime,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> str:
        now = _aware(now)
        item = QueueItem(
            id=uuid.uuid4().hex,
            type=QueueType(type),
            owner=owner,
            payload=dict(payload or {}),
            created_at=now,
            max_attempts=max_attempts,
            available_at=now,
        )
        with self._transaction() as items:
            items.append(item)
        log.debug("Enqueued %s item %s for %s", item.type.value, item.id, owner)
        return item.id

    def _claimable(self, item: QueueItem, now: datetime) -> bool:
        if item.status == QueueStatus.PENDING:
            return item.available_at is None or item.available_at <= now
        if item.status == QueueStatus.PROCESSING and item.processing_at is not None:
            return item.processing_at + self.stale_after <= now
        return False

    def claim_pending(self, limit: int, now: datetime) -> list[QueueItem]:
        """Atomically move up to *limit* claimable items (oldest first) to processing.

        Stale items with no attempts left go straight to failed; they are not
        returned but kept for ``take_abandoned``.
        """
        now = _aware(now)
        claimed: list[QueueItem] = []
        abandoned: list[QueueItem] = []
        with self._transaction() as items:
            candidates = sorted(
                (i for i in items if self._claimable(i, now)),
                key=lambda i: i.created_at,
            )
            for item in candidates:
                if len(claimed) >= limit:
                    break
                if item.status == QueueStatus.PROCESSING:
                    log.warning(
                        "Reclaiming stale %s item %s (processing since %s)",
                        item.type.value, item.id, item.processing_at,
                    )
                    if item.attempt_count >= item.max_attempts:
                        item.status = QueueStatus.FAILED
                        item.last_error = item.last_error or "abandoned while processing"
                        item.processed_at = now
                        abandoned.append(_copy(item))
                        continue
                item.status = QueueStatus.PROCESSING
                item.attempt_count += 1
                item.processing_at = now
                claimed.append(_copy(item))
        self._abandoned.extend(abandoned)
        return claimed

    def take_abandoned(self) -> list[QueueItem]:
        """Return and forget the items failed by ``claim_pending`` since the last call."""
        abandoned, self._abandoned = self._abandoned, []
        return abandoned

    def mark_completed(self, item_id: str, now: datetime) -> QueueItem:
        now = _aware(now)
        with self._transaction() as items:
            item = _find(items, item_id)
            item.status = QueueStatus.COMPLETED
            item.processed_at = now
            return _copy(item)

    def mark_failed_or_retry(self, item_id: str, error: str, now: datetime) -> QueueItem:
        """Record *error*; send the item back to pending while attempts remain."""
        now = _aware(now)
        with self._transaction() as items:
            item = _find(items, item_id)
            item.last_error = error
            if item.attempt_count >= item.max_attempts:
                item.status = QueueStatus.FAILED
                item.processed_at = now
            else:
                item.status = QueueStatus.PENDING
                delay = backoff_delay(
                    item.attempt_count,
                    base_delay=self.retry_base_delay,
                    max_delay=self.retry_max_delay,
                )
                item.available_at = now + timedelta(seconds=delay)
            return _copy(item)

    def get(self, item_id: str) -> QueueItem | None:
        for item in self._snapshot():
            if item.id == item_id:
                return item
        return None

    def items(
        self,
        *,
        status: QueueStatus | None = None,
        owner: str | None = None,
        type: QueueType | None = None,
    ) -> list[QueueItem]:
        result = self._snapshot()
        if status is not None:
            result = [i for i in result if i.status == status]
        if owner is not None:
            result = [i for i in result if i.owner == owner]
        if type is not None:
            result = [i for i in result if i.type == type]
        return sorted(result, key=lambda i: i.created_at)

    def latest_created(
        self,
        owner: str,
        type: QueueType,
        payload_match: dict[str, Any] | None = None,
    ) -> datetime | None:
        """Creation time of the newest item of *type* for *owner*, or None."""
        times = [
            i.created_at for i in self.items(owner=owner, type=type)
            if not payload_match or all(i.payload.get(k) == v for k, v in payload_match.items())
        ]
        return max(times) if times else None

    def purge_finished(self, before: datetime) -> int:
        """Drop completed/failed items processed before *before*; return how many."""
        before = _aware(before)
        with self._transaction() as items:
            keep = [
                i for i in items
                if not (i.is_terminal and i.processed_at is not None and i.processed_at < before)
            ]
            removed = len(items) - len(keep)
            items[:] = keep
        return removed


def _find(items: list[QueueItem], item_id: str) -> QueueItem:
    for item in items:
        if item.id == item_id:
            return item
    raise KeyError(f"Queue item not found: {item_id}")


def _copy(item: QueueItem) -> QueueItem:
    return QueueItem.from_dict(item.to_dict())


class MemoryQueueStore(QueueStore):
    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._items: list[QueueItem] = []
        self._lock = threading.Lock()

    @contextmanager
    def _transaction(self) -> Iterator[list[QueueItem]]:
        with self._lock:
            yield self._items

    def _snapshot(self) -> list[QueueItem]:
        with self._lock:
            return [_copy(i) for i in self._items]


class JsonQueueStore(QueueStore):
    """Queue persisted as a JSON file; safe across processes on one host."""

    def __init__(self, path: Path, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.table = JsonTable(path)

    @contextmanager
    def _transaction(self) -> Iterator[list[QueueItem]]:
        with self.table.update() as rows:
            items = [QueueItem.from_dict(r) for r in rows]
            yield items
            rows[:] = [i.to_dict() for i in items]

    def _snapshot(self) -> list[QueueItem]:
        return [QueueItem.from_dict(r) for r in self.table.rows()]
