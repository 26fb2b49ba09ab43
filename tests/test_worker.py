from datetime import timedelta

from autoapply.models import SYSTEM_OWNER, QueueStatus, QueueType
from autoapply.notifier import LogNotifier
from autoapply.queue import JsonQueueStore, MemoryQueueStore
from autoapply.worker import process_queue


def test_successful_items_complete(now):
    store = MemoryQueueStore()
    seen = []
    store.enqueue(QueueType.MATCH, "alex", {}, now)
    store.enqueue(QueueType.MATCH, "sam", {}, now)

    result = process_queue(now, store, {QueueType.MATCH: lambda item, at: seen.append(item.owner)})

    assert seen == ["alex", "sam"]
    assert (result.claimed, result.completed, result.retried, result.failed) == (2, 2, 0, 0)
    assert all(i.status == QueueStatus.COMPLETED for i in store.items())


def test_failing_handler_retries_then_fails_and_notifies(now):
    store = MemoryQueueStore()
    notifier = LogNotifier()
    item_id = store.enqueue(QueueType.SCRAPE, "alex", {}, now)

    def broken(item, at):
        raise RuntimeError("source down")

    results = [process_queue(now, store, {QueueType.SCRAPE: broken}, notifier=notifier) for _ in range(3)]

    assert [r.retried for r in results] == [1, 1, 0]
    assert results[-1].failed == 1
    item = store.get(item_id)
    assert item.status == QueueStatus.FAILED
    assert item.attempt_count == 3
    assert item.last_error == "source down"
    assert len(notifier.sent) == 1
    owner, subject, body = notifier.sent[0]
    assert owner == "alex"
    assert "scrape" in subject
    assert "source down" in body


def test_unknown_type_fails_like_handler_error(now):
    store = MemoryQueueStore()
    item_id = store.enqueue(QueueType.CLEANUP, SYSTEM_OWNER, {}, now, max_attempts=1)
    notifier = LogNotifier()

    result = process_queue(now, store, {}, notifier=notifier)

    assert result.failed == 1
    assert "Unknown queue item type" in store.get(item_id).last_error
    assert notifier.sent == []


def test_batch_size_limits_work(now):
    store = MemoryQueueStore()
    for _ in range(5):
        store.enqueue(QueueType.MATCH, "alex", {}, now)
    result = process_queue(now, store, {QueueType.MATCH: lambda item, at: None}, batch_size=2)
    assert result.claimed == 2
    assert len(store.items(status=QueueStatus.PENDING)) == 3


def test_empty_queue(now):
    result = process_queue(now, MemoryQueueStore(), {})
    assert result.claimed == 0


def test_abandoned_stale_item_is_counted_and_reported(now):
    store = MemoryQueueStore()
    notifier = LogNotifier()
    item_id = store.enqueue(QueueType.APPLY, "alex", {"job_url": "u"}, now, max_attempts=1)
    store.claim_pending(1, now)

    result = process_queue(now + timedelta(hours=1), store, {QueueType.APPLY: lambda item, at: None}, notifier=notifier)

    assert store.get(item_id).status == QueueStatus.FAILED
    assert (result.claimed, result.failed) == (0, 1)
    assert [i.id for i in result.failures] == [item_id]
    (sent,) = notifier.sent
    assert sent[0] == "alex"
    assert "apply task failed" in sent[1]
    assert "abandoned while processing" in sent[2]


def test_naive_now_with_json_store(tmp_path, now):
    store = JsonQueueStore(tmp_path / "queue.json")
    store.enqueue(QueueType.MATCH, "alex", {}, now)
    result = process_queue(now.replace(tzinfo=None), store, {QueueType.MATCH: lambda item, at: None})
    assert (result.claimed, result.completed) == (1, 1)
