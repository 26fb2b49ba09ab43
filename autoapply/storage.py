"""JSON-file stores for jobs and matches, guarded by advisory file locks."""
from __future__ import annotations

import fcntl
import json
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import IO, Any, Iterator

from autoapply.log import get_logger
from autoapply.models import JobPosting, MatchRecord
from autoapply.stores import JobStore, MatchStore

log = get_logger(__name__)


def _lock(f: IO, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
    fcntl.flock(f.fileno(), op)


def _unlock(f: IO) -> None:
    fcntl.flock(f.fileno(), fcntl.LOCK_UN)


@contextmanager
def locked_file(path: Path, exclusive: bool = True) -> Iterator[IO]:
    """Open *path* for read/write (creating it) and hold a lock while in use."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)
    with open(path, "r+", encoding="utf-8", newline="") as f:
        _lock(f, exclusive)
        try:
            yield f
        finally:
            _unlock(f)


class JsonTable:
    """A list of JSON objects in one file; every access takes the file lock."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @staticmethod
    def _read(f: IO) -> list[dict[str, Any]]:
        f.seek(0)
        raw = f.read()
        if not raw.strip():
            return []
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(f"Expected a JSON list in {f.name}")
        return data

    @staticmethod
    def _write(f: IO, rows: list[dict[str, Any]]) -> None:
        f.seek(0)
        f.truncate()
        json.dump(rows, f, indent=1)
        f.flush()

    def rows(self) -> list[dict[str, Any]]:
        with locked_file(self.path, exclusive=False) as f:
            return self._read(f)

    @contextmanager
    def update(self) -> Iterator[list[dict[str, Any]]]:
        """Yield the rows under an exclusive lock; changes are written back on exit."""
        with locked_file(self.path) as f:
            rows = self._read(f)
            yield rows
            self._write(f, rows)


class JsonJobStore(JobStore):
    def __init__(self, path: Path) -> None:
        self.table = JsonTable(path)

    def save_new(self, jobs: list[JobPosting], now: datetime) -> list[JobPosting]:
        inserted: list[JobPosting] = []
        with self.table.update() as rows:
            seen = {r.get("url") for r in rows}
            for job in jobs:
                if not job.url or job.url in seen:
                    continue
                if job.scraped_at is None:
                    job.scraped_at = now
                rows.append(job.to_dict())
                seen.add(job.url)
                inserted.append(job)
        log.debug("Job store: %d offered, %d new → %s", len(jobs), len(inserted), self.table.path.name)
        return inserted

    def get(self, url: str) -> JobPosting | None:
        for row in self.table.rows():
            if row.get("url") == url:
                return JobPosting.from_dict(row)
        return None

    def all(self) -> list[JobPosting]:
        return [JobPosting.from_dict(r) for r in self.table.rows()]

    def deactivate_older_than(self, cutoff: datetime) -> int:
        count = 0
        with self.table.update() as rows:
            for row in rows:
                job = JobPosting.from_dict(row)
                if job.active and job.seen_at and job.seen_at < cutoff:
                    row["active"] = False
                    count += 1
        return count


class JsonMatchStore(MatchStore):
    def __init__(self, path: Path) -> None:
        self.table = JsonTable(path)

    def save(self, record: MatchRecord) -> None:
        with self.table.update() as rows:
            rows[:] = [
                r for r in rows
                if not (r.get("owner") == record.owner and r.get("job_url") == record.job_url)
            ]
            rows.append(record.to_dict())

    def for_owner(self, owner: str) -> list[MatchRecord]:
        return [MatchRecord.from_dict(r) for r in self.table.rows() if r.get("owner") == owner]
