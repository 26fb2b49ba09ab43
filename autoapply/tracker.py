"""Track submitted applications in a CSV table with file locking."""
from __future__ import annotations

import csv
from pathlib import Path

from autoapply.log import get_logger
from autoapply.models import APPLICATION_STATUSES, ApplicationRecord, parse_datetime
from autoapply.storage import locked_file
from autoapply.stores import ApplicationStore

log = get_logger(__name__)

HEADERS: list[str] = [
    "owner", "job_url", "title", "company", "applied_at", "status", "score",
]


def _to_row(app: ApplicationRecord) -> dict[str, str]:
    return {
        "owner": app.owner,
        "job_url": app.job_url,
        "title": app.title,
        "company": app.company,
        "applied_at": app.applied_at.isoformat(),
        "status": app.status,
        "score": "" if app.score is None else str(app.score),
    }


def _from_row(row: dict[str, str]) -> ApplicationRecord:
    score = row.get("score") or ""
    return ApplicationRecord(
        owner=row["owner"],
        job_url=row["job_url"],
        status=row.get("status") or "applied",
        applied_at=parse_datetime(row["applied_at"]),
        title=row.get("title", ""),
        company=row.get("company", ""),
        score=int(score) if score.isdigit() else None,
    )


class CsvApplicationStore(ApplicationStore):
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def ensure_tracker(self) -> None:
        with locked_file(self.path) as f:
            f.seek(0)
            if not f.read(1):
                csv.writer(f).writerow(HEADERS)
                log.info("Created application tracker → %s", self.path.name)

    def record(self, application: ApplicationRecord) -> None:
        if application.status not in APPLICATION_STATUSES:
            raise ValueError(f"Unknown application status: {application.status}")
        self.ensure_tracker()
        with locked_file(self.path) as f:
            f.seek(0, 2)
            csv.DictWriter(f, fieldnames=HEADERS).writerow(_to_row(application))
        log.debug("Tracked: %s for %s [%s]", application.job_url, application.owner, application.status)

    def _rows(self) -> list[dict[str, str]]:
        self.ensure_tracker()
        with locked_file(self.path, exclusive=False) as f:
            f.seek(0)
            return list(csv.DictReader(f))

    def for_owner(self, owner: str) -> list[ApplicationRecord]:
        return [_from_row(r) for r in self._rows() if r.get("owner") == owner]

    def update_status(self, owner: str, job_url: str, status: str) -> bool:
        """Update status of an existing application (e.g. applied -> accepted)."""
        if status not in APPLICATION_STATUSES:
            raise ValueError(f"Unknown application status: {status}")
        self.ensure_tracker()
        with locked_file(self.path) as f:
            f.seek(0)
            rows = list(csv.DictReader(f))
            found = False
            for r in rows:
                if r.get("owner") == owner and r.get("job_url") == job_url:
                    r["status"] = status
                    found = True
                    break
            if not found:
                return False
            f.seek(0)
            f.truncate()
            w = csv.DictWriter(f, fieldnames=HEADERS)
            w.writeheader()
            w.writerows(rows)
        log.debug("Updated %s for %s → %s", job_url, owner, status)
        return True
