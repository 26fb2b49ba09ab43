"""Back ends that perform the actual application submission for an apply item."""
from __future__ import annotations

from abc import ABC, abstractmethod

from autoapply.log import get_logger
from autoapply.models import JobPosting

log = get_logger(__name__)


class SubmissionError(RuntimeError):
    """The portal refused or could not complete the application."""


class Submitter(ABC):
    @abstractmethod
    def submit(self, owner: str, job: JobPosting) -> str:
        """Apply *owner* to *job*; return the resulting application status.

        Raise SubmissionError (or any exception) when the attempt failed and
        should be retried.
        """


class ManualSubmitter(Submitter):
    """Records the job as a pending application for the user to finish by hand."""

    def submit(self, owner: str, job: JobPosting) -> str:
        log.info("Queued %s @ %s for manual application by %s → %s", job.title, job.company, owner, job.url)
        return "pending"
