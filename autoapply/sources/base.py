from abc import ABC, abstractmethod

from autoapply.models import JobPosting


class JobSource(ABC):
    name: str = "unknown"

    @abstractmethod
    def search(self, query: str, location: str, limit: int = 20) -> list[JobPosting]:
        pass
