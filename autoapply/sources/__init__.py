from .base import JobSource
from .mock import MockSource
from .remotive import RemotiveSource

from autoapply.log import get_logger

log = get_logger(__name__)

__all__ = ["JobSource", "MockSource", "RemotiveSource", "SOURCES", "get_source"]

SOURCES: dict[str, type[JobSource]] = {
    "remotive": RemotiveSource,
    "mock": MockSource,
}


def get_source(name: str) -> JobSource:
    key = (name or "").strip().lower()
    try:
        source_cls = SOURCES[key]
    except KeyError:
        raise ValueError(f"Unsupported job source: {name}") from None
    log.debug("Using source: %s", source_cls.__name__)
    return source_cls()
