from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Generic, List, Optional, TypeVar

from stock_analyst.core.exceptions import ProviderError

T = TypeVar("T")

Fetcher = Callable[[], Awaitable[Optional[T]]]


class Stage(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    DONE = "done"
    FAILED = "failed"


class Outcome(str, Enum):
    DATA = "data"
    NO_DATA = "no_data"
    ERROR = "error"
    SKIPPED = "skipped"


class FailureReason(str, Enum):
    """Terminal failure classes, highest priority first."""

    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    GENERIC = "generic"


@dataclass(slots=True)
class FallbackResult(Generic[T]):
    data: Optional[T] = None
    source: Optional[str] = None
    warning: Optional[str] = None
    error: Optional[str] = None
    errors: List[ProviderError] = field(default_factory=list)
    primary_no_data: bool = False

    @property
    def ok(self) -> bool:
        return self.data is not None


__all__ = [
    "Fetcher",
    "Stage",
    "Outcome",
    "FailureReason",
    "FallbackResult",
]
