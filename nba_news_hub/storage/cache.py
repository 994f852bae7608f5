"""News cache interfaces and the in-process fallback cache."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Optional

from ..logging import get_logger
from ..schema import Comment, NewsItem, Poll, PollOption
from ..utils import ensure_utc

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class NewsStore(ABC):
    """Persistent cache for processed news, polls and comment evidence.

    Implementations raise ``StoreError`` when the backend is unavailable and
    ``DuplicateVoteError`` when a voter already answered a poll.
    """

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the backend is usable at all."""

    @abstractmethod
    async def read_news(self, limit: int) -> list[NewsItem]:
        """Most recent items, newest ``published_at`` first."""

    @abstractmethod
    async def upsert_news(self, items: Sequence[NewsItem]) -> None:
        """Insert or replace items keyed on url."""

    @abstractmethod
    async def read_polls(self, active_only: bool = True) -> list[Poll]:
        ...

    @abstractmethod
    async def get_poll(self, poll_id: str) -> Optional[Poll]:
        ...

    @abstractmethod
    async def update_poll_options(self, poll_id: str, options: Sequence[PollOption]) -> None:
        """Replace a poll's options and counts as a whole."""

    @abstractmethod
    async def insert_vote_record(self, poll_id: str, voter_key: str, option_index: int) -> None:
        """Record a response without counting it; raises DuplicateVoteError for a repeat voter."""

    @abstractmethod
    async def record_vote(self, poll_id: str, voter_key: str, option_index: int) -> Poll:
        """Store the response and count it in one step; returns the updated poll.

        Raises DuplicateVoteError for a repeat voter and PollNotFoundError for an
        unknown poll. A rejected vote leaves no trace.
        """

    @abstractmethod
    async def read_comments(self, url: str, limit: int = 10) -> list[Comment]:
        """Comments stored for an article, most liked first."""

    @abstractmethod
    async def replace_comments(self, url: str, comments: Sequence[Comment]) -> None:
        ...

    async def close(self) -> None:
        """Release backend resources."""


def oldest_created_at(items: Sequence[NewsItem]) -> Optional[datetime]:
    if not items:
        return None
    return min(ensure_utc(item.created_at) for item in items)


def newest_created_at(items: Sequence[NewsItem]) -> Optional[datetime]:
    if not items:
        return None
    return max(ensure_utc(item.created_at) for item in items)


def batch_is_fresh(items: Sequence[NewsItem], ttl: timedelta, now: datetime) -> bool:
    """A batch is fresh while its oldest row is younger than the TTL."""
    oldest = oldest_created_at(items)
    if oldest is None:
        return False
    return ensure_utc(now) - oldest < ttl


@dataclass(frozen=True)
class CachedBatch:
    items: tuple[NewsItem, ...]
    fetched_at: datetime


class MemoryNewsCache:
    """Single-slot in-process cache holding the last processed batch.

    The whole batch is replaced on every refresh.
    """

    def __init__(self, ttl_seconds: float, clock: Optional[Clock] = None):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or utc_now
        self._slot: Optional[CachedBatch] = None

    def is_fresh(self) -> bool:
        if self._slot is None:
            return False
        return self.clock() - self._slot.fetched_at < self.ttl

    def get_fresh(self) -> Optional[CachedBatch]:
        """The stored batch if it is still within the TTL."""
        return self._slot if self.is_fresh() else None

    def put(self, items: Sequence[NewsItem]) -> CachedBatch:
        self._slot = CachedBatch(items=tuple(items), fetched_at=self.clock())
        logger.debug("Memory cache replaced", items=len(items))
        return self._slot

    def clear(self) -> None:
        self._slot = None
