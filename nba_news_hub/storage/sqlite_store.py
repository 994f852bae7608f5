"""SQLite-backed news cache, poll and comment storage (aiosqlite)."""

import asyncio
import sqlite3
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Optional

import aiosqlite
import orjson

from ..errors import ClientInputError, DuplicateVoteError, PollNotFoundError, StoreError
from ..logging import get_logger
from ..schema import Comment, NewsItem, Poll, PollOption
from ..utils import ensure_utc, parse_date_string
from .cache import NewsStore
from .polls import default_polls

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS news_items (
    id TEXT NOT NULL,
    headline TEXT NOT NULL,
    summary TEXT,
    source TEXT NOT NULL,
    source_id TEXT,
    url TEXT UNIQUE NOT NULL,
    published_at TEXT NOT NULL,
    image_url TEXT,
    teams TEXT NOT NULL DEFAULT '[]',
    sentiment_score REAL,
    sentiment_label TEXT CHECK (sentiment_label IN ('positive', 'neutral', 'negative')),
    sentiment_breakdown TEXT,
    sentiment_source TEXT,
    sentiment_comment_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_news_items_published ON news_items(published_at DESC);

CREATE TABLE IF NOT EXISTS polls (
    id TEXT PRIMARY KEY,
    question TEXT NOT NULL,
    options TEXT NOT NULL DEFAULT '[]',
    event_context TEXT,
    active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS poll_responses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    poll_id TEXT NOT NULL REFERENCES polls(id) ON DELETE CASCADE,
    option_index INTEGER NOT NULL,
    voter_key TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE(poll_id, voter_key)
);

CREATE TABLE IF NOT EXISTS article_comments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    article_url TEXT NOT NULL,
    text TEXT NOT NULL,
    author TEXT,
    like_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_article_comments_url ON article_comments(article_url);
"""

NEWS_COLUMNS = (
    "id", "headline", "summary", "source", "source_id", "url", "published_at",
    "image_url", "teams", "sentiment_score", "sentiment_label", "sentiment_breakdown",
    "sentiment_source", "sentiment_comment_count", "created_at",
)

_UPSERT_NEWS = (
    f"INSERT INTO news_items ({', '.join(NEWS_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in NEWS_COLUMNS)}) "
    "ON CONFLICT(url) DO UPDATE SET "
    + ", ".join(f"{column} = excluded.{column}" for column in NEWS_COLUMNS if column not in ("id", "url"))
)


def _iso(value: datetime) -> str:
    return ensure_utc(value).astimezone(UTC).isoformat(timespec="microseconds")


def _dumps(value: Any) -> str:
    return orjson.dumps(value).decode("utf-8")


def _parse_timestamp(value: str) -> datetime:
    parsed = parse_date_string(value)
    if parsed is None:
        raise StoreError("Corrupt timestamp in cache", details=value)
    return parsed


class SQLiteNewsStore(NewsStore):
    """News cache on a local SQLite file.

    Each operation opens its own connection; the schema is created (and the
    default polls seeded) on first use.
    """

    def __init__(self, database_path: str | Path):
        self.database_path = Path(database_path)
        self._initialized = False
        self._init_lock = asyncio.Lock()

    def is_configured(self) -> bool:
        return True

    async def _connect(self) -> aiosqlite.Connection:
        await self._ensure_schema()
        return aiosqlite.connect(self.database_path)

    async def _ensure_schema(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            try:
                self.database_path.parent.mkdir(parents=True, exist_ok=True)
                async with aiosqlite.connect(self.database_path) as db:
                    await db.executescript(SCHEMA)
                    async with db.execute("SELECT COUNT(*) FROM polls") as cursor:
                        (poll_count,) = await cursor.fetchone()
                    if poll_count == 0:
                        await db.executemany(
                            "INSERT INTO polls (id, question, options, event_context, active, created_at) "
                            "VALUES (?, ?, ?, ?, ?, ?)",
                            [self._poll_row(poll) for poll in default_polls()],
                        )
                        logger.info("Seeded default polls", count=len(default_polls()))
                    await db.commit()
            except (sqlite3.Error, OSError) as e:
                raise StoreError("Could not initialize news cache", details=str(e)) from e
            self._initialized = True

    # ── News ───────────────────────────────────────────────────────────────

    @staticmethod
    def _news_row(item: NewsItem) -> tuple:
        return (
            item.id,
            item.headline,
            item.summary,
            item.source,
            item.source_id,
            item.url,
            _iso(item.published_at),
            item.image_url,
            _dumps(sorted(item.teams)),
            item.sentiment_score,
            item.sentiment_label,
            _dumps(item.sentiment_breakdown.as_dict()) if item.sentiment_breakdown else None,
            item.sentiment_source,
            item.sentiment_comment_count,
            _iso(item.created_at),
        )

    @staticmethod
    def _news_item(row: sqlite3.Row) -> NewsItem:
        record = dict(row)
        record["teams"] = orjson.loads(record["teams"] or "[]")
        if record["sentiment_breakdown"]:
            record["sentiment_breakdown"] = orjson.loads(record["sentiment_breakdown"])
        record["published_at"] = _parse_timestamp(record["published_at"])
        record["created_at"] = _parse_timestamp(record["created_at"])
        return NewsItem.from_record(record)

    async def read_news(self, limit: int) -> list[NewsItem]:
        try:
            async with await self._connect() as db:
                db.row_factory = sqlite3.Row
                async with db.execute(
                    f"SELECT {', '.join(NEWS_COLUMNS)} FROM news_items "
                    "ORDER BY published_at DESC LIMIT ?",
                    (limit,),
                ) as cursor:
                    rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreError("Failed to read news cache", details=str(e)) from e

        return [self._news_item(row) for row in rows]

    async def upsert_news(self, items: Sequence[NewsItem]) -> None:
        if not items:
            return
        try:
            async with await self._connect() as db:
                await db.executemany(_UPSERT_NEWS, [self._news_row(item) for item in items])
                await db.commit()
        except sqlite3.Error as e:
            raise StoreError("Failed to write news cache", details=str(e)) from e

        logger.debug("News cache upserted", items=len(items))

    # ── Polls ──────────────────────────────────────────────────────────────

    @staticmethod
    def _poll_row(poll: Poll) -> tuple:
        return (
            poll.id,
            poll.question,
            _dumps([{"text": o.text, "votes": o.votes} for o in poll.options]),
            poll.event_context,
            1 if poll.active else 0,
            _iso(poll.created_at),
        )

    @staticmethod
    def _poll(row: sqlite3.Row) -> Poll:
        options = orjson.loads(row["options"] or "[]")
        return Poll(
            id=row["id"],
            question=row["question"],
            options=[PollOption(text=o["text"], votes=int(o.get("votes", 0))) for o in options],
            event_context=row["event_context"] or "",
            active=bool(row["active"]),
            created_at=_parse_timestamp(row["created_at"]),
        )

    async def read_polls(self, active_only: bool = True) -> list[Poll]:
        query = "SELECT * FROM polls"
        if active_only:
            query += " WHERE active = 1"
        query += " ORDER BY created_at DESC, id"
        try:
            async with await self._connect() as db:
                db.row_factory = sqlite3.Row
                async with db.execute(query) as cursor:
                    rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreError("Failed to read polls", details=str(e)) from e

        return [self._poll(row) for row in rows]

    async def get_poll(self, poll_id: str) -> Optional[Poll]:
        try:
            async with await self._connect() as db:
                db.row_factory = sqlite3.Row
                async with db.execute("SELECT * FROM polls WHERE id = ?", (poll_id,)) as cursor:
                    row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError("Failed to read poll", details=str(e)) from e

        return self._poll(row) if row else None

    async def update_poll_options(self, poll_id: str, options: Sequence[PollOption]) -> None:
        payload = _dumps([{"text": o.text, "votes": o.votes} for o in options])
        try:
            async with await self._connect() as db:
                await db.execute("UPDATE polls SET options = ? WHERE id = ?", (payload, poll_id))
                await db.commit()
        except sqlite3.Error as e:
            raise StoreError("Failed to update poll", details=str(e)) from e

    @staticmethod
    async def _insert_response(db: aiosqlite.Connection, poll_id: str, voter_key: str, option_index: int) -> None:
        await db.execute(
            "INSERT INTO poll_responses (poll_id, option_index, voter_key, created_at) "
            "VALUES (?, ?, ?, ?)",
            (poll_id, option_index, voter_key, _iso(datetime.now(UTC))),
        )

    async def insert_vote_record(self, poll_id: str, voter_key: str, option_index: int) -> None:
        try:
            async with await self._connect() as db:
                await self._insert_response(db, poll_id, voter_key, option_index)
                await db.commit()
        except sqlite3.IntegrityError as e:
            raise DuplicateVoteError("You have already voted on this poll") from e
        except sqlite3.Error as e:
            raise StoreError("Failed to record vote", details=str(e)) from e

    async def record_vote(self, poll_id: str, voter_key: str, option_index: int) -> Poll:
        """Insert the response row and bump the option count in a single transaction.

        The increment is done in SQL on the stored options, so concurrent voters
        never overwrite each other's counts.
        """
        if option_index < 0:
            raise ClientInputError("Invalid option index")
        path = f"$[{int(option_index)}].votes"
        try:
            async with await self._connect() as db:
                db.row_factory = sqlite3.Row
                await self._insert_response(db, poll_id, voter_key, option_index)
                cursor = await db.execute(
                    "UPDATE polls SET options = json_set(options, ?, json_extract(options, ?) + 1) "
                    "WHERE id = ? AND json_array_length(options) > ?",
                    (path, path, poll_id, option_index),
                )
                if cursor.rowcount != 1:
                    await db.rollback()
                    async with db.execute("SELECT 1 FROM polls WHERE id = ?", (poll_id,)) as check:
                        exists = await check.fetchone() is not None
                    if exists:
                        raise ClientInputError("Invalid option index")
                    raise PollNotFoundError("Poll not found")
                async with db.execute("SELECT * FROM polls WHERE id = ?", (poll_id,)) as select:
                    row = await select.fetchone()
                await db.commit()
        except sqlite3.IntegrityError as e:
            raise DuplicateVoteError("You have already voted on this poll") from e
        except sqlite3.Error as e:
            raise StoreError("Failed to record vote", details=str(e)) from e

        return self._poll(row)

    # ── Comments ───────────────────────────────────────────────────────────

    async def read_comments(self, url: str, limit: int = 10) -> list[Comment]:
        try:
            async with await self._connect() as db:
                async with db.execute(
                    "SELECT text, author, like_count FROM article_comments "
                    "WHERE article_url = ? ORDER BY like_count DESC, id LIMIT ?",
                    (url, limit),
                ) as cursor:
                    rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreError("Failed to read comments", details=str(e)) from e

        return [Comment(text=text, author=author or "", like_count=likes) for text, author, likes in rows]

    async def replace_comments(self, url: str, comments: Sequence[Comment]) -> None:
        now = _iso(datetime.now(UTC))
        try:
            async with await self._connect() as db:
                await db.execute("DELETE FROM article_comments WHERE article_url = ?", (url,))
                await db.executemany(
                    "INSERT INTO article_comments (article_url, text, author, like_count, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    [(url, c.text, c.author, c.like_count, now) for c in comments],
                )
                await db.commit()
        except sqlite3.Error as e:
            raise StoreError("Failed to store comments", details=str(e)) from e
