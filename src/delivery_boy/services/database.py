import aiosqlite
from contextlib import asynccontextmanager
from datetime import datetime, tzinfo
from typing import AsyncIterator, Callable, List
from zoneinfo import ZoneInfo
import logging
import os

from pydantic import AnyUrl, TypeAdapter, ValidationError

from delivery_boy.core.entities import FeedEntry
from delivery_boy.core.errors import InvalidInput, PersistenceFailure
from delivery_boy.core.window import format_timestamp, parse_timestamp, utcnow, week_window

logger = logging.getLogger(__name__)

_url_adapter = TypeAdapter(AnyUrl)


def validate_link(link: str) -> str:
    """Return the normalized absolute URL, or raise InvalidInput."""
    try:
        return str(_url_adapter.validate_python(link))
    except ValidationError as e:
        raise InvalidInput(f"Invalid link {link!r}: {e.errors()[0]['msg']}") from e


class EntryStore:
    """
    Append-only log of feed entries backed by SQLite.
    """

    def __init__(
        self,
        path: str,
        tz: tzinfo = ZoneInfo("America/Los_Angeles"),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.path = path
        self.tz = tz
        self.clock = clock

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            conn = await aiosqlite.connect(self.path)
            await conn.execute("PRAGMA journal_mode=WAL;")
        except (aiosqlite.Error, OSError) as e:
            raise PersistenceFailure(f"Could not open database {self.path}: {e}") from e
        try:
            yield conn
        finally:
            await conn.close()

    async def init_tables(self) -> None:
        """Create the entry table and its timestamp index."""
        directory = os.path.dirname(self.path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)

        async with self.connect() as conn:
            try:
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS feed_entry (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        timestamp TEXT NOT NULL,
                        link TEXT NOT NULL,
                        title TEXT NOT NULL,
                        feed TEXT NOT NULL
                    )
                """)
                await conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_feed_entry_timestamp ON feed_entry(timestamp)
                """)
                await conn.commit()
            except aiosqlite.Error as e:
                raise PersistenceFailure(f"Could not initialize tables: {e}") from e
        logger.info(f"Database tables initialized at {self.path}")

    async def append(self, link: str, title: str, feed: str) -> int:
        """
        Store a new entry stamped with the current server time.
        Existing rows are never touched.
        """
        link = validate_link(link)
        timestamp = format_timestamp(self.clock())

        async with self.connect() as conn:
            try:
                cursor = await conn.execute(
                    """
                    INSERT INTO feed_entry (timestamp, link, title, feed)
                    VALUES (?, ?, ?, ?)
                    """,
                    (timestamp, link, title, feed),
                )
                await conn.commit()
            except aiosqlite.Error as e:
                logger.error(f"Could not store feed entry {link}: {e}")
                raise PersistenceFailure(f"Could not store feed entry: {e}") from e

        logger.info(f"Saved feed entry '{title}' with URL '{link}' from feed '{feed}'")
        return cursor.lastrowid

    async def query_window(self, now: datetime) -> List[FeedEntry]:
        """
        Entries stamped in [start of the current calendar week, now), in insertion order.

        Stored timestamps have second precision, so the upper bound is compared
        against `now` truncated to the second.
        """
        start, end = week_window(now, self.tz)

        async with self.connect() as conn:
            try:
                cursor = await conn.execute(
                    """
                    SELECT id, timestamp, link, title, feed
                    FROM feed_entry
                    WHERE timestamp >= ? AND timestamp <= ?
                    ORDER BY id
                    """,
                    (format_timestamp(start), format_timestamp(end)),
                )
                rows = await cursor.fetchall()
            except aiosqlite.Error as e:
                logger.error(f"Could not fetch entries from database: {e}")
                raise PersistenceFailure(f"Could not fetch entries: {e}") from e

        entries = list[FeedEntry]()
        for entry_id, timestamp, link, title, feed in rows:
            try:
                date = parse_timestamp(timestamp)
            except ValueError as e:
                logger.error(f"Could not parse date of entry {entry_id}: {e}")
                raise PersistenceFailure(f"Corrupt timestamp in entry {entry_id}: {timestamp!r}") from e
            entries.append(FeedEntry(id=entry_id, link=link, timestamp=date, title=title, feed=feed))

        logger.debug(f"Window starting {start.isoformat()} holds {len(entries)} entries")
        return entries

    async def count(self) -> int:
        async with self.connect() as conn:
            try:
                cursor = await conn.execute("SELECT COUNT(*) FROM feed_entry")
                row = await cursor.fetchone()
            except aiosqlite.Error as e:
                raise PersistenceFailure(f"Could not count entries: {e}") from e
        return row[0]
