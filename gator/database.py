"""Typed queries over the aggregator's SQLite store."""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Sequence, TypeVar

from .models import Feed, FeedFollowRow, Post, PostWithFeed, User

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds (id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    description TEXT,
    published_at TEXT,
    feed_id TEXT NOT NULL REFERENCES feeds (id) ON DELETE CASCADE
);
"""

_USER_COLS = "id, created_at, updated_at, name"
_FEED_COLS = "id, created_at, updated_at, name, url, user_id, last_fetched_at"
_POST_COLS = "id, created_at, updated_at, title, url, description, published_at, feed_id"
_FOLLOW_SELECT = """
SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id,
       feeds.name, users.name
FROM feed_follows AS ff
INNER JOIN feeds ON ff.feed_id = feeds.id
INNER JOIN users ON ff.user_id = users.id
"""


class NoRowsError(LookupError):
    """A query that must return one row returned none."""

    def __init__(self, message: str = "no rows in result set") -> None:
        super().__init__(message)


class DuplicateError(Exception):
    """An insert collided with a unique constraint."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"duplicate key value violates unique constraint: {detail}")


def _dump_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _load_time(text: str | None) -> datetime | None:
    return None if text is None else datetime.fromisoformat(text)


def _user(row: Sequence) -> User:
    return User(uuid.UUID(row[0]), _load_time(row[1]), _load_time(row[2]), row[3])


def _feed(row: Sequence) -> Feed:
    return Feed(
        id=uuid.UUID(row[0]),
        created_at=_load_time(row[1]),
        updated_at=_load_time(row[2]),
        name=row[3],
        url=row[4],
        user_id=uuid.UUID(row[5]),
        last_fetched_at=_load_time(row[6]),
    )


def _follow(row: Sequence) -> FeedFollowRow:
    return FeedFollowRow(
        id=uuid.UUID(row[0]),
        created_at=_load_time(row[1]),
        updated_at=_load_time(row[2]),
        user_id=uuid.UUID(row[3]),
        feed_id=uuid.UUID(row[4]),
        feed_name=row[5],
        user_name=row[6],
    )


def _post(row: Sequence) -> Post:
    return Post(
        id=uuid.UUID(row[0]),
        created_at=_load_time(row[1]),
        updated_at=_load_time(row[2]),
        title=row[3],
        url=row[4],
        description=row[5],
        published_at=_load_time(row[6]),
        feed_id=uuid.UUID(row[7]),
    )


def _post_with_feed(row: Sequence) -> PostWithFeed:
    post = _post(row)
    return PostWithFeed(
        id=post.id,
        created_at=post.created_at,
        updated_at=post.updated_at,
        title=post.title,
        url=post.url,
        description=post.description,
        published_at=post.published_at,
        feed_id=post.feed_id,
        feed_name=row[8],
    )


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the tables if they do not exist yet."""
    conn.execute("PRAGMA foreign_keys = ON")
    conn.executescript(_SCHEMA)


class Queries:
    """All reads and writes the aggregator performs."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        conn.execute("PRAGMA foreign_keys = ON")

    @contextmanager
    def _writing(self) -> Iterator[sqlite3.Connection]:
        try:
            with self._conn:
                yield self._conn
        except sqlite3.IntegrityError as exc:
            if "UNIQUE constraint failed" in str(exc):
                raise DuplicateError(str(exc)) from exc
            raise

    def _one(self, sql: str, params: Sequence, mapper: Callable[[Sequence], T]) -> T:
        row = self._conn.execute(sql, params).fetchone()
        if row is None:
            raise NoRowsError()
        return mapper(row)

    def _many(self, sql: str, params: Sequence, mapper: Callable[[Sequence], T]) -> list[T]:
        return [mapper(row) for row in self._conn.execute(sql, params)]

    # users

    def create_user(self, id, created_at, updated_at, name) -> User:
        with self._writing() as conn:
            conn.execute(
                f"INSERT INTO users ({_USER_COLS}) VALUES (?, ?, ?, ?)",
                (str(id), _dump_time(created_at), _dump_time(updated_at), name),
            )
        return self.get_user_by_id(id)

    def delete_users(self) -> None:
        with self._writing() as conn:
            conn.execute("DELETE FROM users")

    def get_user(self, name) -> User:
        return self._one(f"SELECT {_USER_COLS} FROM users WHERE name = ?", (name,), _user)

    def get_user_by_id(self, id) -> User:
        return self._one(f"SELECT {_USER_COLS} FROM users WHERE id = ?", (str(id),), _user)

    def get_users(self) -> list[User]:
        return self._many(f"SELECT {_USER_COLS} FROM users ORDER BY rowid", (), _user)

    # feeds

    def create_feed(self, id, created_at, updated_at, name, url, user_id) -> Feed:
        with self._writing() as conn:
            conn.execute(
                "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    str(id),
                    _dump_time(created_at),
                    _dump_time(updated_at),
                    name,
                    url,
                    str(user_id),
                ),
            )
        return self._feed_by_id(id)

    def _feed_by_id(self, id) -> Feed:
        return self._one(f"SELECT {_FEED_COLS} FROM feeds WHERE id = ?", (str(id),), _feed)

    def get_feed_by_url(self, url) -> Feed:
        return self._one(f"SELECT {_FEED_COLS} FROM feeds WHERE url = ?", (url,), _feed)

    def get_feeds(self) -> list[Feed]:
        return self._many(f"SELECT {_FEED_COLS} FROM feeds ORDER BY rowid", (), _feed)

    def get_next_feed_to_fetch(self) -> Feed:
        """Return the feed fetched longest ago, never-fetched feeds first."""
        return self._one(
            f"SELECT {_FEED_COLS} FROM feeds "
            "ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC LIMIT 1",
            (),
            _feed,
        )

    def mark_feed_fetched(self, id) -> Feed:
        now = _dump_time(datetime.now(timezone.utc))
        with self._writing() as conn:
            cursor = conn.execute(
                "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
                (now, now, str(id)),
            )
            if cursor.rowcount == 0:
                raise NoRowsError()
        return self._feed_by_id(id)

    # feed follows

    def create_feed_follow(self, id, created_at, updated_at, user_id, feed_id) -> FeedFollowRow:
        with self._writing() as conn:
            conn.execute(
                "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    str(id),
                    _dump_time(created_at),
                    _dump_time(updated_at),
                    str(user_id),
                    str(feed_id),
                ),
            )
        return self._one(f"{_FOLLOW_SELECT} WHERE ff.id = ?", (str(id),), _follow)

    def get_feed_follows_for_user(self, user_id) -> list[FeedFollowRow]:
        return self._many(
            f"{_FOLLOW_SELECT} WHERE ff.user_id = ? ORDER BY ff.rowid",
            (str(user_id),),
            _follow,
        )

    def unfollow_feed(self, user_id, url) -> None:
        with self._writing() as conn:
            conn.execute(
                "DELETE FROM feed_follows WHERE user_id = ? AND feed_id = "
                "(SELECT f.id FROM feeds AS f WHERE f.url = ?)",
                (str(user_id), url),
            )

    # posts

    def create_post(
        self, id, created_at, updated_at, title, url, description, published_at, feed_id
    ) -> Post:
        with self._writing() as conn:
            conn.execute(
                f"INSERT INTO posts ({_POST_COLS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    str(id),
                    _dump_time(created_at),
                    _dump_time(updated_at),
                    title,
                    url,
                    description,
                    _dump_time(published_at),
                    str(feed_id),
                ),
            )
        return self._one(f"SELECT {_POST_COLS} FROM posts WHERE id = ?", (str(id),), _post)

    def get_posts_for_user(self, user_id, limit) -> list[PostWithFeed]:
        """Return the newest posts from feeds the user follows; undated posts first."""
        if limit < 0:
            raise ValueError("LIMIT must not be negative")
        columns = ", ".join(f"posts.{c.strip()}" for c in _POST_COLS.split(","))
        return self._many(
            f"SELECT {columns}, feeds.name FROM posts "
            "JOIN feed_follows ON feed_follows.feed_id = posts.feed_id "
            "JOIN feeds ON posts.feed_id = feeds.id "
            "WHERE feed_follows.user_id = ? "
            "ORDER BY posts.published_at IS NULL DESC, posts.published_at DESC "
            "LIMIT ?",
            (str(user_id), int(limit)),
            _post_with_feed,
        )