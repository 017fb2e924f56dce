"""The handlers behind each command of the aggregator."""

from __future__ import annotations

import functools
import http.client
import logging
import re
import sqlite3
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from .commands import Command, CommandError
from .config import Config
from .database import DuplicateError, NoRowsError, Queries
from .durations import format_duration, parse_duration
from .models import Feed, User
from .rss import fetch_feed

logger = logging.getLogger(__name__)

_DB_ERRORS = (NoRowsError, DuplicateError, sqlite3.Error)
_FETCH_ERRORS = (OSError, ValueError, http.client.HTTPException)
_SEPARATOR = "====================================="
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_INTEGER = re.compile(r"[+-]?[0-9]+")
_DEFAULT_BROWSE_LIMIT = 2


@dataclass
class State:
    """What every handler works with: the queries and the configuration."""

    db: Queries
    cfg: Config


UserHandler = Callable[[State, Command, User], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _format_time(value: datetime | None) -> str:
    value = value or _ZERO_TIME
    text = f"{value.year:04d}-{value:%m-%d %H:%M:%S}"
    if value.microsecond:
        text += f".{value.microsecond:06d}".rstrip("0")
    return f"{text} {value:%z %Z}".rstrip()


def _print_user(user: User) -> None:
    print(f" * ID:      {user.id}")
    print(f" * Name:    {user.name}")


def _print_feed(feed: Feed, user: User) -> None:
    print(f"* ID:            {feed.id}")
    print(f"* Created:       {_format_time(feed.created_at)}")
    print(f"* Updated:       {_format_time(feed.updated_at)}")
    print(f"* Name:          {feed.name}")
    print(f"* URL:           {feed.url}")
    print(f"* User:          {user.name}")
    print(f"* LastFetchedAt: {_format_time(feed.last_fetched_at)}")


def _print_feed_follow(user_name: str, feed_name: str) -> None:
    print(f"* User:          {user_name}")
    print(f"* Feed:          {feed_name}")


def middleware_logged_in(handler: UserHandler) -> Callable[[State, Command], None]:
    """Wrap ``handler`` so that it receives the currently logged-in user."""

    @functools.wraps(handler)
    def wrapped(state: State, cmd: Command) -> None:
        try:
            user = state.db.get_user(state.cfg.current_user_name)
        except _DB_ERRORS as exc:
            raise CommandError(str(exc)) from exc
        handler(state, cmd, user)

    return wrapped


# users


def handler_register(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    now = _now()
    try:
        user = state.db.create_user(uuid.uuid4(), now, now, cmd.args[0])
    except _DB_ERRORS as exc:
        raise CommandError(f"couldn't create user: {exc}") from exc
    try:
        state.cfg.set_user(user.name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User created successfully:")
    _print_user(user)


def handler_login(state: State, cmd: Command) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <name>")
    name = cmd.args[0]
    try:
        state.db.get_user(name)
    except _DB_ERRORS as exc:
        raise CommandError(f"couldn't find user: {exc}") from exc
    try:
        state.cfg.set_user(name)
    except OSError as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print("User switched successfully!")


def handler_reset(state: State, cmd: Command) -> None:
    try:
        state.db.delete_users()
    except _DB_ERRORS as exc:
        raise CommandError(f"couldn't delete users: {exc}") from exc
    print("Database reset successfully!")


def handler_list_users(state: State, cmd: Command) -> None:
    try:
        users = state.db.get_users()
    except _DB_ERRORS as exc:
        raise CommandError(f"couldn't list users: {exc}") from exc
    for user in users:
        if user.name == state.cfg.current_user_name:
            print(f"* {user.name} (current)")
        else:
            print(f"* {user.name}")


# aggregation


def handler_agg(state: State, cmd: Command) -> None:
    """Scrape one feed per interval, forever."""
    if not 1 <= len(cmd.args) <= 2:
        raise CommandError(f"usage: {cmd.name} <time_between_reqs>")
    try:
        interval = parse_duration(cmd.args[0])
    except ValueError as exc:
        raise CommandError(f"invalid duration: {exc}") from exc
    if interval <= 0:
        raise CommandError("non-positive interval for ticker")

    logger.info("Collecting feeds every %s...", format_duration(interval))
    next_tick = time.monotonic() + interval
    while True:
        scrape_feeds(state)
        now = time.monotonic()
        if now < next_tick:
            time.sleep(next_tick - now)
            next_tick += interval
        else:
            missed = (now - next_tick) // interval + 1
            next_tick += missed * interval


def scrape_feeds(state: State) -> None:
    """Scrape the feed that has waited longest for a fetch."""
    try:
        feed = state.db.get_next_feed_to_fetch()
    except _DB_ERRORS as exc:
        logger.warning("Couldn't get next feeds to fetch %s", exc)
        return
    logger.info("Found a feed to fetch!")
    scrape_feed(state.db, feed)


def _parse_pub_date(text: str) -> datetime | None:
    try:
        return datetime.strptime(text, "%a, %d %b %Y %H:%M:%S %z")
    except ValueError:
        return None


def scrape_feed(queries: Queries, feed: Feed) -> None:
    """Mark ``feed`` fetched, download it and store its new posts."""
    try:
        queries.mark_feed_fetched(feed.id)
    except _DB_ERRORS as exc:
        logger.warning("Couldn't mark feed %s fetched: %s", feed.name, exc)
        return

    try:
        feed_data = fetch_feed(feed.url)
    except _FETCH_ERRORS as exc:
        logger.warning("Couldn't collect feed %s: %s", feed.name, exc)
        return

    for item in feed_data.items:
        now = _now()
        try:
            queries.create_post(
                id=uuid.uuid4(),
                created_at=now,
                updated_at=now,
                title=item.title,
                url=item.link,
                description=item.description,
                published_at=_parse_pub_date(item.pub_date),
                feed_id=feed.id,
            )
        except DuplicateError:
            continue
        except _DB_ERRORS as exc:
            logger.warning("Couldn't create post: %s", exc)
    logger.info("Feed %s collected, %d posts found", feed.name, len(feed_data.items))


# browsing


def handler_browse(state: State, cmd: Command, user: User) -> None:
    limit = _DEFAULT_BROWSE_LIMIT
    if len(cmd.args) == 1:
        text = cmd.args[0]
        if not _INTEGER.fullmatch(text):
            raise CommandError(f"invalid limit: invalid syntax {text!r}")
        limit = int(text)
    try:
        posts = state.db.get_posts_for_user(user.id, limit)
    except (*_DB_ERRORS, ValueError) as exc:
        raise CommandError(f"couldn't get posts for user: {exc}") from exc

    print(f"Found {len(posts)} posts for user {user.name}:")
    for post in posts:
        published = post.published_at or _ZERO_TIME
        print(f"{published:%a %b} {published.day} from {post.feed_name}")
        print(f"--- {post.title} ---")
        print(f"    {post.description or ''}")
        print(f"Link: {post.url}")
        print(_SEPARATOR)


# feeds


def handler_add_feed(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 2:
        raise CommandError(f"usage: {cmd.name} <name> <url>")
    name, url = cmd.args
    now = _now()
    try:
        feed = state.db.create_feed(uuid.uuid4(), now, now, name, url, user.id)
    except _DB_ERRORS as exc:
        raise CommandError(f"couldn't create feed: {exc}") from exc
    now = _now()
    try:
        follow = state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    except _DB_ERRORS as exc:
        raise CommandError(f"couldn't create feed follow: {exc}") from exc

    print("Feed created successfully:")
    _print_feed(feed, user)
    print()
    print("Feed followed successfully:")
    _print_feed_follow(follow.user_name, follow.feed_name)
    print(_SEPARATOR)


def handler_list_feeds(state: State, cmd: Command) -> None:
    try:
        feeds = state.db.get_feeds()
    except _DB_ERRORS as exc:
        raise CommandError(f"couldn't get feeds: {exc}") from exc
    if not feeds:
        print("No feeds found.")
        return
    print(f"Found {len(feeds)} feeds:")
    for feed in feeds:
        try:
            user = state.db.get_user_by_id(feed.user_id)
        except _DB_ERRORS as exc:
            raise CommandError(f"couldn't get user: {exc}") from exc
        _print_feed(feed, user)
        print(_SEPARATOR)


# feed follows


def handler_follow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <feed_url>")
    try:
        feed = state.db.get_feed_by_url(cmd.args[0])
    except _DB_ERRORS as exc:
        raise CommandError(f"couldn't get feed: {exc}") from exc
    now = _now()
    try:
        follow = state.db.create_feed_follow(uuid.uuid4(), now, now, user.id, feed.id)
    except _DB_ERRORS as exc:
        raise CommandError(f"couldn't create feed follow: {exc}") from exc
    print("Feed follow created:")
    _print_feed_follow(follow.user_name, follow.feed_name)


def handler_list_feed_follows(state: State, cmd: Command, user: User) -> None:
    try:
        follows = state.db.get_feed_follows_for_user(user.id)
    except _DB_ERRORS as exc:
        raise CommandError(f"couldn't get feed follows: {exc}") from exc
    if not follows:
        print("No feed follows found for this user.")
        return
    print(f"Feed follows for user {user.name}:")
    for follow in follows:
        print(f"* {follow.feed_name}")


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    if len(cmd.args) != 1:
        raise CommandError(f"usage: {cmd.name} <feed_url>")
    try:
        state.db.unfollow_feed(user.id, cmd.args[0])
    except _DB_ERRORS as exc:
        raise CommandError(f"couldn't unfollow: {exc}") from exc
    print("Unfollow successful:", cmd.args[0])