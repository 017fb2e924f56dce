"""The ``gator`` command line."""

from __future__ import annotations

import logging
import sqlite3
import sys
from contextlib import closing

from .commands import Command, CommandError, Commands
from .config import read_config
from .database import Queries, create_schema
from .handlers import (
    State,
    handler_add_feed,
    handler_agg,
    handler_browse,
    handler_follow,
    handler_list_feed_follows,
    handler_list_feeds,
    handler_list_users,
    handler_login,
    handler_register,
    handler_reset,
    handler_unfollow,
    middleware_logged_in,
)

_RULE = "=" * 84
_BANNER = "\n".join(
    [
        "",
        _RULE,
        "============================= BLOG AGGREGATOR " + "=" * 38,
        _RULE,
        "",
        "",
        "",
    ]
)


def build_commands() -> Commands:
    """Return the registry of every command the program understands."""
    commands = Commands()
    commands.register("register", handler_register)
    commands.register("login", handler_login)
    commands.register("reset", handler_reset)
    commands.register("users", handler_list_users)
    commands.register("agg", handler_agg)
    commands.register("addfeed", middleware_logged_in(handler_add_feed))
    commands.register("feeds", handler_list_feeds)
    commands.register("follow", middleware_logged_in(handler_follow))
    commands.register("following", middleware_logged_in(handler_list_feed_follows))
    commands.register("unfollow", middleware_logged_in(handler_unfollow))
    commands.register("browse", middleware_logged_in(handler_browse))
    return commands


def _database_path(db_url: str) -> str:
    for prefix in ("sqlite:///", "sqlite://"):
        if db_url.startswith(prefix):
            return db_url[len(prefix):]
    return db_url


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    """Run one command; return the process exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    print(_BANNER)
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(message)s", datefmt="%Y/%m/%d %H:%M:%S"
    )

    try:
        cfg = read_config()
    except (OSError, ValueError) as exc:
        return _fail(f"error reading config: {exc}")

    try:
        conn = sqlite3.connect(_database_path(cfg.db_url))
        create_schema(conn)
    except sqlite3.Error as exc:
        return _fail(f"error connecting to db: {exc}")

    with closing(conn):
        state = State(db=Queries(conn), cfg=cfg)
        commands = build_commands()
        if not args:
            return _fail("Usage: cli <command> [args...]")
        try:
            commands.run(state, Command(args[0], tuple(args[1:])))
        except CommandError as exc:
            return _fail(str(exc))
    return 0


if __name__ == "__main__":
    sys.exit(main())