import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from types import SimpleNamespace

import pytest

from gator.commands import Command, CommandError
from gator.config import Config, read_config
from gator.database import Queries, create_schema
from gator.handlers import (
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
    scrape_feed,
    scrape_feeds,
)

RSS = b"""<rss><channel><title>Blog</title>
<item><title>Dated</title><link>https://example.com/p1</link>
<description>one</description><pubDate>Mon, 02 Jan 2006 15:04:05 -0700</pubDate></item>
<item><title>Undated</title><link>https://example.com/p2</link>
<description>two</description><pubDate>yesterday</pubDate></item>
</channel></rss>"""


@pytest.fixture
def state(tmp_path):
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    cfg = Config(db_url=":memory:", path=tmp_path / "config.json")
    yield State(db=Queries(conn), cfg=cfg)
    conn.close()


@pytest.fixture
def server():
    info = SimpleNamespace(body=RSS)

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            self.send_response(200)
            self.send_header("Content-Length", str(len(info.body)))
            self.end_headers()
            self.wfile.write(info.body)

        def log_message(self, *args):
            pass

    httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    info.url = f"http://127.0.0.1:{httpd.server_address[1]}/feed.xml"
    yield info
    httpd.shutdown()
    httpd.server_close()


def _register(state, name):
    handler_register(state, Command("register", (name,)))
    return state.db.get_user(name)


def _add_feed(state, name, url):
    middleware_logged_in(handler_add_feed)(state, Command("addfeed", (name, url)))
    return state.db.get_feed_by_url(url)


def test_register_creates_and_logs_in(state, capsys):
    user = _register(state, "alice")
    out = capsys.readouterr().out
    assert "User created successfully:" in out
    assert f" * ID:      {user.id}" in out
    assert read_config(state.cfg.path).current_user_name == "alice"


def test_register_usage(state):
    with pytest.raises(CommandError, match="usage: register <name>"):
        handler_register(state, Command("register", ()))


def test_register_duplicate(state):
    _register(state, "alice")
    with pytest.raises(CommandError, match="^couldn't create user"):
        handler_register(state, Command("register", ("alice",)))


def test_login_switches_user(state, capsys):
    _register(state, "alice")
    _register(state, "bob")
    handler_login(state, Command("login", ("alice",)))
    assert read_config(state.cfg.path).current_user_name == "alice"
    assert "User switched successfully!" in capsys.readouterr().out


def test_login_unknown(state):
    with pytest.raises(CommandError, match="^couldn't find user"):
        handler_login(state, Command("login", ("nobody",)))


def test_list_users_marks_current(state, capsys):
    _register(state, "alice")
    _register(state, "bob")
    capsys.readouterr()
    handler_list_users(state, Command("users"))
    assert capsys.readouterr().out.splitlines() == ["* alice", "* bob (current)"]


def test_reset(state, capsys):
    _register(state, "alice")
    handler_reset(state, Command("reset"))
    assert state.db.get_users() == []
    assert "Database reset successfully!" in capsys.readouterr().out


def test_middleware_requires_user(state):
    with pytest.raises(CommandError):
        middleware_logged_in(handler_list_feed_follows)(state, Command("following"))


def test_add_feed_follows_it(state, capsys):
    user = _register(state, "alice")
    feed = _add_feed(state, "Blog", "https://example.com/rss")
    follows = state.db.get_feed_follows_for_user(user.id)
    assert [f.feed_id for f in follows] == [feed.id]
    out = capsys.readouterr().out
    assert "Feed followed successfully:" in out
    assert "* Feed:          Blog" in out


def test_add_feed_usage(state):
    _register(state, "alice")
    with pytest.raises(CommandError, match="usage: addfeed <name> <url>"):
        middleware_logged_in(handler_add_feed)(state, Command("addfeed", ("Blog",)))


def test_list_feeds(state, capsys):
    handler_list_feeds(state, Command("feeds"))
    assert capsys.readouterr().out.strip() == "No feeds found."
    _register(state, "alice")
    _add_feed(state, "Blog", "https://example.com/rss")
    capsys.readouterr()
    handler_list_feeds(state, Command("feeds"))
    out = capsys.readouterr().out
    assert "Found 1 feeds:" in out
    assert "* User:          alice" in out
    assert "* LastFetchedAt: 0001-01-01 00:00:00 +0000 UTC" in out


def test_follow_and_unfollow(state, capsys):
    _register(state, "alice")
    _add_feed(state, "Blog", "https://example.com/rss")
    bob = _register(state, "bob")
    middleware_logged_in(handler_follow)(state, Command("follow", ("https://example.com/rss",)))
    capsys.readouterr()
    handler_list_feed_follows(state, Command("following"), bob)
    assert capsys.readouterr().out.splitlines() == ["Feed follows for user bob:", "* Blog"]
    handler_unfollow(state, Command("unfollow", ("https://example.com/rss",)), bob)
    assert state.db.get_feed_follows_for_user(bob.id) == []
    capsys.readouterr()
    handler_list_feed_follows(state, Command("following"), bob)
    assert capsys.readouterr().out.strip() == "No feed follows found for this user."


def test_follow_unknown_feed(state):
    user = _register(state, "alice")
    with pytest.raises(CommandError, match="^couldn't get feed"):
        handler_follow(state, Command("follow", ("https://example.com/none",)), user)


def test_follow_twice(state):
    user = _register(state, "alice")
    _add_feed(state, "Blog", "https://example.com/rss")
    with pytest.raises(CommandError, match="^couldn't create feed follow"):
        handler_follow(state, Command("follow", ("https://example.com/rss",)), user)


def _posts(state, user, feed, count):
    for day in range(1, count + 1):
        now = datetime.now(timezone.utc)
        state.db.create_post(
            uuid.uuid4(), now, now, f"Post {day}", f"https://example.com/{day}",
            "text", datetime(2006, 1, day, tzinfo=timezone.utc), feed.id,
        )


def test_browse_default_limit(state, capsys):
    user = _register(state, "alice")
    feed = _add_feed(state, "Blog", "https://example.com/rss")
    _posts(state, user, feed, 3)
    capsys.readouterr()
    handler_browse(state, Command("browse"), user)
    assert "Found 2 posts for user alice:" in capsys.readouterr().out


def test_browse_with_limit(state, capsys):
    user = _register(state, "alice")
    feed = _add_feed(state, "Blog", "https://example.com/rss")
    _posts(state, user, feed, 3)
    capsys.readouterr()
    handler_browse(state, Command("browse", ("3",)), user)
    out = capsys.readouterr().out
    assert "Found 3 posts for user alice:" in out
    assert "Mon Jan 2 from Blog" in out
    assert out.index("Post 3") < out.index("Post 1")


def test_browse_invalid_limit(state):
    user = _register(state, "alice")
    with pytest.raises(CommandError, match="^invalid limit"):
        handler_browse(state, Command("browse", ("many",)), user)


def test_browse_negative_limit(state):
    user = _register(state, "alice")
    with pytest.raises(CommandError, match="^couldn't get posts for user"):
        handler_browse(state, Command("browse", ("-1",)), user)


@pytest.mark.parametrize("args", [(), ("1s", "2", "3")])
def test_agg_usage(state, args):
    with pytest.raises(CommandError, match="usage: agg <time_between_reqs>"):
        handler_agg(state, Command("agg", args))


def test_agg_invalid_duration(state):
    with pytest.raises(CommandError, match="^invalid duration"):
        handler_agg(state, Command("agg", ("soon",)))


def test_agg_non_positive_duration(state):
    with pytest.raises(CommandError):
        handler_agg(state, Command("agg", ("0s",)))


def test_scrape_feeds_without_feeds(state, caplog):
    caplog.set_level(logging.INFO)
    scrape_feeds(state)
    assert "Couldn't get next feeds to fetch" in caplog.text


def test_scrape_feed_stores_posts(state, server):
    user = _register(state, "alice")
    feed = _add_feed(state, "Blog", server.url)
    other = _add_feed(state, "Other", "https://example.com/other")
    scrape_feed(state.db, feed)
    scrape_feed(state.db, feed)
    posts = state.db.get_posts_for_user(user.id, 10)
    by_title = {post.title: post for post in posts}
    assert sorted(by_title) == ["Dated", "Undated"]
    assert by_title["Dated"].published_at == datetime(
        2006, 1, 2, 15, 4, 5, tzinfo=timezone(timedelta(hours=-7))
    )
    assert by_title["Undated"].published_at is None
    assert by_title["Undated"].description == "two"
    assert state.db.get_next_feed_to_fetch().id == other.id


def test_scrape_feed_unreachable(state, caplog):
    caplog.set_level(logging.INFO)
    _register(state, "alice")
    feed = _add_feed(state, "Broken", "notaurl")
    scrape_feed(state.db, feed)
    assert "Couldn't collect feed Broken" in caplog.text
    assert state.db.get_feed_by_url("notaurl").last_fetched_at > feed.created_at