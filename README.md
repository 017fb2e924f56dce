# gator

`gator` is a small command-line RSS aggregator. It keeps an SQLite database
of users, the feeds they have added and followed, and the posts collected
from those feeds. A long-running `agg` command fetches one feed per interval,
and `browse` shows the newest posts from the feeds you follow.

It uses only the Python standard library.

## Installation

```
pip install .
```

This installs the `gator` command.

## Configuration

`gator` reads its settings from `.gatorconfig.json` in your home directory.
The file must exist before the first run; create it by hand:

```json
{"db_url": "gator.db", "current_user_name": ""}
```

- `db_url` is the path of the SQLite database file. A leading `sqlite:///`
  or `sqlite://` is stripped, so `sqlite:///gator.db` and `gator.db` name the
  same file. The tables are created on first use.
- `current_user_name` is the logged-in user. `register` and `login` rewrite
  the file to update it.

## Usage

```
gator <command> [args...]
```

| Command                | What it does                                                        |
|------------------------|---------------------------------------------------------------------|
| `register <name>`      | Create a user and log in as that user. Names are unique.            |
| `login <name>`         | Switch to an existing user.                                         |
| `users`                | List all users; the current one is marked `(current)`.              |
| `reset`                | Delete all users, and with them their feeds, follows and posts.     |
| `addfeed <name> <url>` | Add a feed and follow it as the current user.                       |
| `feeds`                | List every feed and the user who added it.                          |
| `follow <url>`         | Follow a feed that has already been added.                          |
| `following`            | List the feeds the current user follows.                            |
| `unfollow <url>`       | Stop following a feed.                                              |
| `agg <interval>`       | Fetch feeds forever, one per interval.                              |
| `browse [limit]`       | Show the newest posts from followed feeds (2 by default).           |

`addfeed`, `follow`, `following`, `unfollow` and `browse` need a logged-in
user. Every run prints a banner first. When a command fails, its message is
printed to standard error and the exit status is 1.

### The `agg` interval

The interval is written as numbers with units, optionally signed, for
example `30s`, `1m`, `1h30m` or `1.5s`. The units are `ns`, `us` (or `µs`),
`ms`, `s`, `m` and `h`. The interval must be greater than zero.

Each tick picks the feed that has gone longest without a fetch (feeds never
fetched come first), marks it fetched, downloads it with a 10-second timeout
and stores its items as posts. Items whose link is already stored are
skipped. An item's `pubDate` is read in the form
`Mon, 02 Jan 2006 15:04:05 -0700`; items with any other form are stored
without a publication date. Progress is logged to standard error. `agg`
runs until it is interrupted.

### `browse`

Posts are listed newest first; posts without a publication date come before
dated ones. The limit must be a whole number that is not negative.

## Example

```
gator register alice
gator addfeed "Example Blog" https://example.com/index.xml
gator agg 1m
```

Leave `agg` running for a while, stop it with Ctrl-C, and then:

```
gator browse 5
```

## Using it as a library

- `gator.rss.parse_feed(data)` parses an RSS document into an `RSSFeed`
  (`title`, `link`, `description`, `items`), each item an `RSSItem`
  (`title`, `link`, `description`, `pub_date`). HTML entities in titles and
  descriptions are decoded. `gator.rss.fetch_feed(url, timeout=10.0)`
  downloads and parses a feed.
- `gator.durations.parse_duration(text)` returns the seconds an interval
  denotes; `format_duration(seconds)` writes them back in the same form.
- `gator.database.Queries` wraps an `sqlite3` connection prepared with
  `create_schema(conn)` and offers the reads and writes the commands use.
  A missing row raises `NoRowsError`; a unique-constraint clash raises
  `DuplicateError`.
- `gator.config.read_config(path)` and `write_config(config, path)` load
  and save a `Config`; without a path they use the file in your home
  directory.
- `gator.cli.main(argv)` runs one command and returns the exit status.

## What it does not do

- Only RSS documents with a `<channel>` of `<item>` elements are read;
  other feed formats such as Atom yield no posts.
- Storage is a local SQLite file only; no database server is used.
- There is no web interface or server, and no way to schedule `agg` other
  than leaving it running.

## Development

```
pip install -e ".[test]"
pytest
```