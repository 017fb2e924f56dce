"""Downloading and parsing RSS feeds."""

from __future__ import annotations

import html
import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

USER_AGENT = "gator"
DEFAULT_TIMEOUT = 10.0


@dataclass
class RSSItem:
    """One entry of a feed's channel."""

    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """The channel of an RSS document and its items."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _local_name(tag: object) -> str:
    return tag.rsplit("}", 1)[-1] if isinstance(tag, str) else ""


def _own_text(element: ET.Element) -> str:
    """Character data directly inside ``element``, without nested elements' text."""
    return (element.text or "") + "".join(child.tail or "" for child in element)


def _children(parent: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in parent if _local_name(child.tag) == name]


def _child_text(parent: ET.Element, name: str) -> str:
    found = _children(parent, name)
    return _own_text(found[0]) if found else ""


def _parse_item(element: ET.Element) -> RSSItem:
    return RSSItem(
        title=html.unescape(_child_text(element, "title")),
        link=_child_text(element, "link"),
        description=html.unescape(_child_text(element, "description")),
        pub_date=_child_text(element, "pubDate"),
    )


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document; HTML entities in titles and descriptions are decoded."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"invalid feed XML: {exc}") from exc
    channels = _children(root, "channel")
    if not channels:
        return RSSFeed()
    channel = channels[0]
    return RSSFeed(
        title=html.unescape(_child_text(channel, "title")),
        link=_child_text(channel, "link"),
        description=html.unescape(_child_text(channel, "description")),
        items=[_parse_item(element) for element in _children(channel, "item")],
    )


def fetch_feed(url: str, timeout: float = DEFAULT_TIMEOUT) -> RSSFeed:
    """Download ``url`` and parse the body as an RSS feed, whatever the status code."""
    request = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read()
    except urllib.error.HTTPError as exc:
        try:
            body = exc.read()
        finally:
            exc.close()
    return parse_feed(body)