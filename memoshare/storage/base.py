"""Records returned by the memoshare storage layer."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> str:
    """Current UTC time at second granularity, in storage format."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def first_line(content: str) -> str:
    """Title of a memo: text up to the first newline, or all of it."""
    return content.split("\n", 1)[0]


@dataclass(frozen=True)
class User:
    """A signed-in user as seen by request handlers."""
    id: int
    username: str


@dataclass
class Memo:
    """A memo record.

    ``content`` is ``None`` for listing queries that only read the title.
    ``username`` is the owner's name when the query joined ``users``.
    """
    id: int
    user_id: int
    title: str
    is_private: bool
    created_at: str
    content: Optional[str] = None
    updated_at: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class Siblings:
    """Neighbours of a memo in its owner's stream. ``None`` at either end."""
    older: Optional[Memo] = None
    newer: Optional[Memo] = None
