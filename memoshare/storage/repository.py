"""Queries against the ``users`` and ``memos`` tables.

A ``MemoRepository`` wraps one pooled connection for the lifetime of a
request. Every read path that can expose a memo goes through ``can_view``;
a memo that exists but is hidden is indistinguishable from one that does not
exist.

Ordering:
- Public feed: ``created_at DESC, id DESC``.
- Owner stream and siblings: ``created_at, id`` ascending.
The ``id`` tie-break keeps pagination and neighbours stable when several memos
share a timestamp (timestamps have one-second resolution).
"""

import sqlite3
from typing import Callable, Optional

from ..logging_config import get_logger
from ..passwords import generate_salt, hash_password, verify_password
from .base import Memo, Siblings, User, first_line, utc_now

logger = get_logger("memoshare.memos")

_LIST_COLUMNS = "m.id, m.user, m.title, m.is_private, m.created_at, u.username"
_FULL_COLUMNS = (
    "m.id, m.user, m.title, m.is_private, m.created_at, m.content, m.updated_at, u.username"
)

# Largest value SQLite stores in an INTEGER column; larger ids cannot exist
MAX_ROW_ID = 2**63 - 1


def page_bounds(page: int, per_page: int) -> tuple[int, int]:
    """Return ``(limit, offset)`` for a zero-based page number."""
    if page < 0:
        raise ValueError("Page must be non-negative")
    if per_page < 1:
        raise ValueError("Page size must be positive")
    return per_page, per_page * page


def can_view(memo: Memo, viewer: Optional[User]) -> bool:
    """Visibility policy: private memos are visible to their owner only."""
    if not memo.is_private:
        return True
    return viewer is not None and viewer.id == memo.user_id


def _row_to_memo(row: sqlite3.Row) -> Memo:
    keys = row.keys()
    return Memo(
        id=row["id"],
        user_id=row["user"],
        title=row["title"],
        is_private=bool(row["is_private"]),
        created_at=row["created_at"],
        content=row["content"] if "content" in keys else None,
        updated_at=row["updated_at"] if "updated_at" in keys else None,
        username=row["username"] if "username" in keys else None,
    )


class MemoRepository:
    """Memo and user queries over a single connection.

    Args:
        conn: A connection held for the duration of the request.
        now_fn: Clock returning storage-format timestamps.
    """

    def __init__(self, conn: sqlite3.Connection, now_fn: Callable[[], str] = utc_now):
        self._conn = conn
        self._now = now_fn

    # === Public feed ===

    def count_public(self) -> int:
        row = self._conn.execute("SELECT count(*) AS c FROM memos WHERE is_private=0").fetchone()
        return row["c"]

    def list_public(self, limit: int, offset: int = 0) -> list[Memo]:
        """Public memos newest first, annotated with the owner's username.

        An offset past the last row yields an empty list.
        """
        if offset > MAX_ROW_ID:
            return []
        rows = self._conn.execute(
            f"""
            SELECT {_LIST_COLUMNS}
            FROM memos AS m
            INNER JOIN users AS u ON u.id = m.user
            WHERE m.is_private=0
            ORDER BY m.created_at DESC, m.id DESC
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        ).fetchall()
        return [_row_to_memo(row) for row in rows]

    # === Owner stream ===

    def list_by_owner(
        self,
        user_id: int,
        include_private: bool = True,
        descending: bool = False,
    ) -> list[Memo]:
        """All memos of one user, oldest first unless ``descending``."""
        cond = "" if include_private else "AND m.is_private=0"
        direction = "DESC" if descending else "ASC"
        rows = self._conn.execute(
            f"""
            SELECT {_LIST_COLUMNS}
            FROM memos AS m
            INNER JOIN users AS u ON u.id = m.user
            WHERE m.user=? {cond}
            ORDER BY m.created_at {direction}, m.id {direction}
            """,
            (user_id,),
        ).fetchall()
        return [_row_to_memo(row) for row in rows]

    # === Single memo ===

    def get_by_id(self, memo_id: int) -> Optional[Memo]:
        """Fetch a memo with its owner's username, ignoring visibility."""
        if memo_id > MAX_ROW_ID:
            return None
        row = self._conn.execute(
            f"""
            SELECT {_FULL_COLUMNS}
            FROM memos AS m
            INNER JOIN users AS u ON u.id = m.user
            WHERE m.id=?
            """,
            (memo_id,),
        ).fetchone()
        return _row_to_memo(row) if row else None

    def get_visible(self, memo_id: int, viewer: Optional[User]) -> Optional[Memo]:
        """Fetch a memo if ``viewer`` may see it; missing and hidden both give None."""
        memo = self.get_by_id(memo_id)
        if memo is None or not can_view(memo, viewer):
            return None
        return memo

    def find_siblings(self, memo_id: int, owner_id: int, include_private: bool) -> Siblings:
        """Older and newer neighbours of a memo within its owner's stream.

        When ``include_private`` is false the stream is restricted to public
        memos first, so a private neighbour is skipped rather than revealed.
        A memo that is not part of the (filtered) stream has no neighbours.
        """
        if memo_id > MAX_ROW_ID:
            return Siblings()
        cond = "" if include_private else "AND is_private=0"
        anchor = self._conn.execute(
            f"SELECT id, created_at FROM memos WHERE id=? AND user=? {cond}",
            (memo_id, owner_id),
        ).fetchone()
        if anchor is None:
            return Siblings()

        created_at, anchor_id = anchor["created_at"], anchor["id"]
        older = self._conn.execute(
            f"""
            SELECT id, user, title, is_private, created_at FROM memos
            WHERE user=? {cond}
              AND (created_at < ? OR (created_at = ? AND id < ?))
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            (owner_id, created_at, created_at, anchor_id),
        ).fetchone()
        newer = self._conn.execute(
            f"""
            SELECT id, user, title, is_private, created_at FROM memos
            WHERE user=? {cond}
              AND (created_at > ? OR (created_at = ? AND id > ?))
            ORDER BY created_at ASC, id ASC
            LIMIT 1
            """,
            (owner_id, created_at, created_at, anchor_id),
        ).fetchone()
        return Siblings(
            older=_row_to_memo(older) if older else None,
            newer=_row_to_memo(newer) if newer else None,
        )

    # === Writes ===

    def insert(self, user_id: int, content: str, is_private: bool) -> int:
        """Create a memo stamped with the current time and return its id."""
        now = self._now()
        with self._conn:
            cur = self._conn.execute(
                """
                INSERT INTO memos (user, title, content, is_private, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, first_line(content), content, 1 if is_private else 0, now, now),
            )
        logger.debug(f"Inserted memo {cur.lastrowid} for user {user_id}")
        return cur.lastrowid

    # === Users ===

    def authenticate(self, username: str, password: str) -> Optional[User]:
        """Check credentials and stamp ``last_access`` on success.

        Returns None for an unknown user and for a wrong password alike.
        """
        row = self._conn.execute(
            "SELECT id, username, password, salt FROM users WHERE username=?",
            (username,),
        ).fetchone()
        if row is None:
            return None
        if not verify_password(password, row["salt"], row["password"]):
            return None
        with self._conn:
            self._conn.execute(
                "UPDATE users SET last_access=? WHERE id=?",
                (self._now(), row["id"]),
            )
        return User(id=row["id"], username=row["username"])

    def create_user(self, username: str, password: str) -> int:
        """Register a user with a fresh salt.

        Raises:
            ValueError: The username is empty or already taken.
        """
        if not username:
            raise ValueError("Username cannot be empty")
        salt = generate_salt()
        try:
            with self._conn:
                cur = self._conn.execute(
                    "INSERT INTO users (username, password, salt) VALUES (?, ?, ?)",
                    (username, hash_password(salt, password), salt),
                )
        except sqlite3.IntegrityError:
            raise ValueError(f"Username already exists: {username}")
        return cur.lastrowid

    def get_last_access(self, user_id: int) -> Optional[str]:
        row = self._conn.execute("SELECT last_access FROM users WHERE id=?", (user_id,)).fetchone()
        return row["last_access"] if row else None
