"""Pydantic view models handed to the rendering layer."""

from pydantic import BaseModel

from .storage.base import Memo, User


class UserInfo(BaseModel):
    """The signed-in user."""
    id: int
    username: str

    @classmethod
    def from_user(cls, user: User | None) -> "UserInfo | None":
        return cls(id=user.id, username=user.username) if user else None


class MemoSummary(BaseModel):
    """A memo in a listing: title only."""
    id: int
    title: str
    is_private: bool
    created_at: str
    username: str | None = None
    url: str

    @classmethod
    def from_memo(cls, memo: Memo, base_url: str) -> "MemoSummary":
        return cls(
            id=memo.id,
            title=memo.title,
            is_private=memo.is_private,
            created_at=memo.created_at,
            username=memo.username,
            url=f"{base_url}/memo/{memo.id}",
        )


class MemoDetail(BaseModel):
    """A single memo with its full content."""
    id: int
    user_id: int
    username: str | None
    title: str
    content: str
    is_private: bool
    created_at: str
    updated_at: str | None = None


class FeedView(BaseModel):
    """A page of the public timeline (``/`` and ``/recent/{page}``)."""
    user: UserInfo | None = None
    token: str | None = None
    total: int
    page: int
    page_start: int
    page_end: int
    memos: list[MemoSummary]


class MyPageView(BaseModel):
    """The caller's own memos, newest first."""
    user: UserInfo
    token: str | None = None
    memos: list[MemoSummary]


class MemoView(BaseModel):
    """One memo with links to its older and newer siblings."""
    user: UserInfo | None = None
    token: str | None = None
    memo: MemoDetail
    older: MemoSummary | None = None
    newer: MemoSummary | None = None


class SigninView(BaseModel):
    """The sign-in form. ``failed`` is set after rejected credentials, with no reason."""
    user: UserInfo | None = None
    failed: bool = False
    message: str | None = None
