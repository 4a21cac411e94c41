"""Memo routes: public timeline, personal page, single memo, posting."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Form

from ..auth import CurrentUser, require_csrf
from ..database import AppSettings, Memos
from ..logging_config import get_logger
from ..models import FeedView, MemoDetail, MemoSummary, MemoView, MyPageView, UserInfo
from ..sessions import CurrentSession, Session
from ..storage import Memo, MemoRepository, User, page_bounds
from .helpers import BaseURL, not_found, redirect

logger = get_logger("memoshare.memos")
router = APIRouter(tags=["memos"])


def _feed_page(
    memos: MemoRepository,
    page: int,
    per_page: int,
    base_url: str,
    session: Session,
    user: Optional[User],
) -> FeedView:
    limit, offset = page_bounds(page, per_page)
    total = memos.count_public()
    items = memos.list_public(limit, offset)
    return FeedView(
        user=UserInfo.from_user(user),
        token=session.token if user else None,
        total=total,
        page=page,
        page_start=offset + 1,
        page_end=offset + per_page,
        memos=[MemoSummary.from_memo(m, base_url) for m in items],
    )


@router.get("/", response_model=FeedView)
def top(
    session: CurrentSession,
    base_url: BaseURL,
    memos: Memos,
    user: CurrentUser,
    settings: AppSettings,
):
    """First page of the public timeline."""
    return _feed_page(memos, 0, settings.memos_per_page, base_url, session, user)


@router.get("/recent/{page:int}", response_model=FeedView)
def recent(
    page: int,
    session: CurrentSession,
    base_url: BaseURL,
    memos: Memos,
    user: CurrentUser,
    settings: AppSettings,
):
    """Later pages of the public timeline. An empty page is not found."""
    view = _feed_page(memos, page, settings.memos_per_page, base_url, session, user)
    if not view.memos:
        raise not_found()
    return view


@router.get("/mypage", response_model=MyPageView)
def mypage(
    session: CurrentSession,
    base_url: BaseURL,
    memos: Memos,
    user: CurrentUser,
):
    """The caller's memos, private ones included, newest first."""
    if user is None:
        return redirect("/")
    items = memos.list_by_owner(user.id, include_private=True, descending=True)
    return MyPageView(
        user=UserInfo.from_user(user),
        token=session.token,
        memos=[MemoSummary.from_memo(m, base_url) for m in items],
    )


def _detail(memo: Memo) -> MemoDetail:
    return MemoDetail(
        id=memo.id,
        user_id=memo.user_id,
        username=memo.username,
        title=memo.title,
        content=memo.content or "",
        is_private=memo.is_private,
        created_at=memo.created_at,
        updated_at=memo.updated_at,
    )


@router.api_route("/memo/{memo_id:int}", methods=["GET", "HEAD"], response_model=MemoView)
def memo_page(
    memo_id: int,
    session: CurrentSession,
    base_url: BaseURL,
    memos: Memos,
    user: CurrentUser,
):
    """
    One memo with its neighbours in the owner's stream.

    Hidden memos are reported exactly like missing ones. Visitors other than
    the owner navigate the owner's public memos only.
    """
    memo = memos.get_visible(memo_id, user)
    if memo is None:
        raise not_found()

    is_owner = user is not None and user.id == memo.user_id
    siblings = memos.find_siblings(memo.id, memo.user_id, include_private=is_owner)
    return MemoView(
        user=UserInfo.from_user(user),
        token=session.token if user else None,
        memo=_detail(memo),
        older=MemoSummary.from_memo(siblings.older, base_url) if siblings.older else None,
        newer=MemoSummary.from_memo(siblings.newer, base_url) if siblings.newer else None,
    )


@router.post("/memo", dependencies=[Depends(require_csrf)])
def create_memo(
    memos: Memos,
    user: CurrentUser,
    content: Annotated[str, Form()] = "",
    is_private: Annotated[str, Form()] = "",
):
    """Post a memo. ``is_private == "1"`` makes it private."""
    if user is None:
        return redirect("/")
    memo_id = memos.insert(user.id, content, is_private == "1")
    logger.info(f"MEMO | user={user.id} | created {memo_id} | private={is_private == '1'}")
    return redirect(f"/memo/{memo_id}", private=True)
