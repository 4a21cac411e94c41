"""Sign-in and sign-out routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Form, Request

from ..auth import CurrentUser, require_csrf, sign_in
from ..database import Memos
from ..logging_config import log_auth_event
from ..models import SigninView, UserInfo
from ..rate_limit import get_client_ip, limiter, signin_limit
from ..sessions import CurrentSession, Sessions
from .helpers import redirect

router = APIRouter(tags=["auth"])

SIGNIN_FAILED = "Sign-in failed"


@router.api_route("/signin", methods=["GET", "HEAD"], response_model=SigninView)
def signin_form(user: CurrentUser):
    """Sign-in form. Needs no database access."""
    return SigninView(user=UserInfo.from_user(user))


@router.post("/signin", response_model=SigninView)
@limiter.limit(signin_limit)
def signin(
    request: Request,
    session: CurrentSession,
    sessions: Sessions,
    memos: Memos,
    username: Annotated[str, Form()] = "",
    password: Annotated[str, Form()] = "",
):
    """
    Check credentials and start a session.

    Success redirects to ``/mypage``. Unknown user and wrong password both
    return the same failed form.
    """
    client = get_client_ip(request)
    user = memos.authenticate(username, password)
    if user is None:
        log_auth_event("signin", username, False, client)
        return SigninView(failed=True, message=SIGNIN_FAILED)

    session = sessions.regenerate(session)
    sign_in(session, user)
    response = redirect("/mypage", private=True)
    sessions.save(response, session)
    log_auth_event("signin", user.username, True, client)
    return response


@router.get("/signout", dependencies=[Depends(require_csrf)])
def signout(request: Request, session: CurrentSession, sessions: Sessions, user: CurrentUser):
    """End the session and return to the top page."""
    response = redirect("/", private=user is not None)
    sessions.clear(response, session)
    if user is not None:
        log_auth_event("signout", user.username, True, get_client_ip(request))
    return response
