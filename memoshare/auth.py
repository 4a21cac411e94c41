"""Identity and CSRF checks for memoshare.

Identity comes from the session alone; it is never re-read from the database.
"""

import secrets
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, Response, status

from .logging_config import get_logger
from .sessions import CurrentSession, Session
from .storage.base import User

logger = get_logger("memoshare.auth")

# Form/query field carrying the CSRF token
CSRF_FIELD = "sid"


class CSRFError(Exception):
    """Request token does not match the session token."""


def generate_csrf_token() -> str:
    """Generate a per-session CSRF token (64 hex chars)."""
    return secrets.token_hex(32)


def resolve_identity(session: Session) -> Optional[User]:
    """The signed-in user, or None for an anonymous session."""
    user_id = session.user_id
    username = session.username
    if user_id is None or username is None:
        return None
    return User(id=int(user_id), username=str(username))


def validate_csrf(supplied: Optional[str], session: Session) -> None:
    """Check a request token against the session token.

    A session without a token never validates.

    Raises:
        CSRFError: Tokens differ. The error carries no detail.
    """
    expected = session.token
    if not expected or supplied is None:
        raise CSRFError()
    if not secrets.compare_digest(supplied.encode(), str(expected).encode()):
        raise CSRFError()


def sign_in(session: Session, user: User) -> None:
    """Record a successful sign-in in the session with a fresh CSRF token."""
    session.values["user_id"] = user.id
    session.values["username"] = user.username
    session.values["token"] = generate_csrf_token()


# =============================================================================
# FastAPI dependencies
# =============================================================================


async def get_current_user(session: CurrentSession, response: Response) -> Optional[User]:
    """Identity of the caller. Responses for signed-in users are not shared-cacheable."""
    user = resolve_identity(session)
    if user is not None:
        response.headers["Cache-Control"] = "private"
    return user


async def require_csrf(request: Request, session: CurrentSession) -> None:
    """Reject state-changing requests whose ``sid`` does not match the session.

    The token is read from the form body for POST requests and from the query
    string otherwise (the form wins when both are present).
    """
    supplied = None
    if request.method == "POST":
        form = await request.form()
        value = form.get(CSRF_FIELD)
        supplied = value if isinstance(value, str) else None
    if supplied is None:
        supplied = request.query_params.get(CSRF_FIELD)
    try:
        validate_csrf(supplied, session)
    except CSRFError:
        logger.warning(f"CSRF check failed for {request.method} {request.url.path}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Bad Request")


# Type alias for dependency injection
CurrentUser = Annotated[Optional[User], Depends(get_current_user)]
