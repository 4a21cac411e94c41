"""Shared pieces for route handlers."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse


async def get_base_url(request: Request) -> str:
    """Absolute URL prefix for links, honouring ``X-Forwarded-Host``."""
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    if not host:
        host = request.url.netloc
    scheme = request.headers.get("x-forwarded-proto") or request.url.scheme
    return f"{scheme}://{host}"


def redirect(path: str, private: bool = False) -> RedirectResponse:
    """302 to ``path``. ``private`` marks responses to identified callers.

    Returned responses bypass the headers set by ``get_current_user``, so the
    caller says whether the redirect is private.
    """
    response = RedirectResponse(path, status_code=status.HTTP_302_FOUND)
    if private:
        response.headers["Cache-Control"] = "private"
    return response


def not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


# Type alias for dependency injection
BaseURL = Annotated[str, Depends(get_base_url)]
