"""Cookie sessions for memoshare.

The browser holds a signed cookie naming a session id; the session values
live in a pluggable ``SessionStore``. Signing uses an HS256 JWT so a client
cannot forge or swap session ids.
"""

import json
import os
import re
import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Annotated, Any, Optional

from fastapi import Depends, Request, Response
from jose import ExpiredSignatureError, JWTError, jwt

from .logging_config import get_logger

logger = get_logger("memoshare.sessions")

SESSION_ALGORITHM = "HS256"
_SID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


class SessionError(Exception):
    """The session cookie or its stored values could not be read."""


def generate_session_id() -> str:
    return secrets.token_hex(16)


@dataclass
class Session:
    """Values attached to one browser."""
    id: str = field(default_factory=generate_session_id)
    values: dict[str, Any] = field(default_factory=dict)
    is_new: bool = True

    @property
    def user_id(self) -> Optional[int]:
        return self.values.get("user_id")

    @property
    def username(self) -> Optional[str]:
        return self.values.get("username")

    @property
    def token(self) -> Optional[str]:
        return self.values.get("token")


# =============================================================================
# Stores
# =============================================================================


class SessionStore(ABC):
    """Key-value backend for session values."""

    @abstractmethod
    def load(self, session_id: str) -> Optional[dict[str, Any]]:
        """Return stored values, or None if the session is unknown."""

    @abstractmethod
    def save(self, session_id: str, values: dict[str, Any]) -> None:
        """Persist values, replacing any previous ones."""

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """Forget a session. Unknown ids are ignored."""


class MemorySessionStore(SessionStore):
    """Process-local store. Sessions are lost on restart."""

    def __init__(self):
        self._data: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def load(self, session_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            values = self._data.get(session_id)
            return dict(values) if values is not None else None

    def save(self, session_id: str, values: dict[str, Any]) -> None:
        with self._lock:
            self._data[session_id] = dict(values)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._data.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class FileSessionStore(SessionStore):
    """One JSON file per session in a directory."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        if not _SID_PATTERN.match(session_id):
            raise SessionError("Malformed session id")
        return self.directory / f"session_{session_id}.json"

    def load(self, session_id: str) -> Optional[dict[str, Any]]:
        path = self._path(session_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            values = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SessionError(f"Corrupt session file {path.name}") from e
        if not isinstance(values, dict):
            raise SessionError(f"Corrupt session file {path.name}")
        return values

    def save(self, session_id: str, values: dict[str, Any]) -> None:
        path = self._path(session_id)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(values, f)
        # Session files hold sign-in state; owner-only
        os.chmod(path, 0o600)

    def delete(self, session_id: str) -> None:
        self._path(session_id).unlink(missing_ok=True)


# =============================================================================
# Cookie handling
# =============================================================================


class SessionManager:
    """Loads sessions from request cookies and writes them back to responses."""

    def __init__(
        self,
        store: SessionStore,
        secret: str,
        cookie_name: str = "memoshare_session",
        max_age: int = 60 * 60 * 24 * 30,
        secure: bool = False,
    ):
        self.store = store
        self._secret = secret
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = secure

    def sign(self, session_id: str) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sid": session_id,
            "iat": now,
            "exp": now + timedelta(seconds=self.max_age),
        }
        return jwt.encode(claims, self._secret, algorithm=SESSION_ALGORITHM)

    def load(self, request: Request) -> Session:
        """Session for the request's cookie; a fresh one if there is none.

        Raises:
            SessionError: The cookie is present but tampered with or
                unreadable, or the stored values are corrupt.
        """
        raw = request.cookies.get(self.cookie_name)
        if not raw:
            return Session()
        try:
            claims = jwt.decode(raw, self._secret, algorithms=[SESSION_ALGORITHM])
        except ExpiredSignatureError:
            logger.debug("Expired session cookie, starting a new session")
            return Session()
        except JWTError as e:
            raise SessionError("Invalid session cookie") from e

        session_id = claims.get("sid")
        if not isinstance(session_id, str) or not _SID_PATTERN.match(session_id):
            raise SessionError("Invalid session id in cookie")

        values = self.store.load(session_id)
        if values is None:
            # Signed-out or purged; never revive the old id
            return Session()
        return Session(id=session_id, values=values, is_new=False)

    def save(self, response: Response, session: Session) -> None:
        self.store.save(session.id, session.values)
        response.set_cookie(
            self.cookie_name,
            self.sign(session.id),
            max_age=self.max_age,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )
        session.is_new = False

    def clear(self, response: Response, session: Session) -> None:
        self.store.delete(session.id)
        session.values.clear()
        response.delete_cookie(self.cookie_name, path="/")

    def regenerate(self, session: Session) -> Session:
        """Drop a session's stored values and return an empty one with a new id.

        Called when the caller's privilege changes, so an id issued before
        sign-in never identifies the signed-in session.
        """
        if not session.is_new:
            self.store.delete(session.id)
        return Session()


async def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_session(
    request: Request,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> Session:
    """FastAPI dependency: the caller's session (first pipeline step)."""
    return manager.load(request)


# Type aliases for dependency injection
Sessions = Annotated[SessionManager, Depends(get_session_manager)]
CurrentSession = Annotated[Session, Depends(get_session)]
