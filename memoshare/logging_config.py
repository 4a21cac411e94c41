"""Logging helpers for memoshare.

Every module asks for a logger through ``get_logger`` so names stay under the
``memoshare`` namespace and one call to ``configure_logging`` controls them all.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"

_configured = False


def configure_logging(level: str | int = "INFO") -> None:
    """Attach a stream handler to the ``memoshare`` logger once."""
    global _configured
    root = logging.getLogger("memoshare")
    root.setLevel(level if isinstance(level, int) else level.upper())
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger, prefixing bare names with ``memoshare.``."""
    if name != "memoshare" and not name.startswith("memoshare."):
        name = f"memoshare.{name}"
    return logging.getLogger(name)


_auth_logger = get_logger("memoshare.auth")


def log_auth_event(
    event: str,
    username: str | None,
    success: bool,
    client: str | None = None,
) -> None:
    """Record a sign-in/sign-out attempt.

    The failure reason is never logged: an unknown user and a wrong password
    produce the same line.
    """
    status = "ok" if success else "failed"
    _auth_logger.info(f"AUTH | {event} | {username or '-'} | {status} | client={client or '-'}")
