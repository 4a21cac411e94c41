"""memoshare - FastAPI application."""

import sqlite3
from contextlib import asynccontextmanager, closing

import anyio
import anyio.to_thread
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import __version__
from .config import Settings, get_settings
from .logging_config import configure_logging, get_logger
from .rate_limit import configure_signin_limit, limiter
from .routes import auth_router, memos_router
from .sessions import FileSessionStore, MemorySessionStore, SessionError, SessionManager, SessionStore
from .storage import ConnectionPool, PoolExhaustedError, init_db, open_sqlite_connection

logger = get_logger("memoshare.app")


def build_pool(settings: Settings) -> ConnectionPool:
    """Create the schema if needed and open the connection pool."""
    with closing(open_sqlite_connection(settings.database_path)) as conn:
        init_db(conn)
    return ConnectionPool.for_sqlite(settings.database_path, settings.db_pool_size)


def build_session_store(settings: Settings) -> SessionStore:
    if settings.session_dir is not None:
        return FileSessionStore(settings.session_dir)
    return MemorySessionStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    # Sync handlers each run on their own worker thread
    anyio.to_thread.current_default_thread_limiter().total_tokens = settings.worker_threads
    # Threads blocked waiting for a pooled connection come from a separate limiter
    app.state.acquire_limiter = anyio.CapacityLimiter(settings.worker_threads)

    owns_pool = app.state.pool is None
    if owns_pool:
        app.state.pool = build_pool(settings)
    logger.info(
        f"Starting memoshare {__version__} "
        f"(db={settings.database_path}, pool={app.state.pool.size}, debug={settings.debug})"
    )
    yield
    logger.info("Shutting down memoshare")
    if owns_pool:
        app.state.pool.close()


async def storage_error_handler(request: Request, exc: sqlite3.Error) -> JSONResponse:
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
    logger.error(f"Session error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


async def pool_exhausted_handler(request: Request, exc: PoolExhaustedError) -> JSONResponse:
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service Unavailable"},
    )


def create_app(
    settings: Settings | None = None,
    pool: ConnectionPool | None = None,
    session_store: SessionStore | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Defaults to ``get_settings()``.
        pool: Pre-built connection pool. When omitted the lifespan handler
            opens one for ``settings.database_path`` and closes it on shutdown.
        session_store: Defaults to a file store when ``session_dir`` is set,
            an in-memory store otherwise.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="memoshare",
        description="Share text memos publicly or privately",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pool = pool
    app.state.session_manager = SessionManager(
        session_store or build_session_store(settings),
        secret=settings.session_secret,
        cookie_name=settings.session_cookie_name,
        max_age=settings.session_max_age,
        secure=settings.session_cookie_secure,
    )

    # Rate limiting
    configure_signin_limit(settings.signin_rate_limit)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(sqlite3.Error, storage_error_handler)
    app.add_exception_handler(SessionError, session_error_handler)
    app.add_exception_handler(PoolExhaustedError, pool_exhausted_handler)

    app.include_router(auth_router)
    app.include_router(memos_router)

    @app.get("/health", include_in_schema=False)
    def health(request: Request):
        """Pool occupancy; does not take a connection."""
        pool = request.app.state.pool
        return {
            "status": "ok",
            "pool": {"size": pool.size, "available": pool.available, "in_use": pool.in_use},
        }

    # Everything else is a static asset
    if settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir), name="static")

    return app
