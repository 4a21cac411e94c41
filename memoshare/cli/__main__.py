"""
memoshare CLI - set up the database and run the server.

Usage:
    memoshare init-db [--db PATH]
    memoshare add-user USERNAME [--password PW] [--db PATH]
    memoshare serve [--host HOST] [--port PORT]
"""

import argparse
import getpass
import logging
import os
import sys
from contextlib import closing

from memoshare.logging_config import configure_logging
from memoshare.storage import MemoRepository, init_db, open_sqlite_connection

logger = logging.getLogger("memoshare.cli")

DEFAULT_DB = os.environ.get("MEMOSHARE_DATABASE_PATH", "memoshare.db")


def cmd_init_db(args):
    with closing(open_sqlite_connection(args.db)) as conn:
        init_db(conn)
    print(f"✓ Database ready: {args.db}")


def cmd_add_user(args):
    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")
    with closing(open_sqlite_connection(args.db)) as conn:
        init_db(conn)
        user_id = MemoRepository(conn).create_user(args.username, password)
    print(f"✓ Created user {args.username} (id={user_id})")


def cmd_serve(args):
    import uvicorn

    uvicorn.run(
        "memoshare.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memoshare",
        description="Share text memos publicly or privately",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_init = subparsers.add_parser("init-db", help="Create the database schema")
    p_init.add_argument("--db", default=DEFAULT_DB, help="SQLite database path")

    p_user = subparsers.add_parser("add-user", help="Register a user")
    p_user.add_argument("username", help="Unique user name")
    p_user.add_argument("--password", "-p", help="Password (prompted if omitted)")
    p_user.add_argument("--db", default=DEFAULT_DB, help="SQLite database path")

    p_serve = subparsers.add_parser("serve", help="Run the web server")
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=5000)
    p_serve.add_argument("--log-level", default="info")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(logging.WARNING)

    try:
        if args.command == "init-db":
            cmd_init_db(args)
        elif args.command == "add-user":
            cmd_add_user(args)
        elif args.command == "serve":
            cmd_serve(args)
    except ValueError as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
