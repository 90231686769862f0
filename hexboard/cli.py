"""Command line entry point: ``hexboard serve`` and ``hexboard init-db``."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from hexboard.config import get_settings

LOGGER = logging.getLogger("hexboard.launcher")

DEFAULT_APP = "hexboard.server.app:create_app"


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="hexboard", description="hexboard board server utility.")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the FastAPI server with uvicorn.")
    serve.add_argument(
        "--host",
        dest="host",
        default=settings.host,
        help=f"Host interface for the server (default: {settings.host}).",
    )
    serve.add_argument(
        "--port",
        dest="port",
        type=int,
        default=settings.port,
        help=f"TCP port for the server (default: {settings.port}).",
    )
    serve.add_argument(
        "--reload",
        action="store_true",
        help="Enable uvicorn reload (useful for development).",
    )
    serve.add_argument(
        "--log-level",
        default=settings.log_level.lower(),
        help="uvicorn log level.",
    )
    serve.add_argument(
        "--app",
        default=DEFAULT_APP,
        help=f"Application factory import path (default: {DEFAULT_APP}).",
    )

    init_db = sub.add_parser("init-db", help="Create the database tables and exit.")
    init_db.add_argument("--db-url", default=None, help="SQLAlchemy URL (default: settings).")
    return parser.parse_args(argv)


def launch_server(args: argparse.Namespace) -> None:
    import uvicorn

    LOGGER.info("Starting hexboard server at http://%s:%s (app=%s)", args.host, args.port, args.app)
    uvicorn.run(
        args.app,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        reload=args.reload,
        factory=True,
    )


def init_database(args: argparse.Namespace) -> str:
    from hexboard.server.core import db

    if args.db_url:
        db.configure(args.db_url)
    engine = db.init_db()
    url = engine.url.render_as_string(hide_password=True)
    print(f"Database ready: {url}")
    return url


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_arguments(argv)
    if args.command == "serve":
        launch_server(args)
    elif args.command == "init-db":
        init_database(args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
