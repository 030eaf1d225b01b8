"""Command line entry point.

    showcase serve [--host H] [--port P]     run the API (default command)
    showcase create-admin EMAIL [--name N]   create or reactivate an admin
"""

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path

from .core.config import get_settings
from .core.db.db import get_database_manager, wait_for_db


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Third-party loggers stay quiet unless something is wrong
    for name in ("urllib3", "multipart", "slowapi", "sqlalchemy", "sqlalchemy.pool", "psycopg2"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.ERROR)


logger = logging.getLogger(__name__)


def _open_database(settings):
    db_manager = get_database_manager(settings.database_url)
    if not wait_for_db(db_manager):
        logger.error("Exiting: database unavailable")
        sys.exit(1)
    db_manager.init_db()
    return db_manager


def _ensure_admin(db_manager, email: str, name: str, password: str) -> None:
    from .core.auth import AuthService

    with db_manager.get_session() as session:
        admin = AuthService(session).ensure_admin(email, name, password)
        logger.info(f"Admin account ready: {admin.email}")


def serve(args) -> None:
    from .core.constants import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_NAME, DEFAULT_ADMIN_PASSWORD

    settings = get_settings()
    logger.info(f"Starting Prototype Showcase ({settings.environment})")
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)

    db_manager = _open_database(settings)
    if settings.is_production:
        logger.info("Production mode: default admin seeding skipped")
    elif not args.no_seed:
        password = os.getenv("SHOWCASE_ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD)
        _ensure_admin(db_manager, DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_NAME, password)

    from .api.app import create_app
    import uvicorn

    app = create_app(db_manager=db_manager, settings=settings)
    print(f"\n  Prototype Showcase API: http://localhost:{args.port}/api")
    print(f"  API docs at: http://localhost:{args.port}/docs\n")
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


def create_admin(args) -> None:
    from .core.auth import AuthService

    password = os.getenv("SHOWCASE_ADMIN_PASSWORD") or getpass.getpass("Password: ")
    problems = AuthService.validate_password_strength(password)
    if problems:
        logger.error("; ".join(problems))
        sys.exit(2)

    db_manager = _open_database(get_settings())
    _ensure_admin(db_manager, args.email, args.name, password)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="showcase", description="Prototype Showcase API")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    commands = parser.add_subparsers(dest="command")

    serve_cmd = commands.add_parser("serve", help="Run the API server")
    serve_cmd.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    serve_cmd.add_argument("--port", type=int, default=3001, help="Port for the API server")
    serve_cmd.add_argument("--no-seed", action="store_true", help="Skip seeding the default admin account")
    serve_cmd.set_defaults(handler=serve)

    admin_cmd = commands.add_parser("create-admin", help="Create or reactivate an admin account")
    admin_cmd.add_argument("email")
    admin_cmd.add_argument("--name", default="Admin User")
    admin_cmd.set_defaults(handler=create_admin)
    return parser


def main(argv=None):
    """Main entry point for the prototype showcase."""
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(argv + ["serve"])

    setup_logging(args.log_level)
    args.handler(args)


if __name__ == "__main__":
    main()
