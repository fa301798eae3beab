"""
Development Server Entry Point
==============================

Usage:
    python run.py                  # reload on, database checked first
    python run.py --no-reload
    python run.py --skip-db-check  # start even if the database is down
"""

import argparse
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the field operations API locally")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload")
    parser.add_argument(
        "--skip-db-check",
        action="store_true",
        help="Do not verify the database connection before starting",
    )
    return parser


def main() -> int:
    import uvicorn
    from app.core.config import settings
    from app.db.session import check_database_connection

    args = build_parser().parse_args()

    print(f"{settings.APP_NAME} v{settings.APP_VERSION} [{settings.ENVIRONMENT}]")
    if not args.skip_db_check and not check_database_connection():
        print(f"Database unreachable: {settings.DATABASE_URL.split('@')[-1]}", file=sys.stderr)
        print("Run `alembic upgrade head` against a running database, or pass --skip-db-check.", file=sys.stderr)
        return 1

    print(f"Listening on http://{args.host}:{args.port}")
    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
        log_level=settings.LOG_LEVEL.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
