#!/usr/bin/env python3
"""
Development launcher for the ward scan tracker API.
NOTE: Points the engine at the dev database settings, bootstraps the tables and serves the app with reload
"""
import argparse
import logging
import os
import sys

import uvicorn

logger = logging.getLogger(__name__)

APP_PATH = "patient_tracker.main:app"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the ward scan tracker API for local development")
    parser.add_argument("--host", default=os.getenv("WARD_TRACKER_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("WARD_TRACKER_PORT", "8000")))
    parser.add_argument(
        "--database-url",
        help="Override DATABASE_URL, e.g. sqlite+pysqlite:///./ward_tracker.db for a throwaway local store"
    )
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload on code changes")
    parser.add_argument("--skip-setup", action="store_true", help="Do not create missing tables first")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)

    # Both are read when patient_tracker.database builds the engine, so set them before importing it
    os.environ.setdefault("ENVIRONMENT", "development")
    if args.database_url:
        os.environ["DATABASE_URL"] = args.database_url

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

    if not args.skip_setup:
        from patient_tracker.setup_db import check_tables, setup_database

        if check_tables():
            logger.info("All ward tracker tables present")
        elif not setup_database():
            logger.error("Database setup failed, check DATABASE_URL and that PostgreSQL is running")
            sys.exit(1)

    logger.info(f"Ward scan tracker API on http://{args.host}:{args.port} (docs at /docs)")
    uvicorn.run(
        APP_PATH,
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
        log_level="info"
    )


if __name__ == "__main__":
    main()
