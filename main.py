#!/usr/bin/env python3
"""
Learner Progress Engine
Command line entry point
"""

import argparse
import json
import logging
import sys

from progress_engine.config import get_settings
from progress_engine.core.coordinator.progress_coordinator import (
    ProgressCoordinator,
    get_progress_coordinator,
)
from progress_engine.core.database.database_manager import DatabaseManager, get_db_manager
from progress_engine.errors import InvalidInput, ProgressEngineError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Learner progress and adaptive unlock engine")
    parser.add_argument("--db", help="SQLite database path (defaults to DATABASE_URL)")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create tables and indexes")

    record = commands.add_parser("record", help="Record one interaction given as JSON")
    record.add_argument("payload", help="Interaction JSON, or - to read it from stdin")

    profile = commands.add_parser("profile", help="Show a learner profile")
    profile.add_argument("user_id")

    access = commands.add_parser("access", help="Check access to a section")
    access.add_argument("user_id")
    access.add_argument("section_id")

    return parser


def run(args: argparse.Namespace) -> dict | None:
    # An explicit --db gets its own store; otherwise the shared instances are used
    db_manager = DatabaseManager(args.db) if args.db else get_db_manager()
    db_manager.init_database()
    if args.command == "init-db":
        return None

    coordinator = ProgressCoordinator(db_manager) if args.db else get_progress_coordinator()
    if args.command == "record":
        raw = sys.stdin.read() if args.payload == "-" else args.payload
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidInput(f"Interaction is not valid JSON: {e}") from e
        return coordinator.record(payload).to_response()
    if args.command == "profile":
        return coordinator.get_profile_summary(args.user_id)
    return coordinator.check_section_access(args.user_id, args.section_id).model_dump(
        mode="json", by_alias=True
    )


def main(argv: list[str] | None = None) -> int:
    """Main application entry point"""
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    args = build_parser().parse_args(argv)
    try:
        output = run(args)
    except ProgressEngineError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(json.dumps({"error": type(e).__name__, "message": str(e)}))
        return 1

    if output is not None:
        print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
