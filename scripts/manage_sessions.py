#!/usr/bin/env python3
"""
Session database maintenance.

    manage_sessions.py init               create the sessions table
    manage_sessions.py purge [--max-age]  delete records idle longer than max-age
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from sessionstore.core.config import settings
from sessionstore.core.exceptions import SessionStoreError
from sessionstore.core.repository import SessionRecordRepository
from sessionstore.db.session import build_engine, make_session_factory


def build_repository(database_url: str, timeout: float) -> SessionRecordRepository:
    engine = build_engine(database_url, timeout=timeout)
    return SessionRecordRepository(make_session_factory(engine), timeout=timeout)


def init(repository: SessionRecordRepository) -> bool:
    print("Initializing session database...")
    repository.ensure_schema()
    healthy = repository.health_check()
    print(f"Health Status: {'healthy' if healthy else 'unhealthy'}")
    print(f"Session Records: {repository.count()}")
    return healthy


def purge(repository: SessionRecordRepository, max_age: int) -> bool:
    purged = repository.purge_expired(max_age)
    print(f"Purged {purged} session record(s) idle for more than {max_age}s")
    return True


def main(argv=None) -> bool:
    parser = argparse.ArgumentParser(description="Session database maintenance")
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument("--timeout", type=float, default=settings.store_timeout)
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("init", help="Create the sessions table")
    purge_parser = subcommands.add_parser("purge", help="Delete expired session records")
    purge_parser.add_argument("--max-age", type=int, default=settings.max_age)
    args = parser.parse_args(argv)

    print(f"Database URL: {args.database_url.split('@')[-1]}")
    repository = build_repository(args.database_url, args.timeout)
    try:
        if args.command == "init":
            return init(repository)
        return purge(repository, args.max_age)
    except (SessionStoreError, ValueError) as e:
        print(f"Session maintenance failed: {e}")
        return False


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
