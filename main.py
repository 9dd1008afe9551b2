#!/usr/bin/env python3
"""
gate - register, log in, and view a session-gated secrets page.
"""

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

from gate.utils.env import env_int

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep the rest of gate's imports lazy (inside functions) so `--migrate` does not
# need the web stack and `--serve` does not need a database.
#


def migrate_schema() -> int:
    """Apply pending schema steps and print one status line per step."""
    from gate.db.config import require_postgres_dsn
    from gate.db.migrate import upgrade_schema

    for result in upgrade_schema(require_postgres_dsn()):
        print(result.describe())
    return 0


def prune_sessions() -> int:
    """Run one expiry sweep against the configured Postgres session store."""
    from gate.db.config import DatabaseNotConfigured
    from gate.db.pool import open_pool
    from gate.session.store import PostgresSessionStore

    pool = open_pool()
    if pool is None:
        raise DatabaseNotConfigured()
    try:
        removed = PostgresSessionStore(pool).prune_expired()
    finally:
        pool.close()
    print(f"Removed {removed} expired session(s).")
    return 0


def main():
    """CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Email/password accounts with a session-gated secrets page",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create/upgrade the users and session tables
  python main.py --migrate

  # Serve on $PORT (default 3000)
  python main.py --serve
        """,
    )
    parser.add_argument("--serve", action="store_true", help="Run the web server")
    parser.add_argument("--migrate", action="store_true", help="Apply pending schema steps (users, session tables) and exit")
    parser.add_argument("--prune-sessions", action="store_true", help="Delete expired sessions and exit")
    parser.add_argument(
        "--host", default=os.getenv("HOST", "0.0.0.0"), help="Server bind host (default: $HOST or 0.0.0.0)"
    )
    parser.add_argument(
        "--port", type=int, default=env_int("PORT", 3000), help="Server listen port (default: $PORT or 3000)"
    )

    args = parser.parse_args()

    from gate.db.config import DatabaseNotConfigured

    try:
        if args.migrate:
            sys.exit(migrate_schema())

        if args.prune_sessions:
            sys.exit(prune_sessions())

        if args.serve:
            from gate.api.app import run

            run(host=args.host, port=args.port)
            return

        parser.print_help()

    except DatabaseNotConfigured as e:
        print(str(e), file=sys.stderr)
        sys.exit(2)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()
