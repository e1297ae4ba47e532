import argparse
import os
import sys
from importlib.util import find_spec
from pathlib import Path

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

NAMESPACE = "firm_offers"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Apply forward-only PostgreSQL migrations for the firm offer store."
    )
    parser.add_argument(
        "--dsn",
        default=os.getenv("FIRM_OFFER_POSTGRES_DSN", "").strip(),
        help="PostgreSQL DSN for the firm offer store.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List pending migrations without applying them.",
    )
    args = parser.parse_args(argv)

    if not args.dsn:
        raise RuntimeError(f"POSTGRES_MIGRATION_DSN_REQUIRED:{NAMESPACE}")
    if find_spec("psycopg") is None:
        raise RuntimeError("POSTGRES_MIGRATION_DRIVER_MISSING")
    import psycopg
    from psycopg.rows import dict_row

    from src.infrastructure.postgres_migrations import (
        apply_postgres_migrations,
        pending_postgres_migrations,
    )

    with psycopg.connect(args.dsn, row_factory=dict_row) as connection:
        if args.dry_run:
            pending = pending_postgres_migrations(connection=connection, namespace=NAMESPACE)
            print(f"Pending migrations for namespace={NAMESPACE}: {pending or 'none'}")
            return 0
        applied = apply_postgres_migrations(connection=connection, namespace=NAMESPACE)
    print(f"Applied migrations for namespace={NAMESPACE}: {applied or 'none'}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
