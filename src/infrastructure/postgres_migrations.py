from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

_MIGRATIONS_ROOT = Path(__file__).with_name("postgres_migrations")


@dataclass(frozen=True)
class PostgresMigration:
    version: str
    sql_path: Path
    checksum: str

    def statements(self) -> list[str]:
        sql = self.sql_path.read_text(encoding="utf-8")
        return [statement.strip() for statement in sql.split(";") if statement.strip()]


def apply_postgres_migrations(*, connection: Any, namespace: str) -> list[str]:
    """Apply pending migrations for ``namespace`` under a session advisory lock.

    Returns the versions applied by this call. A recorded checksum that no
    longer matches the file on disk aborts the run.
    """
    lock_key = migration_lock_key(namespace=namespace)
    connection.execute("SELECT pg_advisory_lock(%s::bigint)", (lock_key,))
    try:
        applied = _apply_locked(connection=connection, namespace=namespace)
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.execute("SELECT pg_advisory_unlock(%s::bigint)", (lock_key,))
    return applied


def pending_postgres_migrations(*, connection: Any, namespace: str) -> list[str]:
    _ensure_ledger(connection)
    recorded = _recorded_checksums(connection=connection, namespace=namespace)
    return [
        migration.version
        for migration in load_migrations(namespace=namespace)
        if _is_pending(namespace=namespace, migration=migration, recorded=recorded)
    ]


def load_migrations(*, namespace: str) -> list[PostgresMigration]:
    namespace_path = _MIGRATIONS_ROOT / namespace
    if not namespace_path.is_dir():
        raise RuntimeError(f"POSTGRES_MIGRATIONS_NAMESPACE_NOT_FOUND:{namespace}")
    migrations: list[PostgresMigration] = []
    for sql_path in sorted(namespace_path.glob("*.sql")):
        migrations.append(
            PostgresMigration(
                version=sql_path.stem.split("_", maxsplit=1)[0],
                sql_path=sql_path,
                checksum=hashlib.sha256(sql_path.read_bytes()).hexdigest(),
            )
        )
    return migrations


def migration_lock_key(*, namespace: str) -> int:
    digest = hashlib.sha256(f"migrations:{namespace}".encode("utf-8")).digest()[:8]
    return int.from_bytes(digest, byteorder="big", signed=True)


def _apply_locked(*, connection: Any, namespace: str) -> list[str]:
    _ensure_ledger(connection)
    recorded = _recorded_checksums(connection=connection, namespace=namespace)
    applied: list[str] = []
    for migration in load_migrations(namespace=namespace):
        if not _is_pending(namespace=namespace, migration=migration, recorded=recorded):
            continue
        for statement in migration.statements():
            connection.execute(statement)
        connection.execute(
            """
            INSERT INTO schema_migrations (
                version,
                namespace,
                checksum,
                applied_at
            ) VALUES (%s, %s, %s, %s)
            """,
            (
                f"{namespace}:{migration.version}",
                namespace,
                migration.checksum,
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        applied.append(migration.version)
    connection.commit()
    return applied


def _ensure_ledger(connection: Any) -> None:
    connection.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            namespace TEXT NOT NULL,
            checksum TEXT NOT NULL,
            applied_at TEXT NOT NULL
        )
        """
    )


def _recorded_checksums(*, connection: Any, namespace: str) -> dict[str, str]:
    rows = connection.execute(
        """
        SELECT version, checksum
        FROM schema_migrations
        WHERE namespace = %s
        ORDER BY version ASC
        """,
        (namespace,),
    ).fetchall()
    prefix = f"{namespace}:"
    recorded: dict[str, str] = {}
    for row in rows:
        version = str(row["version"]).removeprefix(prefix)
        recorded[version] = str(row["checksum"])
    return recorded


def _is_pending(
    *, namespace: str, migration: PostgresMigration, recorded: dict[str, str]
) -> bool:
    existing = recorded.get(migration.version)
    if existing is None:
        return True
    if existing != migration.checksum:
        raise RuntimeError(f"POSTGRES_MIGRATION_CHECKSUM_MISMATCH:{namespace}:{migration.version}")
    return False
