"""
PostgreSQL repository adapter - Shared helpers, migrations and settings.

This module provides the PostgreSQL implementation of the domain's
SettingsRepository port using psycopg3 with raw SQL, plus the
migration runner executed at application startup. The catalog,
purchase and student repositories live beside it.

All SQL uses parameterized queries. Guarded state transitions are
written as conditional UPDATEs whose affected-row count decides
success, so concurrent callers cannot both win.
"""

import logging
from pathlib import Path

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.domain.models import PlatformSetting

logger = logging.getLogger(__name__)

_SETTING_COLUMNS = (
    "key, value, setting_type, category, description, version, updated_by, updated_at"
)


def _to_setting(row: dict) -> PlatformSetting:
    return PlatformSetting(
        key=row["key"],
        value=row["value"],
        setting_type=row["setting_type"],
        category=row["category"],
        description=row["description"],
        version=row["version"],
        updated_by=row["updated_by"],
        updated_at=row["updated_at"],
    )


class PostgresSettingsRepository:
    """
    Implements SettingsRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def insert_missing(self, settings: list[PlatformSetting]) -> int:
        """
        Insert default settings that are not stored yet.

        ON CONFLICT DO NOTHING leaves administrator changes untouched,
        so this is safe to run on every startup.
        """
        sql = """
            INSERT INTO platform_settings (key, value, setting_type, category, description)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (key) DO NOTHING
        """

        inserted = 0
        with self._pool.connection() as conn, conn.cursor() as cursor:
            for setting in settings:
                cursor.execute(
                    sql,
                    (
                        setting.key,
                        setting.value,
                        setting.setting_type,
                        setting.category,
                        setting.description,
                    ),
                )
                inserted += cursor.rowcount
            conn.commit()
        return inserted

    def get_setting(self, key: str) -> PlatformSetting | None:
        sql = f"SELECT {_SETTING_COLUMNS} FROM platform_settings WHERE key = %s"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (key,))
            row = cursor.fetchone()
        return _to_setting(row) if row is not None else None

    def list_settings(self) -> list[PlatformSetting]:
        sql = f"SELECT {_SETTING_COLUMNS} FROM platform_settings ORDER BY category, key"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql)
            rows = cursor.fetchall()
        return [_to_setting(row) for row in rows]

    def update_setting(self, key: str, value: str, updated_by: str) -> PlatformSetting | None:
        sql = f"""
            UPDATE platform_settings
            SET value = %s, version = version + 1, updated_by = %s, updated_at = NOW()
            WHERE key = %s
            RETURNING {_SETTING_COLUMNS}
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (value, updated_by, key))
            row = cursor.fetchone()
            conn.commit()
        return _to_setting(row) if row is not None else None


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)
                # The pool commits when the connection block exits cleanly

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
