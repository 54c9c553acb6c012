"""
PostgreSQL catalog repository - Implements CatalogRepository protocol.
"""

from decimal import Decimal

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.domain.models import CatalogItem
from src.domain.ports import ItemStatus

ITEM_COLUMNS = """
    id, title, author_id, author_name, base_price, currency, file_ref, file_format,
    status, admin_notes, reviewed_by, reviewed_at, total_sales, total_revenue,
    author_earnings, platform_earnings, created_at
"""


def to_item(row: dict) -> CatalogItem:
    return CatalogItem(
        id=row["id"],
        title=row["title"],
        author_id=row["author_id"],
        author_name=row["author_name"],
        base_price=row["base_price"],
        currency=row["currency"],
        file_ref=row["file_ref"],
        file_format=row["file_format"],
        status=ItemStatus(row["status"]),
        admin_notes=row["admin_notes"],
        reviewed_by=row["reviewed_by"],
        reviewed_at=row["reviewed_at"],
        total_sales=row["total_sales"],
        total_revenue=row["total_revenue"],
        author_earnings=row["author_earnings"],
        platform_earnings=row["platform_earnings"],
        created_at=row["created_at"],
    )


class PostgresCatalogRepository:
    """
    Implements CatalogRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def create_item(
        self,
        title: str,
        author_id: str,
        author_name: str,
        base_price: Decimal,
        currency: str,
        file_ref: str,
        file_format: str,
    ) -> CatalogItem:
        sql = f"""
            INSERT INTO ebooks (title, author_id, author_name, base_price, currency, file_ref, file_format, status)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {ITEM_COLUMNS}
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(
                sql,
                (
                    title,
                    author_id,
                    author_name,
                    base_price,
                    currency,
                    file_ref,
                    file_format,
                    ItemStatus.DRAFT.value,
                ),
            )
            row = cursor.fetchone()
            conn.commit()
        return to_item(row)

    def get_item(self, item_id: str) -> CatalogItem | None:
        sql = f"SELECT {ITEM_COLUMNS} FROM ebooks WHERE id = %s"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (item_id,))
            row = cursor.fetchone()
        return to_item(row) if row is not None else None

    def list_published(self, limit: int, offset: int) -> list[CatalogItem]:
        sql = f"""
            SELECT {ITEM_COLUMNS} FROM ebooks
            WHERE status = %s
            ORDER BY created_at DESC
            LIMIT %s OFFSET %s
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (ItemStatus.PUBLISHED.value, limit, offset))
            rows = cursor.fetchall()
        return [to_item(row) for row in rows]

    def transition_item(
        self,
        item_id: str,
        from_status: ItemStatus,
        to_status: ItemStatus,
        reviewed_by: str | None = None,
        notes: str | None = None,
    ) -> CatalogItem | None:
        """
        Conditionally move an item between states.

        The WHERE status = from_status clause makes the transition
        one-way and race-free: a second reviewer matches no row.
        """
        sql = f"""
            UPDATE ebooks
            SET status = %s,
                reviewed_by = COALESCE(%s, reviewed_by),
                reviewed_at = CASE WHEN %s::text IS NULL THEN reviewed_at ELSE NOW() END,
                admin_notes = COALESCE(%s, admin_notes)
            WHERE id = %s AND status = %s
            RETURNING {ITEM_COLUMNS}
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(
                sql,
                (to_status.value, reviewed_by, reviewed_by, notes, item_id, from_status.value),
            )
            row = cursor.fetchone()
            conn.commit()
        return to_item(row) if row is not None else None
