"""
PostgreSQL purchase repository - Implements PurchaseRepository protocol.

Concurrency Design:
------------------
1. **Conditional transitions**: PENDING -> COMPLETED and PENDING -> FAILED
   are single UPDATE ... WHERE status = 'pending' statements. Under
   duplicate webhook delivery exactly one caller gets a row back.

2. **Aggregate recompute**: Item sales fields are rebuilt from the full
   set of completed purchases, inside the confirming transaction, after
   locking the item row with SELECT FOR UPDATE. Two confirmations for
   the same item serialize on that lock, and the second recompute runs
   on a fresh READ COMMITTED snapshot that includes the first.

3. **Lock order**: purchase row first, then item row, on every path.
"""

import logging

from psycopg import Cursor
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres_catalog import ITEM_COLUMNS, to_item
from src.domain.models import CatalogItem, NewPurchase, Purchase
from src.domain.ports import PurchaseStatus

logger = logging.getLogger(__name__)

PURCHASE_COLUMNS = """
    id, order_id, buyer_email, student_id, item_id, list_price, discount, platform_fee,
    author_earnings, final_price, currency, credential, status, payment_provider,
    payment_reference, transaction_id, failure_reason, created_at, completed_at
"""

QUALIFIED_ITEM_COLUMNS = ", ".join(
    "ebooks." + column.strip() for column in ITEM_COLUMNS.split(",")
)


def to_purchase(row: dict) -> Purchase:
    return Purchase(
        id=row["id"],
        order_id=row["order_id"],
        buyer_email=row["buyer_email"],
        student_id=row["student_id"],
        item_id=row["item_id"],
        list_price=row["list_price"],
        discount=row["discount"],
        platform_fee=row["platform_fee"],
        author_earnings=row["author_earnings"],
        final_price=row["final_price"],
        currency=row["currency"],
        credential=row["credential"],
        status=PurchaseStatus(row["status"]),
        payment_provider=row["payment_provider"],
        payment_reference=row["payment_reference"],
        transaction_id=row["transaction_id"],
        failure_reason=row["failure_reason"],
        created_at=row["created_at"],
        completed_at=row["completed_at"],
    )


class PostgresPurchaseRepository:
    """
    Implements PurchaseRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def create_purchase(self, purchase: NewPurchase) -> Purchase:
        sql = f"""
            INSERT INTO purchases (
                order_id, buyer_email, student_id, item_id, list_price, discount,
                platform_fee, author_earnings, final_price, currency, credential, status
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {PURCHASE_COLUMNS}
        """
        pricing = purchase.pricing

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(
                sql,
                (
                    purchase.order_id,
                    purchase.buyer_email,
                    purchase.student_id,
                    purchase.item_id,
                    pricing.original_price,
                    pricing.discount,
                    pricing.platform_fee,
                    pricing.author_earnings,
                    pricing.final_price,
                    purchase.currency,
                    purchase.credential,
                    PurchaseStatus.PENDING.value,
                ),
            )
            row = cursor.fetchone()
            conn.commit()
        return to_purchase(row)

    def attach_payment(self, purchase_id: str, provider: str, reference: str) -> None:
        sql = """
            UPDATE purchases
            SET payment_provider = %s, payment_reference = %s
            WHERE id = %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (provider, reference, purchase_id))
            conn.commit()

    def get_purchase(self, purchase_id: str) -> Purchase | None:
        sql = f"SELECT {PURCHASE_COLUMNS} FROM purchases WHERE id = %s"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (purchase_id,))
            row = cursor.fetchone()
        return to_purchase(row) if row is not None else None

    def complete_purchase(self, purchase_id: str, transaction_id: str) -> Purchase | None:
        """
        PENDING -> COMPLETED plus aggregate recompute, in one transaction.

        Returns:
            The completed purchase, or None if it was not PENDING
        """
        sql = f"""
            UPDATE purchases
            SET status = %s, transaction_id = %s, completed_at = NOW()
            WHERE id = %s AND status = %s
            RETURNING {PURCHASE_COLUMNS}
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(
                sql,
                (
                    PurchaseStatus.COMPLETED.value,
                    transaction_id,
                    purchase_id,
                    PurchaseStatus.PENDING.value,
                ),
            )
            row = cursor.fetchone()
            if row is None:
                conn.commit()
                return None

            purchase = to_purchase(row)
            self._recompute(cursor, purchase.item_id)
            conn.commit()
        return purchase

    def fail_purchase(self, purchase_id: str, reason: str | None) -> Purchase | None:
        sql = f"""
            UPDATE purchases
            SET status = %s, failure_reason = %s
            WHERE id = %s AND status = %s
            RETURNING {PURCHASE_COLUMNS}
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(
                sql,
                (
                    PurchaseStatus.FAILED.value,
                    reason,
                    purchase_id,
                    PurchaseStatus.PENDING.value,
                ),
            )
            row = cursor.fetchone()
            conn.commit()
        return to_purchase(row) if row is not None else None

    def recompute_item_stats(self, item_id: str) -> CatalogItem | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            item = self._recompute(cursor, item_id)
            conn.commit()
        return item

    def completed_credentials(self, buyer_email: str, item_id: str) -> list[str]:
        sql = """
            SELECT credential FROM purchases
            WHERE buyer_email = %s AND item_id = %s AND status = %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (buyer_email, item_id, PurchaseStatus.COMPLETED.value))
            rows = cursor.fetchall()
        return [row[0] for row in rows]

    def _recompute(self, cursor: Cursor, item_id: str) -> CatalogItem | None:
        """Rebuild item aggregates from completed purchases, holding the item lock."""
        cursor.execute("SELECT id FROM ebooks WHERE id = %s FOR UPDATE", (item_id,))
        if cursor.fetchone() is None:
            return None

        sql = f"""
            UPDATE ebooks
            SET total_sales = totals.sales,
                total_revenue = totals.revenue,
                author_earnings = totals.author_total,
                platform_earnings = totals.platform_total
            FROM (
                SELECT COUNT(*) AS sales,
                       COALESCE(SUM(purchases.final_price), 0) AS revenue,
                       COALESCE(SUM(purchases.author_earnings), 0) AS author_total,
                       COALESCE(SUM(purchases.platform_fee), 0) AS platform_total
                FROM purchases
                WHERE purchases.item_id = %s AND purchases.status = %s
            ) AS totals
            WHERE ebooks.id = %s
            RETURNING {QUALIFIED_ITEM_COLUMNS}
        """
        cursor.execute(sql, (item_id, PurchaseStatus.COMPLETED.value, item_id))
        row = cursor.fetchone()
        logger.debug("Recomputed sales aggregates for item %s", item_id)
        return to_item(row) if row is not None else None
