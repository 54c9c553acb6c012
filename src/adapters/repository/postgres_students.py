"""
PostgreSQL student repository - Implements StudentRepository protocol.

Concurrency Design:
------------------
Every guarded transition is one conditional UPDATE whose WHERE clause
restates the guard (status, is_converted). Postgres re-checks the
WHERE clause after waiting on a concurrent writer's row lock, so when
an admin click and a scheduler sweep race on the same record, the
loser matches zero rows and gets None back.

convert_student runs the guard, the account INSERT and the
back-reference UPDATE in one transaction. If the account INSERT fails
(email already taken) the whole transaction rolls back and the record
stays unconverted for the next sweep. An optional statement_timeout,
local to that transaction, bounds how long one conversion can block.
"""

import logging
from datetime import datetime

from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from src.domain.exceptions import AccountConflict
from src.domain.models import NewStudent, StudentRecord, StudentStats, UserAccount
from src.domain.ports import CONVERTIBLE_STATUSES, VerificationStatus

logger = logging.getLogger(__name__)

STUDENT_COLUMNS = """
    id, email, first_name, last_name, country, password_hash, university_name,
    academic_branch, year_of_joining, expected_graduation, document_ref, document_type,
    verification_status, admin_notes, verified_by, verified_at, is_active, is_converted,
    converted_user_id, conversion_date, admin_extension_count, last_extension_date,
    conversion_scheduled_for, graduation_completed, graduation_completion_date, created_at
"""

USER_COLUMNS = (
    "id, email, first_name, last_name, password_hash, location, source_student_id, created_at"
)

_CONVERTIBLE = [status.value for status in CONVERTIBLE_STATUSES]


def to_student(row: dict) -> StudentRecord:
    return StudentRecord(
        id=row["id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        country=row["country"],
        password_hash=row["password_hash"],
        university_name=row["university_name"],
        academic_branch=row["academic_branch"],
        year_of_joining=row["year_of_joining"],
        expected_graduation=row["expected_graduation"],
        document_ref=row["document_ref"],
        document_type=row["document_type"],
        verification_status=VerificationStatus(row["verification_status"]),
        admin_notes=row["admin_notes"],
        verified_by=row["verified_by"],
        verified_at=row["verified_at"],
        is_active=row["is_active"],
        is_converted=row["is_converted"],
        converted_user_id=row["converted_user_id"],
        conversion_date=row["conversion_date"],
        admin_extension_count=row["admin_extension_count"],
        last_extension_date=row["last_extension_date"],
        conversion_scheduled_for=row["conversion_scheduled_for"],
        graduation_completed=row["graduation_completed"],
        graduation_completion_date=row["graduation_completion_date"],
        created_at=row["created_at"],
    )


def to_user(row: dict) -> UserAccount:
    return UserAccount(
        id=row["id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        password_hash=row["password_hash"],
        location=row["location"],
        source_student_id=row["source_student_id"],
        created_at=row["created_at"],
    )


class PostgresStudentRepository:
    """
    Implements StudentRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool, conversion_timeout_ms: int | None = None) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
            conversion_timeout_ms: statement_timeout applied inside each
                conversion transaction; None leaves the server default
        """
        self._pool = pool
        self._conversion_timeout_ms = conversion_timeout_ms

    def create_student(self, student: NewStudent) -> StudentRecord | None:
        """
        Insert a PENDING record.

        The UNIQUE constraint on email with ON CONFLICT DO NOTHING makes
        concurrent registrations for one email resolve to a single row.
        """
        sql = f"""
            INSERT INTO student_users (
                email, password_hash, first_name, last_name, country, university_name,
                academic_branch, year_of_joining, expected_graduation, document_ref,
                document_type, verification_status, conversion_scheduled_for
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (email) DO NOTHING
            RETURNING {STUDENT_COLUMNS}
        """

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(
                sql,
                (
                    student.email,
                    student.password_hash,
                    student.first_name,
                    student.last_name,
                    student.country,
                    student.university_name,
                    student.academic_branch,
                    student.year_of_joining,
                    student.expected_graduation,
                    student.document_ref,
                    student.document_type,
                    VerificationStatus.PENDING.value,
                    student.conversion_scheduled_for,
                ),
            )
            row = cursor.fetchone()
            conn.commit()
        return to_student(row) if row is not None else None

    def get_student(self, student_id: str) -> StudentRecord | None:
        sql = f"SELECT {STUDENT_COLUMNS} FROM student_users WHERE id = %s"
        return self._fetch_one(sql, (student_id,))

    def find_privileged(self, email: str) -> StudentRecord | None:
        sql = f"""
            SELECT {STUDENT_COLUMNS} FROM student_users
            WHERE email = %s
              AND verification_status = %s
              AND is_active = TRUE
              AND is_converted = FALSE
        """
        return self._fetch_one(sql, (email, VerificationStatus.APPROVED.value))

    def list_by_status(self, status: VerificationStatus) -> list[StudentRecord]:
        sql = f"""
            SELECT {STUDENT_COLUMNS} FROM student_users
            WHERE verification_status = %s
            ORDER BY created_at
        """
        return self._fetch_all(sql, (status.value,))

    def review_student(
        self,
        student_id: str,
        status: VerificationStatus,
        admin_id: str,
        notes: str | None,
    ) -> StudentRecord | None:
        sql = f"""
            UPDATE student_users
            SET verification_status = %s, admin_notes = %s, verified_by = %s, verified_at = NOW()
            WHERE id = %s AND verification_status = %s
            RETURNING {STUDENT_COLUMNS}
        """
        params = (status.value, notes, admin_id, student_id, VerificationStatus.PENDING.value)
        return self._update_one(sql, params)

    def extend_student(self, student_id: str, years: int) -> StudentRecord | None:
        sql = f"""
            UPDATE student_users
            SET admin_extension_count = admin_extension_count + 1,
                last_extension_date = NOW(),
                conversion_scheduled_for =
                    COALESCE(conversion_scheduled_for, created_at + INTERVAL '3 years')
                    + make_interval(years => %s)
            WHERE id = %s AND verification_status = %s AND is_converted = FALSE
            RETURNING {STUDENT_COLUMNS}
        """
        params = (years, student_id, VerificationStatus.APPROVED.value)
        return self._update_one(sql, params)

    def mark_graduated(self, student_id: str) -> StudentRecord | None:
        sql = f"""
            UPDATE student_users
            SET verification_status = %s,
                graduation_completed = TRUE,
                graduation_completion_date = NOW()
            WHERE id = %s AND verification_status = %s AND is_converted = FALSE
            RETURNING {STUDENT_COLUMNS}
        """
        params = (
            VerificationStatus.GRADUATED.value,
            student_id,
            VerificationStatus.APPROVED.value,
        )
        return self._update_one(sql, params)

    def convert_student(self, student_id: str) -> UserAccount | None:
        """
        Convert a student into a regular account in one transaction.

        Steps (all-or-nothing):
        1. Conditional UPDATE flips is_converted; zero rows means the
           guard refused (already converted, wrong status, missing)
        2. INSERT the regular account carrying email, names and hash
        3. Stamp converted_user_id on the student record

        Raises:
            AccountConflict: If a regular account already owns the email
        """
        guard_sql = f"""
            UPDATE student_users
            SET is_converted = TRUE, is_active = FALSE, conversion_date = NOW()
            WHERE id = %s AND is_converted = FALSE AND verification_status = ANY(%s)
            RETURNING {STUDENT_COLUMNS}
        """

        insert_sql = f"""
            INSERT INTO users (email, first_name, last_name, password_hash, location, source_student_id)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING {USER_COLUMNS}
        """

        stamp_sql = "UPDATE student_users SET converted_user_id = %s WHERE id = %s"

        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            if self._conversion_timeout_ms:
                # is_local=true scopes the timeout to this transaction
                cursor.execute(
                    "SELECT set_config('statement_timeout', %s, true)",
                    (str(self._conversion_timeout_ms),),
                )

            cursor.execute(guard_sql, (student_id, _CONVERTIBLE))
            row = cursor.fetchone()
            if row is None:
                conn.rollback()
                return None

            student = to_student(row)
            try:
                cursor.execute(
                    insert_sql,
                    (
                        student.email,
                        student.first_name,
                        student.last_name,
                        student.password_hash,
                        student.university_name or student.country,
                        student.id,
                    ),
                )
            except errors.UniqueViolation:
                conn.rollback()
                raise AccountConflict(
                    f"A regular account already exists for {student.email}"
                ) from None

            account = to_user(cursor.fetchone())
            cursor.execute(stamp_sql, (account.id, student.id))
            conn.commit()

        return account

    def list_eligible_for_conversion(self, now: datetime) -> list[StudentRecord]:
        sql = f"""
            SELECT {STUDENT_COLUMNS} FROM student_users
            WHERE is_converted = FALSE
              AND verification_status = ANY(%s)
              AND (graduation_completed = TRUE OR conversion_scheduled_for <= %s)
            ORDER BY conversion_scheduled_for NULLS LAST
        """
        return self._fetch_all(sql, (_CONVERTIBLE, now))

    def student_stats(self, now: datetime) -> StudentStats:
        sql = """
            SELECT
                COUNT(*) FILTER (WHERE verification_status = ANY(%(convertible)s)),
                COUNT(*) FILTER (
                    WHERE verification_status = %(approved)s
                      AND is_active = TRUE AND is_converted = FALSE
                ),
                COUNT(*) FILTER (WHERE is_converted = TRUE),
                COUNT(*) FILTER (
                    WHERE is_converted = FALSE
                      AND verification_status = ANY(%(convertible)s)
                      AND (graduation_completed = TRUE OR conversion_scheduled_for <= %(now)s)
                ),
                COUNT(*) FILTER (WHERE admin_extension_count > 0)
            FROM student_users
        """
        params = {
            "convertible": _CONVERTIBLE,
            "approved": VerificationStatus.APPROVED.value,
            "now": now,
        }

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            verified, active, converted, eligible, extended = cursor.fetchone()

        return StudentStats(
            verified_students=verified,
            active_students=active,
            converted_students=converted,
            eligible_for_conversion=eligible,
            extensions_granted=extended,
        )

    def _fetch_one(self, sql: str, params: tuple) -> StudentRecord | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, params)
            row = cursor.fetchone()
        return to_student(row) if row is not None else None

    def _fetch_all(self, sql: str, params: tuple) -> list[StudentRecord]:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, params)
            rows = cursor.fetchall()
        return [to_student(row) for row in rows]

    def _update_one(self, sql: str, params: tuple) -> StudentRecord | None:
        with self._pool.connection() as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, params)
            row = cursor.fetchone()
            conn.commit()
        return to_student(row) if row is not None else None
