"""
Shared fixtures for adversarial tests.

Provides common test infrastructure for race condition and credential
probing tests. Skipped when PostgreSQL cannot be reached.
"""

from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import bcrypt
import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository import (
    PostgresCatalogRepository,
    PostgresSettingsRepository,
    PostgresStudentRepository,
    run_migrations,
)
from src.config.settings import get_settings
from src.domain.models import CatalogItem, NewStudent, StudentRecord
from src.domain.platform_settings import PlatformSettingsService
from src.domain.ports import ItemStatus, VerificationStatus

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for adversarial tests."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=10,
        open=False,
    )
    try:
        pool.open(wait=True, timeout=5)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")

    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Empty every table and restore default settings before each test."""
    with pool.connection() as conn:
        for table in ("purchases", "ebooks", "student_users", "users", "platform_settings"):
            conn.execute(f"DELETE FROM {table}")
        conn.commit()
    PlatformSettingsService(PostgresSettingsRepository(pool)).bootstrap()
    yield


@pytest.fixture
def make_published_item(pool: ConnectionPool) -> Callable[..., CatalogItem]:
    """Factory for PUBLISHED catalog items."""
    catalog = PostgresCatalogRepository(pool)

    def make(base_price: str = "20.00") -> CatalogItem:
        item = catalog.create_item(
            title="Soil Science",
            author_id="author-1",
            author_name="Asha Rao",
            base_price=Decimal(base_price),
            currency="USD",
            file_ref="ebooks/soil.pdf",
            file_format="pdf",
        )
        catalog.transition_item(item.id, ItemStatus.DRAFT, ItemStatus.SUBMITTED)
        return catalog.transition_item(
            item.id, ItemStatus.SUBMITTED, ItemStatus.PUBLISHED, "admin"
        )

    return make


@pytest.fixture
def make_approved_student(pool: ConnectionPool) -> Callable[..., StudentRecord]:
    """Factory for APPROVED students, due for conversion by default."""
    students = PostgresStudentRepository(pool)
    password_hash = bcrypt.hashpw(b"secure123", bcrypt.gensalt(10)).decode()

    def make(email: str, overdue: bool = True) -> StudentRecord:
        now = datetime.now(timezone.utc)
        scheduled = now - timedelta(days=1) if overdue else now + timedelta(days=365)
        student = students.create_student(
            NewStudent(
                email=email,
                password_hash=password_hash,
                first_name="Meera",
                last_name="Iyer",
                country="India",
                university_name="IIT Madras",
                academic_branch="Agriculture",
                year_of_joining=2022,
                expected_graduation=None,
                document_ref="student-documents/id.pdf",
                document_type="pdf",
                conversion_scheduled_for=scheduled,
            )
        )
        return students.review_student(student.id, VerificationStatus.APPROVED, "admin", None)

    return make
