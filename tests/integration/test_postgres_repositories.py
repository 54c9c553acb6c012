"""
Integration tests for the PostgreSQL repositories.

Tests repository operations against a real PostgreSQL database.
Requires PostgreSQL at DATABASE_URL; skipped otherwise.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from psycopg import errors
from psycopg_pool import ConnectionPool

from src.adapters.repository import (
    PostgresCatalogRepository,
    PostgresPurchaseRepository,
    PostgresSettingsRepository,
    PostgresStudentRepository,
)
from src.domain.exceptions import AccountConflict
from src.domain.models import CatalogItem, NewPurchase, NewStudent, PriceBreakdown
from src.domain.platform_settings import DEFAULT_SETTINGS
from src.domain.ports import ItemStatus, PurchaseStatus, VerificationStatus

pytestmark = pytest.mark.integration

NOW = datetime.now(timezone.utc)


@pytest.fixture
def settings_repository(pool: ConnectionPool) -> PostgresSettingsRepository:
    return PostgresSettingsRepository(pool)


@pytest.fixture
def catalog(pool: ConnectionPool) -> PostgresCatalogRepository:
    return PostgresCatalogRepository(pool)


@pytest.fixture
def purchases(pool: ConnectionPool) -> PostgresPurchaseRepository:
    return PostgresPurchaseRepository(pool)


@pytest.fixture
def students(pool: ConnectionPool) -> PostgresStudentRepository:
    return PostgresStudentRepository(pool, conversion_timeout_ms=5000)


def published_item(catalog: PostgresCatalogRepository, price: str = "20.00") -> CatalogItem:
    item = catalog.create_item(
        title="Soil Science",
        author_id="author-1",
        author_name="Asha Rao",
        base_price=Decimal(price),
        currency="USD",
        file_ref="ebooks/soil.pdf",
        file_format="pdf",
    )
    catalog.transition_item(item.id, ItemStatus.DRAFT, ItemStatus.SUBMITTED)
    return catalog.transition_item(
        item.id, ItemStatus.SUBMITTED, ItemStatus.PUBLISHED, reviewed_by="admin@leafledger.local"
    )


def new_purchase(item_id: str, email: str = "buyer@example.com", n: int = 1) -> NewPurchase:
    return NewPurchase(
        order_id=f"ORD-20260301-{n:08X}",
        buyer_email=email,
        student_id=None,
        item_id=item_id,
        pricing=PriceBreakdown(
            original_price=Decimal("20.00"),
            discount=Decimal("3.00"),
            platform_fee=Decimal("1.70"),
            author_earnings=Decimal("15.30"),
            final_price=Decimal("17.00"),
        ),
        currency="USD",
        credential=f"{n:032x}",
    )


def new_student(email: str = "meera@university.edu", scheduled: datetime | None = None) -> NewStudent:
    return NewStudent(
        email=email,
        password_hash="$2b$10$abcdefghijklmnopqrstuuZ0123456789abcdefghijklmnopqrs",
        first_name="Meera",
        last_name="Iyer",
        country="India",
        university_name="IIT Madras",
        academic_branch="Agriculture",
        year_of_joining=2024,
        expected_graduation="2027",
        document_ref="student-documents/abc.pdf",
        document_type="pdf",
        conversion_scheduled_for=scheduled or NOW + timedelta(days=365),
    )


class TestSettingsRepository:
    """Tests for PostgresSettingsRepository."""

    def test_insert_missing_is_idempotent(
        self, settings_repository: PostgresSettingsRepository
    ) -> None:
        first = settings_repository.insert_missing(list(DEFAULT_SETTINGS))
        second = settings_repository.insert_missing(list(DEFAULT_SETTINGS))

        assert first == len(DEFAULT_SETTINGS)
        assert second == 0
        assert len(settings_repository.list_settings()) == len(DEFAULT_SETTINGS)

    def test_insert_missing_keeps_admin_values(
        self, settings_repository: PostgresSettingsRepository
    ) -> None:
        settings_repository.insert_missing(list(DEFAULT_SETTINGS))
        settings_repository.update_setting("student_discount_percent", "25", "admin@leafledger.local")

        settings_repository.insert_missing(list(DEFAULT_SETTINGS))

        assert settings_repository.get_setting("student_discount_percent").value == "25"

    def test_update_bumps_version_and_audit(
        self, settings_repository: PostgresSettingsRepository
    ) -> None:
        settings_repository.insert_missing(list(DEFAULT_SETTINGS))

        updated = settings_repository.update_setting(
            "platform_fee_value", "12", "admin@leafledger.local"
        )

        assert updated.value == "12"
        assert updated.version == 2
        assert updated.updated_by == "admin@leafledger.local"

    def test_update_unknown_key_returns_none(
        self, settings_repository: PostgresSettingsRepository
    ) -> None:
        assert settings_repository.update_setting("nope", "1", "admin") is None
        assert settings_repository.get_setting("nope") is None


class TestCatalogRepository:
    """Tests for PostgresCatalogRepository."""

    def test_create_starts_as_draft(self, catalog: PostgresCatalogRepository) -> None:
        item = catalog.create_item(
            title="Seed Saving",
            author_id="author-2",
            author_name="Ravi",
            base_price=Decimal("9.99"),
            currency="USD",
            file_ref="ebooks/seeds.epub",
            file_format="epub",
        )

        assert item.status == ItemStatus.DRAFT
        assert item.base_price == Decimal("9.99")
        assert item.total_sales == 0
        assert catalog.list_published(50, 0) == []

    def test_transition_requires_expected_state(self, catalog: PostgresCatalogRepository) -> None:
        item = published_item(catalog)

        assert item.status == ItemStatus.PUBLISHED
        assert item.reviewed_by == "admin@leafledger.local"
        assert item.reviewed_at is not None
        # Already published: a second review matches no row
        assert (
            catalog.transition_item(item.id, ItemStatus.SUBMITTED, ItemStatus.REJECTED, "admin")
            is None
        )
        assert catalog.get_item(item.id).status == ItemStatus.PUBLISHED

    def test_list_published_pages(self, catalog: PostgresCatalogRepository) -> None:
        for _ in range(3):
            published_item(catalog)

        assert len(catalog.list_published(2, 0)) == 2
        assert len(catalog.list_published(2, 2)) == 1


class TestPurchaseRepository:
    """Tests for PostgresPurchaseRepository."""

    def test_complete_updates_aggregates(
        self, catalog: PostgresCatalogRepository, purchases: PostgresPurchaseRepository
    ) -> None:
        item = published_item(catalog)
        purchase = purchases.create_purchase(new_purchase(item.id))

        completed = purchases.complete_purchase(purchase.id, "txn-1")

        assert completed.status == PurchaseStatus.COMPLETED
        assert completed.transaction_id == "txn-1"
        assert completed.completed_at is not None
        stored = catalog.get_item(item.id)
        assert stored.total_sales == 1
        assert stored.total_revenue == Decimal("17.00")
        assert stored.author_earnings == Decimal("15.30")
        assert stored.platform_earnings == Decimal("1.70")

    def test_second_completion_returns_none(
        self, catalog: PostgresCatalogRepository, purchases: PostgresPurchaseRepository
    ) -> None:
        item = published_item(catalog)
        purchase = purchases.create_purchase(new_purchase(item.id))
        purchases.complete_purchase(purchase.id, "txn-1")

        assert purchases.complete_purchase(purchase.id, "txn-2") is None
        assert purchases.get_purchase(purchase.id).transaction_id == "txn-1"
        assert catalog.get_item(item.id).total_sales == 1

    def test_failed_purchase_cannot_complete(
        self, catalog: PostgresCatalogRepository, purchases: PostgresPurchaseRepository
    ) -> None:
        item = published_item(catalog)
        purchase = purchases.create_purchase(new_purchase(item.id))

        failed = purchases.fail_purchase(purchase.id, "card declined")

        assert failed.status == PurchaseStatus.FAILED
        assert failed.failure_reason == "card declined"
        assert purchases.complete_purchase(purchase.id, "txn-1") is None
        assert catalog.get_item(item.id).total_sales == 0

    def test_attach_payment(
        self, catalog: PostgresCatalogRepository, purchases: PostgresPurchaseRepository
    ) -> None:
        item = published_item(catalog)
        purchase = purchases.create_purchase(new_purchase(item.id))

        purchases.attach_payment(purchase.id, "manual", "manual_ORD")

        stored = purchases.get_purchase(purchase.id)
        assert stored.payment_provider == "manual"
        assert stored.payment_reference == "manual_ORD"

    def test_completed_credentials_scoped_to_buyer_and_item(
        self, catalog: PostgresCatalogRepository, purchases: PostgresPurchaseRepository
    ) -> None:
        item = published_item(catalog)
        other = published_item(catalog)
        mine = purchases.create_purchase(new_purchase(item.id, n=1))
        pending = purchases.create_purchase(new_purchase(item.id, n=2))
        elsewhere = purchases.create_purchase(new_purchase(other.id, n=3))
        purchases.complete_purchase(mine.id, "txn-1")
        purchases.complete_purchase(elsewhere.id, "txn-3")

        credentials = purchases.completed_credentials("buyer@example.com", item.id)

        assert credentials == [mine.credential]
        assert pending.credential not in credentials
        assert purchases.completed_credentials("other@example.com", item.id) == []

    def test_unreconciled_amounts_rejected_by_database(
        self, catalog: PostgresCatalogRepository, purchases: PostgresPurchaseRepository
    ) -> None:
        item = published_item(catalog)
        broken = new_purchase(item.id)
        broken.pricing = PriceBreakdown(
            Decimal("20.00"), Decimal("3.00"), Decimal("1.70"), Decimal("15.00"), Decimal("17.00")
        )

        with pytest.raises(errors.CheckViolation, match="purchases_reconciled"):
            purchases.create_purchase(broken)

    def test_recompute_restores_drifted_aggregates(
        self,
        pool: ConnectionPool,
        catalog: PostgresCatalogRepository,
        purchases: PostgresPurchaseRepository,
    ) -> None:
        item = published_item(catalog)
        purchase = purchases.create_purchase(new_purchase(item.id))
        purchases.complete_purchase(purchase.id, "txn-1")
        with pool.connection() as conn:
            conn.execute("UPDATE ebooks SET total_sales = 99 WHERE id = %s", (item.id,))
            conn.commit()

        restored = purchases.recompute_item_stats(item.id)

        assert restored.total_sales == 1
        assert restored.total_revenue == Decimal("17.00")

    def test_recompute_unknown_item_returns_none(
        self, purchases: PostgresPurchaseRepository
    ) -> None:
        assert purchases.recompute_item_stats("missing") is None


class TestStudentRepository:
    """Tests for PostgresStudentRepository."""

    def test_create_duplicate_email_returns_none(self, students: PostgresStudentRepository) -> None:
        created = students.create_student(new_student())

        assert created.verification_status == VerificationStatus.PENDING
        assert students.create_student(new_student()) is None

    def test_review_only_from_pending(self, students: PostgresStudentRepository) -> None:
        student = students.create_student(new_student())

        approved = students.review_student(
            student.id, VerificationStatus.APPROVED, "admin@leafledger.local", "ok"
        )

        assert approved.verification_status == VerificationStatus.APPROVED
        assert approved.verified_by == "admin@leafledger.local"
        assert approved.verified_at is not None
        assert students.review_student(student.id, VerificationStatus.REJECTED, "a", None) is None

    def test_find_privileged_requires_approval(self, students: PostgresStudentRepository) -> None:
        student = students.create_student(new_student())
        assert students.find_privileged("meera@university.edu") is None

        students.review_student(student.id, VerificationStatus.APPROVED, "admin", None)

        assert students.find_privileged("meera@university.edu").id == student.id

    def test_extend_pushes_conversion_date(self, students: PostgresStudentRepository) -> None:
        student = students.create_student(new_student())
        students.review_student(student.id, VerificationStatus.APPROVED, "admin", None)

        extended = students.extend_student(student.id, 1)

        assert extended.admin_extension_count == 1
        assert extended.last_extension_date is not None
        assert extended.conversion_scheduled_for - student.conversion_scheduled_for >= timedelta(
            days=365
        )

    def test_extend_pending_student_refused(self, students: PostgresStudentRepository) -> None:
        student = students.create_student(new_student())
        assert students.extend_student(student.id, 1) is None

    def test_convert_creates_account_once(self, students: PostgresStudentRepository) -> None:
        student = students.create_student(new_student())
        students.review_student(student.id, VerificationStatus.APPROVED, "admin", None)

        account = students.convert_student(student.id)

        assert account.email == "meera@university.edu"
        assert account.password_hash == student.password_hash
        assert account.source_student_id == student.id
        stored = students.get_student(student.id)
        assert stored.is_converted is True
        assert stored.is_active is False
        assert stored.converted_user_id == account.id
        assert students.convert_student(student.id) is None

    def test_convert_pending_student_refused(self, students: PostgresStudentRepository) -> None:
        student = students.create_student(new_student())
        assert students.convert_student(student.id) is None
        assert students.get_student(student.id).is_converted is False

    def test_convert_with_taken_email_rolls_back(
        self, pool: ConnectionPool, students: PostgresStudentRepository
    ) -> None:
        student = students.create_student(new_student())
        students.review_student(student.id, VerificationStatus.APPROVED, "admin", None)
        with pool.connection() as conn:
            conn.execute(
                "INSERT INTO users (email, first_name, last_name, password_hash) "
                "VALUES (%s, 'Existing', 'User', 'hash')",
                ("meera@university.edu",),
            )
            conn.commit()

        with pytest.raises(AccountConflict):
            students.convert_student(student.id)

        stored = students.get_student(student.id)
        assert stored.is_converted is False
        assert stored.is_active is True

    def test_graduated_student_is_eligible(self, students: PostgresStudentRepository) -> None:
        student = students.create_student(new_student())
        students.review_student(student.id, VerificationStatus.APPROVED, "admin", None)
        assert students.list_eligible_for_conversion(NOW) == []

        graduated = students.mark_graduated(student.id)

        assert graduated.verification_status == VerificationStatus.GRADUATED
        assert graduated.graduation_completed is True
        assert [s.id for s in students.list_eligible_for_conversion(NOW)] == [student.id]

    def test_eligibility_excludes_pending_and_rejected(
        self, students: PostgresStudentRepository
    ) -> None:
        past = NOW - timedelta(days=1)
        due = students.create_student(new_student("due@university.edu", scheduled=past))
        students.create_student(new_student("pending@university.edu", scheduled=past))
        rejected = students.create_student(new_student("rejected@university.edu", scheduled=past))
        students.review_student(due.id, VerificationStatus.APPROVED, "admin", None)
        students.review_student(rejected.id, VerificationStatus.REJECTED, "admin", None)

        eligible = students.list_eligible_for_conversion(NOW)

        assert [s.id for s in eligible] == [due.id]

    def test_stats(self, students: PostgresStudentRepository) -> None:
        past = NOW - timedelta(days=1)
        a = students.create_student(new_student("a@university.edu"))
        b = students.create_student(new_student("b@university.edu", scheduled=past))
        c = students.create_student(new_student("c@university.edu"))
        students.create_student(new_student("d@university.edu"))
        for student in (a, b, c):
            students.review_student(student.id, VerificationStatus.APPROVED, "admin", None)
        students.extend_student(a.id, 1)
        students.convert_student(c.id)

        stats = students.student_stats(NOW)

        assert stats.verified_students == 3
        assert stats.active_students == 2
        assert stats.converted_students == 1
        assert stats.eligible_for_conversion == 1
        assert stats.extensions_granted == 1
