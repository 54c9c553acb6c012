"""
Student verification domain service - Verification State Machine.

Students register with an identity-proof document, an administrator
reviews the application, and approved students eventually become
regular accounts.

Verification State Machine
==========================

States:
- PENDING: Registered, awaiting admin review
- APPROVED: Verified student, entitled to the student discount
- REJECTED: Terminal, application refused
- GRADUATED: Graduation recorded, awaiting conversion

Valid Transitions (guarded by conditional updates in the repository):
    PENDING  -> APPROVED | REJECTED   (review, admin-only)
    APPROVED -> GRADUATED             (mark_graduated)
    APPROVED | GRADUATED -> converted (convert, sets is_converted)

Extensions keep the status and push conversion_scheduled_for
forward. A converted record never reverts and cannot be extended,
graduated or converted again.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePosixPath

import bcrypt

from .credentials import normalize_email
from .documents import document_type_for
from .exceptions import (
    EmailAlreadyRegistered,
    InvalidTransition,
    StudentNotFound,
    ValidationError,
)
from .models import (
    NewStudent,
    StudentRecord,
    StudentRegistration,
    StudentStats,
    UploadedDocument,
    UserAccount,
)
from .ports import (
    BlobStore,
    DocumentValidator,
    Notifier,
    StudentRepository,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

# Students convert this many years after registering at the latest
BASE_CONVERSION_YEARS = 3

# bcrypt only hashes the first 72 bytes
MAX_PASSWORD_BYTES = 72

REVIEW_DECISIONS = (VerificationStatus.APPROVED, VerificationStatus.REJECTED)

DEFAULT_REJECTION_REASON = "Application does not meet requirements"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def add_years(moment: datetime, years: int) -> datetime:
    """Shift by whole years; February 29 falls back to February 28."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


def calculate_conversion_date(
    registered_at: datetime,
    expected_graduation: str | None,
    extension_count: int = 0,
    extension_years: int = 1,
) -> datetime:
    """
    Date on which a student becomes due for conversion.

    Three years after registration, or June 30 of the expected
    graduation year when that comes first, plus one extension
    interval per admin extension.
    """
    conversion = add_years(registered_at, BASE_CONVERSION_YEARS)

    if expected_graduation and expected_graduation.strip().isdigit():
        graduation = datetime(
            int(expected_graduation.strip()), 6, 30, tzinfo=registered_at.tzinfo
        )
        if graduation < conversion:
            conversion = graduation

    return add_years(conversion, extension_count * extension_years)


@dataclass
class VerificationService:
    """
    Domain service driving the student verification lifecycle.

    Guards live in the repository's conditional updates; this service
    turns a refused guard into InvalidTransition naming the reason.
    """

    repository: StudentRepository
    notifier: Notifier
    blob_store: BlobStore
    validator: DocumentValidator
    extension_years: int = 1
    bcrypt_cost: int = 10
    clock: Callable[[], datetime] = field(default=utcnow)

    def submit(self, registration: StudentRegistration, document: UploadedDocument) -> StudentRecord:
        """
        Register a student in PENDING state.

        Args:
            registration: Student details (email is normalized here)
            document: Identity-proof upload

        Returns:
            The new PENDING record

        Raises:
            ValidationError: If the document or fields break policy
            EmailAlreadyRegistered: If the email already has a record
        """
        email = normalize_email(registration.email)
        if not email:
            raise ValidationError("Email is required")
        if len(registration.password) < 8:
            raise ValidationError("Password must be at least 8 characters")
        if len(registration.password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")

        self.validator.validate(document)
        password_hash = self._hash_password(registration.password)

        suffix = PurePosixPath(document.filename).suffix.lower()
        document_ref = self.blob_store.put(
            f"student-documents/{uuid.uuid4().hex}{suffix}", document.content
        )

        try:
            student = self._create_student(
                registration, email, password_hash, document_ref, document
            )
        except Exception:
            self.blob_store.delete(document_ref)
            raise
        if student is None:
            self.blob_store.delete(document_ref)
            raise EmailAlreadyRegistered(email)

        logger.info("Student %s registered, verification pending", student.id)
        self._notify(self.notifier.send_registration_received, student.email, student.first_name)
        return student

    def _create_student(
        self,
        registration: StudentRegistration,
        email: str,
        password_hash: str,
        document_ref: str,
        document: UploadedDocument,
    ) -> StudentRecord | None:
        return self.repository.create_student(
            NewStudent(
                email=email,
                password_hash=password_hash,
                first_name=registration.first_name.strip(),
                last_name=registration.last_name.strip(),
                country=registration.country.strip(),
                university_name=registration.university_name.strip(),
                academic_branch=registration.academic_branch.strip(),
                year_of_joining=registration.year_of_joining,
                expected_graduation=registration.expected_graduation,
                document_ref=document_ref,
                document_type=document_type_for(document.content_type),
                conversion_scheduled_for=calculate_conversion_date(
                    self.clock(), registration.expected_graduation
                ),
            )
        )

    def review(
        self,
        student_id: str,
        decision: VerificationStatus,
        admin_id: str,
        notes: str | None = None,
    ) -> StudentRecord:
        """
        Approve or reject a PENDING application (admin-only).

        Raises:
            ValidationError: If decision is not APPROVED or REJECTED
            StudentNotFound: If the record does not exist
            InvalidTransition: If the record is not PENDING
        """
        if decision not in REVIEW_DECISIONS:
            raise ValidationError("Status must be 'approved' or 'rejected'")

        student = self.repository.review_student(student_id, decision, admin_id, notes)
        if student is None:
            current = self.get(student_id)
            raise InvalidTransition(
                f"Student is {current.verification_status.value}; "
                "only pending applications can be reviewed"
            )

        logger.info("Student %s %s by %s", student_id, decision.value, admin_id)
        if decision == VerificationStatus.APPROVED:
            self._notify(self.notifier.send_approval, student.email, student.first_name)
        else:
            self._notify(
                self.notifier.send_rejection,
                student.email,
                student.first_name,
                notes or DEFAULT_REJECTION_REASON,
            )
        return student

    def extend(self, student_id: str, admin_id: str) -> StudentRecord:
        """
        Grant one extension interval to an APPROVED, unconverted student.

        Raises:
            StudentNotFound: If the record does not exist
            InvalidTransition: If the record is converted or not APPROVED
        """
        student = self.repository.extend_student(student_id, self.extension_years)
        if student is None:
            current = self.get(student_id)
            if current.is_converted:
                raise InvalidTransition("Cannot extend a converted student")
            raise InvalidTransition(
                f"Student is {current.verification_status.value}; "
                "only approved students can be extended"
            )

        logger.info(
            "Student %s extended by %s (extension %d, conversion now %s)",
            student_id,
            admin_id,
            student.admin_extension_count,
            student.conversion_scheduled_for,
        )
        return student

    def mark_graduated(self, student_id: str) -> StudentRecord:
        """
        Record graduation. Does not convert the account by itself.

        Raises:
            StudentNotFound: If the record does not exist
            InvalidTransition: If the record is not APPROVED
        """
        student = self.repository.mark_graduated(student_id)
        if student is None:
            current = self.get(student_id)
            if current.is_converted:
                raise InvalidTransition("Student already converted")
            raise InvalidTransition(
                f"Student is {current.verification_status.value}; "
                "only approved students can graduate"
            )

        logger.info("Student %s marked graduated", student_id)
        return student

    def convert(self, student_id: str) -> UserAccount:
        """
        Convert a student into a regular account.

        The repository runs the guard, the account insert and the
        back-reference stamp in one transaction.

        Raises:
            StudentNotFound: If the record does not exist
            InvalidTransition: If already converted or not APPROVED/GRADUATED
            AccountConflict: If a regular account already owns the email
        """
        account = self.repository.convert_student(student_id)
        if account is None:
            current = self.get(student_id)
            if current.is_converted:
                raise InvalidTransition("Student already converted")
            raise InvalidTransition(
                f"Student is {current.verification_status.value}; "
                "only approved or graduated students can be converted"
            )

        logger.info("Student %s converted to user %s", student_id, account.id)
        self._notify(self.notifier.send_conversion, account.email, account.first_name)
        return account

    def get(self, student_id: str) -> StudentRecord:
        student = self.repository.get_student(student_id)
        if student is None:
            raise StudentNotFound(student_id)
        return student

    def is_privileged(self, email: str) -> bool:
        """True if the email belongs to an approved, active, unconverted student."""
        return self.repository.find_privileged(normalize_email(email)) is not None

    def list_pending(self) -> list[StudentRecord]:
        return self.repository.list_by_status(VerificationStatus.PENDING)

    def list_eligible_for_conversion(self, now: datetime | None = None) -> list[StudentRecord]:
        return self.repository.list_eligible_for_conversion(now or self.clock())

    def stats(self) -> StudentStats:
        return self.repository.student_stats(self.clock())

    def _notify(self, send: Callable[..., None], *args: str) -> None:
        # Runs after commit; delivery failures are logged only
        try:
            send(*args)
        except Exception:
            logger.exception("Notification %s failed for %s", send.__name__, args[0])

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt with cost factor >= 10."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()
