"""
Unit tests for the identity-proof document policy.
"""

import pytest

from src.domain.documents import SettingsDocumentValidator, document_type_for
from src.domain.exceptions import ValidationError
from src.domain.models import UploadedDocument
from src.domain.platform_settings import (
    STUDENT_DOCUMENT_MAX_MB,
    STUDENT_DOCUMENT_TYPES,
    PlatformSettingsService,
)

MB = 1024 * 1024


@pytest.fixture
def validator(settings_service: PlatformSettingsService) -> SettingsDocumentValidator:
    return SettingsDocumentValidator(settings_service)


class TestValidate:
    @pytest.mark.parametrize(
        "content_type", ["application/pdf", "image/jpeg", "image/jpg", "image/png", "IMAGE/PNG"]
    )
    def test_accepted_types(self, validator: SettingsDocumentValidator, content_type: str) -> None:
        validator.validate(UploadedDocument("proof", content_type, b"data"))

    @pytest.mark.parametrize("content_type", ["text/plain", "image/gif", "application/zip"])
    def test_rejected_types(self, validator: SettingsDocumentValidator, content_type: str) -> None:
        with pytest.raises(ValidationError, match="Invalid file type"):
            validator.validate(UploadedDocument("proof", content_type, b"data"))

    def test_empty_document_rejected(self, validator: SettingsDocumentValidator) -> None:
        with pytest.raises(ValidationError, match="empty"):
            validator.validate(UploadedDocument("proof.pdf", "application/pdf", b""))

    def test_exactly_at_limit_accepted(self, validator: SettingsDocumentValidator) -> None:
        validator.validate(UploadedDocument("proof.pdf", "application/pdf", b"x" * (10 * MB)))

    def test_over_limit_rejected(self, validator: SettingsDocumentValidator) -> None:
        with pytest.raises(ValidationError, match="File too large"):
            validator.validate(UploadedDocument("proof.pdf", "application/pdf", b"x" * (10 * MB + 1)))

    def test_limits_follow_settings(
        self, validator: SettingsDocumentValidator, settings_service: PlatformSettingsService
    ) -> None:
        settings_service.update(STUDENT_DOCUMENT_MAX_MB, "1", "admin@leafledger.local")
        settings_service.update(STUDENT_DOCUMENT_TYPES, "image/gif", "admin@leafledger.local")

        validator.validate(UploadedDocument("proof.gif", "image/gif", b"x" * MB))
        with pytest.raises(ValidationError):
            validator.validate(UploadedDocument("proof.pdf", "application/pdf", b"x"))
        with pytest.raises(ValidationError):
            validator.validate(UploadedDocument("proof.gif", "image/gif", b"x" * (MB + 1)))


def test_document_type_for() -> None:
    assert document_type_for("application/pdf") == "pdf"
    assert document_type_for("image/png") == "image"
