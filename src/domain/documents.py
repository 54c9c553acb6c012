"""
Identity-proof document policy.

Allowed MIME types and the size ceiling are platform settings, so
administrators can change them without a deploy.
"""

from dataclasses import dataclass

from .exceptions import ValidationError
from .models import UploadedDocument
from .platform_settings import (
    STUDENT_DOCUMENT_MAX_MB,
    STUDENT_DOCUMENT_TYPES,
    PlatformSettingsService,
)

BYTES_PER_MB = 1024 * 1024


@dataclass
class SettingsDocumentValidator:
    """Implements DocumentValidator using the student_document_* settings."""

    settings: PlatformSettingsService

    def validate(self, document: UploadedDocument) -> None:
        allowed_types = self.settings.get_list(STUDENT_DOCUMENT_TYPES)
        max_mb = self.settings.get_decimal(STUDENT_DOCUMENT_MAX_MB)

        if document.content_type.lower() not in allowed_types:
            raise ValidationError(
                "Invalid file type. Only PDF and image files (JPG, PNG) are allowed."
            )
        if document.size == 0:
            raise ValidationError("Student document is empty")
        if document.size > max_mb * BYTES_PER_MB:
            raise ValidationError(f"File too large. Maximum size is {max_mb}MB.")


def document_type_for(content_type: str) -> str:
    return "pdf" if "pdf" in content_type.lower() else "image"
