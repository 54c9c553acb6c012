"""
Domain layer - Pure business logic with zero framework imports.

This package contains the marketplace engine: buyer-class pricing,
download credentials, the purchase lifecycle and the student
verification state machine with its conversion scheduler. It defines
its own port interfaces for infrastructure abstraction, ensuring true
hexagonal architecture decoupling.
"""

from .catalog import CatalogService
from .credentials import CredentialService
from .exceptions import (
    AccessDenied,
    AccountConflict,
    ConfigurationError,
    EmailAlreadyRegistered,
    InvalidTransition,
    ItemNotFound,
    ItemUnavailable,
    MarketplaceError,
    NotFound,
    PurchaseNotFound,
    SettingNotFound,
    StudentNotFound,
    ValidationError,
)
from .platform_settings import PlatformSettingsService
from .ports import ItemStatus, PurchaseStatus, VerificationStatus
from .pricing import PricingEngine
from .purchases import PurchaseService
from .scheduler import ConversionScheduler
from .verification import VerificationService

__all__ = [
    "AccessDenied",
    "AccountConflict",
    "CatalogService",
    "ConfigurationError",
    "ConversionScheduler",
    "CredentialService",
    "EmailAlreadyRegistered",
    "InvalidTransition",
    "ItemNotFound",
    "ItemStatus",
    "ItemUnavailable",
    "MarketplaceError",
    "NotFound",
    "PlatformSettingsService",
    "PricingEngine",
    "PurchaseNotFound",
    "PurchaseService",
    "PurchaseStatus",
    "SettingNotFound",
    "StudentNotFound",
    "ValidationError",
    "VerificationService",
    "VerificationStatus",
]
