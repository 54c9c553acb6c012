"""
Domain exceptions - Semantic error types for the marketplace engine.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
The API layer maps each family onto an HTTP status.
"""


class MarketplaceError(Exception):
    """Base class for marketplace domain errors."""

    pass


class ValidationError(MarketplaceError):
    """Malformed or oversized input that the caller can correct."""

    pass


class ConfigurationError(MarketplaceError):
    """A required platform setting is missing and has no default."""

    pass


class InvalidTransition(MarketplaceError):
    """A state machine guard rejected the requested transition."""

    pass


class ItemUnavailable(MarketplaceError):
    """The catalog item exists but is not published for sale."""

    pass


class AccessDenied(MarketplaceError):
    """Download credentials rejected.

    Deliberately carries no detail about which check failed.
    """

    def __init__(self) -> None:
        super().__init__("Invalid download credentials")


class NotFound(MarketplaceError):
    """Base class for lookups that found nothing."""

    pass


class ItemNotFound(NotFound):
    pass


class PurchaseNotFound(NotFound):
    pass


class StudentNotFound(NotFound):
    pass


class SettingNotFound(NotFound):
    pass


class EmailAlreadyRegistered(MarketplaceError):
    """A student registration already exists for this email."""

    pass


class AccountConflict(MarketplaceError):
    """A regular account already owns the email a conversion needs."""

    pass
