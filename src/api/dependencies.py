"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.

Process-wide objects (the connection pool, the platform settings
service with its cache, the conversion scheduler) live in app.state
and are created during the app lifespan. Request-scoped services are
cheap dataclasses wired on demand around them.
"""

import secrets
from functools import lru_cache

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from psycopg_pool import ConnectionPool

from src.adapters.geo.ipapi import IpApiGeolocator
from src.adapters.payments.manual import ManualPaymentProvider
from src.adapters.repository.postgres import PostgresSettingsRepository
from src.adapters.repository.postgres_catalog import PostgresCatalogRepository
from src.adapters.repository.postgres_purchases import PostgresPurchaseRepository
from src.adapters.repository.postgres_students import PostgresStudentRepository
from src.adapters.smtp.console import ConsoleNotifier
from src.adapters.storage.local import LocalBlobStore
from src.config.settings import Settings, get_settings
from src.domain.catalog import CatalogService
from src.domain.credentials import CredentialService
from src.domain.documents import SettingsDocumentValidator
from src.domain.location import LocationService
from src.domain.platform_settings import PlatformSettingsService
from src.domain.pricing import PricingEngine
from src.domain.purchases import PurchaseService
from src.domain.scheduler import ConversionScheduler
from src.domain.verification import VerificationService

# Module-level singletons - both adapters are stateless
_notifier = ConsoleNotifier()
_payment_provider = ManualPaymentProvider()


@lru_cache
def get_blob_store() -> LocalBlobStore:
    """Local blob store rooted at the configured directory (singleton)."""
    return LocalBlobStore(get_settings().blob_root)


@lru_cache
def get_geolocator() -> IpApiGeolocator:
    settings = get_settings()
    return IpApiGeolocator(
        settings.geolocation_url,
        timeout=settings.geolocation_timeout,
        default_country=settings.default_country,
    )


def build_verification_service(
    pool: ConnectionPool, settings_service: PlatformSettingsService, settings: Settings
) -> VerificationService:
    """Wire the verification service; shared by routes and the scheduler."""
    return VerificationService(
        repository=PostgresStudentRepository(
            pool, conversion_timeout_ms=settings.conversion_timeout_ms
        ),
        notifier=_notifier,
        blob_store=get_blob_store(),
        validator=SettingsDocumentValidator(settings_service),
        extension_years=settings.extension_years,
        bcrypt_cost=settings.bcrypt_cost,
    )


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_settings_service(request: Request) -> PlatformSettingsService:
    """
    Get the process-wide platform settings service.

    Created lazily if the lifespan did not run (e.g. in tests), and
    then kept on app.state so its cache is shared.
    """
    service = getattr(request.app.state, "settings_service", None)
    if service is None:
        service = PlatformSettingsService(PostgresSettingsRepository(get_pool(request)))
        request.app.state.settings_service = service
    return service


def get_pricing_engine(request: Request) -> PricingEngine:
    return PricingEngine(get_settings_service(request))


def get_credential_service(request: Request) -> CredentialService:
    settings = get_settings()
    return CredentialService(
        repository=PostgresPurchaseRepository(get_pool(request)),
        signing_secret=settings.credential_secret,
        length=settings.credential_length,
    )


def get_catalog_service(request: Request) -> CatalogService:
    return CatalogService(
        repository=PostgresCatalogRepository(get_pool(request)),
        pricing=get_pricing_engine(request),
        settings=get_settings_service(request),
    )


def get_purchase_service(request: Request) -> PurchaseService:
    """
    Create purchase service with injected dependencies.

    Wires repositories, pricing, credentials and the payment and
    storage collaborators for the domain service.
    """
    pool = get_pool(request)
    return PurchaseService(
        purchases=PostgresPurchaseRepository(pool),
        catalog=PostgresCatalogRepository(pool),
        students=PostgresStudentRepository(pool),
        pricing=get_pricing_engine(request),
        credentials=get_credential_service(request),
        payment_provider=_payment_provider,
        blob_store=get_blob_store(),
    )


def get_verification_service(request: Request) -> VerificationService:
    return build_verification_service(
        get_pool(request), get_settings_service(request), get_settings()
    )


def get_scheduler(request: Request) -> ConversionScheduler:
    """
    Get the conversion scheduler from app state.

    Falls back to an unstarted scheduler so manual sweeps work even
    when the background loop is disabled.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        scheduler = ConversionScheduler(
            get_verification_service(request), run_hour=get_settings().conversion_hour
        )
        request.app.state.scheduler = scheduler
    return scheduler


def get_location_service() -> LocationService:
    return LocationService(get_geolocator())


# HTTP BASIC AUTH security scheme for OpenAPI documentation
http_basic = HTTPBasic()


def require_admin(
    credentials: HTTPBasicCredentials = Depends(http_basic),
) -> str:
    """
    Authenticate the administrator from the HTTP BASIC AUTH header.

    FastAPI's HTTPBasic already returns 401 for a missing or malformed
    header. Both comparisons always run, in constant time.

    Returns:
        Normalized admin email, used as the admin id in audit fields
    """
    settings = get_settings()
    email = credentials.username.strip().lower()

    email_ok = secrets.compare_digest(email.encode(), settings.admin_email.lower().encode())
    password_ok = secrets.compare_digest(
        credentials.password.encode(), settings.admin_password.encode()
    )
    if not (email_ok and password_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return email
