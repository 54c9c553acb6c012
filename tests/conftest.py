"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory repositories and collaborators (tests/fakes.py)
- Domain services wired on top of them
- A fixed clock for date-dependent behavior
"""

from datetime import datetime, timezone

import pytest

from src.domain.catalog import CatalogService
from src.domain.credentials import CredentialService
from src.domain.documents import SettingsDocumentValidator
from src.domain.platform_settings import DEFAULT_SETTINGS, PlatformSettingsService
from src.domain.pricing import PricingEngine
from src.domain.purchases import PurchaseService
from src.domain.verification import VerificationService
from tests.fakes import (
    InMemoryBlobStore,
    InMemoryCatalogRepository,
    InMemoryPurchaseRepository,
    InMemorySettingsRepository,
    InMemoryStudentRepository,
    RecordingNotifier,
    StubPaymentProvider,
)

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings_repository() -> InMemorySettingsRepository:
    return InMemorySettingsRepository(list(DEFAULT_SETTINGS))


@pytest.fixture
def settings_service(settings_repository: InMemorySettingsRepository) -> PlatformSettingsService:
    return PlatformSettingsService(settings_repository)


@pytest.fixture
def pricing(settings_service: PlatformSettingsService) -> PricingEngine:
    return PricingEngine(settings_service)


@pytest.fixture
def catalog_repository() -> InMemoryCatalogRepository:
    return InMemoryCatalogRepository()


@pytest.fixture
def purchase_repository(catalog_repository: InMemoryCatalogRepository) -> InMemoryPurchaseRepository:
    return InMemoryPurchaseRepository(catalog_repository)


@pytest.fixture
def student_repository() -> InMemoryStudentRepository:
    return InMemoryStudentRepository()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def payment_provider() -> StubPaymentProvider:
    return StubPaymentProvider()


@pytest.fixture
def credentials(purchase_repository: InMemoryPurchaseRepository) -> CredentialService:
    return CredentialService(purchase_repository, signing_secret="test-signing-secret")


@pytest.fixture
def catalog_service(
    catalog_repository: InMemoryCatalogRepository,
    pricing: PricingEngine,
    settings_service: PlatformSettingsService,
) -> CatalogService:
    return CatalogService(catalog_repository, pricing, settings_service)


@pytest.fixture
def purchase_service(
    purchase_repository: InMemoryPurchaseRepository,
    catalog_repository: InMemoryCatalogRepository,
    student_repository: InMemoryStudentRepository,
    pricing: PricingEngine,
    credentials: CredentialService,
    payment_provider: StubPaymentProvider,
    blob_store: InMemoryBlobStore,
) -> PurchaseService:
    return PurchaseService(
        purchases=purchase_repository,
        catalog=catalog_repository,
        students=student_repository,
        pricing=pricing,
        credentials=credentials,
        payment_provider=payment_provider,
        blob_store=blob_store,
    )


@pytest.fixture
def verification_service(
    student_repository: InMemoryStudentRepository,
    notifier: RecordingNotifier,
    blob_store: InMemoryBlobStore,
    settings_service: PlatformSettingsService,
) -> VerificationService:
    return VerificationService(
        repository=student_repository,
        notifier=notifier,
        blob_store=blob_store,
        validator=SettingsDocumentValidator(settings_service),
        bcrypt_cost=10,
        clock=lambda: FIXED_NOW,
    )
