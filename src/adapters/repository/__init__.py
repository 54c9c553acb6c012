"""Repository adapters - Database implementations."""

from .postgres import PostgresSettingsRepository, run_migrations
from .postgres_catalog import PostgresCatalogRepository
from .postgres_purchases import PostgresPurchaseRepository
from .postgres_students import PostgresStudentRepository

__all__ = [
    "PostgresCatalogRepository",
    "PostgresPurchaseRepository",
    "PostgresSettingsRepository",
    "PostgresStudentRepository",
    "run_migrations",
]
