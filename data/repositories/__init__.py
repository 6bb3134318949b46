"""Repository pattern implementation for ledger access."""

from .base_repository import (
    LedgerRepository,
    RepositoryError,
    DataValidationError
)
from .csv_repository import CSVLedgerRepository
from .memory_repository import InMemoryLedgerRepository

__all__ = [
    # Base repository interface
    'LedgerRepository',
    'RepositoryError',
    'DataValidationError',

    # Concrete implementations
    'CSVLedgerRepository',
    'InMemoryLedgerRepository',
]
