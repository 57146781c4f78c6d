"""
Custom exception classes for the Linear import tool.
"""

from __future__ import annotations


class MigrationError(Exception):
    """Base exception for import errors."""


class ConfigurationError(MigrationError):
    """Raised when a credential or parameter is missing or invalid."""


class RepositoryAccessError(MigrationError):
    """Raised when the source repository cannot be found with the given credential."""


class ExtractionError(MigrationError):
    """Raised when fetching issue pages from the source keeps failing."""


class RateLimitedError(MigrationError):
    """Raised when an API answers with a rate-limit response."""

    retry_after: float | None

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class LinearApiError(MigrationError):
    """Raised when the Linear API rejects a request."""


class UnresolvedReferenceError(MigrationError):
    """Raised when an issue references a label or user that has no destination id."""


class InvalidImportResultError(MigrationError):
    """Raised when an import result violates its referential invariants."""
