"""Service layer exception classes for the stock catalog.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Exception Hierarchy:
    ServiceError (base)
    ├── FetchFailure
    ├── ValidationError
    ├── CatalogNodeNotFound
    ├── ReorderPointNotFound
    └── DatabaseError
"""

from typing import Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class FetchFailure(ServiceError):
    """Raised when a call to an external collaborator fails.

    Covers network errors and non-success responses from the ERP, the
    preference store and the reorder-point store.

    Args:
        source: What was being fetched (e.g. "catalog", "warehouses")
        message: Human-readable failure description
        status_code: HTTP status of the failed response, if any

    Example:
        >>> raise FetchFailure("catalog", "ERP API error: 500 Internal Server Error")
        FetchFailure: Failed to fetch catalog: ERP API error: 500 Internal Server Error
    """

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        self.source = source
        self.message = message
        self.status_code = status_code
        super().__init__(f"Failed to fetch {source}: {message}")


class ValidationError(ServiceError):
    """Raised when data validation fails, before any write happens."""

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class CatalogNodeNotFound(ServiceError):
    """Raised when a code cannot be resolved in the catalog tree.

    Typical cause is a stale reorder point after a catalog change; callers
    display the raw code instead of failing.

    Example:
        >>> raise CatalogNodeNotFound("00100X")
        CatalogNodeNotFound: Catalog node with code '00100X' not found
    """

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Catalog node with code '{code}' not found")


class ReorderPointNotFound(ServiceError):
    """Raised when a reorder point cannot be found by ID for its owner."""

    def __init__(self, point_id: int):
        self.point_id = point_id
        super().__init__(f"Reorder point with ID {point_id} not found")


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
