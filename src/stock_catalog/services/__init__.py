"""Services package - Business logic layer for the stock catalog.

Architecture:
- Services: Stateless functions organized by domain (catalog tree, search,
  preferences, reorder points)
- Transactions: Managed via session_scope() context manager
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- catalog_tree_service: Catalog tree types, traversal and ERP payload decoding
- catalog_search_service: Substring search and result ranking
- preferences_service: Per-user group/material preferences and search exclusions
- reorder_point_service: Reorder-point monitoring and storage
- erp_client: Async HTTP client for the ERP

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- logging_utils: Structured operation logging
"""

from . import (
    catalog_search_service,
    catalog_tree_service,
    database,
    preferences_service,
    reorder_point_service,
)

from .exceptions import (
    ServiceError,
    FetchFailure,
    ValidationError,
    CatalogNodeNotFound,
    ReorderPointNotFound,
    DatabaseError,
)

from .database import session_scope, init_database

__all__ = [
    # Modules
    "catalog_search_service",
    "catalog_tree_service",
    "database",
    "preferences_service",
    "reorder_point_service",
    # Exceptions
    "ServiceError",
    "FetchFailure",
    "ValidationError",
    "CatalogNodeNotFound",
    "ReorderPointNotFound",
    "DatabaseError",
    # Database
    "session_scope",
    "init_database",
]
