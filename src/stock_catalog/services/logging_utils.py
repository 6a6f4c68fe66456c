"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across catalog, preference and
reorder-point operations.

Usage:
    from stock_catalog.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="fetch_catalog",
        outcome="success",
        request_id=3,
        leaves=1250,
    )
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance with the 'stock_catalog.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'stock_catalog.services.reorder_point_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"stock_catalog.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "fetch_catalog", "upsert_reorder_point")
        outcome: Outcome description (e.g., "success", "validation_failed", "error")
        level: Log level (default: INFO). Use DEBUG for per-keystroke logs.
        **context: Additional context fields (codes, counts, error details)

    Example:
        >>> log_operation(
        ...     logger,
        ...     operation="set_group_preference",
        ...     outcome="rolled_back",
        ...     level=logging.WARNING,
        ...     group_code="00000001",
        ... )
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
