"""Unit tests for the service exception hierarchy."""

import inspect

import pytest

from stock_catalog.services import exceptions as exc_module
from stock_catalog.services.exceptions import (
    CatalogNodeNotFound,
    DatabaseError,
    FetchFailure,
    ReorderPointNotFound,
    ServiceError,
    ValidationError,
)


def get_all_exception_classes():
    return [
        (name, obj)
        for name, obj in inspect.getmembers(exc_module, inspect.isclass)
        if issubclass(obj, Exception) and obj.__module__ == exc_module.__name__
    ]


@pytest.mark.parametrize("name,exc_class", get_all_exception_classes())
def test_exception_inherits_from_service_error(name, exc_class):
    assert issubclass(exc_class, ServiceError), f"{name} must inherit from ServiceError"


def test_fetch_failure_message():
    error = FetchFailure("catalog", "ERP API error: 500", status_code=500)
    assert str(error) == "Failed to fetch catalog: ERP API error: 500"
    assert error.status_code == 500


def test_validation_error_joins_errors():
    error = ValidationError(["first", "second"])
    assert error.errors == ["first", "second"]
    assert str(error) == "Validation failed: first; second"


def test_not_found_errors_keep_identifiers():
    assert CatalogNodeNotFound("X1").code == "X1"
    assert ReorderPointNotFound(7).point_id == 7


def test_database_error_keeps_original():
    original = RuntimeError("disk full")
    error = DatabaseError("write failed", original_error=original)
    assert error.original_error is original
    assert "write failed" in str(error)
