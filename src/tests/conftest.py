"""Pytest configuration and fixtures for the stock catalog tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool

from stock_catalog.models.base import Base
from stock_catalog.services.catalog_tree_service import (
    CatalogGroup,
    CatalogMaterial,
    Warehouse,
    WarehouseBalance,
)


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database shared by all threads
       (the async stores hop to worker threads)
    2. Creates all tables
    3. Provides the session registry to the test
    4. Drops all tables after the test completes
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import stock_catalog.services.database as db_module

    original_get_session_factory = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session_factory


class ManualScheduler:
    """Fake after/after_cancel scheduler driven by an explicit clock."""

    def __init__(self):
        self.now = 0
        self._next_id = 0
        self._pending = {}

    def after(self, ms, callback):
        self._next_id += 1
        self._pending[self._next_id] = (self.now + ms, callback)
        return self._next_id

    def after_cancel(self, handle):
        self._pending.pop(handle, None)

    @property
    def pending_count(self):
        return len(self._pending)

    def advance_to(self, t):
        """Move the clock to ``t`` ms, firing due callbacks in time order."""
        while True:
            due = [
                (when, handle)
                for handle, (when, _callback) in self._pending.items()
                if when <= t
            ]
            if not due:
                break
            when, handle = min(due)
            _when, callback = self._pending.pop(handle)
            self.now = when
            callback()
        self.now = t

    def advance(self, ms):
        self.advance_to(self.now + ms)


@pytest.fixture
def scheduler():
    """Manual timer scheduler for debounce tests."""
    return ManualScheduler()


@pytest.fixture
def sample_tree():
    """Provide a small catalog tree.

    Creates:
    - Metals (G1)
      - Copper wire (M1): Main 4, Production 3
      - Steel sheet (M2): no balances
    - Paints (G2)
      - Primers (G3)
        - Primer 001 (M3): Main 10
      - Enamel white (M4): Main 0
    - Consumables (G4)
      - Tape 001-A (M5): Production 2
    """
    return (
        CatalogGroup(
            code="G1",
            name="Metals",
            children=(
                CatalogMaterial(
                    code="M1",
                    name="Copper wire",
                    unit="kg",
                    balances=(
                        WarehouseBalance("Main", 4.0),
                        WarehouseBalance("Production", 3.0),
                    ),
                ),
                CatalogMaterial(code="M2", name="Steel sheet", unit="pcs"),
            ),
        ),
        CatalogGroup(
            code="G2",
            name="Paints",
            children=(
                CatalogGroup(
                    code="G3",
                    name="Primers",
                    children=(
                        CatalogMaterial(
                            code="M3",
                            name="Primer 001",
                            unit="l",
                            balances=(WarehouseBalance("Main", 10.0),),
                        ),
                    ),
                ),
                CatalogMaterial(
                    code="M4",
                    name="Enamel white",
                    unit="l",
                    balances=(WarehouseBalance("Main", 0.0),),
                ),
            ),
        ),
        CatalogGroup(
            code="G4",
            name="Consumables",
            children=(
                CatalogMaterial(
                    code="M5",
                    name="Tape 001-A",
                    unit="pcs",
                    balances=(WarehouseBalance("Production", 2.0),),
                ),
            ),
        ),
    )


@pytest.fixture
def sample_warehouses():
    """Warehouse registry matching sample_tree balances."""
    return (
        Warehouse(code="000000007", name="Main"),
        Warehouse(code="000000012", name="Production"),
    )
