"""Tests for database engine and session management."""

import pytest
from sqlalchemy import inspect

from stock_catalog.models import MaterialPreference, ReorderPoint
from stock_catalog.services.database import (
    close_connections,
    create_database_engine,
    get_engine,
    init_database,
    session_scope,
)
from stock_catalog.services.preferences_service import (
    MaterialPreference as MaterialPreferenceData,
    PreferenceSnapshot,
    SqlPreferencesStore,
    get_all_preferences,
    get_material_preferences,
    set_material_preference,
)
from stock_catalog.services.reorder_point_service import ReorderPointDraft, SqlReorderPointStore
from stock_catalog.utils.config import reset_config


class TestEngine:
    def test_in_memory_engine_creates_all_tables(self):
        engine = create_database_engine("sqlite:///:memory:")
        init_database(engine)

        tables = set(inspect(engine).get_table_names())
        assert {
            "material_group_preferences",
            "material_preferences",
            "search_exclusions",
            "reorder_points",
        } <= tables
        engine.dispose()

    def test_init_database_is_idempotent(self):
        engine = create_database_engine("sqlite:///:memory:")
        init_database(engine)
        init_database(engine)
        engine.dispose()


class TestSessionScope:
    def test_commits_on_success(self, test_db):
        with session_scope() as session:
            session.add(MaterialPreference(user_id="u1", section="balance", material_code="M1", favorite=True))

        with session_scope() as session:
            assert session.query(MaterialPreference).count() == 1

    def test_rolls_back_on_error(self, test_db):
        with pytest.raises(RuntimeError):
            with session_scope() as session:
                session.add(ReorderPoint(user_id="u1", item_code="M1", item_name="Copper", reorder_quantity=1))
                session.flush()
                raise RuntimeError("boom")

        with session_scope() as session:
            assert session.query(ReorderPoint).count() == 0


class TestModels:
    def test_reorder_point_codes_for_single_and_group(self):
        single = ReorderPoint(item_code="M1", is_group=False)
        group = ReorderPoint(item_code="", is_group=True, item_codes=["A", "B"])
        assert single.codes == ["M1"]
        assert group.codes == ["A", "B"]

    def test_to_dict(self, test_db):
        with session_scope() as session:
            row = ReorderPoint(
                user_id="u1",
                item_code="M1",
                item_name="Copper",
                reorder_quantity=2.5,
                warehouse_codes=["w1"],
            )
            session.add(row)
            session.flush()
            data = row.to_dict()

        assert data["item_name"] == "Copper"
        assert data["warehouse_codes"] == ["w1"]
        assert isinstance(data["created_at"], str)


class TestFreshDatabase:
    """The configured store creates its schema on first use."""

    @pytest.fixture
    def file_database(self, tmp_path, monkeypatch):
        db_file = tmp_path / "catalog.db"
        monkeypatch.setenv("STOCK_CATALOG_DATABASE_URL", f"sqlite:///{db_file.as_posix()}")
        reset_config()
        close_connections()
        yield db_file
        close_connections()
        reset_config()

    def test_first_read_creates_tables(self, file_database):
        snapshot = get_all_preferences("u1", "balance")

        assert snapshot == PreferenceSnapshot()
        assert file_database.exists()
        tables = set(inspect(get_engine()).get_table_names())
        assert {"material_group_preferences", "reorder_points"} <= tables

    def test_writes_survive_a_new_engine(self, file_database):
        set_material_preference("u1", "M1", "balance", True)

        close_connections()

        assert get_material_preferences("u1", "balance") == {"M1": MaterialPreferenceData(favorite=True)}

    @pytest.mark.asyncio
    async def test_async_stores_work_on_fresh_file(self, file_database):
        point = await SqlReorderPointStore().upsert_point(
            "u1", ReorderPointDraft(item_name="Copper", reorder_quantity=5, item_codes=["M1"])
        )
        snapshot = await SqlPreferencesStore().fetch_all("u1", "balance")

        assert [p.id for p in await SqlReorderPointStore().list_points("u1")] == [point.id]
        assert snapshot.group_prefs == {}
