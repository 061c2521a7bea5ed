import pytest

from tariffnav.classification.engine import ClassificationEngine
from tariffnav.config import DEFAULT_HTS_DATA_PATH
from tariffnav.db.session import init_db, make_engine, make_session_factory
from tariffnav.errors import HierarchyDataError
from tariffnav.hts.sql_store import SqlHierarchyStore, import_records
from tariffnav.hts.store import read_jsonl


@pytest.fixture()
def sql_store():
    engine = make_engine("sqlite://")
    init_db(engine)
    factory = make_session_factory(engine)
    import_records(factory, read_jsonl(DEFAULT_HTS_DATA_PATH))
    return SqlHierarchyStore(factory)


def test_import_matches_in_memory_store(sql_store, seed_store):
    assert len(sql_store.chapters()) == len(seed_store.chapters())
    node = sql_store.get_node("6912.00.48.10")
    assert node == seed_store.get_node("6912004810")


def test_children_and_search(sql_store):
    assert [c.code for c in sql_store.get_children("691200")] == [
        "69120010", "69120020", "69120048", "69120050",
    ]
    assert {n.code for n in sql_store.search("mugs", chapter="69")} == {"69111038", "6912004810"}
    assert sql_store.get_node("0000") is None


def test_version_is_memoized_until_refresh(sql_store):
    version = sql_store.version
    assert len(version) == 16
    assert sql_store.version == version
    sql_store.refresh()
    assert sql_store.version


def test_import_rejects_malformed_records():
    engine = make_engine("sqlite://")
    init_db(engine)
    with pytest.raises(HierarchyDataError):
        import_records(make_session_factory(engine), [{"description": "missing code"}])


def test_engine_runs_on_sql_store(sql_store, routes):
    engine = ClassificationEngine(sql_store, routes, search_workers=1)
    result = engine.classify("ceramic coffee mug with handle")
    assert result.hts_code == "6912004810"
    assert result.duty.base_rate == "9.8%"
