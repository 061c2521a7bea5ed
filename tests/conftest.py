"""Shared fixtures: the bundled seed hierarchy and an engine over it."""

import pytest

from tariffnav.classification.engine import ClassificationEngine
from tariffnav.classification.material_routes import MaterialRouteTable
from tariffnav.config import DEFAULT_HTS_DATA_PATH, DEFAULT_MATERIAL_ROUTES_PATH, reset_settings_cache
from tariffnav.hts.store import InMemoryHierarchyStore


@pytest.fixture(scope="session")
def seed_store() -> InMemoryHierarchyStore:
    return InMemoryHierarchyStore.load_jsonl(DEFAULT_HTS_DATA_PATH)


@pytest.fixture(scope="session")
def routes() -> MaterialRouteTable:
    return MaterialRouteTable.load(DEFAULT_MATERIAL_ROUTES_PATH)


@pytest.fixture()
def engine(seed_store, routes) -> ClassificationEngine:
    return ClassificationEngine(seed_store, routes, search_workers=1)


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()
