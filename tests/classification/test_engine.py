import logging

import pytest
import redis

from tariffnav.caching.redis_client import RedisChapterCache
from tariffnav.classification.engine import ClassificationEngine, build_engine
from tariffnav.classification.oracle import OracleCode, OracleResponse, StubOracle
from tariffnav.config import Settings
from tariffnav.errors import ClassificationFailure, OracleUnavailableError, OracleValidationError
from tariffnav.hts.codes import is_prefix_chain
from tariffnav.hts.store import InMemoryHierarchyStore


class _DownRedis:
    def get(self, key):
        raise redis.ConnectionError("redis down")

    def setex(self, key, ttl, value):
        raise redis.ConnectionError("redis down")


def _oracle_reply(chapter: str, heading: str) -> OracleResponse:
    return OracleResponse(
        chapter=OracleCode(code=chapter, name="", confidence=0.9),
        heading=OracleCode(code=heading, name="", confidence=0.85),
        rationale="Suggested by the oracle",
    )


def test_ceramic_mug_routes_by_material(engine):
    result = engine.classify("ceramic coffee mug with handle")

    assert result.needs_input is False
    assert result.hts_code == "6912004810"
    assert result.hts_code_formatted == "6912.00.48.10"
    assert result.route_applied.startswith("Material: ceramic")
    assert result.duty.base_rate == "9.8%"
    assert result.duty.inherited_from == "69120048"
    assert result.duty_range.formatted == "8.0% - 9.8%"
    assert [a.hts_code for a in result.alternatives] == ["69111038"]
    assert result.hierarchy.levels[0].code == "69"
    assert result.questions == []
    assert result.confidence_label in ("high", "medium", "low")
    assert 0.0 <= result.confidence <= 1.0


def test_tree_path_is_a_prefix_chain(engine):
    result = engine.classify("ceramic coffee mug with handle")
    codes = [step.code for step in result.tree_path.steps]
    assert result.tree_path.complete
    assert is_prefix_chain(codes, result.hts_code)
    assert result.tree_path.confidence == 0.9333


def test_carrying_case_overrides_material(engine):
    result = engine.classify("bag for carrying tools", hints={"material": "canvas"})

    assert result.hts_code == "42029231"
    assert result.hts_code.startswith("42")
    assert result.route_applied.startswith("GRI 3(a) - Cases")
    material = next(e for e in result.transparency.stated if e.attribute == "material")
    assert material.note == "not used for chapter selection"


def test_knit_cotton_tshirt(engine):
    result = engine.classify("men's cotton t-shirt")
    assert result.hts_code == "6109100012"
    assert result.duty.base_rate == "16.5%"
    assert result.duty.inherited_from == "61091000"
    assert result.hierarchy.levels[-1].description == "Men's or boys'"


def test_stainless_bowl_inherits_subheading_rate(engine):
    result = engine.classify("stainless steel mixing bowl")
    assert result.hts_code == "7323930080"
    assert result.duty.base_rate == "2%"
    assert result.duty.inherited_from == "732393"


def test_plastic_necklace_is_jewelry_not_plastics(engine):
    result = engine.classify("plastic beaded necklace")
    assert result.hts_code == "71179045"
    assert not any(a.hts_code.startswith("39") for a in result.alternatives[:1])


def test_wooden_chair_is_furniture_not_wood(engine):
    result = engine.classify("wooden dining chair")
    assert result.hts_code == "94016980"
    assert result.route_applied.startswith("GRI 3(a) - Furniture")
    assert result.tree_path.steps[0].code == "940169"
    assert result.duty.base_rate == "Free"
    furniture = next(e for e in result.transparency.inferred if e.attribute == "is_furniture")
    assert furniture.note == "GRI 3(a) - Furniture"


def test_table_uses_the_other_furniture_heading(engine):
    result = engine.classify("wooden coffee table")
    assert result.hts_code == "94036080"
    assert result.hts_code.startswith("9403")


def test_plastic_lamp_is_lighting_not_plastics(engine):
    result = engine.classify("plastic desk lamp")
    assert result.hts_code == "85395200"
    assert result.route_applied.startswith("Function - Lighting")
    assert result.duty.base_rate == "2%"


def test_cable_routes_by_function(engine):
    result = engine.classify("usb charging cable")
    assert result.needs_input is False
    assert result.hts_code == "85444290"
    assert result.route_applied.startswith("Function - Cables")
    assert result.questions == []


def test_cable_with_stated_plastic_still_routes_by_function(engine):
    result = engine.classify("usb charging cable", answers={"material": "plastic"})
    assert result.hts_code == "85444290"
    assert result.hts_code.startswith("85")
    assert result.route_applied.startswith("Function - Cables")
    assert result.transparency.bucket_of("material") == "stated"
    material = next(e for e in result.transparency.stated if e.attribute == "material")
    assert material.note == "not used for chapter selection"


def test_household_product_avoids_excluded_primary(routes):
    store = InMemoryHierarchyStore.from_records(
        [
            {"code": "69", "description": "Ceramic products"},
            {"code": "6911", "description": "Tableware and kitchenware, of porcelain or china:"},
            {"code": "69111038", "description": "Household ware: Mugs and other steins", "general_rate": "8%"},
            {"code": "6912", "description": "Ceramic tableware and kitchenware:"},
            {"code": "69120020", "description": "Mugs, not household ware", "general_rate": "4.5%"},
        ]
    )
    engine = ClassificationEngine(store, routes, search_workers=1)

    result = engine.classify("ceramic coffee mug")

    assert result.tree_path.final_code == "69120020"
    assert result.hts_code == "69111038"
    assert result.duty.base_rate == "8%"


def test_unknown_material_without_oracle_needs_input(engine):
    result = engine.classify("decorative figurine")
    assert result.needs_input is True
    assert result.hts_code is None
    assert [q.id for q in result.questions] == ["q_material"]
    assert "material" in result.message


def test_answering_the_material_question_resolves(engine):
    result = engine.classify("decorative figurine", answers={"material": "plastic"})
    assert result.needs_input is False
    assert result.hts_code.startswith("3924")
    assert result.route_applied.startswith("Material: plastic")
    stated = {e.attribute for e in result.transparency.stated}
    assert "material" in stated
    assert result.transparency.bucket_of("material") == "stated"
    assert result.transparency.bucket_of("no_such_attribute") is None


def test_oracle_route_for_unknown_material(seed_store, routes):
    oracle = StubOracle(default=lambda request: _oracle_reply("85", "8544"))
    engine = ClassificationEngine(seed_store, routes, oracle=oracle, search_workers=1)

    result = engine.classify("electrical extension lead")

    assert result.needs_input is False
    assert result.hts_code == "85444290"
    assert result.duty.base_rate == "2.6%"
    assert result.route_applied.startswith("Oracle suggestion")
    # Material is still unknown, so the answer comes with a refinement question.
    assert [q.id for q in result.questions] == ["q_material"]
    assert oracle.calls[0].material == "unknown"


def test_chapter_cache_outage_does_not_fail_oracle_requests(seed_store, routes, caplog):
    oracle = StubOracle(default=lambda request: _oracle_reply("85", "8544"))
    cache = RedisChapterCache("redis://unused", client=_DownRedis())
    engine = ClassificationEngine(seed_store, routes, oracle=oracle, cache=cache, search_workers=1)

    with caplog.at_level(logging.WARNING):
        result = engine.classify("electrical extension lead")

    assert result.hts_code == "85444290"
    assert oracle.calls[0].chapters
    assert "Chapter cache read failed" in caplog.text


def test_oracle_outage_degrades_to_questions(seed_store, routes, caplog):
    oracle = StubOracle(error=OracleUnavailableError("timed out"))
    engine = ClassificationEngine(seed_store, routes, oracle=oracle, search_workers=1)

    with caplog.at_level(logging.WARNING):
        result = engine.classify("electrical extension lead")

    assert result.needs_input is True
    assert [q.attribute for q in result.questions] == ["material", "use"]
    assert "unavailable" in result.message
    assert "unavailable" in caplog.text


def test_oracle_code_outside_schedule_is_fatal(seed_store, routes):
    oracle = StubOracle(default=lambda request: _oracle_reply("84", "8471"))
    engine = ClassificationEngine(seed_store, routes, oracle=oracle, search_workers=1)
    with pytest.raises(OracleValidationError) as excinfo:
        engine.classify("electrical extension lead")
    assert excinfo.value.detail["heading"] == "8471"


def test_oracle_not_consulted_when_material_routes(seed_store, routes):
    oracle = StubOracle(default=lambda request: _oracle_reply("85", "8544"))
    engine = ClassificationEngine(seed_store, routes, oracle=oracle, search_workers=1)
    engine.classify("ceramic coffee mug with handle")
    assert oracle.calls == []


def test_blank_description_is_rejected(engine):
    with pytest.raises(ClassificationFailure) as excinfo:
        engine.classify("   ")
    assert excinfo.value.to_payload()["field"] == "description"


def test_results_serialize_with_camel_case(engine):
    payload = engine.classify("ceramic coffee mug with handle").model_dump(by_alias=True)
    assert payload["htsCode"] == "6912004810"
    assert payload["needsInput"] is False
    assert payload["duty"]["inheritedFrom"] == "69120048"
    assert "treePath" in payload


def test_build_engine_from_settings(seed_store):
    engine = build_engine(Settings(search_workers=1), store=seed_store)
    assert engine.chain.names == ["legal_override", "material_route"]
    assert engine.classify("ceramic coffee mug with handle").hts_code == "6912004810"


def test_package_level_classify(monkeypatch):
    import tariffnav

    for name in ("DATABASE_URL", "REDIS_URL", "ORACLE_URL"):
        monkeypatch.delenv(f"TARIFFNAV_{name}", raising=False)
    tariffnav.get_engine.cache_clear()
    try:
        result = tariffnav.classify("ceramic coffee mug with handle")
    finally:
        tariffnav.get_engine.cache_clear()
    assert result.hts_code == "6912004810"


def test_resolve_step_is_logged_with_its_route(engine, caplog):
    with caplog.at_level(logging.INFO, logger="tariffnav.observability"):
        engine.classify("plastic desk lamp")
    (payload,) = [r.payload for r in caplog.records if r.getMessage() == "classification.resolve"]
    assert payload["source"] == "legal_override"
    assert payload["rule"] == "Function - Lighting"
    assert payload["attempted"] == ["legal_override"]
    assert payload["outcome"] == "ok"
