from tariffnav.classification.candidates import CandidateGatherer, plan_strategies
from tariffnav.classification.extractor import extract_understanding
from tariffnav.classification.navigator import (
    TreeNavigator,
    carve_out_pattern,
    is_other_catch_all,
    margin_confidence,
    product_matches_carve_out,
)
from tariffnav.classification.scoring import ScoringContext
from tariffnav.hts.codes import is_prefix_chain


def _ctx(description, hints=None, suggested=(), avoid=()):
    return ScoringContext.build(extract_understanding(description, hints), suggested, avoid)


def test_ceramic_mug_path(seed_store):
    path = TreeNavigator(seed_store).navigate("6912", _ctx("ceramic coffee mug with handle", suggested={"69"}, avoid={"39"}))
    assert [s.code for s in path.steps] == ["691200", "69120048", "6912004810"]
    assert [s.confidence for s in path.steps] == [0.95, 0.95, 0.9]
    assert path.steps[0].reasoning == "Only option at this level"
    assert path.complete
    assert path.final_code == "6912004810"
    assert path.confidence == 0.9333
    assert is_prefix_chain([s.code for s in path.steps], path.final_code)


def test_tshirt_path_from_chapter(seed_store):
    path = TreeNavigator(seed_store).navigate("61", _ctx("men's cotton t-shirt", suggested={"61"}))
    assert [s.code for s in path.steps] == ["6109", "610910", "61091000", "6109100012"]
    assert path.steps[1].confidence == 0.95
    assert "cotton" in path.steps[1].reasoning


def test_material_phrase_picks_stainless_subheading_then_other(seed_store):
    path = TreeNavigator(seed_store).navigate("7323", _ctx("stainless steel mixing bowl", suggested={"73"}))
    assert [s.code for s in path.steps] == ["732393", "73239300", "7323930080"]
    assert path.steps[-1].confidence == 0.5
    assert "Other" in path.steps[-1].reasoning


def test_carve_outs_are_skipped_for_unrelated_products(seed_store):
    path = TreeNavigator(seed_store).navigate("7117", _ctx("plastic beaded necklace", suggested={"71"}, avoid={"39"}))
    assert path.final_code == "71179045"
    assert "711711" not in [s.code for s in path.steps]


def test_unknown_start_code_gives_empty_incomplete_path(seed_store):
    path = TreeNavigator(seed_store).navigate("8471", _ctx("laptop"))
    assert path.steps == []
    assert path.complete is False
    assert path.confidence == 0.0
    assert path.final_code == "8471"


def test_leaf_start_code_is_a_dead_end(seed_store):
    path = TreeNavigator(seed_store).navigate("94052140", _ctx("led table lamp"))
    assert len(path.steps) == 1
    assert path.complete is False
    assert path.confidence == 0.5


def test_catch_all_and_carve_out_helpers():
    assert is_other_catch_all("Other")
    assert is_other_catch_all("Household ware: Other")
    assert not is_other_catch_all("Mugs and other steins")
    assert carve_out_pattern("Nursing nipples and finger cots") is not None
    assert carve_out_pattern("Other") is None
    understanding = extract_understanding("plastic salad bowl")
    assert not product_matches_carve_out(understanding, "Nursing nipples and finger cots")
    assert product_matches_carve_out(understanding, "Salad bowls")


def test_margin_confidence_is_clamped():
    assert margin_confidence(0) == 0.5
    assert margin_confidence(50) == 0.75
    assert margin_confidence(1000) == 0.95


def test_strategies_in_order():
    understanding = extract_understanding("ceramic coffee mug")
    strategies = plan_strategies(understanding, "mug", {"69"})
    assert [s.name for s in strategies] == ["core_term_in_chapters", "core_term_global", "material_fallback"]
    assert strategies[0].queries == (("mug", "69"),)
    assert strategies[2].queries == (("coffee", "69"), ("coffee", None), ("ceramic", "69"), ("ceramic", None))


def test_gather_uses_first_non_empty_strategy(seed_store):
    understanding = extract_understanding("ceramic coffee mug")
    pool, strategy = CandidateGatherer(seed_store, workers=1).gather(plan_strategies(understanding, "mug", {"69"}))
    assert strategy == "core_term_in_chapters"
    assert {n.code for n in pool} == {"69111038", "6912004810"}


def test_gather_falls_back_to_material_terms(seed_store):
    understanding = extract_understanding("ceramic teapot")
    pool, strategy = CandidateGatherer(seed_store, workers=3).gather(plan_strategies(understanding, "teapot", {"69"}))
    assert strategy == "material_fallback"
    assert "6912" in {n.code for n in pool}
    assert len({n.code for n in pool}) == len(pool)


def test_parallel_and_sequential_gathering_agree(seed_store):
    understanding = extract_understanding("ceramic coffee mug")
    strategies = plan_strategies(understanding, "ware", {"69", "70"})
    sequential = CandidateGatherer(seed_store, workers=1).gather(strategies)
    parallel = CandidateGatherer(seed_store, workers=4).gather(strategies)
    assert [n.code for n in sequential[0]] == [n.code for n in parallel[0]]


def test_gather_with_no_hits(seed_store):
    understanding = extract_understanding("widget")
    assert CandidateGatherer(seed_store).gather(plan_strategies(understanding, "widget")) == ([], None)
