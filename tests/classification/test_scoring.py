import json
import random

import pytest

from tariffnav.classification.extractor import extract_understanding
from tariffnav.classification.scoring import (
    CandidateScorer,
    ScoringContext,
    ScoringWeights,
    adult_vs_children,
    avoided_chapter,
    commercial_use,
    construction,
    household_exclusion,
    household_vocabulary,
    load_weights,
    raw_material,
    special_program,
    suggested_chapter,
    term_match,
)
from tariffnav.errors import ConfigurationError
from tariffnav.hts.store import HtsNode

W = ScoringWeights()


def _node(code: str, description: str, level: str = "tariff_line", rate: str = "") -> HtsNode:
    return HtsNode(code=code, level=level, description=description, parent_code=code[:-2], general_rate=rate)


def _ctx(description: str, hints=None, suggested=(), avoid=()) -> ScoringContext:
    return ScoringContext.build(extract_understanding(description, hints), suggested, avoid)


def test_term_match_exact_and_partial():
    ctx = _ctx("ceramic coffee mug")
    exact = term_match(_node("69111038", "Household ware: Mugs and other steins"), ctx, W)
    assert exact.delta == W.exact_term

    partial = term_match(_node("09012100", "Coffee, roasted"), ctx, W)
    assert partial.delta == W.partial_term_base + W.partial_term_per_overlap
    assert term_match(_node("70133750", "Other drinking glasses"), ctx, W) is None


def test_household_exclusion_dominates():
    ctx = _ctx("ceramic coffee mug")
    node = _node("69120020", "Other ware, not household ware")
    assert household_exclusion(node, ctx, W).delta == W.household_exclusion
    assert household_vocabulary(node, ctx, W) is None

    commercial = _ctx("ceramic coffee mug", {"use": "commercial"})
    assert household_exclusion(node, commercial, W) is None


def test_household_and_commercial_vocabulary():
    ctx = _ctx("ceramic coffee mug")
    assert household_vocabulary(_node("69120048", "Household tableware and kitchenware"), ctx, W).delta == W.household_term
    assert household_vocabulary(_node("69120010", "Tableware suitable for hotels"), ctx, W).delta == W.domestic_term
    assert commercial_use(_node("69120010", "Tableware suitable for use in hotels or restaurants"), ctx, W).delta == W.hotel_restaurant
    assert commercial_use(_node("84381000", "Industrial bakery machinery"), ctx, W).delta == W.industrial_use


def test_avoided_and_suggested_chapters():
    ctx = _ctx("plastic beaded necklace", suggested={"71"}, avoid={"39"})
    assert avoided_chapter(_node("39241040", "Plates and cups"), ctx, W).delta == W.avoided_chapter
    assert suggested_chapter(_node("71179045", "Necklaces of plastics"), ctx, W).delta == W.suggested_chapter
    assert suggested_chapter(_node("39241040", "Plates and cups"), ctx, W).delta == W.outside_suggested_chapter
    assert suggested_chapter(_node("39241040", "Plates"), _ctx("mug"), W) is None


def test_construction_match_and_mismatch():
    ctx = _ctx("men's cotton t-shirt")
    knitted = _node("6109", "T-shirts, knitted or crocheted", level="heading")
    woven = _node("6205", "Men's or boys' shirts, not knitted or crocheted", level="heading")
    assert construction(knitted, ctx, W).delta == W.construction_match
    mismatch = construction(woven, ctx, W)
    assert mismatch.delta == W.construction_mismatch
    assert mismatch.uncertain


def test_children_codes_penalized_for_adult_products():
    ctx = _ctx("men's cotton t-shirt")
    assert adult_vs_children(_node("6109100060", "Girls' (339)", level="statistical"), ctx, W).delta == W.adult_vs_children
    assert adult_vs_children(_node("6109100012", "Men's or boys' (338)", level="statistical"), ctx, W) is None
    kids = _ctx("girls cotton t-shirt")
    assert adult_vs_children(_node("6109100060", "Girls' (339)", level="statistical"), kids, W) is None


def test_raw_material_and_special_program_penalties():
    ctx = _ctx("wooden spoon")
    assert raw_material(_node("44011100", "Fuel wood, raw"), ctx, W).delta == W.raw_material
    assert special_program(_node("98020080", "Articles assembled abroad"), ctx, W).delta == W.special_program
    assert special_program(_node("44199041", "Forks, spoons and chopsticks of wood"), ctx, W) is None


def test_score_collects_reasons_and_uncertainties():
    scorer = CandidateScorer()
    candidate = scorer.score(_node("85444290", "Other"), _ctx("usb charging cable", suggested={"85"}))
    assert candidate.match_score == W.suggested_chapter + W.level_tariff_line
    assert "Chapter 85 suggested (+40)" in candidate.match_reasons
    assert "Material not confirmed" in candidate.uncertainties


def test_rank_prefers_deeper_codes_on_ties():
    ctx = _ctx("widget")
    nodes = [_node("8544", "Other", level="heading"), _node("854442", "Other", level="subheading")]
    weights = ScoringWeights(level_heading=0.0, level_subheading=0.0)
    ranking = CandidateScorer(weights).rank(nodes, ctx)
    assert [c.hts_code for c in ranking.ranked] == ["854442", "8544"]
    assert ranking.score_gap() == 0


def test_household_product_never_ranks_excluded_code_first():
    ctx = _ctx("ceramic coffee mug", suggested={"69"})
    excluded = _node("6912002000", "Ceramic mugs, not household ware", level="statistical")
    unrelated = _node("3926", "Other articles", level="heading")

    ranking = CandidateScorer().rank([excluded, unrelated], ctx)
    assert ranking.ranked[0].hts_code == "3926"
    assert ranking.ranked[0].match_score < ranking.ranked[1].match_score

    commercial = _ctx("ceramic coffee mug", {"use": "commercial"}, suggested={"69"})
    assert CandidateScorer().rank([excluded, unrelated], commercial).ranked[0].hts_code == "6912002000"


def test_excluded_code_still_ranks_when_it_is_the_only_kind():
    ctx = _ctx("ceramic coffee mug", suggested={"69"})
    nodes = [
        _node("69120020", "Other ware, not household ware"),
        _node("69120030", "Ware other than household ware", level="subheading"),
    ]
    assert [c.hts_code for c in CandidateScorer().rank(nodes, ctx).ranked] == ["69120020", "69120030"]


def test_ranking_is_deterministic(seed_store):
    ctx = _ctx("ceramic coffee mug with handle", suggested={"69"}, avoid={"39"})
    pool = [node for node in seed_store.iter_nodes() if node.chapter in ("39", "69")]
    scorer = CandidateScorer()
    first = scorer.rank(pool, ctx)

    shuffled = list(pool)
    random.Random(7).shuffle(shuffled)
    second = scorer.rank(shuffled, ctx)

    assert [(c.hts_code, c.match_score) for c in first.ranked] == [
        (c.hts_code, c.match_score) for c in second.ranked
    ]
    assert [c.match_reasons for c in first.ranked] == [c.match_reasons for c in second.ranked]


def test_rank_of_empty_pool_is_unsuccessful():
    ranking = CandidateScorer().rank([], _ctx("widget"))
    assert ranking.success is False
    assert ranking.best_match is None
    assert "more detailed description" in ranking.message


def test_default_weights_satisfy_ordering():
    assert ScoringWeights().validate() == ScoringWeights()


@pytest.mark.parametrize(
    "overrides",
    [
        {"avoided_chapter": -250.0},
        {"raw_material": 10.0},
        {"industrial_use": -20.0},
        {"hotel_restaurant": -60.0},
    ],
)
def test_weight_ordering_violations_are_rejected(overrides):
    with pytest.raises(ConfigurationError):
        load_weights(overrides=overrides)


def test_unknown_weight_is_rejected():
    with pytest.raises(ConfigurationError):
        load_weights(overrides={"bonus_for_vibes": 5})


def test_weights_load_from_file(tmp_path):
    path = tmp_path / "weights.json"
    path.write_text(json.dumps({"exact_term": 90, "household_exclusion": -300}), encoding="utf-8")
    weights = load_weights(path)
    assert weights.exact_term == 90.0
    assert weights.household_exclusion == -300.0
    assert weights.avoided_chapter == ScoringWeights().avoided_chapter
