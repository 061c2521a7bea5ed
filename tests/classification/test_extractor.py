from tariffnav.classification.extractor import (
    apply_answers,
    core_product_term,
    extract_understanding,
    find_material,
    material_terms,
    normalize_material,
    normalize_use,
)


def test_material_inferred_from_text():
    understanding = extract_understanding("ceramic coffee mug with handle")
    assert understanding.material.value == "ceramic"
    assert understanding.material.source == "inferred"
    assert understanding.product_type.value == "coffee mug"
    assert understanding.use_context.value == "household"
    assert understanding.use_context.source == "inferred"


def test_unknown_material_is_assumed():
    understanding = extract_understanding("usb charging cable")
    assert understanding.material.value == "unknown"
    assert understanding.material.source == "assumed"
    assert not understanding.material_known
    assert understanding.is_electronic
    assert understanding.use_context.source == "assumed"


def test_hints_win_over_text():
    understanding = extract_understanding("steel water bottle", {"material": "Aluminium", "use": "hotel"})
    assert understanding.material.value == "aluminum"
    assert understanding.material.source == "stated"
    assert understanding.use_context.value == "commercial"
    assert understanding.use_context.source == "stated"


def test_carrying_case_flag_from_phrase():
    assert extract_understanding("bag for carrying tools").is_for_carrying
    assert extract_understanding("leather laptop sleeve").is_for_carrying
    assert not extract_understanding("ceramic coffee mug").is_for_carrying


def test_ring_is_jewelry_but_o_ring_is_not():
    assert extract_understanding("silver plated ring").is_jewelry
    assert extract_understanding("plastic beaded necklace").is_jewelry
    assert not extract_understanding("rubber o-ring seal").is_jewelry
    assert not extract_understanding("steel key ring holder").is_jewelry


def test_toy_flag():
    assert extract_understanding("plastic toy car").is_toy
    assert extract_understanding("wooden blocks for kids").is_toy


def test_knit_garment_gets_assumed_construction_and_fiber():
    understanding = extract_understanding("men's cotton t-shirt")
    assert understanding.is_wearable and understanding.is_textile
    assert understanding.construction.value == "knit"
    assert understanding.construction.source == "assumed"
    assert understanding.fiber.value == "cotton"
    assert understanding.gender.value == "men"


def test_explicit_woven_construction_is_inferred():
    understanding = extract_understanding("woven cotton shirt for women")
    assert understanding.construction.value == "woven"
    assert understanding.construction.source == "inferred"
    assert understanding.gender.value == "women"


def test_construction_only_for_textiles():
    assert extract_understanding("knitted steel mesh basket").construction is None


def test_confidence_rewards_recognition_and_stated_type():
    vague = extract_understanding("widget")
    assert vague.confidence == 0.5
    stated = extract_understanding("ceramic mug", {"product_type": "mug"})
    assert stated.confidence == 0.7
    recognized = extract_understanding("cotton t-shirt", {"product_type": "t-shirt"})
    assert recognized.confidence == 0.9


def test_core_product_term_drops_gender_and_adjectives():
    assert core_product_term("men's t-shirt") == "t-shirt"
    assert core_product_term("large portable speaker") == "speaker"
    assert core_product_term("coffee mug") == "mug"
    assert core_product_term("") == ""


def test_material_normalization():
    assert normalize_material("Stainless") == "stainless steel"
    assert normalize_material("") == "unknown"
    assert find_material("a wooden spoon") == "wood"
    assert find_material("stainless steel mixing bowl") == "stainless steel"
    assert find_material("mystery gadget") is None
    assert normalize_use("Home") == "household"
    assert normalize_use(None) is None


def test_material_terms_prefer_specific_phrases():
    assert material_terms("steel")[0] == "iron or steel"
    assert material_terms("stainless")[0] == "stainless steel"
    assert material_terms("granite") == ("granite",)


def test_fiber_answer_supplies_material():
    merged = apply_answers({"use": "household"}, {"fiber": "cotton", "construction": ""})
    assert merged == {"use": "household", "fiber": "cotton", "material": "cotton"}
    assert apply_answers(None, None) == {}
