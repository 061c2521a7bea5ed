"""Product understanding extraction.

Turns a free-text description plus optional caller hints into a
:class:`ProductUnderstanding`.  Every attribute is tagged with its source:

  stated    supplied explicitly by the caller (hints or answers)
  inferred  read from the description text
  assumed   synthesized only so classification can proceed

Function flags (``is_for_carrying``, ``is_toy`` ...) come from fixed phrase
vocabularies matched on word boundaries.  Extraction never raises: an input
it cannot read yields ``material="unknown"`` with source ``assumed``.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Mapping, Optional, Pattern, Tuple

from tariffnav.classification.models import (
    ASSUMED,
    INFERRED,
    STATED,
    UNKNOWN_MATERIAL,
    AttributeValue,
    ProductUnderstanding,
)

# ---------------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------------

CARRYING_CASE_PATTERNS = (
    "phone case", "phone cover", "laptop bag", "laptop case", "laptop sleeve",
    "camera case", "camera bag", "tablet case", "tablet cover",
    "suitcase", "luggage", "travel bag", "briefcase", "messenger bag",
    "backpack", "handbag", "purse", "wallet", "clutch bag",
    "pencil case", "cosmetic bag", "makeup bag", "tool bag", "tool case",
    "glasses case", "eyeglass case", "sunglasses case", "watch case",
    "jewelry case", "jewelry box", "gun case", "instrument case",
    "violin case", "guitar case", "duffel bag", "tote bag",
)

# "<container> for ..." and "for carrying" phrasing
CARRYING_PHRASE_RE = re.compile(
    r"\b(?:case|pouch|bag|sleeve|holster|carrier)s?\s+for\b|\bfor\s+carrying\b|\bcarrying\s+(?:case|bag|pouch)\b"
)

TOY_PATTERNS = (
    "toy", "toy car", "toy truck", "toy train", "action figure", "doll",
    "stuffed animal", "plush toy", "building blocks", "construction toy",
    "board game", "jigsaw puzzle", "puzzle", "water gun", "playset",
    "play set", "dollhouse", "rc car", "remote control car", "kids toy",
    "children's toy",
)
TOY_PHRASE_RE = re.compile(r"\bfor\s+(?:kids|children|toddlers)\b")

JEWELRY_PATTERNS = (
    "necklace", "pendant", "bracelet", "bangle", "earring", "brooch",
    "anklet", "ankle bracelet", "body jewelry", "belly ring", "nose ring",
    "finger ring", "jewelry", "jewellery",
)
# "ring" alone, but not o-rings, key rings or split rings
RING_RE = re.compile(r"(?<!o-)(?<!key )(?<!split )\brings?\b")

APPAREL_PATTERNS = (
    "t-shirt", "tshirt", "shirt", "blouse", "pants", "trousers", "jeans",
    "shorts", "dress", "skirt", "gown", "jacket", "coat", "blazer", "vest",
    "sweater", "hoodie", "sweatshirt", "cardigan", "underwear", "boxer",
    "briefs", "panties", "bra", "socks", "stockings", "tights", "hat",
    "cap", "beanie", "gloves", "mittens", "scarf", "polo", "pullover",
)

TEXTILE_HOME_PATTERNS = (
    "blanket", "throw blanket", "towel", "bed sheet", "fitted sheet",
    "pillowcase", "pillow cover", "curtain", "drape", "tablecloth",
    "table linen", "napkin", "placemat", "cushion cover", "pillow sham",
)

ELECTRONICS_PATTERNS = (
    "smartphone", "laptop", "computer", "television", "monitor", "speaker",
    "headphone", "earphone", "earbud", "webcam", "camcorder", "charger",
    "power adapter", "power supply", "battery", "power bank", "router",
    "modem", "keyboard", "projector", "printer", "scanner", "microwave",
    "refrigerator", "air conditioner", "amplifier", "drone",
)

CABLE_PATTERNS = (
    "usb cable", "usb-c cable", "lightning cable", "charging cable",
    "hdmi cable", "ethernet cable", "network cable", "power cord",
    "extension cord", "audio cable", "aux cable", "data cable",
)

LIGHTING_PATTERNS = (
    "light bulb", "lightbulb", "led bulb", "bulb", "lamp", "table lamp",
    "floor lamp", "desk lamp", "ceiling light", "pendant light",
    "chandelier", "flashlight", "headlamp", "led strip", "light strip",
    "floodlight", "spotlight", "work light",
)

FURNITURE_PATTERNS = (
    "chair", "table", "desk", "sofa", "couch", "bed frame", "bookcase",
    "bookshelf", "cabinet", "wardrobe", "dresser", "stool", "bench",
)

KNIT_GARMENTS = (
    "t-shirt", "tshirt", "polo", "sweatshirt", "hoodie", "sweater",
    "pullover", "cardigan", "jersey", "tank top", "singlet", "underwear",
    "boxer", "briefs", "panties", "socks",
)

KNOWN_MATERIALS = (
    "stainless steel", "synthetic leather", "faux leather",
    "cotton", "polyester", "nylon", "wool", "silk", "linen", "canvas",
    "plastic", "polypropylene", "polyethylene", "pvc", "silicone",
    "rubber", "latex", "neoprene",
    "steel", "stainless", "iron", "aluminum", "aluminium",
    "copper", "brass", "bronze", "glass", "crystal",
    "ceramic", "porcelain", "stoneware", "earthenware", "terracotta",
    "wood", "wooden", "bamboo", "plywood", "paper", "cardboard",
    "leather", "fleece", "acrylic", "rayon", "spandex",
)

FIBERS = frozenset([
    "cotton", "polyester", "nylon", "wool", "silk", "linen", "synthetic",
    "acrylic", "rayon", "spandex", "fleece", "canvas",
])

_MATERIAL_ALIASES: Dict[str, str] = {
    "aluminium": "aluminum",
    "stainless": "stainless steel",
    "wooden": "wood",
    "faux leather": "synthetic leather",
}

_USE_VOCABULARY: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("commercial", ("hotel", "restaurant", "commercial", "catering", "retail display")),
    ("industrial", ("industrial", "factory", "warehouse", "manufacturing")),
    ("agricultural", ("agricultural", "farm", "livestock", "irrigation")),
    ("household", (
        "household", "home", "kitchen", "domestic", "coffee", "tea",
        "dinner", "dining", "table", "bathroom", "bedroom",
    )),
)

_USE_ALIASES: Dict[str, str] = {
    "home": "household",
    "domestic": "household",
    "residential": "household",
    "personal": "household",
    "hotel": "commercial",
    "restaurant": "commercial",
    "business": "commercial",
    "factory": "industrial",
    "farm": "agricultural",
}

_GENDER_VOCABULARY: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("infant", ("baby", "babies", "infant", "infants", "toddler")),
    ("children", ("kids", "children", "child")),
    ("boys", ("boy", "boys")),
    ("girls", ("girl", "girls")),
    ("women", ("women", "woman", "ladies", "female")),
    ("men", ("men", "man", "male")),
    ("unisex", ("unisex",)),
)

GENDER_WORDS = frozenset([
    "men", "women", "boy", "boys", "girl", "girls", "male", "female", "unisex",
])
STOP_WORDS = frozenset([
    "for", "the", "and", "with", "of", "a", "an", "in", "on", "to",
    "made", "from", "by",
])
COMMON_ADJECTIVES = frozenset([
    "indoor", "outdoor", "small", "large", "big", "new", "old", "hot", "cold",
    "red", "blue", "green", "black", "white", "gray", "grey", "brown", "yellow",
    "pink", "purple", "orange", "electric", "electronic", "digital", "manual",
    "automatic", "portable", "wireless", "wired", "professional", "commercial",
    "industrial", "residential", "home", "office", "kitchen", "garden", "modern",
    "vintage", "antique", "custom", "standard", "mini", "micro", "super", "ultra",
])

_PRODUCT_BREAK_RE = re.compile(r"\b(?:with|for|of|in|made|from|that|which)\b")
_WORD_RE = re.compile(r"[a-z0-9][a-z0-9'\-]*")


# ---------------------------------------------------------------------------
# Matching helpers
# ---------------------------------------------------------------------------

def _phrase_regex(phrases: Iterable[str]) -> Pattern[str]:
    ordered = sorted(set(phrases), key=lambda p: (-len(p), p))
    alternation = "|".join(re.escape(p) for p in ordered)
    return re.compile(rf"\b(?:{alternation})(?:s|es)?\b")


_CARRYING_RE = _phrase_regex(CARRYING_CASE_PATTERNS)
_TOY_RE = _phrase_regex(TOY_PATTERNS)
_JEWELRY_RE = _phrase_regex(JEWELRY_PATTERNS)
_APPAREL_RE = _phrase_regex(APPAREL_PATTERNS)
_TEXTILE_HOME_RE = _phrase_regex(TEXTILE_HOME_PATTERNS)
_ELECTRONICS_RE = _phrase_regex(ELECTRONICS_PATTERNS)
_CABLE_RE = _phrase_regex(CABLE_PATTERNS)
_LIGHTING_RE = _phrase_regex(LIGHTING_PATTERNS)
_FURNITURE_RE = _phrase_regex(FURNITURE_PATTERNS)
_KNIT_RE = _phrase_regex(KNIT_GARMENTS)
_MATERIAL_RE = _phrase_regex(KNOWN_MATERIALS)


def _clean(text: object) -> str:
    return " ".join(str(text or "").lower().split())


def normalize_material(value: object) -> str:
    """Canonical material token used by the router and scorer."""
    cleaned = _clean(value)
    if not cleaned:
        return UNKNOWN_MATERIAL
    return _MATERIAL_ALIASES.get(cleaned, cleaned)


def normalize_use(value: object) -> Optional[str]:
    cleaned = _clean(value)
    if not cleaned:
        return None
    if cleaned in ("household", "commercial", "industrial", "agricultural"):
        return cleaned
    return _USE_ALIASES.get(cleaned, cleaned)


def find_material(text: str) -> Optional[str]:
    """First known material mentioned in ``text`` (longest phrase wins at a position)."""
    match = _MATERIAL_RE.search(_clean(text))
    if not match:
        return None
    word = match.group(0)
    for candidate in (word, word.rstrip("s")):
        if candidate in KNOWN_MATERIALS:
            return normalize_material(candidate)
    return normalize_material(word)


def is_fiber(material: str) -> bool:
    lowered = material.lower()
    return any(fiber in lowered for fiber in FIBERS)


def is_knitted_garment(product_type: str) -> bool:
    return bool(_KNIT_RE.search(_clean(product_type)))


def extract_keywords(text: str) -> List[str]:
    """Ordered, de-duplicated significant words."""
    seen: Dict[str, None] = {}
    for word in _WORD_RE.findall(_clean(text)):
        word = word.strip("'-")
        if len(word) > 2 and word not in STOP_WORDS:
            seen.setdefault(word, None)
    return list(seen)


def core_product_term(product_type: str) -> str:
    """Pick the noun that names the product ("men's cotton t-shirt" -> "t-shirt").

    Gender words, stop words and common adjectives are dropped; the last
    remaining term wins because English noun phrases end with the head noun.
    """
    terms = [t.strip("'-") for t in _WORD_RE.findall(_clean(product_type))]
    terms = [t for t in terms if t]
    if not terms:
        return ""

    def _significant(term: str) -> bool:
        bare = re.sub(r"'s$", "", term)
        return (
            len(term) > 2
            and bare not in GENDER_WORDS
            and term not in STOP_WORDS
            and term not in COMMON_ADJECTIVES
        )

    significant = [t for t in terms if _significant(t)]
    return significant[-1] if significant else terms[-1]


def _derive_product_type(description: str) -> str:
    """Noun phrase before the first preposition, without material words."""
    text = _clean(description)
    head = _PRODUCT_BREAK_RE.split(text, maxsplit=1)[0].strip() or text
    words = [w for w in head.split() if normalize_material(w) not in KNOWN_MATERIALS
             and w not in _MATERIAL_ALIASES and w not in ("a", "an", "the")]
    return " ".join(words) or head


def _detect_use(text: str) -> Optional[str]:
    for context, words in _USE_VOCABULARY:
        for word in words:
            if re.search(rf"\b{re.escape(word)}\b", text):
                return context
    return None


def _detect_gender(text: str) -> Optional[str]:
    for label, words in _GENDER_VOCABULARY:
        for word in words:
            if re.search(rf"\b{re.escape(word)}(?:'s|’s)?\b", text):
                return label
    return None


def _detect_construction(text: str, product_type: str) -> Optional[Tuple[str, str]]:
    if re.search(r"\b(?:knit|knitted|crochet|crocheted|jersey)\b", text):
        return "knit", INFERRED
    if re.search(r"\bwoven\b", text):
        return "woven", INFERRED
    if is_knitted_garment(product_type):
        return "knit", ASSUMED
    return None


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def extract_understanding(
    description: object,
    hints: Optional[Mapping[str, object]] = None,
) -> ProductUnderstanding:
    """Build a product understanding from text and optional stated hints.

    Recognized hint keys: ``material``, ``use``, ``product_type``,
    ``construction``, ``gender``, ``fiber``.  Hints always win over text.
    """
    text = _clean(description)
    hints = {str(k): v for k, v in (hints or {}).items() if v not in (None, "")}

    # -- product type ------------------------------------------------------
    if hints.get("product_type"):
        product_type = AttributeValue(_clean(hints["product_type"]), STATED)
    else:
        product_type = AttributeValue(_derive_product_type(text) or UNKNOWN_MATERIAL, INFERRED)
    type_text = product_type.value

    # -- function flags ----------------------------------------------------
    carrying = bool(_CARRYING_RE.search(text) or CARRYING_PHRASE_RE.search(text))
    toy = bool(_TOY_RE.search(text) or TOY_PHRASE_RE.search(text))
    jewelry = bool(_JEWELRY_RE.search(text) or RING_RE.search(text))
    apparel = bool(_APPAREL_RE.search(type_text))
    textile_home = bool(_TEXTILE_HOME_RE.search(type_text))
    cable = bool(_CABLE_RE.search(text))
    electronic = bool(_ELECTRONICS_RE.search(text)) or cable
    lighting = bool(_LIGHTING_RE.search(text))
    furniture = bool(_FURNITURE_RE.search(type_text)) and not lighting

    # -- material ----------------------------------------------------------
    if hints.get("material"):
        material = AttributeValue(normalize_material(hints["material"]), STATED)
    else:
        found = find_material(text)
        material = (
            AttributeValue(found, INFERRED) if found
            else AttributeValue(UNKNOWN_MATERIAL, ASSUMED)
        )

    # -- fiber -------------------------------------------------------------
    fiber: Optional[AttributeValue] = None
    if hints.get("fiber"):
        fiber = AttributeValue(normalize_material(hints["fiber"]), STATED)
    elif (apparel or textile_home) and material.value != UNKNOWN_MATERIAL and is_fiber(material.value):
        fiber = AttributeValue(material.value, material.source)

    # -- use context -------------------------------------------------------
    stated_use = normalize_use(hints.get("use"))
    if stated_use:
        use_context = AttributeValue(stated_use, STATED)
    else:
        detected = _detect_use(text)
        use_context = (
            AttributeValue(detected, INFERRED) if detected
            else AttributeValue("household", ASSUMED)
        )

    # -- construction & gender ----------------------------------------------
    construction: Optional[AttributeValue] = None
    if hints.get("construction"):
        construction = AttributeValue(_clean(hints["construction"]), STATED)
    elif apparel or textile_home:
        detected_construction = _detect_construction(text, type_text)
        if detected_construction:
            construction = AttributeValue(*detected_construction)

    gender: Optional[AttributeValue] = None
    if hints.get("gender"):
        gender = AttributeValue(_clean(hints["gender"]), STATED)
    else:
        detected_gender = _detect_gender(text)
        if detected_gender:
            gender = AttributeValue(detected_gender, INFERRED)

    # -- identification confidence ------------------------------------------
    recognized = any([carrying, toy, jewelry, apparel, textile_home, electronic, lighting, furniture])
    confidence = 0.5
    if recognized:
        confidence += 0.2
    if material.source != ASSUMED:
        confidence += 0.1
    if product_type.source == STATED:
        confidence += 0.1
    confidence = min(confidence, 0.9)

    return ProductUnderstanding(
        description=text,
        product_type=product_type,
        material=material,
        use_context=use_context,
        keywords=extract_keywords(text),
        construction=construction,
        gender=gender,
        fiber=fiber,
        is_for_carrying=carrying,
        is_toy=toy,
        is_jewelry=jewelry,
        is_wearable=apparel,
        is_lighting=lighting,
        is_textile=apparel or textile_home,
        is_electronic=electronic,
        is_furniture=furniture,
        confidence=round(confidence, 4),
    )


def apply_answers(
    hints: Optional[Mapping[str, object]],
    answers: Optional[Mapping[str, object]],
) -> Dict[str, object]:
    """Merge answers to earlier questions into the hints as stated values.

    A ``fiber`` answer also supplies the material when none was stated.
    """
    merged: Dict[str, object] = dict(hints or {})
    for key, value in (answers or {}).items():
        if value in (None, ""):
            continue
        merged[str(key)] = value
    if merged.get("fiber") and not merged.get("material"):
        merged["material"] = merged["fiber"]
    return merged


MATERIAL_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "cotton": ("cotton",),
    "polyester": ("synthetic", "man-made", "manmade", "polyester"),
    "synthetic": ("synthetic", "man-made", "manmade", "polyester", "nylon"),
    "nylon": ("synthetic", "man-made", "manmade", "nylon"),
    "fleece": ("synthetic", "man-made", "polyester"),
    "wool": ("wool", "fine animal hair"),
    "silk": ("silk",),
    "plastic": ("plastics", "plastic"),
    "silicone": ("plastics", "plastic"),
    "steel": ("iron or steel", "stainless", "steel"),
    "stainless steel": ("stainless steel", "stainless", "iron or steel"),
    "iron": ("iron or steel", "iron"),
    "ceramic": ("ceramic", "porcelain", "china"),
    "porcelain": ("porcelain", "china", "ceramic"),
    "glass": ("glass",),
    "aluminum": ("aluminum", "aluminium"),
    "wood": ("wood", "wooden"),
    "canvas": ("textile", "canvas"),
    "leather": ("leather",),
}


def material_terms(material: str) -> Tuple[str, ...]:
    """Phrases that indicate ``material`` inside a schedule description."""
    normalized = normalize_material(material)
    return MATERIAL_SYNONYMS.get(normalized, (normalized,))
