"""Chapter names and the cached chapter catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from tariffnav.caching.memory import ChapterCache
    from tariffnav.hts.store import HierarchyStore

logger = logging.getLogger(__name__)

CHAPTER_NAMES: Dict[str, str] = {
    "01": "Live Animals",
    "02": "Meat and Edible Meat Offal",
    "03": "Fish and Crustaceans",
    "04": "Dairy Produce; Eggs; Honey",
    "05": "Products of Animal Origin",
    "06": "Live Trees and Plants",
    "07": "Edible Vegetables",
    "08": "Edible Fruit and Nuts",
    "09": "Coffee, Tea, Spices",
    "10": "Cereals",
    "11": "Milling Industry Products",
    "12": "Oil Seeds and Oleaginous Fruits",
    "13": "Lac; Gums; Resins",
    "14": "Vegetable Plaiting Materials",
    "15": "Animal or Vegetable Fats and Oils",
    "16": "Preparations of Meat or Fish",
    "17": "Sugars and Sugar Confectionery",
    "18": "Cocoa and Cocoa Preparations",
    "19": "Preparations of Cereals",
    "20": "Preparations of Vegetables",
    "21": "Miscellaneous Edible Preparations",
    "22": "Beverages, Spirits, Vinegar",
    "23": "Food Industry Residues",
    "24": "Tobacco and Tobacco Products",
    "25": "Salt; Sulfur; Earths; Stone",
    "26": "Ores, Slag, and Ash",
    "27": "Mineral Fuels, Oils",
    "28": "Inorganic Chemicals",
    "29": "Organic Chemicals",
    "30": "Pharmaceutical Products",
    "31": "Fertilizers",
    "32": "Tanning or Dyeing Extracts",
    "33": "Essential Oils; Perfumery",
    "34": "Soap; Waxes; Polishes",
    "35": "Albuminoidal Substances; Glues",
    "36": "Explosives; Matches",
    "37": "Photographic or Cinematographic Goods",
    "38": "Miscellaneous Chemical Products",
    "39": "Plastics and Articles Thereof",
    "40": "Rubber and Articles Thereof",
    "41": "Raw Hides and Skins; Leather",
    "42": "Leather Articles; Travel Goods",
    "43": "Furskins and Artificial Fur",
    "44": "Wood and Articles of Wood",
    "45": "Cork and Articles of Cork",
    "46": "Manufactures of Straw",
    "47": "Pulp of Wood",
    "48": "Paper and Paperboard",
    "49": "Printed Books, Newspapers",
    "50": "Silk",
    "51": "Wool, Fine Animal Hair",
    "52": "Cotton",
    "53": "Other Vegetable Textile Fibers",
    "54": "Man-Made Filaments",
    "55": "Man-Made Staple Fibers",
    "56": "Wadding, Felt, Nonwovens",
    "57": "Carpets and Textile Floor Coverings",
    "58": "Special Woven Fabrics",
    "59": "Impregnated Textile Fabrics",
    "60": "Knitted or Crocheted Fabrics",
    "61": "Apparel, Knitted or Crocheted",
    "62": "Apparel, Not Knitted",
    "63": "Other Made Up Textile Articles",
    "64": "Footwear, Gaiters",
    "65": "Headgear and Parts Thereof",
    "66": "Umbrellas, Walking Sticks",
    "67": "Prepared Feathers; Artificial Flowers",
    "68": "Articles of Stone, Plaster, Cement",
    "69": "Ceramic Products",
    "70": "Glass and Glassware",
    "71": "Precious Metals, Jewelry",
    "72": "Iron and Steel",
    "73": "Articles of Iron or Steel",
    "74": "Copper and Articles Thereof",
    "75": "Nickel and Articles Thereof",
    "76": "Aluminum and Articles Thereof",
    "78": "Lead and Articles Thereof",
    "79": "Zinc and Articles Thereof",
    "80": "Tin and Articles Thereof",
    "81": "Other Base Metals; Cermets",
    "82": "Tools, Cutlery",
    "83": "Miscellaneous Articles of Base Metal",
    "84": "Nuclear Reactors, Boilers, Machinery",
    "85": "Electrical Machinery and Equipment",
    "86": "Railway Locomotives",
    "87": "Vehicles Other Than Railway",
    "88": "Aircraft, Spacecraft",
    "89": "Ships, Boats",
    "90": "Optical, Medical, Measuring Instruments",
    "91": "Clocks and Watches",
    "92": "Musical Instruments",
    "93": "Arms and Ammunition",
    "94": "Furniture; Bedding; Lamps",
    "95": "Toys, Games, Sports Equipment",
    "96": "Miscellaneous Manufactured Articles",
    "97": "Works of Art, Antiques",
    "98": "Special Classification Provisions",
    "99": "Special Import Provisions",
}


def chapter_name(chapter: str) -> str:
    return CHAPTER_NAMES.get(chapter, f"Chapter {chapter}")


@dataclass(frozen=True)
class ChapterEntry:
    code: str
    name: str


class ChapterCatalog:
    """Chapter listing backed by an injected cache.

    Entries are keyed by the store's data version, so reloading the hierarchy
    with different content never serves a stale listing.
    """

    def __init__(self, store: "HierarchyStore", cache: Optional["ChapterCache"] = None) -> None:
        self._store = store
        self._cache = cache

    def _cache_key(self) -> str:
        return f"chapters:{self._store.version}"

    def chapters(self) -> List[ChapterEntry]:
        key = self._cache_key()
        if self._cache is not None:
            cached = self._cache.get(key)
            if cached is not None:
                return [ChapterEntry(code=item["code"], name=item["name"]) for item in cached]

        entries = [
            ChapterEntry(code=node.code, name=node.description or chapter_name(node.code))
            for node in self._store.chapters()
        ]
        if self._cache is not None:
            self._cache.set(key, [{"code": e.code, "name": e.name} for e in entries])
            logger.debug("Cached %d chapter entries under %s", len(entries), key)
        return entries
