"""Static travel data: destination climate keywords and packing item lists.

Item and section names are locale keys (``packing.item.<id>``,
``packing.section.<id>``) so the packing answer can be rendered in any
supported language.
"""
from typing import Dict, List, Optional, Tuple

# checked in order; first class with a matching keyword wins
CLIMATE_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("cold", (
        "iceland", "reykjavik", "norway", "oslo", "tromso", "finland", "helsinki", "lapland",
        "rovaniemi", "sweden", "greenland", "alaska", "antarctica", "siberia", "canada",
        "switzerland", "zermatt", "swiss alps", "alps", "patagonia",
    )),
    ("beach", (
        "beach", "coast", "island", "caribbean", "maldives", "hawaii", "mediterranean",
        "bali", "mykonos", "santorini", "crete", "ibiza", "mallorca", "cancun", "seychelles",
    )),
    ("hot", (
        "dubai", "egypt", "cairo", "morocco", "marrakech", "india", "thailand", "bangkok",
        "mexico", "arizona", "sahara", "qatar", "doha", "singapore",
    )),
    ("rainy", (
        "london", "ireland", "dublin", "scotland", "edinburgh", "seattle", "amsterdam",
        "bergen", "vancouver",
    )),
)

DEFAULT_CLIMATE = "temperate"

ESSENTIALS = ["passport", "id_card", "wallet", "phone_charger", "underwear", "socks"]

# short: up to 3 days, medium: up to 7, long: longer
CLOTHING_BY_DURATION: Dict[str, List[Tuple[str, int]]] = {
    "short": [("tshirts", 2), ("pants", 1), ("sleepwear", 1)],
    "medium": [("tshirts", 4), ("pants", 2), ("sleepwear", 2), ("light_jacket", 1)],
    "long": [("tshirts", 7), ("pants", 3), ("sleepwear", 2), ("light_jacket", 1), ("formal_outfit", 1)],
}

WEATHER_ITEMS: Dict[str, List[str]] = {
    "hot": ["sunscreen", "sunglasses", "hat", "breathable_clothes", "flip_flops"],
    "cold": ["winter_jacket", "thermal_underwear", "gloves", "scarf", "warm_hat", "warm_socks"],
    "rainy": ["umbrella", "rain_jacket", "waterproof_shoes"],
    "beach": ["swimsuit", "beach_towel", "flip_flops", "sunscreen_spf50", "after_sun", "beach_bag"],
    "temperate": ["light_jacket"],
}

ACTIVITY_ITEMS: Dict[str, List[str]] = {
    "hiking": ["hiking_boots", "water_bottle", "first_aid_kit"],
    "business": ["business_attire", "laptop"],
    "skiing": ["ski_jacket", "ski_goggles", "thermal_layers", "gloves"],
}

ELECTRONICS = ["power_bank", "universal_adapter", "headphones"]
TOILETRIES = ["toothbrush", "toothpaste", "deodorant", "shampoo"]
MEDICATIONS = ["personal_medications", "pain_relievers", "band_aids", "hand_sanitizer"]


def classify_climate(*texts: Optional[str]) -> Optional[str]:
    """Climate class for the first text mentioning a known place, else None."""
    for text in texts:
        if not text:
            continue
        t = text.lower()
        for climate, keywords in CLIMATE_KEYWORDS:
            if any(k in t for k in keywords):
                return climate
    return None


def duration_bucket(days: Optional[int]) -> str:
    if days is None:
        return "medium"
    if days <= 3:
        return "short"
    if days <= 7:
        return "medium"
    return "long"


def packing_sections(climate: str, days: Optional[int], activities: List[str]) -> List[Tuple[str, List[Tuple[str, int]]]]:
    """Ordered (section id, [(item id, quantity)]) for a trip; duplicates keep their first section."""
    sections = [
        ("essentials", [(i, 1) for i in ESSENTIALS]),
        ("clothing", list(CLOTHING_BY_DURATION[duration_bucket(days)])),
        ("weather", [(i, 1) for i in WEATHER_ITEMS.get(climate, WEATHER_ITEMS[DEFAULT_CLIMATE])]),
    ]
    activity_items = [i for a in activities for i in ACTIVITY_ITEMS.get(a, [])]
    if activity_items:
        sections.append(("activity", [(i, 1) for i in activity_items]))
    sections += [
        ("electronics", [(i, 1) for i in ELECTRONICS]),
        ("toiletries", [(i, 1) for i in TOILETRIES]),
        ("medications", [(i, 1) for i in MEDICATIONS]),
    ]

    seen = set()
    out = []
    for section, items in sections:
        kept = []
        for item, qty in items:
            if item in seen:
                continue
            seen.add(item)
            kept.append((item, qty))
        if kept:
            out.append((section, kept))
    return out
