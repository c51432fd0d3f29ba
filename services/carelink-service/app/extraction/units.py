"""
CareLink Service — Unit normalization

Maps free-text unit tokens ("kgs", "Ltr", "pkt.") onto the canonical unit
vocabulary used by donation items.
"""
from types import MappingProxyType

CANONICAL_UNITS: tuple[str, ...] = (
    "kg", "grams", "liters", "ml", "packets", "pieces", "boxes", "bottles", "dozen",
    "pairs", "sets", "bags", "cans", "jars", "tubes", "rolls", "bundles",
)

UNIT_ALIASES = MappingProxyType({
    # weight
    "kg": "kg", "kgs": "kg", "kilogram": "kg", "kilograms": "kg",
    "g": "grams", "gm": "grams", "gms": "grams", "gram": "grams", "grams": "grams",
    # volume
    "l": "liters", "lt": "liters", "ltr": "liters", "ltrs": "liters",
    "liter": "liters", "liters": "liters", "litre": "liters", "litres": "liters",
    "ml": "ml", "milliliter": "ml", "milliliters": "ml",
    # count
    "pc": "pieces", "pcs": "pieces", "piece": "pieces", "pieces": "pieces",
    "nos": "pieces", "no": "pieces", "unit": "pieces", "units": "pieces",
    "dozen": "dozen", "dzn": "dozen",
    "pair": "pairs", "pairs": "pairs",
    "set": "sets", "sets": "sets",
    # packaging
    "pkt": "packets", "pkts": "packets", "packet": "packets", "packets": "packets",
    "box": "boxes", "boxes": "boxes",
    "bottle": "bottles", "bottles": "bottles", "btl": "bottles", "btls": "bottles",
    "bag": "bags", "bags": "bags",
    "can": "cans", "cans": "cans",
    "jar": "jars", "jars": "jars",
    "tube": "tubes", "tubes": "tubes",
    "roll": "rolls", "rolls": "rolls",
    "bundle": "bundles", "bundles": "bundles",
})


def _clean(token: str) -> str:
    return token.strip().lower().replace(".", "").replace(",", "")


def is_unit(token: str) -> bool:
    return _clean(token) in UNIT_ALIASES


def normalize_unit(token: str) -> str:
    """Return the canonical unit for `token`, or `token` unchanged if unknown."""
    return UNIT_ALIASES.get(_clean(token), token.strip())
