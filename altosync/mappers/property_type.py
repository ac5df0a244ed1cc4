# altosync/mappers/property_type.py
from ..utils import logger

# ordered: "Town House Flat" is a House
TYPE_KEYWORDS = [
    (("house",), "House"),
    (("bungalow",), "Bungalow"),
    (("flat", "apartment"), "Flat"),
    (("maisonette",), "Maisonette"),
    (("land",), "Land"),
    (("farm",), "Farm"),
    (("commercial",), "Commercial"),
    (("garage",), "Garage"),
    (("parking",), "Parking"),
]
OTHER = "Other"


def canonical_type(raw: str) -> str:
    lower = (raw or "").strip().lower()
    if not lower:
        logger.warning("Empty property type; using '%s'", OTHER)
        return OTHER
    for words, name in TYPE_KEYWORDS:
        if any(w in lower for w in words):
            return name
    logger.debug("Property type %r has no canonical match", raw)
    return OTHER
