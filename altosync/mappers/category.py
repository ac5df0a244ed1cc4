# altosync/mappers/category.py
"""Destination category for a property.

Decisions run through an ordered rule list: the upstream ``database``
channel code, then market x class, then a keyword heuristic, then the
default. The first rule that returns an id wins; anything past the
channel rule is logged as a warning so misclassification shows up.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..utils import logger
from ..xmlutil import attr_at, text_at

FOR_SALE_RESIDENTIAL = 5
TO_LET_RESIDENTIAL = 6
FOR_SALE_COMMERCIAL = 7
TO_LET_COMMERCIAL = 8

CATEGORY_NAMES = {
    FOR_SALE_RESIDENTIAL: "For Sale - Residential",
    TO_LET_RESIDENTIAL: "To Let - Residential",
    FOR_SALE_COMMERCIAL: "For Sale - Commercial",
    TO_LET_COMMERCIAL: "To Let - Commercial",
}
DEFAULT_CATEGORY_ID = FOR_SALE_RESIDENTIAL

CHANNEL_CATEGORIES = {
    "1": FOR_SALE_RESIDENTIAL,
    "2": TO_LET_RESIDENTIAL,
    "3": FOR_SALE_COMMERCIAL,
    "4": TO_LET_COMMERCIAL,
}

MARKET_CATEGORIES = {
    ("for sale", "residential"): FOR_SALE_RESIDENTIAL,
    ("to let", "residential"): TO_LET_RESIDENTIAL,
    ("for sale", "commercial"): FOR_SALE_COMMERCIAL,
    ("to let", "commercial"): TO_LET_COMMERCIAL,
}

COMMERCIAL_TYPE_WORDS = ("commercial", "office", "retail", "industrial", "warehouse", "shop", "restaurant", "bar")


@dataclass(frozen=True)
class CategoryDecision:
    category_id: int
    name: str
    rule: str


@dataclass(frozen=True)
class CategorySignals:
    channel: str = ""
    department: str = ""
    property_type: str = ""
    web_status_code: Optional[int] = None
    web_status_text: str = ""
    transaction: str = ""
    has_commercial_node: bool = False
    price_qualifier: str = ""
    price_display: str = ""

    @property
    def market(self) -> str:
        code = self.web_status_code
        if code is not None and 100 <= code <= 104:
            return "to let"
        if code is not None and 0 <= code <= 4:
            return "for sale"
        if self.transaction in ("rental", "let", "lease"):
            return "to let"
        if self.transaction in ("sale", "sales"):
            return "for sale"
        return self.department

    @property
    def property_class(self) -> str:
        if self.has_commercial_node or "commercial" in self.property_type:
            return "commercial"
        return "residential"


def _status_code(node) -> Optional[int]:
    raw = attr_at(node, "web_status", "id") or text_at(node, "web_status")
    return int(raw) if raw.isdigit() else None


def extract_signals(node) -> CategorySignals:
    if node is None:
        return CategorySignals()
    department = text_at(node, "department") or text_at(node, "web_department")
    return CategorySignals(
        channel=(node.get("database") or "").strip(),
        department=department.lower(),
        property_type=text_at(node, "type").lower(),
        web_status_code=_status_code(node),
        web_status_text=text_at(node, "web_status").lower(),
        transaction=text_at(node, "commercial/transaction").lower(),
        has_commercial_node=node.find("commercial", recursive=False) is not None,
        price_qualifier=text_at(node, "price/qualifier").lower(),
        price_display=text_at(node, "price/display_text").lower(),
    )


def _by_channel(s: CategorySignals) -> Optional[int]:
    return CHANNEL_CATEGORIES.get(s.channel)


def _by_market(s: CategorySignals) -> Optional[int]:
    return MARKET_CATEGORIES.get((s.market, s.property_class))


# heuristic scan, first match wins
HEURISTICS: List[Tuple[str, Callable[[CategorySignals], bool], int]] = [
    ("commercial department or type",
     lambda s: s.department == "commercial" or any(w in s.property_type for w in COMMERCIAL_TYPE_WORDS),
     FOR_SALE_COMMERCIAL),
    ("lettings department", lambda s: s.department in ("lettings", "rental", "to let"), TO_LET_RESIDENTIAL),
    ("sales department", lambda s: s.department in ("sales", "for sale"), FOR_SALE_RESIDENTIAL),
    ("letting status code",
     lambda s: s.web_status_code is not None and 100 <= s.web_status_code <= 104, TO_LET_RESIDENTIAL),
    ("sale status code",
     lambda s: s.web_status_code is not None and 0 <= s.web_status_code <= 4, FOR_SALE_RESIDENTIAL),
    ("letting status text", lambda s: "let" in s.web_status_text, TO_LET_RESIDENTIAL),
    ("sale status text", lambda s: "sale" in s.web_status_text, FOR_SALE_RESIDENTIAL),
    ("letting price wording",
     lambda s: any(w in s.price_qualifier for w in ("pcm", "pw"))
     or any(w in s.price_display for w in ("pcm", "per week", "per calendar month")),
     TO_LET_RESIDENTIAL),
]


def _by_heuristic(s: CategorySignals) -> Optional[int]:
    for name, predicate, category_id in HEURISTICS:
        if predicate(s):
            logger.debug("Category heuristic '%s' matched", name)
            return category_id
    return None


RULES: List[Tuple[str, Callable[[CategorySignals], Optional[int]]]] = [
    ("channel", _by_channel),
    ("market", _by_market),
    ("heuristic", _by_heuristic),
    ("default", lambda s: DEFAULT_CATEGORY_ID),
]


def decide_category(signals: CategorySignals) -> CategoryDecision:
    for rule, resolve in RULES:
        category_id = resolve(signals)
        if category_id is None:
            continue
        if rule != "channel":
            logger.warning(
                "Category fell back to %s rule -> %s (channel=%r, market=%r, class=%r, type=%r)",
                rule, category_id, signals.channel, signals.market, signals.property_class, signals.property_type,
            )
        return CategoryDecision(category_id, CATEGORY_NAMES[category_id], rule)
    # unreachable while the default rule is last
    return CategoryDecision(DEFAULT_CATEGORY_ID, CATEGORY_NAMES[DEFAULT_CATEGORY_ID], "default")


def map_category(node) -> CategoryDecision:
    return decide_category(extract_signals(node))
