# altosync/mappers/status.py
"""Upstream web status -> CMS sold flag plus a display label.

``isSold`` is a tri-state in the CMS: 0 current, 1 concluded
(sold / let / completed / withdrawn), 3 agreed (under offer, let agreed).
"""
from dataclasses import dataclass
from typing import Callable, List, Tuple

from ..utils import logger
from ..xmlutil import attr_at, text_at

CURRENT = 0
CONCLUDED = 1
AGREED = 3


@dataclass(frozen=True)
class StatusResult:
    is_sold: int
    label: str


AVAILABLE = StatusResult(CURRENT, "Available")

STATUS_CODES = {
    0: StatusResult(CURRENT, "For Sale / To Let"),
    1: StatusResult(AGREED, "Let Agreed / Under Offer"),
    2: StatusResult(CONCLUDED, "Let"),
    3: StatusResult(CONCLUDED, "Withdrawn"),
    4: StatusResult(CONCLUDED, "Completed"),
    100: StatusResult(CURRENT, "To Let (New Lettings)"),
    101: StatusResult(AGREED, "Let Agreed (New Lettings)"),
    102: StatusResult(CONCLUDED, "Let (New Lettings)"),
    103: StatusResult(CONCLUDED, "Withdrawn (New Lettings)"),
    104: StatusResult(CONCLUDED, "Completed (New Lettings)"),
}

# checked in order against the lower-cased status text
STATUS_TEXT_RULES: List[Tuple[Callable[[str], bool], StatusResult]] = [
    (lambda t: "under offer" in t, StatusResult(AGREED, "Under Offer")),
    (lambda t: "let agreed" in t, StatusResult(AGREED, "Let Agreed")),
    (lambda t: "pending" in t or "stc" in t, StatusResult(AGREED, "Sold Subject to Contract")),
    (lambda t: "completed" in t, StatusResult(CONCLUDED, "Completed")),
    (lambda t: "withdrawn" in t, StatusResult(CONCLUDED, "Withdrawn")),
    (lambda t: "sold" in t, StatusResult(CONCLUDED, "Sold")),
    (lambda t: "to let" in t, StatusResult(CURRENT, "To Let")),
    (lambda t: "for sale" in t, StatusResult(CURRENT, "For Sale")),
    (lambda t: t == "let", StatusResult(CONCLUDED, "Let")),
    (lambda t: "available" in t, AVAILABLE),
]


def map_status_value(value) -> StatusResult:
    raw = str(value if value is not None else "").strip()
    if not raw:
        return AVAILABLE
    if raw.isdigit():
        found = STATUS_CODES.get(int(raw))
        if found:
            return found
        logger.warning("Unknown web status code %s; treating as available", raw)
        return AVAILABLE
    text = raw.lower()
    for matches, result in STATUS_TEXT_RULES:
        if matches(text):
            return result
    logger.warning("Unknown web status text %r; treating as available", raw)
    return AVAILABLE


def map_status(node) -> StatusResult:
    if node is None:
        return AVAILABLE
    return map_status_value(attr_at(node, "web_status", "id") or text_at(node, "web_status"))
