# altosync/mappers/documents.py
"""Brochure, floorplan and EPC links into the CMS's ten fixed pdf columns."""
from typing import List

from ..utils import logger
from ..xmlutil import children, text_at

SLOT_COUNT = 10
BROCHURE_SLOTS = (0, 1, 6, 7, 8, 9)
FLOORPLAN_SLOTS = (2, 3, 4)
EPC_SLOT = 5

FLOORPLAN_TYPE = "2"
BROCHURE_TYPE = "7"
EPC_TYPE = "9"


class DocumentSlots:
    def __init__(self):
        self.slots: List[str] = [""] * SLOT_COUNT

    def fill(self, positions, urls) -> int:
        """Put ``urls`` into the free ``positions`` in order; returns how many were placed."""
        placed = 0
        free = [p for p in positions if not self.slots[p]]
        for position, url in zip(free, urls):
            self.slots[position] = url
            placed += 1
        return placed

    def as_list(self) -> List[str]:
        return list(self.slots)


def map_documents(node) -> DocumentSlots:
    brochures, floorplans, epcs = [], [], []
    for f in children(node, "files/file"):
        url = text_at(f, "url")
        if not url:
            continue
        file_type = (f.get("type") or "").strip()
        if file_type == BROCHURE_TYPE and ".pdf" in url.lower():
            brochures.append(url)
        elif file_type == FLOORPLAN_TYPE:
            floorplans.append(url)
        elif file_type == EPC_TYPE:
            epcs.append(url)

    slots = DocumentSlots()
    slots.fill(BROCHURE_SLOTS, brochures)
    slots.fill(FLOORPLAN_SLOTS, floorplans)
    slots.fill((EPC_SLOT,), epcs)
    dropped = max(0, len(brochures) - len(BROCHURE_SLOTS)) + max(0, len(floorplans) - len(FLOORPLAN_SLOTS))
    if dropped:
        logger.warning("%s document links did not fit the pdf columns", dropped)
    return slots
