# altosync/xmlutil.py
"""Small helpers around BeautifulSoup's XML parser."""
import hashlib
import re
from bs4 import BeautifulSoup
from .errors import ParseError

XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'


def parse_xml(text, root):
    """Parse ``text`` and return its ``root`` element, or raise ParseError."""
    if not text or not str(text).strip():
        raise ParseError(f"empty document, expected <{root}>")
    try:
        soup = BeautifulSoup(text, "xml")
    except Exception as e:  # parser backends raise their own types
        raise ParseError(f"unparseable XML: {e}") from e
    node = soup.find(root)
    if node is None:
        raise ParseError(f"missing <{root}> element")
    return node


def child(node, path):
    """Walk a ``a/b/c`` path of direct children; None when any step is missing."""
    current = node
    for part in path.split("/"):
        if current is None:
            return None
        current = current.find(part, recursive=False)
    return current


def text_at(node, path, default=""):
    found = child(node, path) if node is not None else None
    if found is None:
        return default
    return found.get_text().strip()


def attr_at(node, path, attr, default=""):
    found = child(node, path) if path else node
    if found is None:
        return default
    value = found.get(attr)
    return value.strip() if value is not None else default


def children(node, path):
    """All elements at ``parent/name``, e.g. ``files/file``."""
    if node is None:
        return []
    parent_path, _, name = path.rpartition("/")
    parent = child(node, parent_path) if parent_path else node
    if parent is None:
        return []
    return parent.find_all(name, recursive=False)


def canonical_payload(element) -> str:
    return XML_DECLARATION + str(element)


def fingerprint(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def strip_tags(html: str) -> str:
    text = re.sub(r"<[^>]+>", " ", html or "")
    return re.sub(r"\s+", " ", text).strip()
