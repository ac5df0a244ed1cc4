# altosync/crud.py
"""Database helpers for the CMS destination tables.

Holds the dialect-aware upsert used for natural-key writes, the get-or-create
helpers for dimension tables, and the small photo / company / category
queries the importer needs. Nothing here commits: the caller owns the
transaction so a failed property can be rolled back as a whole.
"""
from datetime import datetime, timezone
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.orm import Session
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import ImageSizes
from .models import (
    Category, Company, Configuration, Currency, Photo, Property,
    PropertyCategory, XmlDetail, PDF_SLOT_COLUMNS,
)
from .utils import logger, slugify

FIXED_CATEGORIES = {
    5: "For Sale - Residential",
    6: "To Let - Residential",
    7: "For Sale - Commercial",
    8: "To Let - Commercial",
}

# legacy currency codes still found in older CMS installs
CURRENCY_ALIASES = {"GBP": ["GBP", "UKP"]}
CURRENCY_DEFAULTS = {
    "GBP": ("Pound Sterling", "£"),
    "EUR": ("Euro", "€"),
    "USD": ("US Dollar", "$"),
}

IMAGE_SIZE_FIELDS = {
    "images_thumbnail_width": "thumb_width",
    "images_thumbnail_height": "thumb_height",
    "images_large_width": "medium_width",
    "images_large_height": "medium_height",
    "images_quality": "quality",
}


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    if dialect in ("mysql", "mariadb"):
        return mysql_insert
    raise NotImplementedError(f"upsert not supported for dialect {dialect}")


def upsert(db: Session, model, data: Dict[str, Any], key_columns: Sequence[str],
           preserve: Iterable[str] = ("id",)):
    """Insert ``data`` or update the row matching ``key_columns``.

    Columns named in ``preserve`` keep their stored value on update.
    """
    table = model.__table__
    insert = _insert_for(db)
    stmt = insert(table).values(**data)
    skip = set(preserve) | set(key_columns)
    if insert is mysql_insert:
        excluded = {k: stmt.inserted[k] for k in data if k not in skip}
        if "updated_at" in table.c:
            excluded["updated_at"] = func.now()
        stmt = stmt.on_duplicate_key_update(**excluded)
    else:
        # copy all written columns from EXCLUDED, but refresh the timestamp
        excluded = {k: stmt.excluded[k] for k in data if k not in skip}
        if "updated_at" in table.c:
            excluded["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=list(key_columns), set_=excluded)
    db.execute(stmt)


def get_property_id(db: Session, alto_id: str) -> Optional[int]:
    return db.execute(select(Property.id).where(Property.alto_id == alto_id)).scalar()


def upsert_property(db: Session, data: Dict[str, Any]):
    """Upsert one destination property keyed by ``alto_id``.

    Returns ``(property_id, inserted)``. ``hits`` and ``created`` survive
    updates so CMS counters and the original listing date are kept.
    """
    existing_id = get_property_id(db, data["alto_id"])
    upsert(db, Property, data, ["alto_id"], preserve=("id", "hits", "created"))
    if existing_id is not None:
        return existing_id, False
    return get_property_id(db, data["alto_id"]), True


def get_property(db: Session, alto_id: str):
    return db.query(Property).filter(Property.alto_id == alto_id).first()


def list_properties(db: Session, skip: int = 0, limit: int = 50, filters: Dict = None):
    q = db.query(Property)
    if filters:
        conds = []
        if filters.get("category_id") is not None:
            conds.append(Property.category_id == filters["category_id"])
        if filters.get("min_price") is not None:
            conds.append(Property.price >= filters["min_price"])
        if filters.get("max_price") is not None:
            conds.append(Property.price <= filters["max_price"])
        if filters.get("min_beds") is not None:
            conds.append(Property.bed_room >= filters["min_beds"])
        if filters.get("postcode"):
            conds.append(Property.postcode.ilike(f"{filters['postcode']}%"))
        if conds:
            q = q.filter(and_(*conds))
    total = q.count()
    items = q.order_by(Property.id).offset(skip).limit(limit).all()
    return {"total": total, "items": items}


def get_or_create_dimension(db: Session, model, name: str, **extra) -> int:
    """Return the id of the row named ``name``, inserting it on a miss.

    Empty names resolve to 0, the CMS "unknown" id.
    """
    name = (name or "").strip()
    if not name:
        return 0
    column = getattr(model, model.lookup_column)
    row = db.query(model).filter(column == name).first()
    if row:
        return row.id
    row = model(**{model.lookup_column: name}, published=1, **extra)
    db.add(row)
    db.flush()
    logger.info("Created %s '%s' (id %s)", model.__tablename__, name, row.id)
    return row.id


def get_currency_id(db: Session, code: str) -> int:
    code = (code or "").strip().upper()
    if not code:
        return 0
    candidates = CURRENCY_ALIASES.get(code, [code])
    row = (
        db.query(Currency)
        .filter(Currency.currency_code.in_(candidates))
        .order_by(Currency.id)
        .first()
    )
    if row:
        return row.id
    name, symbol = CURRENCY_DEFAULTS.get(code, (code, code))
    return get_or_create_dimension(db, Currency, code, currency_name=name, currency_symbol=symbol)


def ensure_categories(db: Session):
    """Make sure the four fixed destination categories exist with their ids."""
    for category_id, name in FIXED_CATEGORIES.items():
        if db.get(Category, category_id) is None:
            db.add(Category(id=category_id, category_name=name,
                            category_alias=slugify(name), published=1))
    db.flush()


def replace_property_category(db: Session, pid: int, category_id: int):
    db.execute(delete(PropertyCategory).where(PropertyCategory.pid == pid))
    db.add(PropertyCategory(pid=pid, category_id=category_id))
    db.flush()


def apply_document_slots(db: Session, pid: int, slots: List[str]):
    values = {column: (slots[i] if i < len(slots) else "") for i, column in enumerate(PDF_SLOT_COLUMNS)}
    db.execute(update(Property).where(Property.id == pid).values(**values))


def get_company_id(db: Session, alto_branch_id: str) -> int:
    if not alto_branch_id:
        return 0
    found = db.execute(select(Company.id).where(Company.alto_branch_id == str(alto_branch_id))).scalar()
    return found or 0


def count_companies(db: Session) -> int:
    return db.execute(select(func.count(Company.id))).scalar() or 0


def archive_xml(db: Session, kind: str, xml_id: str, content: str):
    upsert(db, XmlDetail, {"kind": kind, "xml_id": str(xml_id), "obj_content": content, "imported": 0},
           ["kind", "xml_id"])


def count_photos(db: Session, pid: int) -> int:
    return db.execute(select(func.count(Photo.id)).where(Photo.pro_id == pid)).scalar() or 0


def get_photos(db: Session, pid: int) -> List[Photo]:
    return db.query(Photo).filter(Photo.pro_id == pid).order_by(Photo.ordering, Photo.id).all()


def sync_photo(db: Session, pid: int, filename: str, description: str, ordering: int,
               is_default: bool = False) -> bool:
    """Insert the photo row for ``(pid, filename)`` or refresh description/ordering.

    Returns True when a row was inserted.
    """
    row = db.query(Photo).filter(Photo.pro_id == pid, Photo.image == filename).first()
    if row:
        row.image_desc = description
        row.ordering = ordering
        db.flush()
        return False
    db.add(Photo(pro_id=pid, image=filename, image_desc=description,
                 ordering=ordering, is_default=1 if is_default else 0))
    db.flush()
    return True


def load_image_sizes(db: Session, defaults: ImageSizes) -> ImageSizes:
    """Overlay the CMS image size settings on ``defaults``."""
    values = {
        "thumb_width": defaults.thumb_width,
        "thumb_height": defaults.thumb_height,
        "medium_width": defaults.medium_width,
        "medium_height": defaults.medium_height,
        "quality": defaults.quality,
    }
    rows = db.query(Configuration).filter(Configuration.fieldname.in_(list(IMAGE_SIZE_FIELDS))).all()
    for row in rows:
        try:
            value = int(str(row.fieldvalue).strip())
        except (TypeError, ValueError):
            logger.warning("Ignoring non-numeric %s=%r", row.fieldname, row.fieldvalue)
            continue
        if value > 0:
            values[IMAGE_SIZE_FIELDS[row.fieldname]] = value
    return ImageSizes(**values)


def truncate(db: Session, models):
    for model in models:
        db.execute(delete(model))
        logger.info("Truncated %s", model.__tablename__)


def utcnow():
    return datetime.now(timezone.utc)
