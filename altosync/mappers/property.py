# altosync/mappers/property.py
"""Full property XML -> destination property row.

``map_property`` is pure: it turns the detail document into a
``MappedProperty`` of plain values. ``PropertyImporter`` then resolves
dimension ids, upserts the row, re-links its category, writes document
slots and runs the image pipeline, all inside the caller's transaction.
"""
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from .. import crud
from ..config import Settings
from ..errors import MissingKey
from ..images import ImagePipeline, ImageStats
from ..models import PropertyType
from ..schemas import MappedProperty
from ..utils import logger, slugify, to_float, to_int
from ..xmlutil import attr_at, child, strip_tags, text_at
from .address import AddressParts, map_address, resolve_address_ids
from .category import map_category
from .documents import map_documents
from .property_type import canonical_type
from .status import map_status

SUMMARY_LENGTH = 300


def property_key(node) -> str:
    alto_id = (node.get("id") or "").strip() if node is not None else ""
    if not alto_id:
        alto_id = text_at(node, "prop_id")
    if not alto_id:
        raise MissingKey("property has neither an id attribute nor <prop_id>")
    return alto_id


def parse_last_changed(raw: Optional[str]) -> date:
    """``2024-05-01T10:20:30.123`` -> ``date(2024, 5, 1)``; today when unusable."""
    clean = re.sub(r"\.\d+$", "", (raw or "").strip()).replace("T", " ")
    try:
        return date.fromisoformat(clean[:10])
    except ValueError:
        return date.today()


def _price(node):
    raw = text_at(node, "price/value") or text_at(node, "price")
    # pence are dropped, "£1,250.00" is 1250
    return float(to_int(raw.split(".")[0]))


def _title(node, alto_id: str) -> str:
    display = text_at(node, "address/display")
    if display:
        return display
    parts = [text_at(node, f"address/{p}") for p in ("name", "street", "locality")]
    return ", ".join(p for p in parts if p) or f"Property ID: {alto_id}"


def map_property(node, default_country: str = "United Kingdom", default_currency: str = "GBP") -> MappedProperty:
    alto_id = property_key(node)
    title = _title(node, alto_id)
    address = map_address(child(node, "address"), default_country)
    category = map_category(node)
    status = map_status(node)

    description = text_at(node, "description")
    summary = text_at(node, "summary")
    if not summary and description:
        summary = strip_tags(description)[:SUMMARY_LENGTH]

    currency = (
        attr_at(node, "price", "currency_code")
        or text_at(node, "price/currency")
        or default_currency
    )
    qualifier = text_at(node, "price/qualifier")
    price_text = text_at(node, "price/display_text") or qualifier

    return MappedProperty(
        alto_id=alto_id,
        title=title,
        alias=slugify(title),
        type_name=canonical_type(text_at(node, "type")),
        category_id=category.category_id,
        category_name=category.name,
        category_rule=category.rule,
        is_sold=status.is_sold,
        status_label=status.label,
        display_address=address.display,
        full_address=address.full,
        postcode=address.postcode,
        town=address.town,
        county=address.county,
        country=address.country,
        small_desc=summary,
        full_desc=description,
        price=_price(node),
        price_text=price_text,
        currency_code=currency.upper(),
        bedrooms=to_int(text_at(node, "bedrooms")),
        bathrooms=to_float(text_at(node, "bathrooms"), 0.0),
        receptions=to_int(text_at(node, "receptions")),
        latitude=text_at(node, "latitude"),
        longitude=text_at(node, "longitude"),
        square_feet=to_float(text_at(node, "floor_area/total_floor_area_sqft"), 0.0),
        lot_size=to_float(text_at(node, "land_area/total_land_area_sqft"), 0.0),
        built_on=to_int(text_at(node, "year_built")),
        tenure=text_at(node, "tenure"),
        energy_rating=text_at(node, "epc/current_energy_efficiency"),
        environmental_impact=text_at(node, "epc/current_environmental_impact"),
        documents=map_documents(node).as_list(),
    )


@dataclass
class ImportResult:
    property_id: int
    inserted: bool
    mapped: MappedProperty
    images: ImageStats = field(default_factory=ImageStats)


class PropertyImporter:
    def __init__(self, images: ImagePipeline, settings: Settings):
        self.images = images
        self.settings = settings

    def import_property(self, db: Session, node, branch_id: str = "", last_changed: Optional[str] = None) -> ImportResult:
        """Map and write one property. Commit and rollback belong to the caller."""
        mapped = map_property(node, self.settings.default_country, self.settings.default_currency)
        logger.info("Mapping property %s (%s)", mapped.alto_id, mapped.title)

        ids = resolve_address_ids(db, _address_of(mapped))
        type_id = crud.get_or_create_dimension(db, PropertyType, mapped.type_name)
        currency_id = crud.get_currency_id(db, mapped.currency_code)
        crud.ensure_categories(db)
        changed_on = parse_last_changed(last_changed)

        data = {
            "alto_id": mapped.alto_id,
            "ref": mapped.alto_id,
            "pro_name": mapped.title,
            "pro_alias": mapped.alias,
            "pro_type": type_id,
            "category_id": mapped.category_id,
            "company_id": crud.get_company_id(db, branch_id),
            "address": mapped.display_address,
            "full_address": mapped.full_address,
            "postcode": mapped.postcode,
            "city": ids.city_id,
            "state": ids.state_id,
            "country": ids.country_id,
            "pro_small_desc": mapped.small_desc,
            "pro_full_desc": mapped.full_desc,
            "price": mapped.price,
            "price_text": mapped.price_text,
            "curr": currency_id,
            "bed_room": mapped.bedrooms,
            "bath_room": mapped.bathrooms,
            "rooms": mapped.receptions,
            "lat_add": mapped.latitude,
            "long_add": mapped.longitude,
            "square_feet": mapped.square_feet,
            "lot_size": mapped.lot_size,
            "built_on": mapped.built_on,
            "tenure": mapped.tenure,
            "energy_rating": mapped.energy_rating,
            "environmental_impact": mapped.environmental_impact,
            "isSold": mapped.is_sold,
            "status_label": mapped.status_label,
            "published": 1,
            "approved": 1,
            "hits": 0,
            "created": changed_on,
            "modified": changed_on,
        }
        pid, inserted = crud.upsert_property(db, data)
        logger.info("%s property %s as id %s (category %s via %s, type %s)",
                    "Inserted" if inserted else "Updated", mapped.alto_id, pid,
                    mapped.category_id, mapped.category_rule, mapped.type_name)

        crud.replace_property_category(db, pid, mapped.category_id)
        crud.apply_document_slots(db, pid, mapped.documents)
        stats = self.images.process(db, pid, node)
        return ImportResult(property_id=pid, inserted=inserted, mapped=mapped, images=stats)


def _address_of(mapped: MappedProperty):
    return AddressParts(
        display=mapped.display_address,
        full=mapped.full_address,
        postcode=mapped.postcode,
        town=mapped.town,
        county=mapped.county,
        country=mapped.country,
    )
