# altosync/mappers/address.py
from dataclasses import dataclass

from sqlalchemy.orm import Session

from .. import crud
from ..models import City, Country, State
from ..xmlutil import text_at


@dataclass
class AddressParts:
    display: str = ""
    full: str = ""
    postcode: str = ""
    town: str = ""
    county: str = ""
    country: str = ""


@dataclass
class AddressIds:
    city_id: int = 0
    state_id: int = 0
    country_id: int = 0


def _join(parts):
    return ", ".join(p for p in parts if p)


def map_address(address_node, default_country: str = "United Kingdom") -> AddressParts:
    """Display address (name, street, locality) and full address (plus town and postcode)."""
    if address_node is None:
        return AddressParts(country=default_country)
    name = text_at(address_node, "name")
    street = text_at(address_node, "street")
    locality = text_at(address_node, "locality")
    town = text_at(address_node, "town")
    postcode = text_at(address_node, "postcode")
    return AddressParts(
        display=_join([name, street, locality]),
        full=_join([name, street, locality, town, postcode]),
        postcode=postcode,
        town=town,
        county=text_at(address_node, "county"),
        country=text_at(address_node, "country") or default_country,
    )


def resolve_address_ids(db: Session, parts: AddressParts) -> AddressIds:
    return AddressIds(
        city_id=crud.get_or_create_dimension(db, City, parts.town),
        state_id=crud.get_or_create_dimension(db, State, parts.county),
        country_id=crud.get_or_create_dimension(db, Country, parts.country),
    )
